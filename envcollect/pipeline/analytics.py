"""Pressure deltas over fixed horizons and the barometric trend label."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable

from envcollect.common.constants import (
    PRESSURE_HORIZONS_HOURS,
    TREND_FALLING,
    TREND_RISING,
    TREND_STABLE,
    TREND_UNKNOWN,
)
from envcollect.common.logging import get_logger, log_event
from envcollect.common.models import PressureAnalysis, PressurePoint
from envcollect.common.time_utils import format_rfc3339
from envcollect.pipeline.history import HistoryWindow

# Must stay under half the sampling interval so adjacent cycles cannot both
# match one horizon.
DEFAULT_TOLERANCE = timedelta(minutes=45)
DEFAULT_TREND_THRESHOLD_MB = 0.5
TREND_HORIZON_HOURS = 3

_log = get_logger(__name__)


def find_nearest_point(
    candidates_newest_first: Iterable[PressurePoint],
    target: datetime,
    tolerance: timedelta,
) -> PressurePoint | None:
    best: PressurePoint | None = None
    best_diff: timedelta | None = None
    for point in candidates_newest_first:
        diff = abs(point.timestamp - target)
        if diff <= tolerance and (best_diff is None or diff < best_diff):
            best = point
            best_diff = diff
        # Candidates are time-ordered, so nothing older can be closer.
        if target - point.timestamp > tolerance:
            break
    return best


def classify_trend(delta_3h: float | None, threshold: float = DEFAULT_TREND_THRESHOLD_MB) -> str:
    if delta_3h is None:
        return TREND_UNKNOWN
    if delta_3h > threshold:
        return TREND_RISING
    if delta_3h < -threshold:
        return TREND_FALLING
    return TREND_STABLE


def calculate_pressure_stats(
    history: HistoryWindow[PressurePoint],
    *,
    tolerance: timedelta = DEFAULT_TOLERANCE,
    threshold: float = DEFAULT_TREND_THRESHOLD_MB,
    logger: logging.Logger | None = None,
    log_fields: dict | None = None,
) -> PressureAnalysis:
    """Compute deltas against the newest point of ``history``.

    A horizon with no stored point within ``tolerance`` of its target time is
    reported as None, never as zero. The trend uses the 3-hour delta only.
    """
    current = history.latest
    if current is None or len(history) < 2:
        return PressureAnalysis(timestamp=current.timestamp if current is not None else None)

    deltas: dict[int, float | None] = {}
    audit: dict[str, dict] = {}
    for hours in PRESSURE_HORIZONS_HOURS:
        target = current.timestamp - timedelta(hours=hours)
        match = find_nearest_point(history.newest_first(skip_latest=True), target, tolerance)
        entry: dict = {"target": format_rfc3339(target)}
        if match is None:
            deltas[hours] = None
        else:
            deltas[hours] = current.pressure_mb - match.pressure_mb
            entry["found"] = format_rfc3339(match.timestamp)
            entry["delta"] = deltas[hours]
        audit[f"{hours}h"] = entry

    log_event(
        logger or _log,
        "pressure analysis diagnostics",
        event="PRESSURE_ANALYSIS",
        status="ok",
        analysis={"current_time": format_rfc3339(current.timestamp), "horizons": audit},
        **(log_fields or {}),
    )

    return PressureAnalysis(
        timestamp=current.timestamp,
        delta_01h=deltas[1],
        delta_03h=deltas[3],
        delta_06h=deltas[6],
        delta_12h=deltas[12],
        delta_24h=deltas[24],
        trend=classify_trend(deltas[TREND_HORIZON_HOURS], threshold),
    )
