"""Collection run over all configured locations with fail-soft semantics."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from envcollect.common.errors import CollectionError, PipelineError
from envcollect.common.logging import log_event
from envcollect.common.models import Location


class Collector(Protocol):
    name: str

    def fetch(self, location: Location) -> Any:
        ...

    def map(self, location: Location, reading: Any) -> Any:
        ...

    def archive(self, snapshot: Any) -> str:
        ...

    def merge(self, location: Location, snapshot: Any) -> Any:
        ...

    def describe(self, snapshot: Any, record: Any) -> dict[str, Any]:
        ...


@dataclass(frozen=True)
class CollectionSummary:
    collector: str
    succeeded: tuple[str, ...]
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def process_location(collector: Collector, location: Location, logger: logging.Logger) -> str | None:
    """Run one location's pipeline; return None on success or the failure's error code."""
    started = time.monotonic()
    stage = "fetch"
    try:
        reading = collector.fetch(location)
        stage = "map"
        snapshot = collector.map(location, reading)
        stage = "archive"
        collector.archive(snapshot)
        stage = "merge"
        record = collector.merge(location, snapshot)
    except PipelineError as exc:
        log_event(
            logger,
            f"{collector.name} {stage} failed for location {location.id}: {exc}",
            level=logging.ERROR,
            collector=collector.name,
            stage=stage,
            location=location.id,
            event="LOCATION_FAIL",
            status="error",
            duration_ms=_elapsed_ms(started),
            error_code=exc.error_code,
        )
        return exc.error_code
    except Exception as exc:
        log_event(
            logger,
            f"unexpected {collector.name} {stage} failure for location {location.id}: {type(exc).__name__}: {exc}",
            level=logging.ERROR,
            collector=collector.name,
            stage=stage,
            location=location.id,
            event="LOCATION_FAIL",
            status="error",
            duration_ms=_elapsed_ms(started),
            error_code="UNEXPECTED_ERROR",
        )
        return "UNEXPECTED_ERROR"

    log_event(
        logger,
        f"processed {collector.name} for location {location.id}",
        collector=collector.name,
        location=location.id,
        event="LOCATION_DONE",
        status="ok",
        duration_ms=_elapsed_ms(started),
        details=collector.describe(snapshot, record),
    )
    return None


def run_collection(
    collector: Collector,
    locations: Sequence[Location],
    logger: logging.Logger,
    *,
    max_workers: int = 1,
) -> CollectionSummary:
    log_event(logger, f"{collector.name} collection start", collector=collector.name, event="RUN_START", status="ok")

    if max_workers > 1 and len(locations) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            outcomes = list(pool.map(lambda loc: process_location(collector, loc, logger), locations))
    else:
        outcomes = [process_location(collector, loc, logger) for loc in locations]

    succeeded = tuple(loc.id for loc, outcome in zip(locations, outcomes) if outcome is None)
    failed = {loc.id: outcome for loc, outcome in zip(locations, outcomes) if outcome is not None}
    summary = CollectionSummary(collector=collector.name, succeeded=succeeded, failed=failed)

    if not succeeded:
        log_event(
            logger,
            f"all {collector.name} locations failed",
            level=logging.ERROR,
            collector=collector.name,
            event="RUN_FAIL",
            status="error",
            error_code=CollectionError.error_code,
            details={"total": summary.total},
        )
        raise CollectionError(f"All {summary.total} {collector.name} locations failed")

    log_event(
        logger,
        f"{collector.name} collection complete",
        collector=collector.name,
        event="RUN_END",
        status="ok" if not failed else "partial",
        details={"succeeded": len(succeeded), "total": summary.total, "failed": sorted(failed)},
    )
    return summary
