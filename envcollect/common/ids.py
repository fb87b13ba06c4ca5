"""Run identifier helpers."""

from __future__ import annotations

from envcollect.common.time_utils import utc_now


def generate_run_id() -> str:
    # Sortable id without external dependency.
    return utc_now().strftime("run-%Y%m%dT%H%M%S%fZ")
