import json
import logging
from datetime import datetime, timedelta, timezone

from envcollect.common.ids import generate_run_id
from envcollect.common.logging import JsonLineFormatter, build_logger, get_logger
from envcollect.common.models import PressureAnalysis, parse_timestamp
from envcollect.common.time_utils import ensure_utc, format_rfc3339


def test_generate_run_id_prefix():
    assert generate_run_id().startswith("run-")


def test_ensure_utc_and_rfc3339():
    naive = datetime(2026, 3, 7, 9, 0)
    offset = datetime(2026, 3, 7, 10, 0, tzinfo=timezone(timedelta(hours=1)))

    assert ensure_utc(naive).tzinfo == timezone.utc
    assert format_rfc3339(offset) == "2026-03-07T09:00:00Z"


def test_parse_timestamp_accepts_iso_strings():
    assert parse_timestamp("2026-03-07T09:00:00Z") == datetime(2026, 3, 7, 9, 0, tzinfo=timezone.utc)


def test_pressure_analysis_delta_lookup():
    analysis = PressureAnalysis(delta_03h=0.2)
    assert analysis.delta_for(3) == 0.2
    assert analysis.delta_for(24) is None


def test_json_formatter_has_stable_schema():
    record = logging.LogRecord("envcollect", logging.INFO, __file__, 1, "hello", None, None)
    record.location = "house-nick"
    record.event = "LOCATION_DONE"

    payload = json.loads(JsonLineFormatter(run_id="run-1").format(record))

    assert payload["message"] == "hello"
    assert payload["run_id"] == "run-1"
    assert payload["location"] == "house-nick"
    assert payload["error_code"] is None
    assert "analysis" not in payload


def test_build_logger_writes_jsonl_file(tmp_path):
    logger = build_logger("run-file", log_dir=tmp_path, level="INFO")
    get_logger("pipeline.test").info("child message", extra={"event": "X"})
    for handler in logger.handlers:
        handler.flush()

    lines = (tmp_path / "run-file.log.jsonl").read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[-1])["event"] == "X"
    assert json.loads(lines[-1])["logger"] == "envcollect.pipeline.test"
