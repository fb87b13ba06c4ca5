from __future__ import annotations

import json
from pathlib import Path

import pytest

from envcollect.cli import parse_args, run_command
from envcollect.common.constants import EXIT_HARD_FAIL, EXIT_SUCCESS
from envcollect.common.errors import ConfigError
from envcollect.common.http import HttpRequestError
from envcollect.common.store import MemoryStore

ENV = {"GOOGLE_MAPS_API_KEY": "cli-secret-key"}

WEATHER = {"temperature": {"degrees": 22.5}, "airPressure": {"meanSeaLevelMillibars": 1016.4}}
POLLEN = {
    "dailyInfo": [
        {
            "pollenTypeInfo": [
                {"code": "GRASS", "indexInfo": {"value": 2, "category": "Low"}},
                {"code": "TREE", "indexInfo": {"value": 4, "category": "High"}},
                {"code": "WEED", "indexInfo": {"value": 0, "category": "None"}},
            ]
        }
    ]
}


class FakeHttpClient:
    def __init__(self, fail_pollen: bool = False):
        self.fail_pollen = fail_pollen
        self.calls: list[tuple[str, dict]] = []

    def get_json(self, url: str, **kwargs):
        self.calls.append((url, kwargs))
        if "pollen" in url:
            if self.fail_pollen:
                raise HttpRequestError("HTTP status: 403")
            return POLLEN
        return WEATHER

    def close(self):
        return None


@pytest.mark.integration
def test_cli_all_populates_both_caches(tmp_path: Path):
    store = MemoryStore()
    client = FakeHttpClient()
    args = parse_args(["all", "--config-dir", "config", "--run-id", "run-test", "--log-dir", str(tmp_path)])

    exit_code = run_command(args, environ=ENV, store=store, client=client)

    assert exit_code == EXIT_SUCCESS
    assert set(store.documents("weather_cache")) == {"house-nick", "house-nita", "distribution-hall"}
    assert set(store.documents("pollen_cache")) == {"house-nick", "house-nita", "distribution-hall"}
    assert len(store.documents("weather_raw")) == 3
    assert len(store.documents("pollen_raw")) == 3
    assert store.get("pollen_cache", "house-nick")["current"]["dominant_type"] == "TREE"
    assert all(call[1]["headers"]["X-Goog-Api-Key"] == "cli-secret-key" for call in client.calls)

    log_text = (tmp_path / "run-test.log.jsonl").read_text(encoding="utf-8")
    events = [json.loads(line)["event"] for line in log_text.splitlines()]
    assert events.count("LOCATION_DONE") == 6
    assert "RUN_END" in events


@pytest.mark.integration
def test_cli_selected_location_only(tmp_path: Path):
    store = MemoryStore()
    args = parse_args(["weather", "--config-dir", "config", "--location", "house-nita"])

    assert run_command(args, environ=ENV, store=store, client=FakeHttpClient()) == EXIT_SUCCESS
    assert set(store.documents("weather_cache")) == {"house-nita"}
    assert store.documents("pollen_cache") == {}


@pytest.mark.integration
def test_cli_hard_fails_when_a_collector_loses_every_location(tmp_path: Path):
    store = MemoryStore()
    args = parse_args(["all", "--config-dir", "config", "--log-dir", str(tmp_path), "--run-id", "run-fail"])

    exit_code = run_command(args, environ=ENV, store=store, client=FakeHttpClient(fail_pollen=True))

    assert exit_code == EXIT_HARD_FAIL
    assert len(store.documents("weather_cache")) == 3
    log_text = (tmp_path / "run-fail.log.jsonl").read_text(encoding="utf-8")
    assert "cli-secret-key" not in log_text
    assert "COLLECTOR_FAIL" in log_text


@pytest.mark.integration
def test_cli_requires_api_key():
    args = parse_args(["weather", "--config-dir", "config", "--store", "memory"])

    with pytest.raises(ConfigError):
        run_command(args, environ={})
