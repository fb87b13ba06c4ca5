from datetime import timedelta
from pathlib import Path

import pytest

from envcollect.common.config_loader import (
    load_config,
    load_runtime_env,
    resolve_collectors,
    select_locations,
)
from envcollect.common.errors import ConfigError


def test_load_config_from_repo_config_dir():
    bundle = load_config(Path("config"))

    assert [loc.id for loc in bundle.locations] == ["house-nick", "house-nita", "distribution-hall"]
    assert bundle.database_id == "weather-log"
    assert bundle.weather.cache_collection == "weather_cache"
    assert bundle.pollen.cache_collection == "pollen_cache"
    assert bundle.weather.max_history_points == 48
    assert bundle.pollen.max_history_points == 28
    assert bundle.weather.delta_tolerance == timedelta(minutes=45)
    assert bundle.api.backoff_seconds == (1.0, 2.0, 4.0)
    assert bundle.api.timeout_seconds == 15.0


def test_repo_locations_have_valid_coordinates():
    for loc in load_config(Path("config")).locations:
        assert -90 <= loc.lat <= 90
        assert -180 <= loc.long <= 180


def test_overlay_values_are_deep_merged(tmp_path: Path):
    overlay = tmp_path / "overlay"
    overlay.mkdir()
    (overlay / "collector.yml").write_text(
        """weather:
  max_history_points: 12
locations:
  - id: test-site
    lat: 51.5
    long: -0.12
""",
        encoding="utf-8",
    )

    bundle = load_config(Path("config"), overlay_config_dir=overlay)

    assert bundle.weather.max_history_points == 12
    assert bundle.weather.raw_collection == "weather_raw"
    assert [loc.id for loc in bundle.locations] == ["test-site"]


def test_missing_config_file_is_config_error(tmp_path: Path):
    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_resolve_collectors():
    assert resolve_collectors("all") == ["weather", "pollen"]
    assert resolve_collectors("pollen") == ["pollen"]
    with pytest.raises(ConfigError):
        resolve_collectors("humidity")


def test_select_locations_filters_and_rejects_unknown():
    bundle = load_config(Path("config"))

    assert [loc.id for loc in select_locations(bundle, ["house-nita"])] == ["house-nita"]
    assert select_locations(bundle, None) == bundle.locations
    with pytest.raises(ConfigError):
        select_locations(bundle, ["nowhere"])


def test_runtime_env_requires_key_and_project():
    with pytest.raises(ConfigError) as excinfo:
        load_runtime_env({})
    assert "GOOGLE_MAPS_API_KEY" in str(excinfo.value)
    assert "GCP_PROJECT_ID" in str(excinfo.value)

    env = load_runtime_env({"GOOGLE_MAPS_API_KEY": "k", "GCP_PROJECT_ID": "p", "DEBUG": "true"})
    assert env.api_key == "k"
    assert env.project_id == "p"
    assert env.debug is True


def test_runtime_env_project_optional_when_not_required():
    env = load_runtime_env({"GOOGLE_MAPS_API_KEY": "k"}, require_project=False)

    assert env.project_id is None
    assert env.debug is False
