"""Configuration loading and validation."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping

from envcollect.common.constants import API_KEY_ENV, COLLECTORS, DEBUG_ENV, PROJECT_ID_ENV
from envcollect.common.errors import ConfigError
from envcollect.common.fs import read_yaml
from envcollect.common.models import Location
from envcollect.common.schema import validate_collector_config

CONFIG_FILENAME = "collector.yml"


@dataclass(frozen=True)
class ApiSettings:
    timeout_seconds: float
    backoff_seconds: tuple[float, ...]


@dataclass(frozen=True)
class WeatherSettings:
    endpoint: str
    cache_collection: str
    raw_collection: str
    max_history_points: int
    delta_tolerance: timedelta
    trend_threshold_mb: float


@dataclass(frozen=True)
class PollenSettings:
    endpoint: str
    cache_collection: str
    raw_collection: str
    max_history_points: int
    forecast_days: int


@dataclass(frozen=True)
class ConfigBundle:
    database_id: str
    max_workers: int
    api: ApiSettings
    weather: WeatherSettings
    pollen: PollenSettings
    locations: tuple[Location, ...]


@dataclass(frozen=True)
class RuntimeEnv:
    api_key: str
    project_id: str | None
    debug: bool


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    return _deep_merge(base, overlay)


def build_bundle(cfg: dict) -> ConfigBundle:
    weather = cfg["weather"]
    pollen = cfg["pollen"]
    return ConfigBundle(
        database_id=cfg["database_id"],
        max_workers=cfg["max_workers"],
        api=ApiSettings(
            timeout_seconds=float(cfg["api"]["timeout_seconds"]),
            backoff_seconds=tuple(float(seconds) for seconds in cfg["api"]["backoff_seconds"]),
        ),
        weather=WeatherSettings(
            endpoint=weather["endpoint"],
            cache_collection=weather["cache_collection"],
            raw_collection=weather["raw_collection"],
            max_history_points=weather["max_history_points"],
            delta_tolerance=timedelta(minutes=weather["delta_tolerance_minutes"]),
            trend_threshold_mb=float(weather["trend_threshold_mb"]),
        ),
        pollen=PollenSettings(
            endpoint=pollen["endpoint"],
            cache_collection=pollen["cache_collection"],
            raw_collection=pollen["raw_collection"],
            max_history_points=pollen["max_history_points"],
            forecast_days=pollen["forecast_days"],
        ),
        locations=tuple(
            Location(id=loc["id"], lat=float(loc["lat"]), long=float(loc["long"])) for loc in cfg["locations"]
        ),
    )


def load_config(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> ConfigBundle:
    overlay_path = overlay_config_dir / CONFIG_FILENAME if overlay_config_dir is not None else None
    cfg = _load_yaml_with_overlay(config_dir / CONFIG_FILENAME, overlay_path)
    return build_bundle(validate_collector_config(cfg, allow_unknown=allow_unknown))


def resolve_collectors(target: str) -> list[str]:
    if target == "all":
        return list(COLLECTORS)
    if target not in COLLECTORS:
        raise ConfigError(f"Unknown collector: {target}")
    return [target]


def select_locations(bundle: ConfigBundle, location_ids: list[str] | None) -> tuple[Location, ...]:
    if not location_ids:
        return bundle.locations
    by_id = {loc.id: loc for loc in bundle.locations}
    unknown = [loc_id for loc_id in location_ids if loc_id not in by_id]
    if unknown:
        raise ConfigError(f"Unknown location ids: {', '.join(sorted(unknown))}")
    return tuple(by_id[loc_id] for loc_id in location_ids)


def load_runtime_env(environ: Mapping[str, str] | None = None, *, require_project: bool = True) -> RuntimeEnv:
    env = os.environ if environ is None else environ
    api_key = env.get(API_KEY_ENV, "")
    project_id = env.get(PROJECT_ID_ENV) or None
    missing = []
    if not api_key:
        missing.append(API_KEY_ENV)
    if require_project and not project_id:
        missing.append(PROJECT_ID_ENV)
    if missing:
        raise ConfigError(f"Missing required env vars: {', '.join(missing)}")
    return RuntimeEnv(
        api_key=api_key,
        project_id=project_id,
        debug=env.get(DEBUG_ENV, "").lower() == "true",
    )
