"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from envcollect.common.errors import ConfigError

TOP_LEVEL_KEYS = {"database_id", "max_workers", "api", "weather", "pollen", "locations"}
API_KEYS = {"timeout_seconds", "backoff_seconds"}
WEATHER_KEYS = {
    "endpoint",
    "cache_collection",
    "raw_collection",
    "max_history_points",
    "delta_tolerance_minutes",
    "trend_threshold_mb",
}
POLLEN_KEYS = {"endpoint", "cache_collection", "raw_collection", "max_history_points", "forecast_days"}
LOCATION_KEYS = {"id", "lat", "long"}


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_positive_number(value, ctx: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"{ctx} must be a positive number")


def _assert_positive_int(value, ctx: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"{ctx} must be a positive integer")


def _assert_collection_names(section: dict, ctx: str) -> None:
    for key in ("cache_collection", "raw_collection"):
        if not isinstance(section[key], str) or not section[key].strip():
            raise ConfigError(f"{ctx}.{key} must be a non-empty string")
    if section["cache_collection"] == section["raw_collection"]:
        raise ConfigError(f"{ctx} cache and raw collections must be distinct")


def validate_locations(locations) -> list:
    if not isinstance(locations, list) or not locations:
        raise ConfigError("locations must be a non-empty list")

    seen: set[str] = set()
    for idx, loc in enumerate(locations):
        ctx = f"locations[{idx}]"
        _assert_required_keys(loc, LOCATION_KEYS, ctx)
        _assert_no_unknown_keys(loc, LOCATION_KEYS, ctx, allow_unknown=False)
        if not isinstance(loc["id"], str) or not loc["id"].strip():
            raise ConfigError(f"{ctx}.id must be a non-empty string")
        if loc["id"] in seen:
            raise ConfigError(f"Duplicate location id: {loc['id']}")
        seen.add(loc["id"])
        for key, limit in (("lat", 90), ("long", 180)):
            value = loc[key]
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(f"{ctx}.{key} must be a number")
            if not -limit <= value <= limit:
                raise ConfigError(f"{ctx}.{key} out of range: {value}")
    return locations


def validate_collector_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_required_keys(cfg, TOP_LEVEL_KEYS, "collector config")
    _assert_no_unknown_keys(cfg, TOP_LEVEL_KEYS, "collector config", allow_unknown)

    _assert_required_keys(cfg["api"], API_KEYS, "api")
    _assert_no_unknown_keys(cfg["api"], API_KEYS, "api", allow_unknown)
    _assert_positive_number(cfg["api"]["timeout_seconds"], "api.timeout_seconds")
    backoffs = cfg["api"]["backoff_seconds"]
    if not isinstance(backoffs, list):
        raise ConfigError("api.backoff_seconds must be a list")
    for idx, seconds in enumerate(backoffs):
        _assert_positive_number(seconds, f"api.backoff_seconds[{idx}]")

    _assert_required_keys(cfg["weather"], WEATHER_KEYS, "weather")
    _assert_no_unknown_keys(cfg["weather"], WEATHER_KEYS, "weather", allow_unknown)
    _assert_collection_names(cfg["weather"], "weather")
    _assert_positive_int(cfg["weather"]["max_history_points"], "weather.max_history_points")
    _assert_positive_number(cfg["weather"]["delta_tolerance_minutes"], "weather.delta_tolerance_minutes")
    _assert_positive_number(cfg["weather"]["trend_threshold_mb"], "weather.trend_threshold_mb")

    _assert_required_keys(cfg["pollen"], POLLEN_KEYS, "pollen")
    _assert_no_unknown_keys(cfg["pollen"], POLLEN_KEYS, "pollen", allow_unknown)
    _assert_collection_names(cfg["pollen"], "pollen")
    _assert_positive_int(cfg["pollen"]["max_history_points"], "pollen.max_history_points")
    _assert_positive_int(cfg["pollen"]["forecast_days"], "pollen.forecast_days")

    if cfg["weather"]["cache_collection"] == cfg["pollen"]["cache_collection"]:
        raise ConfigError("weather and pollen cache collections must be distinct")

    if not isinstance(cfg["database_id"], str) or not cfg["database_id"].strip():
        raise ConfigError("database_id must be a non-empty string")
    _assert_positive_int(cfg["max_workers"], "max_workers")

    validate_locations(cfg["locations"])
    return cfg
