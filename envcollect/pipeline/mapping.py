"""Conversion of partner readings into canonical snapshots."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Iterable

from envcollect.common.errors import ValidationError
from envcollect.common.models import (
    PollenIndexEntry,
    PollenPlant,
    PollenReading,
    PollenSnapshot,
    PollenType,
    WeatherReading,
    WeatherSnapshot,
)
from envcollect.common.time_utils import ensure_utc, utc_now

KM_TO_MILES = 0.621371


def c_to_f(celsius: float | None) -> float | None:
    if celsius is None:
        return None
    return celsius * 1.8 + 32


def km_to_miles(km: float | None) -> float | None:
    if km is None:
        return None
    return km * KM_TO_MILES


def _validate_pressure(location_id: str, pressure_mb: float | None) -> float:
    # A zero or missing mean-sea-level pressure means the response was incomplete;
    # storing it would poison every delta computed against it.
    if pressure_mb is None:
        raise ValidationError(f"missing pressure data received for {location_id}")
    if math.isnan(pressure_mb) or pressure_mb <= 0:
        raise ValidationError(f"invalid pressure data ({pressure_mb}) received for {location_id}")
    return pressure_mb


def map_weather(location_id: str, reading: WeatherReading, collected_at: datetime | None = None) -> WeatherSnapshot:
    pressure_mb = _validate_pressure(location_id, reading.pressure_mb)
    return WeatherSnapshot(
        location=location_id,
        timestamp=ensure_utc(collected_at) if collected_at is not None else utc_now(),
        pressure_mb=pressure_mb,
        humidity_pct=reading.humidity_pct,
        precipitation_pct=reading.precipitation_pct,
        uv_index=reading.uv_index,
        wind_dir_deg=reading.wind_dir_deg,
        temp_c=reading.temp_c,
        temp_feel_c=reading.feels_like_c,
        dewpoint_c=reading.dewpoint_c,
        wind_speed_kph=reading.wind_speed_kph,
        wind_gust_kph=reading.wind_gust_kph,
        visibility_km=reading.visibility_km,
        temp_f=c_to_f(reading.temp_c),
        temp_feel_f=c_to_f(reading.feels_like_c),
        wind_speed_mph=km_to_miles(reading.wind_speed_kph),
        wind_gust_mph=km_to_miles(reading.wind_gust_kph),
        visibility_miles=km_to_miles(reading.visibility_km),
        dewpoint_f=c_to_f(reading.dewpoint_c),
        precipitation_type=reading.precipitation_type,
    )


def dominant_pollen_type(types: Iterable[PollenType]) -> tuple[int, str | None, str | None]:
    """Return (overall_index, category, code) of the strictly highest index.

    Ties keep the first entry seen; entries without an index never win, and an
    all-zero day has no dominant type.
    """
    overall_index = 0
    category = None
    code = None
    for item in types:
        if item.index is not None and item.index > overall_index:
            overall_index = item.index
            category = item.category
            code = item.code
    return overall_index, category, code


def _to_type(entry: PollenIndexEntry) -> PollenType:
    return PollenType(code=entry.code, index=entry.index, category=entry.category, in_season=entry.in_season)


def _to_plant(entry: PollenIndexEntry) -> PollenPlant:
    return PollenPlant(
        code=entry.code,
        display_name=entry.display_name,
        index=entry.index,
        category=entry.category,
        in_season=entry.in_season,
    )


def map_pollen(location_id: str, reading: PollenReading, collected_at: datetime | None = None) -> PollenSnapshot:
    types = tuple(_to_type(entry) for entry in reading.types)
    plants = tuple(_to_plant(entry) for entry in reading.plants)
    overall_index, overall_category, dominant = dominant_pollen_type(types)
    return PollenSnapshot(
        location_id=location_id,
        collected_at=ensure_utc(collected_at) if collected_at is not None else utc_now(),
        forecast_date=reading.date,
        overall_index=overall_index,
        overall_category=overall_category,
        dominant_type=dominant,
        types=types,
        plants=plants,
    )
