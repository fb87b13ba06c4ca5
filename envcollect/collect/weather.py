"""Current-conditions collector: barometric pressure and surrounding weather."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from envcollect.common.config_loader import WeatherSettings
from envcollect.common.constants import API_KEY_HEADER
from envcollect.common.http import HttpClient
from envcollect.common.logging import get_logger, log_event
from envcollect.common.models import Location, WeatherReading, WeatherSnapshot
from envcollect.common.payload import float_at, int_at, require_object, str_at
from envcollect.common.store import DocumentStore
from envcollect.common.time_utils import utc_now
from envcollect.pipeline.mapping import map_weather
from envcollect.pipeline.merge import WeatherCacheMerger

DEFAULT_ENDPOINT = "https://weather.googleapis.com/v1/currentConditions:lookup"


def build_location_params(location: Location) -> dict[str, str]:
    return {
        "location.latitude": f"{location.lat:f}",
        "location.longitude": f"{location.long:f}",
    }


def parse_weather_payload(payload: Any) -> WeatherReading:
    body = require_object(payload, "weather")
    return WeatherReading(
        temp_c=float_at(body, "temperature", "degrees"),
        feels_like_c=float_at(body, "feelsLikeTemperature", "degrees"),
        dewpoint_c=float_at(body, "dewPoint", "degrees"),
        humidity_pct=int_at(body, "relativeHumidity"),
        uv_index=int_at(body, "uvIndex"),
        pressure_mb=float_at(body, "airPressure", "meanSeaLevelMillibars"),
        wind_dir_deg=int_at(body, "wind", "direction", "degrees"),
        wind_speed_kph=float_at(body, "wind", "speed", "value"),
        wind_gust_kph=float_at(body, "wind", "gust", "value"),
        visibility_km=float_at(body, "visibility", "distance"),
        precipitation_pct=int_at(body, "precipitation", "probability", "percent"),
        precipitation_type=str_at(body, "precipitation", "probability", "type"),
    )


def fetch_weather(
    client: HttpClient,
    api_key: str,
    location: Location,
    *,
    endpoint: str = DEFAULT_ENDPOINT,
) -> WeatherReading:
    payload = client.get_json(
        endpoint,
        params=build_location_params(location),
        headers={API_KEY_HEADER: api_key},
        context={"collector": "weather", "location": location.id},
    )
    return parse_weather_payload(payload)


class WeatherCollector:
    name = "weather"

    def __init__(
        self,
        *,
        client: HttpClient,
        api_key: str,
        store: DocumentStore,
        settings: WeatherSettings,
        clock: Callable[[], datetime] = utc_now,
        logger: logging.Logger | None = None,
    ) -> None:
        self.client = client
        self.api_key = api_key
        self.store = store
        self.settings = settings
        self.clock = clock
        self.logger = logger or get_logger(__name__)
        self.merger = WeatherCacheMerger(
            store,
            collection=settings.cache_collection,
            capacity=settings.max_history_points,
            tolerance=settings.delta_tolerance,
            trend_threshold_mb=settings.trend_threshold_mb,
            logger=self.logger,
        )

    def fetch(self, location: Location) -> WeatherReading:
        return fetch_weather(self.client, self.api_key, location, endpoint=self.settings.endpoint)

    def map(self, location: Location, reading: WeatherReading) -> WeatherSnapshot:
        snapshot = map_weather(location.id, reading, self.clock())
        log_event(
            self.logger,
            "mapped weather data",
            level=logging.DEBUG,
            collector=self.name,
            location=location.id,
            event="SNAPSHOT_MAPPED",
            details=snapshot.to_dict(),
        )
        return snapshot

    def archive(self, snapshot: WeatherSnapshot) -> str:
        return self.store.add(self.settings.raw_collection, snapshot.to_dict())

    def merge(self, location: Location, snapshot: WeatherSnapshot):
        return self.merger.merge(location.id, snapshot)

    def describe(self, snapshot: WeatherSnapshot, record) -> dict[str, Any]:
        return {"pressure_mb": snapshot.pressure_mb, "trend": record.analysis.trend}
