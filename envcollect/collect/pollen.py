"""Pollen forecast collector."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from envcollect.common.config_loader import PollenSettings
from envcollect.common.constants import API_KEY_HEADER
from envcollect.common.http import HttpClient, PayloadError
from envcollect.common.logging import get_logger
from envcollect.common.models import Location, PollenIndexEntry, PollenReading, PollenSnapshot
from envcollect.common.payload import bool_at, dig, int_at, require_object, str_at
from envcollect.common.store import DocumentStore
from envcollect.common.time_utils import utc_now
from envcollect.collect.weather import build_location_params
from envcollect.pipeline.mapping import map_pollen
from envcollect.pipeline.merge import PollenCacheMerger

DEFAULT_ENDPOINT = "https://pollen.googleapis.com/v1/forecast:lookup"


def _parse_entries(items: Any, field: str) -> tuple[PollenIndexEntry, ...]:
    if items is None:
        return ()
    if not isinstance(items, list):
        raise PayloadError(f"Field {field} is not a list")
    entries = []
    for item in items:
        code = str_at(item, "code")
        if not code:
            raise PayloadError(f"Entry in {field} has no code")
        entries.append(
            PollenIndexEntry(
                code=code,
                display_name=str_at(item, "displayName"),
                in_season=bool_at(item, "inSeason"),
                index=int_at(item, "indexInfo", "value"),
                category=str_at(item, "indexInfo", "category"),
            )
        )
    return tuple(entries)


def _format_date(value: Any) -> str | None:
    year = int_at(value, "year")
    month = int_at(value, "month")
    day = int_at(value, "day")
    if None in (year, month, day):
        return None
    return f"{year:04d}-{month:02d}-{day:02d}"


def parse_pollen_payload(payload: Any, location_id: str) -> PollenReading:
    body = require_object(payload, "pollen")
    daily = dig(body, "dailyInfo")
    if daily is not None and not isinstance(daily, list):
        raise PayloadError("Field dailyInfo is not a list")
    if not daily:
        raise PayloadError(f"no daily info returned for {location_id}")
    today = daily[0]
    return PollenReading(
        date=_format_date(dig(today, "date")),
        types=_parse_entries(dig(today, "pollenTypeInfo"), "pollenTypeInfo"),
        plants=_parse_entries(dig(today, "plantInfo"), "plantInfo"),
    )


def fetch_pollen(
    client: HttpClient,
    api_key: str,
    location: Location,
    *,
    days: int = 1,
    endpoint: str = DEFAULT_ENDPOINT,
) -> PollenReading:
    params = build_location_params(location)
    params["days"] = str(days)
    payload = client.get_json(
        endpoint,
        params=params,
        headers={API_KEY_HEADER: api_key},
        context={"collector": "pollen", "location": location.id},
    )
    return parse_pollen_payload(payload, location.id)


class PollenCollector:
    name = "pollen"

    def __init__(
        self,
        *,
        client: HttpClient,
        api_key: str,
        store: DocumentStore,
        settings: PollenSettings,
        clock: Callable[[], datetime] = utc_now,
        logger: logging.Logger | None = None,
    ) -> None:
        self.client = client
        self.api_key = api_key
        self.store = store
        self.settings = settings
        self.clock = clock
        self.logger = logger or get_logger(__name__)
        self.merger = PollenCacheMerger(
            store,
            collection=settings.cache_collection,
            capacity=settings.max_history_points,
            logger=self.logger,
        )

    def fetch(self, location: Location) -> PollenReading:
        return fetch_pollen(
            self.client,
            self.api_key,
            location,
            days=self.settings.forecast_days,
            endpoint=self.settings.endpoint,
        )

    def map(self, location: Location, reading: PollenReading) -> PollenSnapshot:
        return map_pollen(location.id, reading, self.clock())

    def archive(self, snapshot: PollenSnapshot) -> str:
        return self.store.add(self.settings.raw_collection, snapshot.to_dict())

    def merge(self, location: Location, snapshot: PollenSnapshot):
        return self.merger.merge(location.id, snapshot)

    def describe(self, snapshot: PollenSnapshot, record) -> dict[str, Any]:
        return {"overall_index": snapshot.overall_index, "dominant": snapshot.dominant_type}
