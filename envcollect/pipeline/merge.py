"""Transactional merge of new snapshots into per-location cache records."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Generic, TypeVar

from envcollect.common.errors import StoreError
from envcollect.common.logging import get_logger
from envcollect.common.models import (
    PollenCacheRecord,
    PollenSnapshot,
    PressurePoint,
    WeatherCacheRecord,
    WeatherSnapshot,
)
from envcollect.common.store import Document, DocumentStore
from envcollect.pipeline.analytics import DEFAULT_TOLERANCE, DEFAULT_TREND_THRESHOLD_MB, calculate_pressure_stats
from envcollect.pipeline.history import HistoryWindow

S = TypeVar("S")
P = TypeVar("P")
R = TypeVar("R")


class CacheMerger(ABC, Generic[S, P, R]):
    """Read-modify-write of one cache record inside a store transaction.

    The whole sequence is rerun when the store reports a concurrent write, so
    the record is never overwritten from a stale read.
    """

    def __init__(self, store: DocumentStore, *, collection: str, capacity: int, logger: logging.Logger | None = None):
        self.store = store
        self.collection = collection
        self.capacity = capacity
        self.logger = logger or get_logger(__name__)

    @abstractmethod
    def _decode_point(self, data: dict[str, Any]) -> P:
        ...

    @abstractmethod
    def _project(self, snapshot: S) -> P:
        ...

    @abstractmethod
    def _build_record(self, location_id: str, snapshot: S, window: HistoryWindow[P]) -> R:
        ...

    @abstractmethod
    def _decode_record(self, data: Document) -> R:
        ...

    def _load_window(self, location_id: str, existing: Document | None) -> HistoryWindow[P]:
        if existing is None:
            return HistoryWindow(self.capacity)
        try:
            points = [self._decode_point(item) for item in existing.get("history") or []]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise StoreError(f"decoding {self.collection}/{location_id}: {exc}") from exc
        return HistoryWindow(self.capacity, points)

    def merge(self, location_id: str, snapshot: S) -> R:
        def mutate(existing: Document | None) -> Document:
            window = self._load_window(location_id, existing)
            window.push(self._project(snapshot))
            return self._build_record(location_id, snapshot, window).to_dict()

        updated = self.store.transact(self.collection, location_id, mutate)
        return self._decode_record(updated)


class WeatherCacheMerger(CacheMerger[WeatherSnapshot, PressurePoint, WeatherCacheRecord]):
    def __init__(
        self,
        store: DocumentStore,
        *,
        collection: str,
        capacity: int = 48,
        tolerance: timedelta = DEFAULT_TOLERANCE,
        trend_threshold_mb: float = DEFAULT_TREND_THRESHOLD_MB,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(store, collection=collection, capacity=capacity, logger=logger)
        self.tolerance = tolerance
        self.trend_threshold_mb = trend_threshold_mb

    def _decode_point(self, data: dict[str, Any]) -> PressurePoint:
        return PressurePoint.from_dict(data)

    def _project(self, snapshot: WeatherSnapshot) -> PressurePoint:
        return PressurePoint.from_snapshot(snapshot)

    def _build_record(
        self,
        location_id: str,
        snapshot: WeatherSnapshot,
        window: HistoryWindow[PressurePoint],
    ) -> WeatherCacheRecord:
        analysis = calculate_pressure_stats(
            window,
            tolerance=self.tolerance,
            threshold=self.trend_threshold_mb,
            logger=self.logger,
            log_fields={"collector": "weather", "location": location_id},
        )
        return WeatherCacheRecord(
            last_updated=snapshot.timestamp,
            current=snapshot,
            analysis=analysis,
            history=window.points,
        )

    def _decode_record(self, data: Document) -> WeatherCacheRecord:
        return WeatherCacheRecord.from_dict(data)


class PollenCacheMerger(CacheMerger[PollenSnapshot, PollenSnapshot, PollenCacheRecord]):
    def __init__(
        self,
        store: DocumentStore,
        *,
        collection: str,
        capacity: int = 28,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(store, collection=collection, capacity=capacity, logger=logger)

    def _decode_point(self, data: dict[str, Any]) -> PollenSnapshot:
        return PollenSnapshot.from_dict(data)

    def _project(self, snapshot: PollenSnapshot) -> PollenSnapshot:
        return snapshot

    def _build_record(
        self,
        location_id: str,
        snapshot: PollenSnapshot,
        window: HistoryWindow[PollenSnapshot],
    ) -> PollenCacheRecord:
        return PollenCacheRecord(last_updated=snapshot.collected_at, current=snapshot, history=window.points)

    def _decode_record(self, data: Document) -> PollenCacheRecord:
        return PollenCacheRecord.from_dict(data)
