"""Bounded, time-ordered history windows."""

from __future__ import annotations

from typing import Generic, Iterable, Iterator, TypeVar

T = TypeVar("T")


class HistoryWindow(Generic[T]):
    """Most-recent-last sequence of points capped at ``capacity`` entries.

    Callers append in time order; lookups go through timestamps, never through
    positions relative to an expected sampling cadence.
    """

    def __init__(self, capacity: int, points: Iterable[T] = ()) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._points: list[T] = list(points)

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[T]:
        return iter(self._points)

    @property
    def points(self) -> tuple[T, ...]:
        return tuple(self._points)

    @property
    def latest(self) -> T | None:
        return self._points[-1] if self._points else None

    def append(self, point: T) -> None:
        self._points.append(point)

    def evict_to_capacity(self) -> int:
        surplus = len(self._points) - self.capacity
        if surplus <= 0:
            return 0
        del self._points[:surplus]
        return surplus

    def push(self, point: T) -> int:
        self.append(point)
        return self.evict_to_capacity()

    def newest_first(self, *, skip_latest: bool = False) -> Iterator[T]:
        end = len(self._points) - 1 if skip_latest else len(self._points)
        for idx in range(end - 1, -1, -1):
            yield self._points[idx]
