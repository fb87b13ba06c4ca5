"""Data models used across the collectors."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from envcollect.common.constants import TREND_UNKNOWN
from envcollect.common.time_utils import ensure_utc


def parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str):
        return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    raise TypeError(f"Unsupported timestamp value: {value!r}")


def _optional_timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    return parse_timestamp(value)


@dataclass(frozen=True)
class Location:
    id: str
    lat: float
    long: float


@dataclass(frozen=True)
class WeatherReading:
    """Typed projection of a current-conditions response; None means absent."""

    temp_c: float | None = None
    feels_like_c: float | None = None
    dewpoint_c: float | None = None
    humidity_pct: int | None = None
    uv_index: int | None = None
    pressure_mb: float | None = None
    wind_dir_deg: int | None = None
    wind_speed_kph: float | None = None
    wind_gust_kph: float | None = None
    visibility_km: float | None = None
    precipitation_pct: int | None = None
    precipitation_type: str | None = None


@dataclass(frozen=True)
class PollenIndexEntry:
    code: str
    display_name: str | None = None
    in_season: bool | None = None
    index: int | None = None
    category: str | None = None


@dataclass(frozen=True)
class PollenReading:
    date: str | None
    types: tuple[PollenIndexEntry, ...] = ()
    plants: tuple[PollenIndexEntry, ...] = ()


@dataclass(frozen=True)
class WeatherSnapshot:
    location: str
    timestamp: datetime
    pressure_mb: float
    humidity_pct: int | None = None
    precipitation_pct: int | None = None
    uv_index: int | None = None
    wind_dir_deg: int | None = None
    temp_c: float | None = None
    temp_feel_c: float | None = None
    dewpoint_c: float | None = None
    wind_speed_kph: float | None = None
    wind_gust_kph: float | None = None
    visibility_km: float | None = None
    temp_f: float | None = None
    temp_feel_f: float | None = None
    wind_speed_mph: float | None = None
    wind_gust_mph: float | None = None
    visibility_miles: float | None = None
    dewpoint_f: float | None = None
    precipitation_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WeatherSnapshot":
        values = dict(data)
        values["timestamp"] = parse_timestamp(values["timestamp"])
        return cls(**values)


@dataclass(frozen=True)
class PressurePoint:
    timestamp: datetime
    pressure_mb: float
    humidity_pct: int | None = None
    temp_c: float | None = None
    temp_feel_c: float | None = None
    dewpoint_c: float | None = None
    temp_f: float | None = None
    temp_feel_f: float | None = None
    dewpoint_f: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PressurePoint":
        values = dict(data)
        values["timestamp"] = parse_timestamp(values["timestamp"])
        values["pressure_mb"] = float(values["pressure_mb"])
        return cls(**values)

    @classmethod
    def from_snapshot(cls, snapshot: WeatherSnapshot) -> "PressurePoint":
        return cls(
            timestamp=snapshot.timestamp,
            pressure_mb=snapshot.pressure_mb,
            humidity_pct=snapshot.humidity_pct,
            temp_c=snapshot.temp_c,
            temp_feel_c=snapshot.temp_feel_c,
            dewpoint_c=snapshot.dewpoint_c,
            temp_f=snapshot.temp_f,
            temp_feel_f=snapshot.temp_feel_f,
            dewpoint_f=snapshot.dewpoint_f,
        )


@dataclass(frozen=True)
class PressureAnalysis:
    # None deltas mean no reading was found near the horizon, not "no change".
    timestamp: datetime | None = None
    delta_01h: float | None = None
    delta_03h: float | None = None
    delta_06h: float | None = None
    delta_12h: float | None = None
    delta_24h: float | None = None
    trend: str = TREND_UNKNOWN

    def delta_for(self, hours: int) -> float | None:
        return getattr(self, f"delta_{hours:02d}h")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PressureAnalysis":
        values = dict(data)
        values["timestamp"] = _optional_timestamp(values.get("timestamp"))
        return cls(**values)


@dataclass(frozen=True)
class PollenType:
    code: str
    index: int | None
    category: str | None
    in_season: bool | None


@dataclass(frozen=True)
class PollenPlant:
    code: str
    display_name: str | None
    index: int | None
    category: str | None
    in_season: bool | None


@dataclass(frozen=True)
class PollenSnapshot:
    location_id: str
    collected_at: datetime
    forecast_date: str | None = None
    overall_index: int = 0
    overall_category: str | None = None
    dominant_type: str | None = None
    types: tuple[PollenType, ...] = ()
    plants: tuple[PollenPlant, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "location_id": self.location_id,
            "collected_at": self.collected_at,
            "forecast_date": self.forecast_date,
            "overall_index": self.overall_index,
            "overall_category": self.overall_category,
            "dominant_type": self.dominant_type,
            "types": [asdict(item) for item in self.types],
            "plants": [asdict(item) for item in self.plants],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PollenSnapshot":
        return cls(
            location_id=data["location_id"],
            collected_at=parse_timestamp(data["collected_at"]),
            forecast_date=data.get("forecast_date"),
            overall_index=int(data.get("overall_index") or 0),
            overall_category=data.get("overall_category"),
            dominant_type=data.get("dominant_type"),
            types=tuple(PollenType(**item) for item in data.get("types") or []),
            plants=tuple(PollenPlant(**item) for item in data.get("plants") or []),
        )


@dataclass(frozen=True)
class WeatherCacheRecord:
    last_updated: datetime
    current: WeatherSnapshot
    analysis: PressureAnalysis
    history: tuple[PressurePoint, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "last_updated": self.last_updated,
            "current": self.current.to_dict(),
            "analysis": self.analysis.to_dict(),
            "history": [point.to_dict() for point in self.history],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WeatherCacheRecord":
        return cls(
            last_updated=parse_timestamp(data["last_updated"]),
            current=WeatherSnapshot.from_dict(data["current"]),
            analysis=PressureAnalysis.from_dict(data.get("analysis") or {}),
            history=tuple(PressurePoint.from_dict(item) for item in data.get("history") or []),
        )


@dataclass(frozen=True)
class PollenCacheRecord:
    last_updated: datetime
    current: PollenSnapshot
    history: tuple[PollenSnapshot, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "last_updated": self.last_updated,
            "current": self.current.to_dict(),
            "history": [snapshot.to_dict() for snapshot in self.history],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PollenCacheRecord":
        return cls(
            last_updated=parse_timestamp(data["last_updated"]),
            current=PollenSnapshot.from_dict(data["current"]),
            history=tuple(PollenSnapshot.from_dict(item) for item in data.get("history") or []),
        )
