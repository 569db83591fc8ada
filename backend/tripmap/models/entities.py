from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

StopRole = Literal["place", "lodging"]


@dataclass(frozen=True)
class Stop:
    uid: str
    name: str
    lat: float
    lng: float
    role: StopRole = "place"
    is_day_end: bool = False


@dataclass(frozen=True)
class Leg:
    origin_index: int
    distance_m: float
    duration_s: int


@dataclass(frozen=True)
class Route:
    legs: tuple[Leg, ...]
    encoded_path: str
    is_fallback: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "legs": [
                {
                    "origin_index": leg.origin_index,
                    "distance_m": leg.distance_m,
                    "duration_s": leg.duration_s,
                }
                for leg in self.legs
            ],
            "encoded_path": self.encoded_path,
            "is_fallback": self.is_fallback,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Route:
        legs = tuple(
            Leg(
                origin_index=int(item["origin_index"]),
                distance_m=float(item["distance_m"]),
                duration_s=int(item["duration_s"]),
            )
            for item in payload["legs"]
        )
        return cls(
            legs=legs,
            encoded_path=str(payload.get("encoded_path") or ""),
            is_fallback=bool(payload.get("is_fallback", False)),
        )


@dataclass(frozen=True)
class DrivingMetric:
    stop_uid: str
    minutes_from_previous: int
    meters_from_previous: float


@dataclass(frozen=True)
class ConnectedDay:
    day_index: int
    stops: tuple[Stop, ...]
    connector: Stop | None = None

    @property
    def native_stops(self) -> tuple[Stop, ...]:
        return self.stops[1:] if self.connector is not None else self.stops


@dataclass(frozen=True)
class DayRoute:
    day_index: int
    color: str
    route: Route
    stops: tuple[Stop, ...]


@dataclass(frozen=True)
class DayFailure:
    day_index: int
    error_code: str
    message: str


@dataclass
class ItineraryRoutes:
    routes: list[DayRoute] = field(default_factory=list)
    metrics_by_uid: dict[str, DrivingMetric] = field(default_factory=dict)
    skipped: list[int] = field(default_factory=list)
    failures: list[DayFailure] = field(default_factory=list)

    @property
    def fallback_count(self) -> int:
        return sum(1 for item in self.routes if item.route.is_fallback)
