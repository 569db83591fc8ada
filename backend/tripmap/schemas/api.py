from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator


class StopIn(BaseModel):
    uid: str | None = None
    name: str | None = None
    lat: float | None = None
    lng: float | None = None
    role: Literal["place", "lodging"] = "place"
    is_day_end: bool = False
    drive_minutes_from_previous: int | None = None
    drive_meters_from_previous: float | None = None


class DayIn(BaseModel):
    day_index: int = Field(ge=0)
    stops: list[StopIn] = Field(default_factory=list)


class ItineraryIn(BaseModel):
    days: list[DayIn] = Field(default_factory=list)

    @model_validator(mode="after")
    def ensure_unique_days(self) -> "ItineraryIn":
        seen: set[int] = set()
        for day in self.days:
            if day.day_index in seen:
                raise ValueError(f"Duplicate day_index {day.day_index}")
            seen.add(day.day_index)
        return self


class RouteStopIn(BaseModel):
    uid: str
    name: str = ""
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    role: Literal["place", "lodging"] = "place"
    is_day_end: bool = False


class DirectionsRequest(BaseModel):
    stops: list[RouteStopIn]
    mode: str = "driving"


class LegOut(BaseModel):
    origin_index: int
    distance_m: float
    duration_s: int


class RouteOut(BaseModel):
    legs: list[LegOut]
    encoded_path: str
    is_fallback: bool


class DayRouteOut(BaseModel):
    day_index: int
    color: str
    stop_uids: list[str]
    route: RouteOut
    description: str | None = None


class DrivingMetricOut(BaseModel):
    stop_uid: str
    minutes_from_previous: int
    meters_from_previous: float


class DayFailureOut(BaseModel):
    day_index: int
    error_code: str
    message: str


class ItineraryDirectionsResponse(BaseModel):
    routes: list[DayRouteOut]
    metrics: dict[str, DrivingMetricOut]
    skipped_days: list[int]
    failures: list[DayFailureOut]
    fallback_count: int
    itinerary: ItineraryIn


class PhotoUrlResponse(BaseModel):
    reference: str
    width: int
    url: str


class CacheStatsResponse(BaseModel):
    backend: str
    keys: int
    hits: int
    misses: int
    hit_rate: float
    sets_count: int
    persistence: bool


class PlaceSearchResponse(BaseModel):
    query: str
    results: list[dict[str, Any]]
