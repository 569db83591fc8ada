from __future__ import annotations

import logging
import math

from tripmap.models import Stop
from tripmap.schemas.api import ItineraryIn, StopIn

LOGGER = logging.getLogger(__name__)


def _valid_coordinate(value: float | None, limit: float) -> bool:
    if value is None:
        return False
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(number) and -limit <= number <= limit


def is_routable_stop(stop: StopIn) -> bool:
    name = (stop.name or "").strip()
    return bool(name) and _valid_coordinate(stop.lat, 90) and _valid_coordinate(stop.lng, 180)


def stop_uid(stop: StopIn, day_index: int, position: int) -> str:
    return stop.uid or f"place_{day_index + 1}_{position}"


def segment_days(itinerary: ItineraryIn) -> dict[int, list[Stop]]:
    """Group routable stops by day index.

    Stops without coordinates or a name are dropped; days left empty are
    omitted. Keys come back in ascending order.
    """
    stops_by_day: dict[int, list[Stop]] = {}
    dropped = 0
    for day in sorted(itinerary.days, key=lambda item: item.day_index):
        stops: list[Stop] = []
        for position, raw in enumerate(day.stops):
            if not is_routable_stop(raw):
                dropped += 1
                continue
            stops.append(
                Stop(
                    uid=stop_uid(raw, day.day_index, position),
                    name=(raw.name or "").strip(),
                    lat=float(raw.lat),
                    lng=float(raw.lng),
                    role=raw.role,
                    is_day_end=raw.is_day_end,
                )
            )
        if stops:
            stops_by_day[day.day_index] = stops

    if dropped:
        LOGGER.debug("Dropped %s stops without usable coordinates or name", dropped)
    LOGGER.info("Extracted stops across %s days from itinerary", len(stops_by_day))
    return stops_by_day
