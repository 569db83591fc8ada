from __future__ import annotations

import logging
from typing import Sequence

from tripmap.models import Leg, Route, Stop
from tripmap.services.geo import haversine_m

LOGGER = logging.getLogger(__name__)


def synthesize_fallback_route(stops: Sequence[Stop]) -> Route:
    """Straight-line stand-in for a route the provider could not find.

    Durations are reported as 0: no travel time is estimated for a
    straight-line connection.
    """
    legs = tuple(
        Leg(
            origin_index=idx,
            distance_m=haversine_m(start.lat, start.lng, end.lat, end.lng),
            duration_s=0,
        )
        for idx, (start, end) in enumerate(zip(stops[:-1], stops[1:]))
    )
    path = "|".join(f"{stop.lat},{stop.lng}" for stop in stops)
    LOGGER.info("Synthesized straight-line route with %s legs for %s stops", len(legs), len(stops))
    return Route(legs=legs, encoded_path=path, is_fallback=True)


def describe_fallback(stops: Sequence[Stop]) -> str:
    if len(stops) < 2:
        return "No route"
    if len(stops) == 2:
        return f"Straight-line connection: {stops[0].name} → {stops[1].name}"
    return f"Straight-line route: {stops[0].name} → ... → {stops[-1].name} ({len(stops)} stops)"
