from __future__ import annotations

import math
from typing import Sequence

from tripmap.models import DrivingMetric, Route, Stop
from tripmap.utils.errors import MismatchedRouteShapeError


def minutes_from_seconds(seconds: float) -> int:
    # Half-up: 90 s is 2 min, 150 s is 3 min.
    return int(math.floor(seconds / 60 + 0.5))


def extract_driving_metrics(route: Route, stops: Sequence[Stop]) -> list[DrivingMetric]:
    if len(route.legs) != max(0, len(stops) - 1):
        raise MismatchedRouteShapeError(
            "Route legs do not line up with the stop list",
            details={"legs": len(route.legs), "stops": len(stops)},
        )
    return [
        DrivingMetric(
            stop_uid=stop.uid,
            minutes_from_previous=minutes_from_seconds(leg.duration_s),
            meters_from_previous=leg.distance_m,
        )
        for leg, stop in zip(route.legs, stops[1:])
    ]
