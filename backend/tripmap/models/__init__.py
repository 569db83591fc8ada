from tripmap.models.entities import (
    ConnectedDay,
    DayFailure,
    DayRoute,
    DrivingMetric,
    ItineraryRoutes,
    Leg,
    Route,
    Stop,
)

__all__ = [
    "Stop",
    "Leg",
    "Route",
    "DrivingMetric",
    "ConnectedDay",
    "DayRoute",
    "DayFailure",
    "ItineraryRoutes",
]
