import asyncio

from tripmap.models import Leg, Route
from tripmap.schemas.api import ItineraryIn
from tripmap.services.fallback import synthesize_fallback_route
from tripmap.services.itinerary_routes import (
    DAY_COLORS,
    apply_driving_metrics,
    compute_itinerary_routes,
    day_color,
)
from tripmap.utils.errors import ProviderError


class FakeDirections:
    """Routes every hop as 1 km / 2 min unless told otherwise."""

    def __init__(self, *, fail_on=None, no_route_on=None):
        self.fail_on = set(fail_on or ())
        self.no_route_on = set(no_route_on or ())
        self.calls = []

    async def route(self, stops, mode="driving"):
        uids = [stop.uid for stop in stops]
        self.calls.append(uids)
        if uids[-1] in self.fail_on:
            raise ProviderError("Directions API error: OVER_QUERY_LIMIT", error_code="GOOGLE_DIRECTIONS_STATUS")
        if uids[-1] in self.no_route_on:
            return synthesize_fallback_route(stops)
        legs = tuple(Leg(idx, 1000.0, 120) for idx in range(len(stops) - 1))
        return Route(legs=legs, encoded_path="_p~iF~ps|U", is_fallback=False)


def _stop(uid, lat, lng, **extra):
    return {"uid": uid, "name": uid.upper(), "lat": lat, "lng": lng, **extra}


def _itinerary(days):
    return ItineraryIn.model_validate({"days": days})


def test_day_color_cycles():
    assert day_color(0) == DAY_COLORS[0]
    assert day_color(len(DAY_COLORS)) == DAY_COLORS[0]


def test_days_are_chained_through_the_previous_day_end():
    itinerary = _itinerary(
        [
            {
                "day_index": 0,
                "stops": [
                    _stop("a", 35.0, 139.0),
                    _stop("b", 35.1, 139.1, role="lodging", is_day_end=True),
                    _stop("c", 35.2, 139.2),
                ],
            },
            {"day_index": 1, "stops": [_stop("d", 35.3, 139.3), _stop("e", 35.4, 139.4)]},
        ]
    )
    provider = FakeDirections()

    result = asyncio.run(compute_itinerary_routes(itinerary, provider))

    assert provider.calls == [["a", "b", "c"], ["b", "d", "e"]]
    assert [item.day_index for item in result.routes] == [0, 1]
    assert result.routes[1].color == DAY_COLORS[1]
    assert result.metrics_by_uid["a"].minutes_from_previous == 0
    assert result.metrics_by_uid["a"].meters_from_previous == 0.0
    assert result.metrics_by_uid["d"].minutes_from_previous == 2
    # The connector copy of "b" must not overwrite b's own day-0 metric.
    assert result.metrics_by_uid["b"].meters_from_previous == 1000.0


def test_single_stop_days_are_skipped_but_still_connect():
    itinerary = _itinerary(
        [
            {"day_index": 0, "stops": [_stop("x", 35.0, 139.0)]},
            {"day_index": 1, "stops": []},
            {"day_index": 2, "stops": [_stop("y", 35.01, 139.01)]},
        ]
    )
    provider = FakeDirections()

    result = asyncio.run(compute_itinerary_routes(itinerary, provider))

    assert result.skipped == [0]
    assert provider.calls == [["x", "y"]]
    assert [item.day_index for item in result.routes] == [2]
    assert "x" not in result.metrics_by_uid
    assert result.metrics_by_uid["y"].meters_from_previous == 1000.0


def test_failed_day_does_not_stop_later_days():
    itinerary = _itinerary(
        [
            {"day_index": 0, "stops": [_stop("a", 35.0, 139.0), _stop("b", 35.1, 139.1)]},
            {"day_index": 1, "stops": [_stop("c", 35.2, 139.2)]},
            {"day_index": 2, "stops": [_stop("d", 35.3, 139.3)]},
        ]
    )
    provider = FakeDirections(fail_on={"c"})

    result = asyncio.run(compute_itinerary_routes(itinerary, provider))

    assert [item.day_index for item in result.failures] == [1]
    assert result.failures[0].error_code == "GOOGLE_DIRECTIONS_STATUS"
    assert [item.day_index for item in result.routes] == [0, 2]
    assert provider.calls[-1] == ["c", "d"]
    assert "c" not in result.metrics_by_uid


def test_fallback_days_are_counted():
    itinerary = _itinerary(
        [{"day_index": 0, "stops": [_stop("a", 35.0, 139.0), _stop("island", 35.01, 139.01)]}]
    )

    result = asyncio.run(compute_itinerary_routes(itinerary, FakeDirections(no_route_on={"island"})))

    assert result.fallback_count == 1
    assert result.metrics_by_uid["island"].minutes_from_previous == 0
    assert result.metrics_by_uid["island"].meters_from_previous > 1000


def test_empty_itinerary_routes_nothing():
    provider = FakeDirections()
    result = asyncio.run(compute_itinerary_routes(_itinerary([]), provider))

    assert result.routes == []
    assert provider.calls == []


def test_apply_driving_metrics_returns_annotated_copy():
    itinerary = _itinerary(
        [{"day_index": 0, "stops": [{"name": "A", "lat": 35.0, "lng": 139.0}, {"name": "B", "lat": 35.1, "lng": 139.1}]}]
    )
    result = asyncio.run(compute_itinerary_routes(itinerary, FakeDirections()))

    annotated = apply_driving_metrics(itinerary, result)

    first, second = annotated.days[0].stops
    assert (first.drive_minutes_from_previous, first.drive_meters_from_previous) == (0, 0.0)
    assert (second.drive_minutes_from_previous, second.drive_meters_from_previous) == (2, 1000.0)
    assert itinerary.days[0].stops[1].drive_minutes_from_previous is None
