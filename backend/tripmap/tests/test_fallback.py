import pytest

from fakes import make_stop
from tripmap.services.fallback import describe_fallback, synthesize_fallback_route
from tripmap.services.geo import decode_route_path, haversine_m


def test_fallback_has_one_straight_leg_per_hop():
    stops = [make_stop("x", 35.0, 139.0), make_stop("y", 35.01, 139.01), make_stop("z", 35.02, 139.0)]

    route = synthesize_fallback_route(stops)

    assert route.is_fallback is True
    assert [leg.origin_index for leg in route.legs] == [0, 1]
    assert all(leg.duration_s == 0 for leg in route.legs)
    assert route.legs[0].distance_m == pytest.approx(haversine_m(35.0, 139.0, 35.01, 139.01))
    assert route.legs[0].distance_m == pytest.approx(1437.0, rel=0.01)


def test_fallback_path_is_the_stop_list():
    stops = [make_stop("x", 35.0, 139.0), make_stop("y", 35.01, 139.01)]

    route = synthesize_fallback_route(stops)

    assert route.encoded_path == "35.0,139.0|35.01,139.01"
    assert decode_route_path(route) == [(35.0, 139.0), (35.01, 139.01)]


def test_describe_fallback():
    two = [make_stop("x", 35.0, 139.0), make_stop("y", 35.01, 139.01)]
    three = two + [make_stop("z", 35.02, 139.0)]

    assert describe_fallback(two[:1]) == "No route"
    assert describe_fallback(two) == "Straight-line connection: X → Y"
    assert describe_fallback(three) == "Straight-line route: X → ... → Z (3 stops)"
