import pytest
from pydantic import ValidationError

from tripmap.schemas.api import ItineraryIn
from tripmap.services.segmentation import is_routable_stop, segment_days


def _itinerary(days):
    return ItineraryIn.model_validate({"days": days})


def test_segment_groups_stops_in_day_order():
    itinerary = _itinerary(
        [
            {"day_index": 1, "stops": [{"uid": "c", "name": "C", "lat": 35.2, "lng": 139.2}]},
            {
                "day_index": 0,
                "stops": [
                    {"uid": "a", "name": "A", "lat": 35.0, "lng": 139.0},
                    {"uid": "b", "name": "B", "lat": 35.1, "lng": 139.1, "role": "lodging"},
                ],
            },
        ]
    )

    stops_by_day = segment_days(itinerary)

    assert list(stops_by_day) == [0, 1]
    assert [stop.uid for stop in stops_by_day[0]] == ["a", "b"]
    assert stops_by_day[0][1].role == "lodging"


def test_segment_drops_unusable_stops_and_empty_days():
    itinerary = _itinerary(
        [
            {
                "day_index": 0,
                "stops": [
                    {"uid": "no-coords", "name": "Nowhere"},
                    {"uid": "blank", "name": "  ", "lat": 35.0, "lng": 139.0},
                    {"uid": "ok", "name": "Somewhere", "lat": 35.0, "lng": 139.0},
                ],
            },
            {"day_index": 2, "stops": [{"uid": "lost", "name": "Lost", "lat": 95.0, "lng": 139.0}]},
        ]
    )

    stops_by_day = segment_days(itinerary)

    assert list(stops_by_day) == [0]
    assert [stop.uid for stop in stops_by_day[0]] == ["ok"]


def test_segment_assigns_positional_uids():
    itinerary = _itinerary(
        [
            {
                "day_index": 2,
                "stops": [
                    {"name": "First", "lat": 35.0, "lng": 139.0},
                    {"name": "Second", "lat": 35.1, "lng": 139.1},
                ],
            }
        ]
    )

    assert [stop.uid for stop in segment_days(itinerary)[2]] == ["place_3_0", "place_3_1"]


def test_empty_itinerary_has_no_days():
    assert segment_days(_itinerary([])) == {}


def test_routable_stop_rejects_nan():
    itinerary = _itinerary([{"day_index": 0, "stops": [{"name": "X", "lat": float("nan"), "lng": 139.0}]}])
    assert is_routable_stop(itinerary.days[0].stops[0]) is False


def test_duplicate_day_index_is_rejected():
    with pytest.raises(ValidationError):
        _itinerary([{"day_index": 0, "stops": []}, {"day_index": 0, "stops": []}])
