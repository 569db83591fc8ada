from __future__ import annotations

import math

from tripmap.models import Route

EARTH_RADIUS_M = 6371000.0


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    p = math.pi / 180
    dlat = (lat2 - lat1) * p
    dlng = (lng2 - lng1) * p
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1 * p) * math.cos(lat2 * p) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))


def _decode_value(encoded: str, index: int) -> tuple[int, int]:
    shift = 0
    value = 0
    while True:
        b = ord(encoded[index]) - 63
        index += 1
        value |= (b & 0x1F) << shift
        shift += 5
        if b < 0x20:
            break
    delta = ~(value >> 1) if (value & 1) else (value >> 1)
    return delta, index


def decode_polyline(encoded: str) -> list[tuple[float, float]]:
    """Decode a Google encoded polyline into (lat, lng) points.

    See https://developers.google.com/maps/documentation/utilities/polylinealgorithm
    """
    points: list[tuple[float, float]] = []
    index = 0
    lat = 0
    lng = 0
    while index < len(encoded):
        dlat, index = _decode_value(encoded, index)
        dlng, index = _decode_value(encoded, index)
        lat += dlat
        lng += dlng
        points.append((lat / 1e5, lng / 1e5))
    return points


def decode_straight_line_path(path: str) -> list[tuple[float, float]]:
    points: list[tuple[float, float]] = []
    for pair in path.split("|"):
        if not pair:
            continue
        lat_text, lng_text = pair.split(",", 1)
        points.append((float(lat_text), float(lng_text)))
    return points


def decode_route_path(route: Route) -> list[tuple[float, float]]:
    # Fallback routes carry raw "lat,lng" pairs, never a polyline.
    if route.is_fallback:
        return decode_straight_line_path(route.encoded_path)
    return decode_polyline(route.encoded_path)
