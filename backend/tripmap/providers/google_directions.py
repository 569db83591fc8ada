from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Any, Sequence

import httpx

from tripmap.models import Leg, Route, Stop
from tripmap.services.cache import DIRECTIONS_TTL_SECONDS, CacheBackend, cache_io, directions_cache_key, get_cache
from tripmap.services.fallback import synthesize_fallback_route
from tripmap.utils.errors import InvalidInputError, MismatchedRouteShapeError, ProviderError
from tripmap.utils.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)

STATUS_OK = "OK"
STATUS_ZERO_RESULTS = "ZERO_RESULTS"


class TokenBucketLimiter:
    def __init__(self, *, qps: float) -> None:
        safe_qps = float(max(0.5, qps))
        self._rate = safe_qps
        self._capacity = max(1.0, safe_qps)
        self._tokens = self._capacity
        self._updated_at = time.monotonic()
        self._lock = threading.Lock()

    async def acquire(self) -> None:
        while True:
            with self._lock:
                now = time.monotonic()
                elapsed = max(0.0, now - self._updated_at)
                self._updated_at = now
                self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return
                needed_s = (1.0 - self._tokens) / self._rate
            await asyncio.sleep(min(0.25, max(0.01, needed_s)))


def request_error_details(exc: Exception) -> dict[str, Any]:
    details: dict[str, Any] = {
        "error_type": exc.__class__.__name__,
        "error": str(exc),
    }
    request = None
    if isinstance(exc, httpx.RequestError):
        try:
            request = exc.request
        except RuntimeError:
            request = None
    if request is not None:
        details["method"] = str(request.method)
        # The query string carries the API key.
        details["url"] = f"{request.url.scheme}://{request.url.host}{request.url.path}"
    cause = exc.__cause__
    if cause is not None:
        details["cause_type"] = cause.__class__.__name__
        details["cause"] = str(cause)
    return details


def _coord(stop: Stop) -> str:
    return f"{stop.lat},{stop.lng}"


def parse_directions_payload(payload: dict[str, Any], *, expected_legs: int | None = None) -> Route:
    routes = payload.get("routes")
    if not isinstance(routes, list) or not routes:
        raise ProviderError("Directions response has no routes", error_code="GOOGLE_DIRECTIONS_EMPTY")

    route = routes[0]
    if not isinstance(route, dict):
        raise ProviderError("Directions route format invalid", error_code="GOOGLE_DIRECTIONS_INVALID")

    legs_obj = route.get("legs")
    if not isinstance(legs_obj, list):
        raise ProviderError("Directions response has no legs", error_code="GOOGLE_LEGS_MISSING")

    if expected_legs is not None and len(legs_obj) != expected_legs:
        raise MismatchedRouteShapeError(
            "Directions leg count does not match the stop list",
            details={"expected": expected_legs, "actual": len(legs_obj)},
        )

    legs: list[Leg] = []
    for idx, leg in enumerate(legs_obj):
        try:
            legs.append(
                Leg(
                    origin_index=idx,
                    distance_m=float(leg["distance"]["value"]),
                    duration_s=max(0, int(leg["duration"]["value"])),
                )
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ProviderError(
                "Directions leg format invalid",
                error_code="GOOGLE_LEG_INVALID",
                details={"leg_index": idx, "error": str(exc)},
            ) from exc

    polyline = ""
    polyline_obj = route.get("overview_polyline")
    if isinstance(polyline_obj, dict) and polyline_obj.get("points"):
        polyline = str(polyline_obj["points"])

    return Route(legs=tuple(legs), encoded_path=polyline, is_fallback=False)


class GoogleDirectionsProvider:
    def __init__(
        self,
        *,
        cache: CacheBackend | None = None,
        settings: Settings | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.cache = cache if cache is not None else get_cache()
        self.http = http or httpx.AsyncClient(timeout=max(1, int(self.settings.google_timeout_seconds)))
        self._limiter = TokenBucketLimiter(qps=float(self.settings.google_rate_limit_qps))

    def _api_key(self) -> str:
        api_key = self.settings.google_maps_api_key
        if not api_key:
            raise ProviderError("Google Maps API key is not configured", error_code="GOOGLE_KEY_MISSING")
        return api_key

    def _params(self, stops: Sequence[Stop], mode: str) -> dict[str, str]:
        params = {
            "origin": _coord(stops[0]),
            "destination": _coord(stops[-1]),
            "mode": mode,
            "units": "metric",
            "key": self._api_key(),
        }
        if len(stops) > 2:
            params["waypoints"] = "|".join(_coord(stop) for stop in stops[1:-1])
        return params

    async def _get(self, params: dict[str, str]) -> dict[str, Any]:
        await self._limiter.acquire()
        try:
            response = await self.http.get(self.settings.google_directions_url, params=params)
        except httpx.TimeoutException as exc:
            raise ProviderError(
                "Directions request timed out",
                error_code="GOOGLE_DIRECTIONS_TIMEOUT",
                details=request_error_details(exc),
            ) from exc
        except httpx.RequestError as exc:
            details = request_error_details(exc)
            LOGGER.warning("Directions request error (details=%s)", details)
            raise ProviderError(
                "Directions request failed",
                error_code="GOOGLE_DIRECTIONS_REQUEST_ERROR",
                details=details,
            ) from exc

        if response.status_code >= 400:
            raise ProviderError(
                "Directions request rejected",
                error_code="GOOGLE_DIRECTIONS_REJECTED",
                details={"status_code": response.status_code, "body": response.text[:300]},
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError("Directions response is not JSON", error_code="GOOGLE_DIRECTIONS_INVALID") from exc
        if not isinstance(payload, dict):
            raise ProviderError("Directions response format invalid", error_code="GOOGLE_DIRECTIONS_INVALID")
        return payload

    async def _cached_route(self, key: str, *, expected_legs: int) -> Route | None:
        hit = await cache_io(self.cache, self.cache.get, key)
        if not isinstance(hit, dict):
            return None
        try:
            route = Route.from_payload(hit)
        except (KeyError, TypeError, ValueError) as exc:
            LOGGER.warning("Discarding unreadable cached route %s: %s", key, exc)
            await cache_io(self.cache, self.cache.delete, key)
            return None
        if len(route.legs) != expected_legs:
            raise MismatchedRouteShapeError(
                "Cached route leg count does not match the stop list",
                details={"key": key, "expected": expected_legs, "actual": len(route.legs)},
            )
        return route

    async def route(self, stops: Sequence[Stop], mode: str = "driving") -> Route:
        stops = list(stops)
        if len(stops) < 2:
            raise InvalidInputError(
                "At least 2 stops are required to calculate directions",
                details={"stop_count": len(stops)},
            )

        key = directions_cache_key(stops, mode)
        label = " → ".join(stop.name or _coord(stop) for stop in stops)
        cached = await self._cached_route(key, expected_legs=len(stops) - 1)
        if cached is not None:
            LOGGER.info("DIRECTIONS (CACHED): %s [%s]", label, mode)
            return cached

        LOGGER.info("DIRECTIONS (API): %s [%s]", label, mode)
        payload = await self._get(self._params(stops, mode))
        status = str(payload.get("status") or "")

        if status == STATUS_ZERO_RESULTS:
            LOGGER.warning("No %s route found for %s stops; using straight-line fallback", mode, len(stops))
            route = synthesize_fallback_route(stops)
        elif status != STATUS_OK:
            raise ProviderError(
                f"Directions API error: {status or 'UNKNOWN'}",
                error_code="GOOGLE_DIRECTIONS_STATUS",
                details={"status": status, "error_message": payload.get("error_message")},
            )
        else:
            route = parse_directions_payload(payload, expected_legs=len(stops) - 1)

        await cache_io(self.cache, self.cache.set, key, route.to_payload(), ttl_seconds=DIRECTIONS_TTL_SECONDS)
        return route

    async def aclose(self) -> None:
        await self.http.aclose()


_PROVIDER: GoogleDirectionsProvider | None = None


def get_directions_provider() -> GoogleDirectionsProvider:
    global _PROVIDER
    if _PROVIDER is None:
        _PROVIDER = GoogleDirectionsProvider()
    return _PROVIDER


async def close_directions_provider() -> None:
    global _PROVIDER
    if _PROVIDER is not None:
        await _PROVIDER.aclose()
        _PROVIDER = None
