from __future__ import annotations

import logging
from typing import Any

import httpx

from tripmap.providers.google_directions import TokenBucketLimiter, request_error_details
from tripmap.services.cache import (
    PLACE_DETAILS_TTL_SECONDS,
    PLACE_PHOTO_TTL_SECONDS,
    PLACES_SEARCH_TTL_SECONDS,
    CacheBackend,
    cache_io,
    get_cache,
    place_details_cache_key,
    place_photo_cache_key,
    place_search_cache_key,
    with_cache,
)
from tripmap.utils.errors import InvalidInputError, ProviderError
from tripmap.utils.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)

MAX_PHOTO_WIDTH = 1600
DETAIL_FIELDS = (
    "place_id",
    "name",
    "formatted_address",
    "formatted_phone_number",
    "international_phone_number",
    "website",
    "rating",
    "price_level",
    "user_ratings_total",
    "geometry",
    "photos",
    "opening_hours",
    "types",
    "editorial_summary",
)


class GooglePlacesProvider:
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
        api_key = self.settings.resolved_places_api_key
        if not api_key:
            raise ProviderError("Google Places API key is not configured", error_code="GOOGLE_KEY_MISSING")
        return api_key

    def _url(self, path: str) -> str:
        return f"{self.settings.google_places_base_url.rstrip('/')}/{path}"

    async def _request(self, path: str, params: dict[str, Any], *, follow_redirects: bool = True) -> httpx.Response:
        params = {**params, "key": self._api_key()}
        await self._limiter.acquire()
        try:
            response = await self.http.get(self._url(path), params=params, follow_redirects=follow_redirects)
        except httpx.RequestError as exc:
            details = request_error_details(exc)
            LOGGER.warning("Places request error (details=%s)", details)
            raise ProviderError("Places request failed", error_code="GOOGLE_PLACES_REQUEST_ERROR", details=details) from exc

        if response.status_code >= 400:
            raise ProviderError(
                "Places request rejected",
                error_code="GOOGLE_PLACES_REJECTED",
                details={"status_code": response.status_code, "body": response.text[:300]},
            )
        return response

    async def _request_json(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        response = await self._request(path, params)
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError("Places response is not JSON", error_code="GOOGLE_PLACES_INVALID") from exc
        if not isinstance(payload, dict):
            raise ProviderError("Places response format invalid", error_code="GOOGLE_PLACES_INVALID")
        return payload

    @staticmethod
    def _raise_for_status(payload: dict[str, Any], *, allowed: set[str]) -> str:
        status = str(payload.get("status") or "")
        if status not in allowed:
            raise ProviderError(
                f"Places API error: {status or 'UNKNOWN'}",
                error_code="GOOGLE_PLACES_STATUS",
                details={"status": status, "error_message": payload.get("error_message")},
            )
        return status

    async def search_places(self, query: str) -> list[dict[str, Any]]:
        if not query or not query.strip():
            raise InvalidInputError("Search query is required")

        async def _call() -> list[dict[str, Any]]:
            LOGGER.info('PLACES SEARCH (API): "%s"', query)
            payload = await self._request_json("textsearch/json", {"query": query.strip()})
            status = self._raise_for_status(payload, allowed={"OK", "ZERO_RESULTS"})
            if status == "ZERO_RESULTS":
                return []
            return [item for item in payload.get("results") or [] if isinstance(item, dict)]

        return await with_cache(self.cache, place_search_cache_key(query), _call, PLACES_SEARCH_TTL_SECONDS)

    async def find_place_by_name(self, name: str) -> dict[str, Any] | None:
        results = await self.search_places(name)
        return results[0] if results else None

    async def get_place_details(self, place_id: str) -> dict[str, Any] | None:
        if not place_id or not place_id.strip():
            raise InvalidInputError("Place id is required")
        key = place_details_cache_key(place_id)
        cached = await cache_io(self.cache, self.cache.get, key)
        if cached is not None:
            LOGGER.info("PLACE DETAILS (CACHED): %s", place_id)
            return cached

        LOGGER.info("PLACE DETAILS (API): %s", place_id)
        payload = await self._request_json(
            "details/json",
            {"place_id": place_id.strip(), "fields": ",".join(DETAIL_FIELDS)},
        )
        status = self._raise_for_status(payload, allowed={"OK", "NOT_FOUND", "ZERO_RESULTS"})
        result = payload.get("result")
        if status != "OK" or not isinstance(result, dict):
            return None
        await cache_io(self.cache, self.cache.set, key, result, ttl_seconds=PLACE_DETAILS_TTL_SECONDS)
        return result

    async def get_photo_url(self, photo_reference: str, max_width: int = 400) -> str:
        if not photo_reference or not photo_reference.strip():
            raise InvalidInputError("Photo reference is required")
        if max_width < 1 or max_width > MAX_PHOTO_WIDTH:
            raise InvalidInputError(
                f"Width must be between 1 and {MAX_PHOTO_WIDTH} pixels",
                details={"width": max_width},
            )

        async def _call() -> str:
            LOGGER.info("PLACE PHOTO (API): %s [%s]", photo_reference, max_width)
            response = await self._request(
                "photo",
                {"photoreference": photo_reference.strip(), "maxwidth": int(max_width)},
                follow_redirects=False,
            )
            location = response.headers.get("location")
            if response.status_code not in {301, 302, 303, 307, 308} or not location:
                raise ProviderError(
                    "Photo URL could not be resolved",
                    error_code="GOOGLE_PHOTO_UNRESOLVED",
                    details={"status_code": response.status_code},
                )
            return str(location)

        return await with_cache(
            self.cache,
            place_photo_cache_key(photo_reference, max_width),
            _call,
            PLACE_PHOTO_TTL_SECONDS,
        )

    async def aclose(self) -> None:
        await self.http.aclose()


_PROVIDER: GooglePlacesProvider | None = None


def get_places_provider() -> GooglePlacesProvider:
    global _PROVIDER
    if _PROVIDER is None:
        _PROVIDER = GooglePlacesProvider()
    return _PROVIDER


async def close_places_provider() -> None:
    global _PROVIDER
    if _PROVIDER is not None:
        await _PROVIDER.aclose()
        _PROVIDER = None
