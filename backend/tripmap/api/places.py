from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from tripmap.providers.google_places import MAX_PHOTO_WIDTH, GooglePlacesProvider, get_places_provider
from tripmap.schemas.api import PhotoUrlResponse, PlaceSearchResponse
from tripmap.utils.errors import AppError

router = APIRouter(prefix="/api/v1/places", tags=["places"])


@router.get("/search", response_model=PlaceSearchResponse)
async def search_places(
    query: str = Query(min_length=1),
    provider: GooglePlacesProvider = Depends(get_places_provider),
) -> PlaceSearchResponse:
    results = await provider.search_places(query)
    return PlaceSearchResponse(query=query, results=results)


@router.get("/photos/{reference}", response_model=PhotoUrlResponse)
async def photo_url(
    reference: str,
    width: int = Query(default=400, ge=1, le=MAX_PHOTO_WIDTH),
    provider: GooglePlacesProvider = Depends(get_places_provider),
) -> PhotoUrlResponse:
    url = await provider.get_photo_url(reference, width)
    return PhotoUrlResponse(reference=reference, width=width, url=url)


@router.get("/{place_id}")
async def place_details(
    place_id: str,
    provider: GooglePlacesProvider = Depends(get_places_provider),
) -> dict[str, Any]:
    details = await provider.get_place_details(place_id)
    if details is None:
        raise AppError(message=f"Place {place_id} not found", error_code="NOT_FOUND", status_code=404, stage="PLACES")
    return details
