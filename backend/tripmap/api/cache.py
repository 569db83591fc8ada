from __future__ import annotations

from fastapi import APIRouter, Depends

from tripmap.schemas.api import CacheStatsResponse
from tripmap.services.cache import CacheBackend, get_cache

router = APIRouter(prefix="/api/v1/cache", tags=["cache"])


@router.get("/stats", response_model=CacheStatsResponse)
def cache_stats(cache: CacheBackend = Depends(get_cache)) -> CacheStatsResponse:
    return CacheStatsResponse(**cache.stats())


@router.post("/flush")
def cache_flush(cache: CacheBackend = Depends(get_cache)) -> dict:
    return {"flushed": bool(cache.flush()), "keys": len(cache.keys())}
