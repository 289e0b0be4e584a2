from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from app.core.container import get_lookup_service
from app.core.rate_limit import enforce_rate_limit
from app.schemas.cache import CacheStatusResponse, ClearCacheResponse
from app.services.lookup_service import LookupService

router = APIRouter(tags=["Cache"], dependencies=[Depends(enforce_rate_limit)])


@router.delete("/cache", response_model=ClearCacheResponse)
def clear_cache(
    service: Annotated[LookupService, Depends(get_lookup_service)],
) -> ClearCacheResponse:
    """Drop every cached record. Hit/miss counters are kept."""

    service.clear_cache()
    return ClearCacheResponse(ok=True)


@router.get("/cache-status", response_model=CacheStatusResponse)
def cache_status(
    service: Annotated[LookupService, Depends(get_lookup_service)],
) -> CacheStatusResponse:
    """Report cache hits, misses, live size and average response time."""

    return CacheStatusResponse(**service.cache_status())
