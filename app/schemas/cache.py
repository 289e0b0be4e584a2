"""Pydantic schemas for cache administration endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class CacheStatusResponse(BaseModel):
    """Process-lifetime cache counters plus the current live size."""

    hits: int = Field(..., ge=0, description="Lookups served from the cache.")
    misses: int = Field(..., ge=0, description="Lookups that missed the cache.")
    size: int = Field(..., ge=0, description="Live (unexpired) entries.")
    avg_response_time_ms: float = Field(
        ...,
        ge=0,
        description="Mean lookup latency in milliseconds (0 when no samples).",
    )


class ClearCacheResponse(BaseModel):
    ok: bool = True
