from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from app.core.container import get_settings
from app.core.rate_limit import enforce_rate_limit

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Health check endpoint.

    Returns a simple status response to verify the API is operational.
    Used by load balancers and monitoring systems to determine service health.

    Returns:
        dict: A dictionary with a single "status" key set to "ok".
    """

    return {"status": "ok"}


@router.get("/", dependencies=[Depends(enforce_rate_limit)])
def index(request: Request) -> dict:
    """Landing document listing the endpoints and the active policies.

    Counts against the caller's rate limit like every non-health route.
    """

    cfg = get_settings(request)
    app_cfg = cfg.app
    cache_cfg = cfg.cache
    return {
        "message": "Cached user lookup API",
        "endpoints": {
            "GET /v1/users/{user_id}": (
                "Fetch a user by id (cached, source simulated with "
                f"{cfg.source.latency_seconds * 1000:.0f}ms delay)."
            ),
            "POST /v1/users": "Create a user (JSON body: {name, email}) and cache it.",
            "DELETE /v1/cache": "Clear the entire cache.",
            "GET /v1/cache-status": "View cache hits, misses, size and average response time.",
        },
        "notes": {
            "rate_limiting": (
                f"Throttled only when both {app_cfg.rate_limit_requests} requests per "
                f"{app_cfg.rate_limit_window_seconds:g}s and "
                f"{app_cfg.rate_limit_burst_requests} requests per "
                f"{app_cfg.rate_limit_burst_window_seconds:g}s are reached, per client."
            ),
            "cache": (
                f"LRU in-memory cache, TTL = {cache_cfg.ttl_seconds:g}s, "
                f"capacity = {cache_cfg.max_entries}, background sweep every "
                f"{cache_cfg.sweep_interval_seconds:g}s."
            ),
            "concurrency": "Concurrent requests for the same user id share one source fetch.",
        },
    }
