"""Process-lifetime service container.

All long-lived mutable state (cache table, in-flight table, rate windows) is
created once by the application factory, stored on ``app.state`` and handed
to routes through dependencies. Nothing here is a module-level global.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from app.adapters.source.base import AbstractRecordSource
from app.adapters.source.factory import create_record_source
from app.core.config import Settings, settings
from app.schemas.users import UserRecord
from app.services.coalescer import FetchCoalescer
from app.services.lookup_service import LookupService
from app.services.sweeper import PeriodicSweeper, SweepJob
from app.utils.ttl_cache import TTLCache


@dataclass
class ServiceContainer:
    settings: Settings
    cache: TTLCache
    source: AbstractRecordSource
    coalescer: FetchCoalescer[UserRecord]
    limiter: AbstractRateLimiter | None
    lookup_service: LookupService
    sweeper: PeriodicSweeper


def build_container(
    cfg: Settings | None = None,
    *,
    source: AbstractRecordSource | None = None,
) -> ServiceContainer:
    """Build every stateful component from configuration.

    Args:
        cfg: Settings to build from; defaults to the global settings.
        source: Optional record source override (tests, alternative stores).

    Returns:
        ServiceContainer with the sweeper created but not started.
    """
    cfg = cfg or settings

    cache = TTLCache(
        ttl_seconds=cfg.cache.ttl_seconds,
        max_entries=cfg.cache.max_entries,
    )
    source = source or create_record_source(cfg.source)
    coalescer: FetchCoalescer[UserRecord] = FetchCoalescer(
        source.fetch,
        on_value=cache.set_if_absent,
    )

    limiter: AbstractRateLimiter | None = None
    if cfg.app.rate_limit_enabled:
        limiter = InMemorySlidingWindowRateLimiter(
            limit=cfg.app.rate_limit_requests,
            window_seconds=cfg.app.rate_limit_window_seconds,
            burst_limit=cfg.app.rate_limit_burst_requests,
            burst_window_seconds=cfg.app.rate_limit_burst_window_seconds,
            idle_grace_seconds=cfg.app.rate_limit_idle_grace_seconds,
        )

    batch_size = cfg.cache.sweep_batch_size
    jobs: dict[str, SweepJob] = {"cache": lambda: cache.sweep_expired(batch_size)}
    if limiter is not None:
        jobs["rate_limit"] = limiter.sweep_idle

    return ServiceContainer(
        settings=cfg,
        cache=cache,
        source=source,
        coalescer=coalescer,
        limiter=limiter,
        lookup_service=LookupService(
            cache=cache,
            coalescer=coalescer,
            source=source,
            limiter=limiter,
        ),
        sweeper=PeriodicSweeper(
            interval_seconds=cfg.cache.sweep_interval_seconds,
            jobs=jobs,
        ),
    )


def get_container(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the app's service container."""
    return request.app.state.container


def get_lookup_service(request: Request) -> LookupService:
    """FastAPI dependency returning the lookup orchestrator."""
    return get_container(request).lookup_service


def get_settings(request: Request) -> Settings:
    """Return the settings the serving app was built with.

    Apps assembled without the factory fall back to the global settings.
    """
    container = getattr(request.app.state, "container", None)
    return container.settings if container is not None else settings
