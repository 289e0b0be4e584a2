"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and the
lifecycle of the in-memory state: the service container is built here, the
background sweeper starts with the app and is cancelled on shutdown.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.adapters.source.base import AbstractRecordSource
from app.api.routes import cache_router, health_router, users_router
from app.core.config import Settings, settings
from app.core.container import ServiceContainer, build_container
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start background maintenance on startup and tear it down on shutdown."""

    container: ServiceContainer = app.state.container
    container.sweeper.start()
    try:
        yield
    finally:
        await container.sweeper.stop()
        container.cache.clear()


def create_app(
    app_settings: Settings | None = None,
    *,
    source: AbstractRecordSource | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Optional settings override; defaults to global settings.
        source: Optional record source override.

    Returns:
        Configured FastAPI app with its own service container.
    """
    cfg = app_settings or settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title="Cached User Lookup API",
        description=(
            "Keyed user lookups fronted by a TTL/LRU cache, single-flight "
            "request coalescing and per-client sliding-window rate limiting."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=lifespan,
    )
    app.state.container = build_container(cfg, source=source)

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(users_router, prefix="/v1")
    app.include_router(cache_router, prefix="/v1")
    app.include_router(health_router)

    # OpenAPI customizations (tags metadata)
    apply_openapi_customizations(app)

    logger.info(
        "app.created",
        extra={
            "app_env": cfg.app_env,
            "cache_ttl_s": cfg.cache.ttl_seconds,
            "cache_max_entries": cfg.cache.max_entries,
            "rate_limit_enabled": cfg.app.rate_limit_enabled,
        },
    )
    return app
