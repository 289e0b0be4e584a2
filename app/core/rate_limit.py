"""Rate limiting dependency for FastAPI routes.

This module wires the sliding-window limiter into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- One budget per client: the same limiter instance gates lookups (inside the
  lookup service) and every other route (through this dependency).

Identity strategy:
- Client network address, namespaced as ``ip:<host>``.
- If the address is unavailable, fall back to the configured default identity.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, Request

from app.core.container import get_lookup_service, get_settings
from app.services.lookup_service import LookupService

logger = logging.getLogger(__name__)


def client_identity(request: Request) -> str:
    """Build the limiter identity for the current request.

    Args:
        request: FastAPI request.

    Returns:
        str: Namespaced identity.
    """

    if request.client and request.client.host:
        return f"ip:{request.client.host}"
    return get_settings(request).app.default_client_identity


async def enforce_rate_limit(
    request: Request,
    service: Annotated[LookupService, Depends(get_lookup_service)],
) -> None:
    """FastAPI dependency enforcing rate limits on non-lookup routes.

    Raises:
        RateLimitedAppError: When the identity is throttled (rendered as 429).
    """

    service.admit(client_identity(request))
