"""Rate limiting adapters.

This package provides a small abstraction layer so the service can run an
in-memory, per-process limiter and later migrate to a shared store without
changing the orchestrator or the API layer.
"""

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "InMemorySlidingWindowRateLimiter",
    "RateLimitResult",
]
