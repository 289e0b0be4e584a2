"""Rate limiter interfaces.

The orchestrator and the API layer depend on this abstraction (not the
concrete implementation) so the storage behind it can be swapped later.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check/consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Long-window request threshold.
        remaining: Requests left before the long-window threshold (0 when saturated).
        reset_at: UNIX epoch seconds when the identity stops being throttled.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume rate limit budget for a given key.

        Args:
            key: Unique client identity (e.g., client IP address).
            cost: Units to consume (default 1).

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def sweep_idle(self) -> int:
        """Drop state for identities that have been idle long enough.

        Returns:
            Number of identities removed.
        """
        raise NotImplementedError
