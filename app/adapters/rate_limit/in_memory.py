"""In-memory sliding-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Conjunctive policy: a request is rejected only when BOTH the long window
  and the burst window are saturated at the same time. An identity that has
  used its long-window budget but is quiet within the burst window is still
  admitted. This is unusually permissive (most limiters reject on either
  window) and is kept as-is because clients observe it.
"""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult


class InMemorySlidingWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting admitted requests in two trailing windows per key.

    Each identity owns a deque of admission timestamps. Entries older than the
    long window are pruned lazily on every check, the deque is capped at
    ``2 * limit`` entries, and identities idle for longer than the long window
    plus ``idle_grace_seconds`` are dropped by :meth:`sweep_idle`.

    Rejected requests are never recorded, so they do not count toward future
    windows.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: float,
        burst_limit: int,
        burst_window_seconds: float,
        idle_grace_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Requests per long window before the identity is saturated.
            window_seconds: Size of the long sliding window in seconds.
            burst_limit: Requests per burst window before the identity is saturated.
            burst_window_seconds: Size of the burst sliding window in seconds.
            idle_grace_seconds: Extra time idle state is kept before sweeping.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If any limit or window is invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        if burst_limit < 1:
            raise ValueError("burst_limit must be >= 1")
        if burst_window_seconds <= 0:
            raise ValueError("burst_window_seconds must be > 0")
        if idle_grace_seconds < 0:
            raise ValueError("idle_grace_seconds must be >= 0")

        self._limit = limit
        self._window_seconds = window_seconds
        self._burst_limit = burst_limit
        self._burst_window_seconds = burst_window_seconds
        self._idle_grace_seconds = idle_grace_seconds
        self._max_tracked = limit * 2
        self._clock = clock
        self._lock = threading.RLock()
        self._windows: dict[str, deque[float]] = {}

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    def tracked_identities(self) -> int:
        """Return how many identities currently hold window state."""
        with self._lock:
            return len(self._windows)

    def history_length(self, key: str) -> int:
        """Return how many admission timestamps are retained for ``key``."""
        with self._lock:
            window = self._windows.get(key)
            return len(window) if window is not None else 0

    def _get_window(self, key: str) -> deque[float]:
        window = self._windows.get(key)
        if window is None:
            window = deque(maxlen=self._max_tracked)
            self._windows[key] = window
        return window

    def _prune(self, window: deque[float], now: float) -> None:
        cutoff = now - self._window_seconds
        while window and window[0] <= cutoff:
            window.popleft()

    def _burst_timestamps(self, window: deque[float], now: float) -> list[float]:
        cutoff = now - self._burst_window_seconds
        return [ts for ts in window if ts > cutoff]

    def _release_time(self, window: deque[float], burst: list[float]) -> float:
        """Compute when a saturated identity next becomes admissible.

        The identity is admitted again as soon as either window drops below
        its threshold, whichever happens first.
        """
        long_release = window[len(window) - self._limit] + self._window_seconds
        burst_release = burst[len(burst) - self._burst_limit] + self._burst_window_seconds
        return min(long_release, burst_release)

    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Check the identity's windows and record the request when admitted.

        Args:
            key: Unique client identity.
            cost: Units to record on admission (default 1).

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If key is empty or cost is invalid.
        """
        if cost < 1:
            raise ValueError("cost must be >= 1")
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()

        with self._lock:
            window = self._get_window(key)
            self._prune(window, now)
            burst = self._burst_timestamps(window, now)

            if len(window) >= self._limit and len(burst) >= self._burst_limit:
                release_at = self._release_time(window, burst)
                return RateLimitResult(
                    allowed=False,
                    limit=self._limit,
                    remaining=0,
                    reset_at=int(math.ceil(release_at)),
                    retry_after_seconds=max(1, int(math.ceil(release_at - now))),
                )

            for _ in range(cost):
                window.append(now)

            return RateLimitResult(
                allowed=True,
                limit=self._limit,
                remaining=max(0, self._limit - len(window)),
                reset_at=int(math.ceil(window[0] + self._window_seconds)),
                retry_after_seconds=None,
            )

    def sweep_idle(self) -> int:
        """Drop identities whose newest request left the long window plus grace.

        Returns:
            Number of identities removed.
        """
        cutoff = self._clock() - self._window_seconds - self._idle_grace_seconds
        with self._lock:
            idle = [
                key
                for key, window in self._windows.items()
                if not window or window[-1] <= cutoff
            ]
            for key in idle:
                del self._windows[key]
        return len(idle)
