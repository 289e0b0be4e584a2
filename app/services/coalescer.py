"""Single-flight coalescing of concurrent fetches for the same key.

The first caller for a key becomes the leader: it starts the source fetch as
its own task and publishes that task in the in-flight table before the fetch
gets a chance to run. Callers arriving while the task is pending become
followers and await the same task. The table entry is removed inside the
task itself, in a ``finally`` block, so it is gone before any waiter resumes,
whatever the outcome.

Waiters await the task through ``asyncio.shield``: a caller that gives up
(client disconnect, timeout) drops only its own wait, the fetch keeps running
for everybody else. A fetched value is handed to ``on_value`` by the task
itself, so it lands in the cache even when every waiter has left.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Awaitable, Callable, Generic, TypeVar

from app.core.errors import AppError, SourceAppError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SourceFetch = Callable[[str], Awaitable[T | None]]
ValueHook = Callable[[str, T], object]


class FetchCoalescer(Generic[T]):
    """Ensures at most one outstanding source fetch per key.

    Attributes:
        fetch_fn: Asynchronous source lookup returning the value or None.
        on_value: Optional hook called with ``(key, value)`` when a fetch
            returns a value, before any waiter resumes.
    """

    def __init__(self, fetch_fn: SourceFetch, *, on_value: ValueHook | None = None) -> None:
        self.fetch_fn = fetch_fn
        self.on_value = on_value
        self._in_flight: dict[str, asyncio.Task[T | None]] = {}
        # Guards the check-then-insert of a leader; never held across an await.
        self._lock = threading.Lock()

    def in_flight_count(self) -> int:
        with self._lock:
            return len(self._in_flight)

    def is_in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._in_flight

    async def fetch(self, key: str) -> T | None:
        """Join the outstanding fetch for ``key`` or start a new one.

        Args:
            key: Record key.

        Returns:
            The fetched value, or None when the source has no record.

        Raises:
            SourceAppError: If the source fetch failed. Every waiter on the
                same fetch receives the same error.
        """
        with self._lock:
            task = self._in_flight.get(key)
            leader = task is None
            if leader:
                task = asyncio.get_running_loop().create_task(self._run(key))
                task.add_done_callback(_consume_exception)
                self._in_flight[key] = task

        logger.debug(
            "coalescer.leader" if leader else "coalescer.follower",
            extra={"cache_key": key},
        )
        return await asyncio.shield(task)

    async def _run(self, key: str) -> T | None:
        try:
            value = await self.fetch_fn(key)
        except AppError:
            raise
        except Exception as exc:
            logger.warning(
                "coalescer.fetch_failed",
                extra={"cache_key": key, "error_type": type(exc).__name__},
            )
            raise SourceAppError(
                code="source_fetch_failed",
                message="The record source failed to answer.",
                details={"key": key, "error_type": type(exc).__name__},
            ) from exc
        else:
            if value is not None and self.on_value is not None:
                self.on_value(key, value)
            return value
        finally:
            with self._lock:
                self._in_flight.pop(key, None)


def _consume_exception(task: asyncio.Task) -> None:
    # Mark the outcome as retrieved; waiters that are still around re-raise it.
    if not task.cancelled():
        task.exception()
