"""In-memory TTL cache used to front the slow record source.

Thread-safe, bounded, with least-recently-set eviction and a batched expiry
sweep that releases the lock between batches so concurrent lookups are never
stalled for a whole pass.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, TypedDict

from app.schemas.users import UserRecord

logger = logging.getLogger(__name__)


RecordValue = UserRecord | dict[str, Any]


@dataclass
class CacheEntry:
    """Container for cached values with expiration metadata."""

    key: str
    value: RecordValue
    inserted_at: float
    expires_at: float


class CacheStatus(TypedDict):
    hits: int
    misses: int
    size: int
    avg_response_time_ms: float


class TTLCache:
    """Thread-safe, in-memory TTL cache with LRU eviction by write order.

    Reads never refresh recency or TTL: only ``set`` moves an entry to the
    most-recent end. With a single TTL and a monotonic clock, the store is
    therefore ordered by expiry as well, so expired entries always sit at the
    front and can be purged without scanning the rest.

    ``size()`` purges expired entries before counting, so it never reports
    entries that a ``get`` would refuse to return.

    Counters (hits, misses, response times) live for the whole process and
    are not reset by ``clear()``.
    """

    def __init__(
        self,
        ttl_seconds: float = 60.0,
        max_entries: int = 10_000,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")

        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._store: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0
        self._total_response_time_ms = 0.0
        self._response_count = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"TTLCache(ttl_seconds={self._ttl}, max_entries={self._max_entries}, "
            f"size={len(self._store)}, hits={self._hits}, misses={self._misses}, "
            f"evictions={self._evictions})"
        )

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def get(self, key: str) -> RecordValue | None:
        """Retrieve a cached value if it exists and is not expired.

        Args:
            key: Cache key.

        Returns:
            Cached value or None if not found/expired.
        """

        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                logger.debug(
                    "cache.miss",
                    extra={"cache_key": key, "reason": "not_found"},
                )
                return None

            if self._clock() >= entry.expires_at:
                del self._store[key]
                self._expirations += 1
                self._misses += 1
                logger.debug(
                    "cache.miss",
                    extra={"cache_key": key, "reason": "expired"},
                )
                return None

            self._hits += 1
            logger.debug("cache.hit", extra={"cache_key": key})
            return entry.value

    def set(self, key: str, value: RecordValue) -> None:
        """Store a value with a fresh TTL, evicting the oldest write if full.

        Overwriting an existing key counts as a new insertion for both TTL and
        recency.

        Args:
            key: Cache key.
            value: Record to store.
        """

        with self._lock:
            self._insert_locked(key, value)

    def set_if_absent(self, key: str, value: RecordValue) -> bool:
        """Store a value only when no live entry exists for the key.

        Used after a source fetch so a value written by another path in the
        meantime is not replaced by the fetched one. Does not touch hit/miss
        counters.

        Returns:
            True if the value was stored.
        """

        with self._lock:
            entry = self._store.get(key)
            if entry is not None and self._clock() < entry.expires_at:
                return False
            self._insert_locked(key, value)
            return True

    def clear(self) -> None:
        """Remove all cached entries. Counters are kept."""

        with self._lock:
            removed = len(self._store)
            self._store.clear()

        logger.info("cache.cleared", extra={"removed": removed})

    def size(self) -> int:
        """Return the number of live entries, purging expired ones first."""

        with self._lock:
            self._purge_expired_front_locked(self._clock(), limit=None)
            return len(self._store)

    def record_response_time(self, ms: float) -> None:
        """Accumulate one response-time sample, regardless of hit or miss."""

        with self._lock:
            self._total_response_time_ms += ms
            self._response_count += 1

    def status(self) -> CacheStatus:
        """Return hit/miss counters, live size and average response time."""

        size = self.size()
        with self._lock:
            avg = (
                self._total_response_time_ms / self._response_count
                if self._response_count
                else 0.0
            )
            return {
                "hits": self._hits,
                "misses": self._misses,
                "size": size,
                "avg_response_time_ms": round(avg, 2),
            }

    def stats(self) -> dict[str, int | float]:
        """Return lightweight cache metrics without exposing values."""

        with self._lock:
            return {
                "ttl_seconds": self._ttl,
                "max_entries": self._max_entries,
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "expirations": self._expirations,
                "response_count": self._response_count,
            }

    def sweep_expired(self, batch_size: int = 500) -> int:
        """Remove expired entries in batches, releasing the lock between them.

        Args:
            batch_size: Maximum entries removed per lock acquisition.

        Returns:
            Number of entries removed.
        """

        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")

        removed = 0
        while True:
            with self._lock:
                batch = self._purge_expired_front_locked(self._clock(), limit=batch_size)
            removed += batch
            if batch < batch_size:
                break

        if removed:
            logger.debug("cache.sweep_completed", extra={"removed": removed})
        return removed

    def _insert_locked(self, key: str, value: RecordValue) -> None:
        now = self._clock()
        self._store.pop(key, None)
        self._evict_if_at_capacity_locked()
        self._store[key] = CacheEntry(
            key=key,
            value=value,
            inserted_at=now,
            expires_at=now + self._ttl,
        )

        logger.debug(
            "cache.set",
            extra={
                "cache_key": key,
                "size": len(self._store),
                "ttl_s": self._ttl,
            },
        )

    def _purge_expired_front_locked(self, now: float, *, limit: int | None) -> int:
        removed = 0
        while self._store and (limit is None or removed < limit):
            entry = next(iter(self._store.values()))
            if now < entry.expires_at:
                break
            self._store.popitem(last=False)
            self._expirations += 1
            removed += 1
        return removed

    def _evict_if_at_capacity_locked(self) -> None:
        while len(self._store) >= self._max_entries:
            # popitem(last=False) removes the least recently set entry
            key, _ = self._store.popitem(last=False)
            self._evictions += 1
            logger.debug("cache.evicted", extra={"cache_key": key})
