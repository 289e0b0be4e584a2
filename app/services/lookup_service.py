"""Lookup service orchestrating admission, caching and coalesced fetches.

This service is the core business logic sitting between the HTTP layer and
the slow record source. For every lookup it:
- Admits or rejects the client identity through the rate limiter
- Serves the record from the TTL cache when present
- Otherwise joins (or starts) a single coalesced fetch for the key
- Writes a fetched record back into the cache with set-if-absent semantics
- Records response latency for cache status reporting
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Literal

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.source.base import AbstractRecordSource
from app.core.errors import NotFoundAppError, RateLimitedAppError, ValidationAppError
from app.core.logging import hash_identity
from app.schemas.users import CreateUserRequest, UserRecord
from app.services.coalescer import FetchCoalescer
from app.utils.ttl_cache import CacheStatus, RecordValue, TTLCache

logger = logging.getLogger(__name__)

Provenance = Literal["cache", "source"]


@dataclass(frozen=True)
class LookupResult:
    """Record returned by a lookup together with where it came from."""

    provenance: Provenance
    value: UserRecord


def _as_record(value: RecordValue) -> UserRecord:
    if isinstance(value, UserRecord):
        return value
    return UserRecord.model_validate(value)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class LookupService:
    """Per-lookup control flow over limiter, cache, coalescer and source.

    Attributes:
        cache: TTL cache holding fetched and created records.
        coalescer: Single-flight wrapper around the source fetch.
        limiter: Per-identity admission controller, or None when disabled.
        source: Record source, used directly for record creation.
    """

    def __init__(
        self,
        *,
        cache: TTLCache,
        coalescer: FetchCoalescer[UserRecord],
        source: AbstractRecordSource,
        limiter: AbstractRateLimiter | None = None,
    ) -> None:
        self.cache = cache
        self.coalescer = coalescer
        self.source = source
        self.limiter = limiter

    def admit(self, identity: str) -> None:
        """Consume one unit of the identity's budget.

        Raises:
            RateLimitedAppError: If the identity is currently throttled.
        """
        if self.limiter is None:
            return

        result = self.limiter.consume(identity)
        identity_hash = hash_identity(identity)
        if result.allowed:
            logger.debug(
                "rate_limit.allowed",
                extra={
                    "identity_hash": identity_hash,
                    "limit": result.limit,
                    "remaining": result.remaining,
                },
            )
            return

        logger.warning(
            "rate_limit.exceeded",
            extra={
                "identity_hash": identity_hash,
                "limit": result.limit,
                "retry_after_s": result.retry_after_seconds,
            },
        )
        raise RateLimitedAppError(
            code="rate_limited",
            message="Too many requests. Rate limit exceeded.",
            details={
                "limit": result.limit,
                "remaining": result.remaining,
                "reset_at": result.reset_at,
                "retry_after": result.retry_after_seconds or 0,
            },
        )

    async def lookup(self, key: str, *, identity: str) -> LookupResult:
        """Resolve a record by key.

        Args:
            key: Record key.
            identity: Client identity used for admission control.

        Returns:
            LookupResult with provenance "cache" or "source".

        Raises:
            RateLimitedAppError: If the identity is throttled. Nothing else
                is touched in that case.
            NotFoundAppError: If the source has no record for the key.
            SourceAppError: If the source fetch failed. Latency is not
                recorded for failed fetches.
        """
        # Step 1: Admission
        self.admit(identity)

        start = time.perf_counter()

        # Step 2: Cache
        cached = self.cache.get(key)
        if cached is not None:
            elapsed = _elapsed_ms(start)
            self.cache.record_response_time(elapsed)
            self._log_completed(key, "cache", elapsed)
            return LookupResult(provenance="cache", value=_as_record(cached))

        # Step 3: Join or start the coalesced fetch
        record = await self.coalescer.fetch(key)
        elapsed = _elapsed_ms(start)

        if record is None:
            self.cache.record_response_time(elapsed)
            self._log_completed(key, "not_found", elapsed)
            raise NotFoundAppError(
                code="user_not_found",
                message="User not found",
                details={"key": key},
            )

        # Step 4: Populate unless another path already did
        self.cache.set_if_absent(key, record)
        self.cache.record_response_time(elapsed)
        self._log_completed(key, "source", elapsed)
        return LookupResult(provenance="source", value=record)

    async def create(self, payload: CreateUserRequest) -> UserRecord:
        """Create a record through the source and cache it under its id.

        Raises:
            ValidationAppError: If name or email is missing or blank.
        """
        name = (payload.name or "").strip()
        email = (payload.email or "").strip()
        missing = [field for field, value in (("name", name), ("email", email)) if not value]
        if missing:
            raise ValidationAppError(
                code="invalid_user_payload",
                message="name and email required",
                details={"field": ", ".join(missing)},
            )

        record = await self.source.create(name, email)
        self.cache.set(str(record.id), record)
        return record

    def clear_cache(self) -> None:
        self.cache.clear()

    def cache_status(self) -> CacheStatus:
        return self.cache.status()

    def _log_completed(self, key: str, outcome: str, elapsed_ms: float) -> None:
        logger.info(
            "lookup.completed",
            extra={
                "cache_key": key,
                "outcome": outcome,
                "duration_ms": round(elapsed_ms, 2),
            },
        )
