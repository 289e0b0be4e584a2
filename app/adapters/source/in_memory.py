"""In-memory record source with simulated fetch latency.

Stands in for a real database: every fetch waits a fixed delay before
answering, which is what makes caching and request coalescing observable.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading

from app.adapters.source.base import AbstractRecordSource
from app.schemas.users import UserRecord

logger = logging.getLogger(__name__)


SEED_USERS: tuple[UserRecord, ...] = (
    UserRecord(id=1, name="John Doe", email="john@example.com"),
    UserRecord(id=2, name="Jane Smith", email="jane@example.com"),
    UserRecord(id=3, name="Alice Johnson", email="alice@example.com"),
)


class InMemoryRecordSource(AbstractRecordSource):
    """Dict-backed record source keyed by integer id.

    Keys that are not plain decimal integers resolve to "not found" rather
    than an error.
    """

    def __init__(
        self,
        *,
        latency_seconds: float = 0.2,
        seed: tuple[UserRecord, ...] = SEED_USERS,
    ) -> None:
        if latency_seconds < 0:
            raise ValueError("latency_seconds must be >= 0")

        self._latency = latency_seconds
        self._records: dict[int, UserRecord] = {record.id: record for record in seed}
        self._ids = itertools.count(max(self._records, default=0) + 1)
        self._lock = threading.Lock()

    @property
    def latency_seconds(self) -> float:
        return self._latency

    async def fetch(self, key: str) -> UserRecord | None:
        await asyncio.sleep(self._latency)

        # Plain ASCII digits only: int() would also take "1_0", " 10 " or "+10"
        if not (key.isascii() and key.isdigit()):
            logger.debug("source.invalid_key", extra={"cache_key": key})
            return None

        return self._records.get(int(key))

    async def create(self, name: str, email: str) -> UserRecord:
        with self._lock:
            record = UserRecord(id=next(self._ids), name=name, email=email)
            self._records[record.id] = record

        logger.info("source.record_created", extra={"record_id": record.id})
        return record
