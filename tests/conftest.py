"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment defaults are set before any import that might build settings.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ.setdefault("APP_ENV", "testing")

# Keep the simulated source fast and the logs quiet
os.environ.setdefault("SOURCE_LATENCY_SECONDS", "0.05")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import asyncio

import pytest

from app.adapters.source.base import AbstractRecordSource
from app.schemas.users import UserRecord


class SpySource(AbstractRecordSource):
    """Record source double that counts fetches and can be held or failed.

    While ``gate`` is cleared, every fetch blocks until it is set, which keeps
    fetches in flight long enough for concurrent callers to pile up.
    """

    def __init__(self) -> None:
        self.records: dict[str, UserRecord] = {
            "1": UserRecord(id=1, name="John Doe", email="john@example.com"),
            "2": UserRecord(id=2, name="Jane Smith", email="jane@example.com"),
        }
        self.calls: list[str] = []
        self.gate = asyncio.Event()
        self.gate.set()
        self.error: Exception | None = None
        self._next_id = 100

    async def fetch(self, key: str) -> UserRecord | None:
        self.calls.append(key)
        await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.records.get(key)

    async def create(self, name: str, email: str) -> UserRecord:
        record = UserRecord(id=self._next_id, name=name, email=email)
        self._next_id += 1
        self.records[str(record.id)] = record
        return record


@pytest.fixture
def spy_source() -> SpySource:
    return SpySource()
