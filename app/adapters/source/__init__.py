"""Record source adapter layer - abstracts over the slow keyed data source."""

from app.adapters.source.base import AbstractRecordSource
from app.adapters.source.factory import create_record_source
from app.adapters.source.in_memory import InMemoryRecordSource

__all__ = [
    "AbstractRecordSource",
    "InMemoryRecordSource",
    "create_record_source",
]
