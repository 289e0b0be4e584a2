"""Factory pattern for creating record source instances."""

from app.adapters.source.base import AbstractRecordSource
from app.adapters.source.in_memory import InMemoryRecordSource
from app.core.config import SourceSettings, settings
from app.core.errors import ValidationAppError


def create_record_source(source_settings: SourceSettings | None = None) -> AbstractRecordSource:
    """Instantiate the record source configured by ``SOURCE_PROVIDER``.

    Args:
        source_settings: Optional override; defaults to global settings.

    Returns:
        AbstractRecordSource: Configured source instance.

    Raises:
        ValidationAppError: If the provider is unknown.
    """
    cfg = source_settings or settings.source
    provider = cfg.provider.lower()

    if provider == "memory":
        return InMemoryRecordSource(latency_seconds=cfg.latency_seconds)

    raise ValidationAppError(
        code="source_unknown_provider",
        message=f"Unknown record source provider: '{provider}'. Supported providers: memory",
        details={"provider": provider},
    )
