"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings (v2) populates values from environment variables, so the
    nested groups are created through default factories rather than passed in.
    """

    return AppSettings()


def _build_cache_settings() -> "CacheSettings":
    return CacheSettings()


def _build_source_settings() -> "SourceSettings":
    return SourceSettings()


def _build_log_settings() -> "LogSettings":
    return LogSettings()


class AppSettings(BaseSettings):
    """Application-wide configuration, mostly admission control."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    default_client_identity: str = Field(
        "global",
        description="Identity used for rate limiting when the client address is unknown",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-client sliding-window rate limiting",
    )
    rate_limit_requests: int = Field(
        10,
        description="Long-window request threshold (per client identity)",
        ge=1,
    )
    rate_limit_window_seconds: float = Field(
        60,
        description="Long sliding window size in seconds",
        gt=0,
    )
    rate_limit_burst_requests: int = Field(
        5,
        description="Burst-window request threshold (per client identity)",
        ge=1,
    )
    rate_limit_burst_window_seconds: float = Field(
        10,
        description="Burst sliding window size in seconds",
        gt=0,
    )
    rate_limit_idle_grace_seconds: float = Field(
        60,
        description="Extra time an idle identity is kept after its long window empties",
        ge=0,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class CacheSettings(BaseSettings):
    """Record cache configuration."""

    ttl_seconds: float = Field(
        60,
        description="Time-to-live applied to every cached record",
        gt=0,
    )
    max_entries: int = Field(
        10_000,
        description="Capacity bound; least-recently-set entries are evicted beyond it",
        ge=1,
    )
    sweep_interval_seconds: float = Field(
        5,
        description="Interval between background sweeps of expired entries",
        gt=0,
    )
    sweep_batch_size: int = Field(
        500,
        description="Maximum entries examined per lock acquisition during a sweep",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        case_sensitive=False,
    )


class SourceSettings(BaseSettings):
    """Backing record source configuration."""

    provider: str = Field(
        "memory",
        description="Record source provider name (currently: memory)",
    )
    latency_seconds: float = Field(
        0.2,
        description="Simulated latency of a single record fetch",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="SOURCE_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to accept and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    cache: CacheSettings = Field(default_factory=_build_cache_settings)
    source: SourceSettings = Field(default_factory=_build_source_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
