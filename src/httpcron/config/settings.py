"""Pydantic-based settings loaded from environment variables.

Every field maps to an ``HTTPCRON_``-prefixed env var (or a line in ``.env``)
and has a sensible default, so an empty environment runs the jobs file in the
current directory with UTC schedules.

Usage::

    from httpcron.config import get_settings
    settings = get_settings()
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from httpcron.cron import resolve_timezone


class Settings(BaseSettings):
    """Process-wide configuration."""

    model_config = SettingsConfigDict(
        env_prefix="HTTPCRON_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        env_ignore_empty=True,
    )

    # -- Job source ---------------------------------------------------------
    jobs_dir: str = "."
    default_timezone: str = "UTC"

    # -- Scheduler ----------------------------------------------------------
    # Cron resolution is one second, so the tick may not be coarser
    tick_interval_seconds: float = Field(default=1.0, gt=0, le=1)
    allow_overlap: bool = True
    shutdown_grace_seconds: float = Field(default=10.0, ge=0)

    # -- Retry back-off -----------------------------------------------------
    # 0 keeps the immediate retry of earlier releases
    retry_backoff_seconds: float = Field(default=0.0, ge=0)
    retry_backoff_multiplier: float = Field(default=2.0, ge=1)
    retry_backoff_max_seconds: float = Field(default=30.0, ge=0)

    # -- HTTP ---------------------------------------------------------------
    user_agent: str = "httpcron"

    # -- General ------------------------------------------------------------
    log_level: str = "INFO"

    @field_validator("default_timezone")
    @classmethod
    def check_timezone(cls, value: str) -> str:
        """Reject unknown IANA zone names early."""
        resolve_timezone(value)
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton Settings instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    return Settings()
