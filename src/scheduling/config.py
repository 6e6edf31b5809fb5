"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by ``.env`` file and environment
variables, a cached ``get_settings()`` accessor, and a ``validate_settings()``
startup gate that rejects inconsistent negotiation rules in production mode.

IMPORTANT: This module has ZERO imports from the ``scheduling`` package to
prevent circular imports.  Only stdlib, pydantic, pydantic_settings, and
structlog are used.
"""

from __future__ import annotations

import sys
from datetime import date, datetime
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from pydantic import SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env`` file.

    The negotiation rules (minimum window, minimum cancellation reason) live
    here so the state machine, the API and the tests read one source of truth.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    timezone: str = "America/Sao_Paulo"

    # -- Storage ---------------------------------------------------------------
    database_path: Path = Path("data/scheduling.db")

    # -- Negotiation rules -----------------------------------------------------
    min_window_minutes: int = 60
    min_cancellation_reason_length: int = 10
    max_suggestion_reason_length: int = 500
    max_message_length: int = 2000

    # -- Notifications / refresh -----------------------------------------------
    notifications_page_size: int = 10
    refresh_debounce_seconds: float = 0.5

    # -- Observability (secrets) -----------------------------------------------
    sentry_dsn: SecretStr = SecretStr("")

    def zone(self) -> ZoneInfo:
        """Return the configured business time zone."""
        return ZoneInfo(self.timezone)

    def now(self) -> datetime:
        """Return the current time in the business time zone."""
        return datetime.now(tz=self.zone())

    def today(self) -> date:
        """Return today's date in the business time zone."""
        return self.now().date()


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    The ``@lru_cache`` decorator ensures environment variables are parsed
    exactly once.  Call ``get_settings.cache_clear()`` in tests to reset.

    Returns:
        The application ``Settings``.
    """
    try:
        return Settings()
    except ValidationError as exc:
        # Log only the structured errors list -- never the full exception
        # which may contain raw SecretStr values.
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)


def validate_settings(settings: Settings) -> None:
    """Enforce consistent negotiation rules at startup.

    In **production** mode (``settings.production is True``), the application
    exits with a clear error block if any rule is inconsistent.

    In **development** mode, each problem is logged as a warning but the
    application continues to start.

    Args:
        settings: The loaded application settings.
    """
    errors: list[str] = []

    if settings.min_window_minutes < 1:
        errors.append("MIN_WINDOW_MINUTES must be at least 1")

    if settings.min_cancellation_reason_length < 1:
        errors.append("MIN_CANCELLATION_REASON_LENGTH must be at least 1")

    if settings.refresh_debounce_seconds < 0:
        errors.append("REFRESH_DEBOUNCE_SECONDS must not be negative")

    try:
        settings.zone()
    except (ZoneInfoNotFoundError, ValueError):
        errors.append(f"Unknown TIMEZONE: {settings.timezone}")

    if settings.production and not settings.sentry_dsn.get_secret_value():
        logger.warning("sentry_dsn_missing", detail="errors will not be forwarded")

    if not errors:
        logger.info("settings_validation_passed")
        return

    if settings.production:
        for err in errors:
            logger.error("settings_invalid", detail=err)
        print("\n=== STARTUP FAILED ===", file=sys.stderr)
        print("Invalid settings for production mode:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print("======================\n", file=sys.stderr)
        sys.exit(1)
    else:
        for err in errors:
            logger.warning("settings_invalid_dev", detail=err)
