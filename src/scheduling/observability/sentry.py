"""Sentry SDK initialization with structlog-sentry bridge.

Provides:
- ``init_sentry(dsn, environment)``: Initialize Sentry SDK.  No-op when *dsn* is empty.
- ``get_sentry_processor()``: Return a structlog processor that forwards
  ERROR-level log events to Sentry.
"""

from __future__ import annotations

import logging
from typing import Any

import sentry_sdk
import structlog
from sentry_sdk.integrations.logging import LoggingIntegration
from structlog_sentry import SentryProcessor

# Request headers that identify a person; stripped before events leave the process.
_SCRUBBED_HEADERS = frozenset({"x-user-id", "authorization", "cookie"})


def _scrub_headers(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any]:
    headers = event.get("request", {}).get("headers")
    if isinstance(headers, dict):
        for name in list(headers):
            if name.lower() in _SCRUBBED_HEADERS:
                headers[name] = "[scrubbed]"
    return event


def init_sentry(dsn: str, environment: str = "development") -> bool:
    """Initialize Sentry SDK with the given *dsn*.

    When *dsn* is empty the function returns immediately -- no network calls,
    no SDK initialization.  Safe to call unconditionally at startup.

    Args:
        dsn: Sentry DSN string.  Empty string disables Sentry.
        environment: Reported environment name.

    Returns:
        ``True`` if Sentry was initialized.
    """
    if not dsn:
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=0.1,
        send_default_pii=False,
        before_send=_scrub_headers,
        integrations=[
            # structlog-sentry reports errors; keep the logging integration quiet.
            LoggingIntegration(event_level=None, level=None),
        ],
    )
    return True


def get_sentry_processor() -> structlog.types.Processor:
    """Return a structlog processor that forwards ERROR events to Sentry.

    Insert into the processor chain after ``add_log_level`` and before the
    renderer.
    """
    return SentryProcessor(event_level=logging.ERROR)
