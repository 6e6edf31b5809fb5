"""Prometheus metrics instrumentation for the scheduling service.

Provides:
- ``setup_metrics(app)``: Attach prometheus-fastapi-instrumentator to a FastAPI app,
  exposing ``/metrics`` with HTTP request duration/count plus custom business metrics.
- ``TRANSITIONS_TOTAL``: Counter of accepted negotiation actions, by action.
- ``REJECTED_ACTIONS_TOTAL``: Counter of refused actions, by reason.
- ``NOTIFICATIONS_CREATED``: Counter of notification rows written, by type.
- ``DELIVERIES_BY_STATUS``: Gauge of stored deliveries per status.

Counters are updated by the service as actions complete; the status gauge is
recomputed from the store by a debounced refresher on delivery changes.
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter, Gauge
from prometheus_fastapi_instrumentator import Instrumentator

TRANSITIONS_TOTAL: Counter = Counter(
    "scheduling_transitions_total",
    "Total number of accepted delivery actions",
    ["action"],
)

REJECTED_ACTIONS_TOTAL: Counter = Counter(
    "scheduling_rejected_actions_total",
    "Total number of delivery actions refused before any mutation",
    ["reason"],
)

NOTIFICATIONS_CREATED: Counter = Counter(
    "scheduling_notifications_created_total",
    "Total number of notifications written",
    ["type"],
)

DELIVERIES_BY_STATUS: Gauge = Gauge(
    "scheduling_deliveries",
    "Number of stored deliveries per status",
    ["status"],
)


def setup_metrics(app: FastAPI) -> None:
    """Instrument *app* with Prometheus HTTP metrics and expose ``/metrics``.

    Excludes health/ready/metrics endpoints from instrumentation to avoid
    noise in dashboards.

    Args:
        app: The FastAPI application to instrument.
    """
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/ready", "/metrics"],
    ).instrument(app).expose(app, include_in_schema=False, should_gzip=True)
