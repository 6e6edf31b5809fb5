"""Application entry point: the delivery scheduling HTTP service.

Configures:
- **structlog** with JSON rendering (production) or colored console (development),
  forwarding ERROR events to Sentry when a DSN is set
- **SQLite record store** shared by the delivery and notification stores
- **Change feed** with a debounced refresher keeping the per-status gauge current
- **FastAPI** routes, exception mapping, request IDs, health probes and ``/metrics``
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from scheduling.api import register_api
from scheduling.config import Settings, get_settings, validate_settings
from scheduling.health import register_health_routes
from scheduling.notifications.store import NotificationStore
from scheduling.observability.metrics import DELIVERIES_BY_STATUS, setup_metrics
from scheduling.observability.middleware import SERVICE_NAME, RequestIdMiddleware
from scheduling.observability.sentry import get_sentry_processor, init_sentry
from scheduling.realtime.debounce import DebouncedRefresher
from scheduling.realtime.feed import ChangeFeed, Collection
from scheduling.service import DeliveryService
from scheduling.store.schema import open_database
from scheduling.store.store import DeliveryStore

logger = structlog.get_logger()


def configure_logging(production: bool = False, sentry_enabled: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode (*production=True*): JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.

    Args:
        production: Enable production mode if ``True``.
        sentry_enabled: Insert the Sentry processor before the renderer.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if sentry_enabled:
        shared_processors.append(get_sentry_processor())

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=SERVICE_NAME)


def initialize_services(settings: Settings | None = None) -> dict[str, Any]:
    """Set up all shared services for the application.

    Opens the scheduling database, then builds the change feed, the delivery
    and notification stores (sharing one connection and one write lock) and
    the ``DeliveryService``.

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.

    Returns:
        A dict of initialized service instances keyed by name.
    """
    if settings is None:
        settings = get_settings()

    services: dict[str, Any] = {"_settings": settings}

    conn = open_database(settings.database_path)
    services["db_conn"] = conn
    logger.info("database_opened", path=str(settings.database_path))

    feed = ChangeFeed()
    services["change_feed"] = feed

    lock = threading.Lock()
    delivery_store = DeliveryStore(conn, feed, lock)
    notification_store = NotificationStore(conn, feed, lock)
    services["delivery_store"] = delivery_store
    services["notification_store"] = notification_store

    services["delivery_service"] = DeliveryService(delivery_store, notification_store, settings)
    logger.info("services_initialized")
    return services


async def refresh_status_gauge(store: DeliveryStore) -> None:
    """Reload per-status delivery counts into ``DELIVERIES_BY_STATUS``."""
    counts = await asyncio.to_thread(store.status_counts)
    for status, total in counts.items():
        DELIVERIES_BY_STATUS.labels(status=status.value).set(total)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Lifespan context manager for FastAPI startup and shutdown.

    On startup: loads the status gauge and subscribes a debounced refresher
    to delivery changes.
    On shutdown: stops the refresher and closes the database connection.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application.
    """
    services = app.state.services
    settings: Settings = app.state.settings
    store: DeliveryStore = services["delivery_store"]

    await refresh_status_gauge(store)
    refresher = DebouncedRefresher(
        lambda: refresh_status_gauge(store),
        settings.refresh_debounce_seconds,
        name="deliveries_by_status",
    )
    refresher.attach(services["change_feed"], {Collection.DELIVERIES})
    services["status_refresher"] = refresher
    logger.info("application_starting")
    yield
    await refresher.close()
    conn = services.get("db_conn")
    if conn is not None:
        conn.close()
        logger.info("database_closed")


def create_app(services: dict[str, Any]) -> FastAPI:
    """Create the FastAPI app with lifespan, API routes, health and metrics.

    Args:
        services: The initialized services dict from ``initialize_services``.

    Returns:
        The configured FastAPI application.
    """
    fastapi_app = FastAPI(title="Delivery Scheduling", lifespan=lifespan)
    fastapi_app.state.services = services
    fastapi_app.state.settings = services.get("_settings") or get_settings()
    fastapi_app.add_middleware(RequestIdMiddleware)
    register_api(fastapi_app)
    register_health_routes(fastapi_app)
    setup_metrics(fastapi_app)
    return fastapi_app


async def main() -> None:
    """Main entry point: configure, initialize and serve the API with uvicorn."""
    settings = get_settings()
    sentry_enabled = init_sentry(
        settings.sentry_dsn.get_secret_value(),
        environment="production" if settings.production else "development",
    )
    configure_logging(production=settings.production, sentry_enabled=sentry_enabled)
    logger.info("application_starting_up")

    validate_settings(settings)

    services = initialize_services(settings)
    fastapi_app = create_app(services)

    config = uvicorn.Config(
        fastapi_app,
        host=settings.api_host,
        port=settings.api_port,
        log_level="info",
    )
    server = uvicorn.Server(config)
    await server.serve()


def run() -> None:
    """Console-script wrapper around :func:`main`."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
