"""HTTP API: FastAPI routers and exception mapping over ``DeliveryService``."""

from fastapi import FastAPI

from scheduling.api import deliveries, notifications, partners, team
from scheduling.api.errors import register_exception_handlers


def register_api(app: FastAPI) -> None:
    """Include every router and the exception handlers on *app*."""
    app.include_router(deliveries.router)
    app.include_router(notifications.router)
    app.include_router(partners.router)
    app.include_router(team.router)
    register_exception_handlers(app)


__all__ = ["register_api", "register_exception_handlers"]
