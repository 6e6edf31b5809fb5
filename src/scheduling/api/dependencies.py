"""FastAPI dependencies: the delivery service and the calling actor."""

from __future__ import annotations

import asyncio

from fastapi import Depends, Header, Request

from scheduling.domain.errors import UnknownActorError
from scheduling.domain.models import Actor
from scheduling.service import DeliveryService


def get_service(request: Request) -> DeliveryService:
    """Return the ``DeliveryService`` stored on the app at startup."""
    service: DeliveryService = request.app.state.services["delivery_service"]
    return service


async def get_actor(
    x_user_id: str | None = Header(default=None),
    service: DeliveryService = Depends(get_service),
) -> Actor:
    """Resolve the ``X-User-Id`` header to an active user's actor context.

    Raises:
        UnknownActorError: If the header is missing or names no active user.
    """
    if not x_user_id:
        raise UnknownActorError("Missing X-User-Id header")
    return await asyncio.to_thread(service.resolve_actor, x_user_id)
