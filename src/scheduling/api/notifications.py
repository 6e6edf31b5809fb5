"""Notification inbox routes for the calling user."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, status

from scheduling.api.dependencies import get_actor, get_service
from scheduling.api.schemas import NotificationPage, ReadAllResponse
from scheduling.domain.models import Actor
from scheduling.service import DeliveryService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("")
async def list_notifications(
    limit: int | None = None,
    actor: Actor = Depends(get_actor),
    service: DeliveryService = Depends(get_service),
) -> NotificationPage:
    """Latest notifications (newest first) and the unread count."""

    def _page() -> NotificationPage:
        return NotificationPage(
            items=service.notifications(actor, limit),
            unread_count=service.unread_count(actor),
        )

    return await asyncio.to_thread(_page)


@router.post("/read-all")
async def mark_all_read(
    actor: Actor = Depends(get_actor),
    service: DeliveryService = Depends(get_service),
) -> ReadAllResponse:
    updated = await asyncio.to_thread(service.mark_all_notifications_read, actor)
    return ReadAllResponse(updated=updated)


@router.post("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_read(
    notification_id: int,
    actor: Actor = Depends(get_actor),
    service: DeliveryService = Depends(get_service),
) -> None:
    await asyncio.to_thread(service.mark_notification_read, actor, notification_id)
