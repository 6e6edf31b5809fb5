"""Delivery routes: creation, listing, per-viewer views, actions, timeline, chat.

Handlers are async; the service is synchronous (SQLite), so every call runs
in a worker thread via ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
from datetime import date

from fastapi import APIRouter, Depends, Query, status

from scheduling.api.dependencies import get_actor, get_service
from scheduling.api.schemas import (
    CancelRequest,
    CounterProposalRequest,
    CreateDeliveryRequest,
    MessageRequest,
    ReceiptRequest,
)
from scheduling.domain.models import Actor, ChatMessage, NewDelivery, TimelineEntry
from scheduling.domain.types import DeliveryStatus
from scheduling.service import DeliveryService, ListPeriod
from scheduling.state_machine.projector import DeliveryBoard, DeliveryView

router = APIRouter(prefix="/deliveries", tags=["Deliveries"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_delivery(
    body: CreateDeliveryRequest,
    actor: Actor = Depends(get_actor),
    service: DeliveryService = Depends(get_service),
) -> DeliveryView:
    """Create a delivery with the seller's initial proposal (seller users only)."""

    def _create() -> DeliveryView:
        # Role first: a buyer addressing its own company must read as a role error.
        service.check_can_create(actor)
        new = NewDelivery(
            seller_company_id=actor.company_id,
            buyer_company_id=body.buyer_company_id,
            invoice=body.invoice,
            address=body.address,
            proposal=body.proposal(),
            notes=body.notes,
            internal_notes=body.internal_notes,
        )
        return service.view(actor, service.create_delivery(actor, new))

    return await asyncio.to_thread(_create)


@router.get("")
async def list_deliveries(
    search: str | None = None,
    partner_company_id: str | None = None,
    period: ListPeriod = ListPeriod.ALL,
    delivery_status: DeliveryStatus | None = Query(default=None, alias="status"),
    date_from: date | None = None,
    date_to: date | None = None,
    actor: Actor = Depends(get_actor),
    service: DeliveryService = Depends(get_service),
) -> list[DeliveryView]:
    """List the caller company's deliveries, newest first."""
    return await asyncio.to_thread(
        lambda: service.list_deliveries(
            actor,
            search=search,
            partner_company_id=partner_company_id,
            period=period,
            status=delivery_status,
            date_from=date_from,
            date_to=date_to,
        )
    )


@router.get("/board")
async def delivery_board(
    actor: Actor = Depends(get_actor),
    service: DeliveryService = Depends(get_service),
) -> DeliveryBoard:
    """Dashboard buckets: your turn, confirmed, in transit, completed, cancelled."""
    return await asyncio.to_thread(service.board, actor)


@router.get("/{delivery_id}")
async def get_delivery(
    delivery_id: str,
    actor: Actor = Depends(get_actor),
    service: DeliveryService = Depends(get_service),
) -> DeliveryView:
    return await asyncio.to_thread(service.get_view, actor, delivery_id)


# ----------------------------------------------------------------------
# Actions
# ----------------------------------------------------------------------


@router.post("/{delivery_id}/accept")
async def accept(
    delivery_id: str,
    actor: Actor = Depends(get_actor),
    service: DeliveryService = Depends(get_service),
) -> DeliveryView:
    """Confirm the current proposal (turn holder only)."""
    return await asyncio.to_thread(
        lambda: service.view(actor, service.accept(actor, delivery_id))
    )


@router.post("/{delivery_id}/counter-proposal")
async def counter_propose(
    delivery_id: str,
    body: CounterProposalRequest,
    actor: Actor = Depends(get_actor),
    service: DeliveryService = Depends(get_service),
) -> DeliveryView:
    """Replace the proposal and hand the turn to the other party."""
    return await asyncio.to_thread(
        lambda: service.view(
            actor,
            service.counter_propose(actor, delivery_id, body.proposal(), body.reason),
        )
    )


@router.post("/{delivery_id}/cancel")
async def cancel(
    delivery_id: str,
    body: CancelRequest,
    actor: Actor = Depends(get_actor),
    service: DeliveryService = Depends(get_service),
) -> DeliveryView:
    return await asyncio.to_thread(
        lambda: service.view(actor, service.cancel(actor, delivery_id, body.reason))
    )


@router.post("/{delivery_id}/in-transit")
async def mark_in_transit(
    delivery_id: str,
    actor: Actor = Depends(get_actor),
    service: DeliveryService = Depends(get_service),
) -> DeliveryView:
    return await asyncio.to_thread(
        lambda: service.view(actor, service.mark_in_transit(actor, delivery_id))
    )


@router.post("/{delivery_id}/receipt")
async def confirm_receipt(
    delivery_id: str,
    body: ReceiptRequest,
    actor: Actor = Depends(get_actor),
    service: DeliveryService = Depends(get_service),
) -> DeliveryView:
    return await asyncio.to_thread(
        lambda: service.view(actor, service.confirm_receipt(actor, delivery_id, body.notes))
    )


# ----------------------------------------------------------------------
# Timeline and chat
# ----------------------------------------------------------------------


@router.get("/{delivery_id}/timeline")
async def delivery_timeline(
    delivery_id: str,
    actor: Actor = Depends(get_actor),
    service: DeliveryService = Depends(get_service),
) -> list[TimelineEntry]:
    return await asyncio.to_thread(service.timeline, actor, delivery_id)


@router.get("/{delivery_id}/messages")
async def list_messages(
    delivery_id: str,
    actor: Actor = Depends(get_actor),
    service: DeliveryService = Depends(get_service),
) -> list[ChatMessage]:
    return await asyncio.to_thread(service.list_messages, actor, delivery_id)


@router.post("/{delivery_id}/messages", status_code=status.HTTP_201_CREATED)
async def send_message(
    delivery_id: str,
    body: MessageRequest,
    actor: Actor = Depends(get_actor),
    service: DeliveryService = Depends(get_service),
) -> ChatMessage:
    """Post a chat message; the counterpart's active users are notified."""
    return await asyncio.to_thread(service.send_message, actor, delivery_id, body.message)
