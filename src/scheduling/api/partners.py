"""Partner routes: a seller's buyer companies."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, status

from scheduling.api.dependencies import get_actor, get_service
from scheduling.domain.models import Actor, NewPartner, Partner
from scheduling.service import DeliveryService

router = APIRouter(prefix="/partners", tags=["Partners"])


@router.get("")
async def list_partners(
    actor: Actor = Depends(get_actor),
    service: DeliveryService = Depends(get_service),
) -> list[Partner]:
    """Buyer partners of the caller's company, with delivery counts."""
    return await asyncio.to_thread(service.list_partners, actor)


@router.post("", status_code=status.HTTP_201_CREATED)
async def add_partner(
    body: NewPartner,
    actor: Actor = Depends(get_actor),
    service: DeliveryService = Depends(get_service),
) -> Partner:
    """Link a buyer by CNPJ, registering the company if it is new."""
    return await asyncio.to_thread(service.add_partner, actor, body)
