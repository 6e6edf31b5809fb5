"""Team routes: the caller company's users, managed by its admins."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends

from scheduling.api.dependencies import get_actor, get_service
from scheduling.api.schemas import MemberRoleRequest, MemberStatusRequest
from scheduling.domain.models import Actor, User
from scheduling.service import DeliveryService

router = APIRouter(prefix="/team", tags=["Team"])


@router.get("")
async def list_team(
    actor: Actor = Depends(get_actor),
    service: DeliveryService = Depends(get_service),
) -> list[User]:
    """Every user of the caller's company, active or not (admins only)."""
    return await asyncio.to_thread(service.list_team, actor)


@router.post("/{user_id}/active")
async def set_member_active(
    user_id: str,
    body: MemberStatusRequest,
    actor: Actor = Depends(get_actor),
    service: DeliveryService = Depends(get_service),
) -> User:
    """Activate or deactivate a teammate (admins only)."""
    return await asyncio.to_thread(service.set_member_active, actor, user_id, body.is_active)


@router.post("/{user_id}/role")
async def set_member_role(
    user_id: str,
    body: MemberRoleRequest,
    actor: Actor = Depends(get_actor),
    service: DeliveryService = Depends(get_service),
) -> User:
    return await asyncio.to_thread(service.set_member_role, actor, user_id, body.role)
