"""Per-viewer projections of deliveries: turn indicator, actions, dashboard buckets.

Everything here is derived on demand from a delivery snapshot and the viewer's
company; nothing is persisted.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from pydantic import BaseModel

from scheduling.domain.models import Delivery
from scheduling.domain.types import CompanyRole, DeliveryAction, DeliveryStatus
from scheduling.state_machine.machine import DeliveryStateMachine


class DeliveryView(BaseModel):
    """What one viewer sees of a delivery."""

    delivery: Delivery
    viewer_role: CompanyRole | None
    counterparty_id: str | None
    is_my_turn: bool
    available_actions: list[DeliveryAction]


class DeliveryBoard(BaseModel):
    """Dashboard buckets for a company."""

    your_turn: list[Delivery]
    confirmed: list[Delivery]
    in_transit: list[Delivery]
    completed: list[Delivery]
    cancelled: list[Delivery]


def is_my_turn(delivery: Delivery, company_id: str, company_role: CompanyRole) -> bool:
    """Return True if the viewer's company holds the ball on *delivery*.

    Holds iff ``ball_with`` equals the viewer's role AND the viewer's company
    is the party playing that role.
    """
    if delivery.ball_with is None or delivery.ball_with != company_role:
        return False
    return delivery.party_id(company_role) == company_id


def available_actions(
    delivery: Delivery,
    company_id: str,
    today: date,
    machine: DeliveryStateMachine | None = None,
) -> list[DeliveryAction]:
    """Return the ordered actions offered to *company_id* on *delivery*."""
    machine = machine or DeliveryStateMachine()
    return machine.valid_actions(delivery, company_id, today)


def project(
    delivery: Delivery,
    company_id: str,
    today: date,
    machine: DeliveryStateMachine | None = None,
) -> DeliveryView:
    """Build the viewer-specific view of *delivery*.

    Internal notes are stripped unless the viewer's company created the
    delivery (the seller side).
    """
    role = delivery.role_of(company_id)
    visible = delivery
    if role is not CompanyRole.SELLER and delivery.internal_notes is not None:
        visible = delivery.model_copy(update={"internal_notes": None})
    return DeliveryView(
        delivery=visible,
        viewer_role=role,
        counterparty_id=delivery.party_id(role.other) if role is not None else None,
        is_my_turn=role is not None and is_my_turn(delivery, company_id, role),
        available_actions=available_actions(delivery, company_id, today, machine),
    )


def build_board(deliveries: Iterable[Delivery], company_id: str) -> DeliveryBoard:
    """Split *deliveries* into the dashboard buckets for *company_id*.

    Confirmed deliveries are sorted by (confirmed or proposed) date ascending,
    in-transit ones newest first; the rest keep the input order.
    """
    items = list(deliveries)
    your_turn = [
        d
        for d in items
        if (role := d.role_of(company_id)) is not None and is_my_turn(d, company_id, role)
    ]
    confirmed = sorted(
        (d for d in items if d.status is DeliveryStatus.CONFIRMED),
        key=lambda d: d.confirmed_date or d.proposed_date or date.max,
    )
    in_transit = sorted(
        (d for d in items if d.status is DeliveryStatus.IN_TRANSIT),
        key=lambda d: d.created_at.timestamp() if d.created_at else 0.0,
        reverse=True,
    )
    return DeliveryBoard(
        your_turn=your_turn,
        confirmed=confirmed,
        in_transit=in_transit,
        completed=[d for d in items if d.status is DeliveryStatus.DELIVERED],
        cancelled=[d for d in items if d.status is DeliveryStatus.CANCELLED],
    )
