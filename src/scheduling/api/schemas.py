"""Request and response bodies for the HTTP API."""

from __future__ import annotations

from datetime import date, time

from pydantic import BaseModel

from scheduling.domain.models import Address, Invoice, Notification, Proposal
from scheduling.domain.types import UserRole


class CreateDeliveryRequest(BaseModel):
    """Body of ``POST /deliveries``; the seller is the caller's company."""

    buyer_company_id: str
    invoice: Invoice
    address: Address
    delivery_date: date
    time_start: time
    time_end: time
    notes: str | None = None
    internal_notes: str | None = None

    def proposal(self) -> Proposal:
        return Proposal(
            delivery_date=self.delivery_date,
            time_start=self.time_start,
            time_end=self.time_end,
        )


class CounterProposalRequest(BaseModel):
    delivery_date: date
    time_start: time
    time_end: time
    reason: str | None = None

    def proposal(self) -> Proposal:
        return Proposal(
            delivery_date=self.delivery_date,
            time_start=self.time_start,
            time_end=self.time_end,
        )


class CancelRequest(BaseModel):
    reason: str = ""


class ReceiptRequest(BaseModel):
    notes: str | None = None


class MessageRequest(BaseModel):
    message: str


class NotificationPage(BaseModel):
    """The caller's latest notifications plus the unread total."""

    items: list[Notification]
    unread_count: int


class ReadAllResponse(BaseModel):
    updated: int


class MemberStatusRequest(BaseModel):
    is_active: bool


class MemberRoleRequest(BaseModel):
    role: UserRole
