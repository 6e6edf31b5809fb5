"""Pydantic v2 models for domain data structures in the scheduling service."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from scheduling.domain.types import (
    CompanyRole,
    DeliveryStatus,
    NotificationType,
    PartnerStatus,
    TimelineAction,
    UserRole,
)

# Statuses in which one party owes the next move.
AWAITING_STATES: frozenset[DeliveryStatus] = frozenset(
    {DeliveryStatus.AWAITING_BUYER, DeliveryStatus.AWAITING_SELLER}
)


def _require_text(value: str, name: str) -> str:
    if not value.strip():
        raise ValueError(f"{name} must not be empty")
    return value.strip()


def _require_naive(value: time | None) -> time | None:
    if value is not None and value.tzinfo is not None:
        raise ValueError("Times must not carry a UTC offset")
    return value


class Address(BaseModel):
    """Delivery address captured at creation."""

    model_config = ConfigDict(frozen=True)

    street: str
    number: str
    complement: str | None = None
    neighborhood: str
    city: str
    state: str
    postal_code: str

    @field_validator("street", "number", "neighborhood", "city", "state", "postal_code")
    @classmethod
    def fields_must_not_be_empty(cls, v: str) -> str:
        """Reject blank address parts."""
        return _require_text(v, "address field")


class Invoice(BaseModel):
    """Invoice ("nota fiscal") facts, immutable after creation.

    Uses Decimal for the monetary value -- float inputs are rejected.
    """

    model_config = ConfigDict(frozen=True)

    number: str
    series: str | None = None
    issue_date: date
    value: Decimal
    document_url: str | None = None

    @field_validator("number")
    @classmethod
    def number_must_not_be_empty(cls, v: str) -> str:
        """Ensure the invoice number is present."""
        return _require_text(v, "invoice number")

    @field_validator("value", mode="before")
    @classmethod
    def reject_float_inputs(cls, v: object) -> object:
        """Reject float inputs for monetary fields to prevent precision errors."""
        if isinstance(v, float):
            raise ValueError("Use Decimal or string, not float, for monetary values")
        return v

    @field_validator("value")
    @classmethod
    def value_must_be_positive(cls, v: Decimal) -> Decimal:
        """Ensure the invoice value is positive."""
        if v <= 0:
            raise ValueError("invoice value must be positive")
        return v


class Proposal(BaseModel):
    """A proposed (or confirmed) delivery window.

    Structural only: date/time guards depend on "today" and the configured
    minimum gap, so they live in :mod:`scheduling.state_machine.guards`.
    """

    model_config = ConfigDict(frozen=True)

    delivery_date: date
    time_start: time
    time_end: time

    @field_validator("time_start", "time_end")
    @classmethod
    def times_must_be_local(cls, v: time) -> time:
        """Windows are wall-clock times in the business time zone, without offsets."""
        return _require_naive(v)  # type: ignore[return-value]

    def snapshot(self) -> dict[str, str]:
        """Return the ``proposed_*`` snapshot stored on timeline entries."""
        return {
            "proposed_date": self.delivery_date.isoformat(),
            "proposed_time_start": self.time_start.isoformat(timespec="minutes"),
            "proposed_time_end": self.time_end.isoformat(timespec="minutes"),
        }

    def label(self) -> str:
        """Human-readable ``dd/mm/yyyy HH:MM-HH:MM`` label."""
        return (
            f"{self.delivery_date.strftime('%d/%m/%Y')} "
            f"{self.time_start.strftime('%H:%M')}-{self.time_end.strftime('%H:%M')}"
        )


class Company(BaseModel):
    """A company taking part in deliveries."""

    id: str
    name: str
    cnpj: str
    email: str
    phone: str | None = None
    address: str | None = None
    role: CompanyRole


class User(BaseModel):
    """A user belonging to a company."""

    id: str
    company_id: str
    full_name: str
    email: str
    role: UserRole = UserRole.USER
    is_active: bool = True
    created_at: datetime | None = None


class Actor(BaseModel):
    """The explicitly injected identity of whoever invokes an action."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    full_name: str
    company_id: str
    company_role: CompanyRole
    user_role: UserRole = UserRole.USER

    @classmethod
    def from_profile(cls, user: User, company: Company) -> Actor:
        """Build an actor from a user and their company."""
        return cls(
            user_id=user.id,
            full_name=user.full_name,
            company_id=company.id,
            company_role=company.role,
            user_role=user.role,
        )


class NewDelivery(BaseModel):
    """Input for creating a delivery with the seller's initial offer."""

    seller_company_id: str
    buyer_company_id: str
    invoice: Invoice
    address: Address
    proposal: Proposal
    notes: str | None = None
    internal_notes: str | None = None

    @model_validator(mode="after")
    def parties_must_differ(self) -> NewDelivery:
        """Ensure seller and buyer are distinct companies."""
        if self.seller_company_id == self.buyer_company_id:
            raise ValueError("seller and buyer must be different companies")
        return self


class Delivery(BaseModel):
    """The delivery aggregate: invoice, parties, address and negotiation fields.

    Frozen: transitions produce a new instance via ``model_copy(update=...)``.
    Validation on construction enforces the turn and confirmation invariants,
    so every row read back from the store is checked.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    seller_company_id: str
    buyer_company_id: str
    invoice: Invoice
    address: Address
    status: DeliveryStatus
    ball_with: CompanyRole | None = None
    proposed_date: date | None = None
    proposed_time_start: time | None = None
    proposed_time_end: time | None = None
    confirmed_date: date | None = None
    confirmed_time_start: time | None = None
    confirmed_time_end: time | None = None
    cancellation_reason: str | None = None
    cancelled_at: datetime | None = None
    completed_at: datetime | None = None
    notes: str | None = None
    internal_notes: str | None = None
    created_by_user_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 1

    @field_validator(
        "proposed_time_start",
        "proposed_time_end",
        "confirmed_time_start",
        "confirmed_time_end",
    )
    @classmethod
    def times_must_be_local(cls, v: time | None) -> time | None:
        return _require_naive(v)

    @model_validator(mode="after")
    def check_invariants(self) -> Delivery:
        """Enforce party, turn, and confirmation invariants."""
        if self.seller_company_id == self.buyer_company_id:
            raise ValueError("seller and buyer must be different companies")
        awaiting = self.status in AWAITING_STATES
        if awaiting != (self.ball_with is not None):
            raise ValueError(
                f"ball_with must be set exactly in awaiting states (status={self.status}, "
                f"ball_with={self.ball_with})"
            )
        if awaiting and self.status != f"AWAITING_{self.ball_with}":
            raise ValueError(f"ball_with={self.ball_with} does not match status={self.status}")
        confirmed = [self.confirmed_date, self.confirmed_time_start, self.confirmed_time_end]
        if any(v is not None for v in confirmed) and not all(v is not None for v in confirmed):
            raise ValueError("confirmed date and times must be set together")
        return self

    @property
    def proposal(self) -> Proposal | None:
        """Return the current proposal, or ``None`` if incomplete."""
        if (
            self.proposed_date is None
            or self.proposed_time_start is None
            or self.proposed_time_end is None
        ):
            return None
        return Proposal(
            delivery_date=self.proposed_date,
            time_start=self.proposed_time_start,
            time_end=self.proposed_time_end,
        )

    @property
    def confirmed_window(self) -> Proposal | None:
        """Return the confirmed window, or ``None`` before confirmation."""
        if self.confirmed_date is None:
            return None
        return Proposal(
            delivery_date=self.confirmed_date,
            time_start=self.confirmed_time_start,  # type: ignore[arg-type]
            time_end=self.confirmed_time_end,  # type: ignore[arg-type]
        )

    def party_id(self, role: CompanyRole) -> str:
        """Return the company id playing *role*."""
        return self.seller_company_id if role == CompanyRole.SELLER else self.buyer_company_id

    def role_of(self, company_id: str) -> CompanyRole | None:
        """Return the role *company_id* plays on this delivery, if any."""
        if company_id == self.seller_company_id:
            return CompanyRole.SELLER
        if company_id == self.buyer_company_id:
            return CompanyRole.BUYER
        return None


class TimelineEntry(BaseModel):
    """One append-only record in a delivery's timeline."""

    id: int | None = None
    delivery_id: str
    action: TimelineAction
    description: str
    user_id: str | None = None
    old_data: dict[str, Any] | None = None
    new_data: dict[str, Any] | None = None
    created_at: datetime | None = None


class Notification(BaseModel):
    """A notification addressed to exactly one user."""

    id: int | None = None
    user_id: str
    delivery_id: str | None = None
    type: NotificationType
    title: str
    message: str
    is_read: bool = False
    created_at: datetime | None = None


class ChatMessage(BaseModel):
    """A chat message on a delivery."""

    id: int | None = None
    delivery_id: str
    user_id: str
    message: str
    created_at: datetime | None = None


class Partner(BaseModel):
    """A buyer company linked to a seller, with its delivery count."""

    company: Company
    status: PartnerStatus = PartnerStatus.ACTIVE
    delivery_count: int = 0


class NewPartner(BaseModel):
    """Input for linking a buyer company to a seller, by CNPJ."""

    name: str
    cnpj: str
    email: str
    phone: str | None = None
    address: str | None = None

    @field_validator("name", "cnpj", "email")
    @classmethod
    def fields_must_not_be_empty(cls, v: str) -> str:
        """Reject blank identifying fields."""
        return _require_text(v, "partner field")
