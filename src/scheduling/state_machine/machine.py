"""DeliveryStateMachine: the single authority on negotiation transitions.

Pure logic.  ``apply`` maps (delivery, actor, action, payload) to a
:class:`TransitionOutcome` describing the updated delivery, the timeline entry
to append and the company to notify.  Nothing is persisted here; callers
supply "today" and "now" so the machine can be exercised without a clock or
a backend.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from scheduling.domain.errors import ActionNotAvailableError, DeliveryValidationError
from scheduling.domain.models import Actor, Delivery, NewDelivery, Proposal, TimelineEntry
from scheduling.domain.types import (
    CompanyRole,
    DeliveryAction,
    DeliveryStatus,
    NotificationType,
    TimelineAction,
)
from scheduling.state_machine import guards
from scheduling.state_machine.transitions import (
    ACTION_ORDER,
    TERMINAL_STATES,
    TRANSITIONS,
    Transition,
)


class NegotiationRules(BaseModel):
    """Tunable guard thresholds, usually built from ``Settings``."""

    model_config = ConfigDict(frozen=True)

    min_window_minutes: int = guards.DEFAULT_MIN_WINDOW_MINUTES
    min_cancellation_reason_length: int = guards.DEFAULT_MIN_CANCELLATION_REASON_LENGTH
    max_suggestion_reason_length: int = guards.DEFAULT_MAX_SUGGESTION_REASON_LENGTH

    @classmethod
    def from_settings(cls, settings: Any) -> NegotiationRules:
        """Copy the guard thresholds from a ``Settings`` instance."""
        return cls(
            min_window_minutes=settings.min_window_minutes,
            min_cancellation_reason_length=settings.min_cancellation_reason_length,
            max_suggestion_reason_length=settings.max_suggestion_reason_length,
        )


class NotificationPlan(BaseModel):
    """Which company to notify about a transition, and with what text."""

    model_config = ConfigDict(frozen=True)

    company_id: str
    type: NotificationType
    title: str
    message: str


class TransitionOutcome(BaseModel):
    """Result of an accepted action or of a delivery creation."""

    model_config = ConfigDict(frozen=True)

    delivery: Delivery
    previous_status: DeliveryStatus | None
    action: DeliveryAction | None
    timeline: TimelineEntry
    notification: NotificationPlan


class DeliveryStateMachine:
    """Finite state machine governing the delivery negotiation lifecycle.

    Usage::

        sm = DeliveryStateMachine()
        outcome = sm.apply(delivery, buyer, DeliveryAction.ACCEPT, today=today, now=now)
        outcome.delivery.status   # -> CONFIRMED
    """

    def __init__(self, rules: NegotiationRules | None = None) -> None:
        self._rules = rules or NegotiationRules()

    @property
    def rules(self) -> NegotiationRules:
        """Return the guard thresholds in use."""
        return self._rules

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    def check(
        self,
        delivery: Delivery,
        company_id: str,
        action: DeliveryAction,
    ) -> Transition:
        """Return the transition for *action* if *company_id* may invoke it now.

        The actor must be a party, the (status, action) pair must be in the
        transition table, the actor's role must match the one the table
        requires and, while awaiting a reply, must hold the ball.

        Raises:
            ActionNotAvailableError: Otherwise.
        """
        role = delivery.role_of(company_id)
        transition = TRANSITIONS.get((delivery.status, action))
        if (
            role is None
            or delivery.status in TERMINAL_STATES
            or transition is None
            or transition.actor is not role
            or (delivery.ball_with is not None and delivery.ball_with is not role)
        ):
            raise ActionNotAvailableError(delivery.status, action, role)
        return transition

    def valid_actions(
        self,
        delivery: Delivery,
        company_id: str,
        today: date,
    ) -> list[DeliveryAction]:
        """Return the ordered actions *company_id* may invoke on *delivery* today.

        MARK_IN_TRANSIT is offered only once the confirmed date has arrived.
        Returns an empty list for terminal deliveries and non-parties.
        """
        offered: list[DeliveryAction] = []
        for action in ACTION_ORDER:
            try:
                self.check(delivery, company_id, action)
            except ActionNotAvailableError:
                continue
            if action is DeliveryAction.MARK_IN_TRANSIT and not _confirmed_date_reached(
                delivery, today
            ):
                continue
            offered.append(action)
        return offered

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def check_creator(self, actor: Actor, seller_company_id: str | None = None) -> None:
        """Ensure *actor* belongs to a seller company (and to *seller_company_id*, if given).

        Raises:
            DeliveryValidationError: If the actor may not create the delivery.
        """
        if actor.company_role is not CompanyRole.SELLER or (
            seller_company_id is not None and actor.company_id != seller_company_id
        ):
            raise DeliveryValidationError(
                "Only the seller company can create a delivery", field="seller_company_id"
            )

    def create(
        self,
        new: NewDelivery,
        actor: Actor,
        *,
        delivery_id: str,
        today: date,
        now: datetime,
    ) -> TransitionOutcome:
        """Build a new delivery from the seller's initial offer.

        The delivery starts AWAITING_BUYER with the ball on the buyer's side.

        Raises:
            DeliveryValidationError: If the actor is not the seller company
                or the invoice was issued after today.
            ProposalValidationError: If the initial proposal fails the guards.
        """
        self.check_creator(actor, new.seller_company_id)
        if new.invoice.issue_date > today:
            raise DeliveryValidationError(
                "Invoice issue date cannot be in the future", field="invoice.issue_date"
            )
        guards.validate_proposal(new.proposal, today, self._rules.min_window_minutes)

        delivery = Delivery(
            id=delivery_id,
            seller_company_id=new.seller_company_id,
            buyer_company_id=new.buyer_company_id,
            invoice=new.invoice,
            address=new.address,
            status=DeliveryStatus.AWAITING_BUYER,
            ball_with=CompanyRole.BUYER,
            proposed_date=new.proposal.delivery_date,
            proposed_time_start=new.proposal.time_start,
            proposed_time_end=new.proposal.time_end,
            notes=new.notes,
            internal_notes=new.internal_notes,
            created_by_user_id=actor.user_id,
            created_at=now,
            updated_at=now,
            version=1,
        )
        label = new.proposal.label()
        return TransitionOutcome(
            delivery=delivery,
            previous_status=None,
            action=None,
            timeline=TimelineEntry(
                delivery_id=delivery_id,
                action=TimelineAction.CREATED,
                description=(
                    f"{actor.full_name} criou a entrega NF {new.invoice.number} "
                    f"com proposta {label}"
                ),
                user_id=actor.user_id,
                new_data=new.proposal.snapshot(),
                created_at=now,
            ),
            notification=NotificationPlan(
                company_id=new.buyer_company_id,
                type=NotificationType.NEW_DELIVERY,
                title="Nova entrega",
                message=f"{actor.full_name} propôs {label} para a NF {new.invoice.number}",
            ),
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def apply(
        self,
        delivery: Delivery,
        actor: Actor,
        action: DeliveryAction,
        *,
        today: date,
        now: datetime,
        proposal: Proposal | None = None,
        reason: str | None = None,
        notes: str | None = None,
    ) -> TransitionOutcome:
        """Apply *action* by *actor* to *delivery*.

        Args:
            delivery: The current delivery snapshot.
            actor: Who invokes the action.
            action: The requested action.
            today: Business date used by the date guards.
            now: Timestamp recorded on the delivery and timeline entry.
            proposal: The new window (COUNTER_PROPOSE only).
            reason: Cancellation reason (CANCEL) or optional suggestion
                reason (COUNTER_PROPOSE).
            notes: Optional receipt notes (CONFIRM_RECEIPT).

        Returns:
            The outcome with the updated delivery, timeline entry and
            notification plan.

        Raises:
            ActionNotAvailableError: If the action is not offered to the actor.
            DeliveryValidationError: If a guard rejects the payload.
        """
        transition = self.check(delivery, actor.company_id, action)
        counterpart_id = delivery.party_id(transition.actor.other)
        nf = delivery.invoice.number
        name = actor.full_name

        updates: dict[str, Any]
        old_data: dict[str, Any] | None = None
        new_data: dict[str, Any] | None = None

        if action is DeliveryAction.ACCEPT:
            current = delivery.proposal
            if current is None:
                raise DeliveryValidationError("Delivery has no complete proposal to accept")
            updates = {
                "confirmed_date": current.delivery_date,
                "confirmed_time_start": current.time_start,
                "confirmed_time_end": current.time_end,
            }
            description = f"{name} confirmou a data de entrega"
            title = "Data confirmada"
            message = f"{name} confirmou a entrega NF {nf} para {current.label()}"

        elif action is DeliveryAction.COUNTER_PROPOSE:
            if proposal is None:
                raise DeliveryValidationError("A new date and time window are required")
            guards.validate_proposal(proposal, today, self._rules.min_window_minutes)
            why = guards.validate_suggestion_reason(
                reason, self._rules.max_suggestion_reason_length
            )
            current = delivery.proposal
            old_data = current.snapshot() if current is not None else None
            new_data = proposal.snapshot()
            updates = {
                "proposed_date": proposal.delivery_date,
                "proposed_time_start": proposal.time_start,
                "proposed_time_end": proposal.time_end,
            }
            description = f"{name} sugeriu nova data: {proposal.label()}"
            if why:
                description += f" ({why})"
            title = "Nova data proposta"
            message = f"{name} sugeriu {proposal.label()}"

        elif action is DeliveryAction.CANCEL:
            trimmed = guards.validate_cancellation_reason(
                reason, self._rules.min_cancellation_reason_length
            )
            updates = {"cancellation_reason": trimmed, "cancelled_at": now}
            description = f"{name} cancelou a entrega: {trimmed}"
            title = "Entrega cancelada"
            message = f"{name} cancelou a entrega NF {nf}"

        elif action is DeliveryAction.MARK_IN_TRANSIT:
            if not _confirmed_date_reached(delivery, today):
                raise DeliveryValidationError(
                    "Delivery can only leave on or after the confirmed date",
                    field="confirmed_date",
                )
            updates = {}
            description = f"{name} marcou a entrega como em trânsito"
            title = "Entrega em trânsito"
            message = f"A entrega NF {nf} saiu para entrega"

        else:  # CONFIRM_RECEIPT
            receipt_notes = (notes or "").strip() or None
            updates = {"completed_at": now}
            description = f"{name} confirmou o recebimento"
            if receipt_notes:
                description += f": {receipt_notes}"
                new_data = {"receipt_notes": receipt_notes}
            title = "Entrega concluída"
            message = f"{name} confirmou o recebimento da NF {nf}"

        target = transition.target
        updates["status"] = target
        # Counter-proposal flips the turn; every other target clears it.
        updates["ball_with"] = (
            transition.actor.other if action is DeliveryAction.COUNTER_PROPOSE else None
        )
        updates["updated_at"] = now

        # Re-validate so the turn/confirmation invariants hold on the result.
        updated = Delivery.model_validate({**delivery.model_dump(), **updates})

        return TransitionOutcome(
            delivery=updated,
            previous_status=delivery.status,
            action=action,
            timeline=TimelineEntry(
                delivery_id=delivery.id,
                action=transition.timeline_action,
                description=description,
                user_id=actor.user_id,
                old_data=old_data,
                new_data=new_data,
                created_at=now,
            ),
            notification=NotificationPlan(
                company_id=counterpart_id,
                type=transition.notification_type,
                title=title,
                message=message,
            ),
        )


def _confirmed_date_reached(delivery: Delivery, today: date) -> bool:
    return delivery.confirmed_date is not None and delivery.confirmed_date <= today
