"""Application service: the one entry point for every delivery operation.

Each action follows the same sequence: resolve the current snapshot, let the
state machine validate and compute the outcome, persist the delivery change
and its timeline entry atomically (compare-and-swap on ``version``), then
notify the counterpart company.  The notification step runs after the commit
and a failure there is logged without undoing the transition.

The caller's identity is passed in explicitly as an :class:`Actor`; the
service holds no session state.
"""

from __future__ import annotations

import calendar
import uuid
from datetime import date, datetime, time, timedelta
from enum import StrEnum

import structlog

from scheduling.config import Settings
from scheduling.domain.errors import (
    ActionNotAvailableError,
    DeliveryValidationError,
    NotFoundError,
    PermissionDeniedError,
    StaleDeliveryError,
    UnknownActorError,
)
from scheduling.domain.models import (
    Actor,
    ChatMessage,
    Company,
    Delivery,
    NewDelivery,
    NewPartner,
    Notification,
    Partner,
    Proposal,
    TimelineEntry,
    User,
)
from scheduling.domain.types import (
    CompanyRole,
    DeliveryAction,
    DeliveryStatus,
    NotificationType,
    UserRole,
)
from scheduling.notifications.dispatcher import NotificationDispatcher
from scheduling.notifications.store import NotificationStore
from scheduling.observability.metrics import REJECTED_ACTIONS_TOTAL, TRANSITIONS_TOTAL
from scheduling.state_machine import guards
from scheduling.state_machine.machine import (
    DeliveryStateMachine,
    NegotiationRules,
    NotificationPlan,
)
from scheduling.state_machine.projector import DeliveryBoard, DeliveryView, build_board, project
from scheduling.store.store import DeliveryStore

logger = structlog.get_logger()


class ListPeriod(StrEnum):
    """Quick creation-date filters for the delivery list."""

    ALL = "all"
    WEEK = "week"
    MONTH = "month"


def _one_month_before(moment: datetime) -> datetime:
    year, month = (moment.year, moment.month - 1) if moment.month > 1 else (moment.year - 1, 12)
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def period_start(period: ListPeriod, now: datetime) -> datetime | None:
    """Return the earliest creation time included by *period*, or ``None`` for all."""
    if period is ListPeriod.WEEK:
        return now - timedelta(days=7)
    if period is ListPeriod.MONTH:
        return _one_month_before(now)
    return None


class DeliveryService:
    """Orchestrates the state machine, the stores and the notification dispatcher.

    Args:
        store: Record store for deliveries, companies, partners and chat.
        notifications: Notification inbox store.
        settings: Application settings (rules, time zone, page sizes).
        machine: State machine to use; built from *settings* when omitted.
    """

    def __init__(
        self,
        store: DeliveryStore,
        notifications: NotificationStore,
        settings: Settings,
        machine: DeliveryStateMachine | None = None,
    ) -> None:
        self._store = store
        self._notifications = notifications
        self._settings = settings
        self._machine = machine or DeliveryStateMachine(NegotiationRules.from_settings(settings))
        self._dispatcher = NotificationDispatcher(store, notifications)

    @property
    def store(self) -> DeliveryStore:
        return self._store

    @property
    def machine(self) -> DeliveryStateMachine:
        return self._machine

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def resolve_actor(self, user_id: str) -> Actor:
        """Build the actor context for an active user.

        Raises:
            UnknownActorError: If the user does not exist or is inactive.
        """
        try:
            user = self._store.get_user(user_id)
        except NotFoundError:
            raise UnknownActorError(f"Unknown user: {user_id}") from None
        if not user.is_active:
            raise UnknownActorError(f"Inactive user: {user_id}")
        company = self._store.get_company(user.company_id)
        return Actor.from_profile(user, company)

    # ------------------------------------------------------------------
    # Creation and transitions
    # ------------------------------------------------------------------

    def check_can_create(self, actor: Actor) -> None:
        """Reject actors who may not create deliveries, before any input is built.

        Raises:
            DeliveryValidationError: If the actor's company is not a seller.
        """
        try:
            self._machine.check_creator(actor)
        except DeliveryValidationError as exc:
            self._rejected("validation", None, None, actor, exc)
            raise

    def create_delivery(self, actor: Actor, new: NewDelivery) -> Delivery:
        """Create a delivery with the seller's initial proposal.

        Raises:
            NotFoundError: If the buyer company does not exist.
            DeliveryValidationError: If the actor is not the seller or a
                guard rejects the invoice or proposal.
        """
        self.check_can_create(actor)
        buyer = self._store.get_company(new.buyer_company_id)
        if buyer.role is not CompanyRole.BUYER:
            raise DeliveryValidationError(
                "Deliveries can only be addressed to buyer companies", field="buyer_company_id"
            )
        try:
            outcome = self._machine.create(
                new,
                actor,
                delivery_id=uuid.uuid4().hex,
                today=self._settings.today(),
                now=self._settings.now(),
            )
        except DeliveryValidationError as exc:
            self._rejected("validation", None, None, actor, exc)
            raise
        delivery = self._store.insert_delivery(outcome)
        logger.info(
            "delivery_created",
            delivery_id=delivery.id,
            invoice_number=delivery.invoice.number,
            seller_company_id=delivery.seller_company_id,
            buyer_company_id=delivery.buyer_company_id,
            user_id=actor.user_id,
        )
        self._dispatch(outcome.notification, actor, delivery.id)
        return delivery

    def perform(
        self,
        actor: Actor,
        delivery_id: str,
        action: DeliveryAction,
        *,
        proposal: Proposal | None = None,
        reason: str | None = None,
        notes: str | None = None,
    ) -> Delivery:
        """Apply *action* to a delivery on behalf of *actor*.

        Returns:
            The updated delivery.

        Raises:
            NotFoundError: If the delivery does not exist or the actor is
                not a party.
            ActionNotAvailableError: If the action is not offered to the actor.
            DeliveryValidationError: If a guard rejects the payload.
            StaleDeliveryError: If the delivery changed since it was read.
        """
        delivery = self._visible_delivery(actor, delivery_id)
        try:
            outcome = self._machine.apply(
                delivery,
                actor,
                action,
                today=self._settings.today(),
                now=self._settings.now(),
                proposal=proposal,
                reason=reason,
                notes=notes,
            )
        except ActionNotAvailableError as exc:
            self._rejected("not_available", delivery_id, action, actor, exc)
            raise
        except DeliveryValidationError as exc:
            self._rejected("validation", delivery_id, action, actor, exc)
            raise

        try:
            updated = self._store.apply_transition(outcome, delivery.version)
        except StaleDeliveryError as exc:
            self._rejected("stale", delivery_id, action, actor, exc)
            raise

        TRANSITIONS_TOTAL.labels(action=action.value).inc()
        logger.info(
            "delivery_transition",
            delivery_id=delivery_id,
            action=action.value,
            from_status=delivery.status.value,
            to_status=updated.status.value,
            ball_with=updated.ball_with.value if updated.ball_with else None,
            user_id=actor.user_id,
        )
        self._dispatch(outcome.notification, actor, delivery_id)
        return updated

    def accept(self, actor: Actor, delivery_id: str) -> Delivery:
        return self.perform(actor, delivery_id, DeliveryAction.ACCEPT)

    def counter_propose(
        self,
        actor: Actor,
        delivery_id: str,
        proposal: Proposal,
        reason: str | None = None,
    ) -> Delivery:
        return self.perform(
            actor, delivery_id, DeliveryAction.COUNTER_PROPOSE, proposal=proposal, reason=reason
        )

    def cancel(self, actor: Actor, delivery_id: str, reason: str) -> Delivery:
        return self.perform(actor, delivery_id, DeliveryAction.CANCEL, reason=reason)

    def mark_in_transit(self, actor: Actor, delivery_id: str) -> Delivery:
        return self.perform(actor, delivery_id, DeliveryAction.MARK_IN_TRANSIT)

    def confirm_receipt(self, actor: Actor, delivery_id: str, notes: str | None = None) -> Delivery:
        return self.perform(actor, delivery_id, DeliveryAction.CONFIRM_RECEIPT, notes=notes)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _visible_delivery(self, actor: Actor, delivery_id: str) -> Delivery:
        delivery = self._store.get_delivery(delivery_id)
        if delivery.role_of(actor.company_id) is None:
            # Non-parties cannot tell a foreign delivery from a missing one.
            raise NotFoundError("delivery", delivery_id)
        return delivery

    def view(self, actor: Actor, delivery: Delivery) -> DeliveryView:
        """Project *delivery* for the actor (turn flag and available actions)."""
        return project(delivery, actor.company_id, self._settings.today(), self._machine)

    def get_view(self, actor: Actor, delivery_id: str) -> DeliveryView:
        return self.view(actor, self._visible_delivery(actor, delivery_id))

    def list_deliveries(
        self,
        actor: Actor,
        *,
        search: str | None = None,
        partner_company_id: str | None = None,
        period: ListPeriod = ListPeriod.ALL,
        status: DeliveryStatus | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[DeliveryView]:
        """List the actor company's deliveries, newest first, as per-viewer views."""
        now = self._settings.now()
        created_from = period_start(period, now)
        if date_from is not None:
            start = datetime.combine(date_from, time.min, tzinfo=self._settings.zone())
            created_from = max(created_from, start) if created_from else start
        created_to = None
        if date_to is not None:
            created_to = datetime.combine(date_to, time.max, tzinfo=self._settings.zone())

        deliveries = self._store.list_for_company(
            actor.company_id,
            search=search,
            partner_company_id=partner_company_id,
            status=status,
            created_from=created_from,
            created_to=created_to,
        )
        today = self._settings.today()
        return [project(d, actor.company_id, today, self._machine) for d in deliveries]

    def board(self, actor: Actor) -> DeliveryBoard:
        """Return the actor company's dashboard buckets."""
        deliveries = self._store.list_for_company(actor.company_id)
        return build_board(deliveries, actor.company_id)

    def timeline(self, actor: Actor, delivery_id: str) -> list[TimelineEntry]:
        self._visible_delivery(actor, delivery_id)
        return self._store.timeline(delivery_id)

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    def send_message(self, actor: Actor, delivery_id: str, text: str) -> ChatMessage:
        """Post a chat message and notify the counterpart's active users.

        Raises:
            NotFoundError: If the delivery does not exist or the actor is
                not a party.
            MessageValidationError: If the message is blank or too long.
        """
        delivery = self._visible_delivery(actor, delivery_id)
        body = guards.validate_message(text, self._settings.max_message_length)
        message = self._store.add_message(
            ChatMessage(delivery_id=delivery_id, user_id=actor.user_id, message=body)
        )
        logger.info("chat_message_sent", delivery_id=delivery_id, user_id=actor.user_id)

        role = delivery.role_of(actor.company_id)
        assert role is not None
        self._dispatch(
            NotificationPlan(
                company_id=delivery.party_id(role.other),
                type=NotificationType.MESSAGE_RECEIVED,
                title="Nova mensagem",
                message=f"{actor.full_name} enviou uma mensagem",
            ),
            actor,
            delivery_id,
        )
        return message

    def list_messages(self, actor: Actor, delivery_id: str) -> list[ChatMessage]:
        self._visible_delivery(actor, delivery_id)
        return self._store.list_messages(delivery_id)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def notifications(self, actor: Actor, limit: int | None = None) -> list[Notification]:
        """Return the actor's latest notifications, newest first."""
        return self._notifications.list_for_user(
            actor.user_id, limit or self._settings.notifications_page_size
        )

    def unread_count(self, actor: Actor) -> int:
        return self._notifications.unread_count(actor.user_id)

    def mark_notification_read(self, actor: Actor, notification_id: int) -> None:
        self._notifications.mark_as_read(notification_id, actor.user_id)

    def mark_all_notifications_read(self, actor: Actor) -> int:
        return self._notifications.mark_all_as_read(actor.user_id)

    # ------------------------------------------------------------------
    # Partners
    # ------------------------------------------------------------------

    def add_partner(self, actor: Actor, partner: NewPartner) -> Partner:
        """Link a buyer company to the actor's seller company.

        An existing company with the same CNPJ is reused; otherwise a new
        buyer company is created.  Linking an existing partner again is a
        no-op.

        Raises:
            DeliveryValidationError: If the actor is not a seller, or the
                CNPJ belongs to a seller company.
        """
        if actor.company_role is not CompanyRole.SELLER:
            raise DeliveryValidationError("Only seller companies can add partners")

        company = self._store.find_company_by_cnpj(partner.cnpj)
        if company is None:
            company = self._store.add_company(
                Company(
                    id=uuid.uuid4().hex,
                    name=partner.name,
                    cnpj=partner.cnpj,
                    email=partner.email,
                    phone=partner.phone,
                    address=partner.address,
                    role=CompanyRole.BUYER,
                )
            )
            logger.info("partner_company_created", company_id=company.id)
        elif company.role is not CompanyRole.BUYER:
            raise DeliveryValidationError(
                "A company with this CNPJ is registered as a seller", field="cnpj"
            )

        created = self._store.add_partner(actor.company_id, company.id)
        logger.info(
            "partner_linked",
            seller_company_id=actor.company_id,
            buyer_company_id=company.id,
            created=created,
        )
        for item in self._store.list_partners(actor.company_id):
            if item.company.id == company.id:
                return item
        raise NotFoundError("partner", company.id)

    def list_partners(self, actor: Actor) -> list[Partner]:
        return self._store.list_partners(actor.company_id)

    # ------------------------------------------------------------------
    # Team
    # ------------------------------------------------------------------

    def list_team(self, actor: Actor) -> list[User]:
        """Return every user of the actor's company, oldest first.

        Raises:
            PermissionDeniedError: If the actor is not an admin.
        """
        self._require_admin(actor)
        return self._store.list_users(actor.company_id)

    def set_member_active(self, actor: Actor, user_id: str, is_active: bool) -> User:
        """Activate or deactivate a member of the actor's company.

        Inactive members cannot act and receive no notifications.

        Raises:
            PermissionDeniedError: If the actor is not an admin.
            NotFoundError: If *user_id* is not in the actor's company.
            DeliveryValidationError: If the actor targets themselves.
        """
        self._teammate(actor, user_id)
        self._store.set_user_active(user_id, is_active)
        logger.info(
            "team_member_status_changed",
            company_id=actor.company_id,
            member_id=user_id,
            is_active=is_active,
            user_id=actor.user_id,
        )
        return self._store.get_user(user_id)

    def set_member_role(self, actor: Actor, user_id: str, role: UserRole) -> User:
        """Change the role of a member of the actor's company.

        Raises:
            PermissionDeniedError: If the actor is not an admin.
            NotFoundError: If *user_id* is not in the actor's company.
            DeliveryValidationError: If the actor targets themselves.
        """
        self._teammate(actor, user_id)
        self._store.set_user_role(user_id, role)
        logger.info(
            "team_member_role_changed",
            company_id=actor.company_id,
            member_id=user_id,
            role=role.value,
            user_id=actor.user_id,
        )
        return self._store.get_user(user_id)

    def _require_admin(self, actor: Actor) -> None:
        if actor.user_role is not UserRole.ADMIN:
            raise PermissionDeniedError("Only company admins can manage the team")

    def _teammate(self, actor: Actor, user_id: str) -> User:
        self._require_admin(actor)
        member = self._store.get_user(user_id)
        if member.company_id != actor.company_id:
            # Users of other companies are indistinguishable from missing ones.
            raise NotFoundError("user", user_id)
        if member.id == actor.user_id:
            raise DeliveryValidationError("You cannot change your own access", field="user_id")
        return member

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _dispatch(self, plan: NotificationPlan, actor: Actor, delivery_id: str) -> None:
        self._dispatcher.notify_company(
            plan.company_id,
            actor_company_id=actor.company_id,
            type=plan.type,
            title=plan.title,
            message=plan.message,
            delivery_id=delivery_id,
        )

    def _rejected(
        self,
        reason: str,
        delivery_id: str | None,
        action: DeliveryAction | None,
        actor: Actor,
        exc: Exception,
    ) -> None:
        REJECTED_ACTIONS_TOTAL.labels(reason=reason).inc()
        logger.info(
            "delivery_action_rejected",
            reason=reason,
            delivery_id=delivery_id,
            action=action.value if action else None,
            user_id=actor.user_id,
            detail=str(exc),
        )
