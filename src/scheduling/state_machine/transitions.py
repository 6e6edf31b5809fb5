"""Transition table defining every valid (status, action) -> transition mapping."""

from typing import NamedTuple

from scheduling.domain.types import (
    CompanyRole,
    DeliveryAction,
    DeliveryStatus,
    NotificationType,
    TimelineAction,
)


class Transition(NamedTuple):
    """What an accepted action does: who may invoke it and where it leads."""

    actor: CompanyRole
    target: DeliveryStatus
    timeline_action: TimelineAction
    notification_type: NotificationType


# All valid (current_status, action) -> Transition mappings.
# Any pair not in this dict is not available.
TRANSITIONS: dict[tuple[DeliveryStatus, DeliveryAction], Transition] = {
    # From AWAITING_BUYER
    (DeliveryStatus.AWAITING_BUYER, DeliveryAction.ACCEPT): Transition(
        CompanyRole.BUYER,
        DeliveryStatus.CONFIRMED,
        TimelineAction.CONFIRMED,
        NotificationType.DELIVERY_CONFIRMED,
    ),
    (DeliveryStatus.AWAITING_BUYER, DeliveryAction.COUNTER_PROPOSE): Transition(
        CompanyRole.BUYER,
        DeliveryStatus.AWAITING_SELLER,
        TimelineAction.PROPOSED_NEW_DATE,
        NotificationType.BALL_WITH_YOU,
    ),
    (DeliveryStatus.AWAITING_BUYER, DeliveryAction.CANCEL): Transition(
        CompanyRole.BUYER,
        DeliveryStatus.CANCELLED,
        TimelineAction.CANCELLED,
        NotificationType.DELIVERY_CANCELLED,
    ),
    # From AWAITING_SELLER
    (DeliveryStatus.AWAITING_SELLER, DeliveryAction.ACCEPT): Transition(
        CompanyRole.SELLER,
        DeliveryStatus.CONFIRMED,
        TimelineAction.CONFIRMED,
        NotificationType.DELIVERY_CONFIRMED,
    ),
    (DeliveryStatus.AWAITING_SELLER, DeliveryAction.COUNTER_PROPOSE): Transition(
        CompanyRole.SELLER,
        DeliveryStatus.AWAITING_BUYER,
        TimelineAction.PROPOSED_NEW_DATE,
        NotificationType.BALL_WITH_YOU,
    ),
    (DeliveryStatus.AWAITING_SELLER, DeliveryAction.CANCEL): Transition(
        CompanyRole.SELLER,
        DeliveryStatus.CANCELLED,
        TimelineAction.CANCELLED,
        NotificationType.DELIVERY_CANCELLED,
    ),
    # From CONFIRMED
    (DeliveryStatus.CONFIRMED, DeliveryAction.MARK_IN_TRANSIT): Transition(
        CompanyRole.SELLER,
        DeliveryStatus.IN_TRANSIT,
        TimelineAction.IN_TRANSIT,
        NotificationType.DELIVERY_IN_TRANSIT,
    ),
    # From IN_TRANSIT
    (DeliveryStatus.IN_TRANSIT, DeliveryAction.CONFIRM_RECEIPT): Transition(
        CompanyRole.BUYER,
        DeliveryStatus.DELIVERED,
        TimelineAction.DELIVERED,
        NotificationType.DELIVERY_COMPLETED,
    ),
}

# Statuses that reject all actions -- no outgoing transitions allowed.
TERMINAL_STATES: frozenset[DeliveryStatus] = frozenset(
    {DeliveryStatus.DELIVERED, DeliveryStatus.CANCELLED}
)

# Order in which available actions are offered to a viewer.
ACTION_ORDER: tuple[DeliveryAction, ...] = (
    DeliveryAction.ACCEPT,
    DeliveryAction.COUNTER_PROPOSE,
    DeliveryAction.CANCEL,
    DeliveryAction.MARK_IN_TRANSIT,
    DeliveryAction.CONFIRM_RECEIPT,
)
