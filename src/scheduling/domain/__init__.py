"""Domain types, models, and errors for delivery scheduling."""

from scheduling.domain.errors import (
    ActionNotAvailableError,
    CancellationValidationError,
    DeliveryValidationError,
    MessageValidationError,
    NotFoundError,
    PermissionDeniedError,
    ProposalValidationError,
    SchedulingError,
    StaleDeliveryError,
    StoreError,
    UnknownActorError,
)
from scheduling.domain.models import (
    AWAITING_STATES,
    Actor,
    Address,
    ChatMessage,
    Company,
    Delivery,
    Invoice,
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
    PartnerStatus,
    TimelineAction,
    UserRole,
)

__all__ = [
    "AWAITING_STATES",
    "ActionNotAvailableError",
    "Actor",
    "Address",
    "CancellationValidationError",
    "ChatMessage",
    "Company",
    "CompanyRole",
    "Delivery",
    "DeliveryAction",
    "DeliveryStatus",
    "DeliveryValidationError",
    "Invoice",
    "MessageValidationError",
    "NewDelivery",
    "NewPartner",
    "NotFoundError",
    "Notification",
    "NotificationType",
    "Partner",
    "PartnerStatus",
    "PermissionDeniedError",
    "Proposal",
    "ProposalValidationError",
    "SchedulingError",
    "StaleDeliveryError",
    "StoreError",
    "TimelineAction",
    "TimelineEntry",
    "UnknownActorError",
    "User",
    "UserRole",
]
