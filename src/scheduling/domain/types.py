"""Domain enumerations for delivery scheduling."""

from enum import StrEnum


class CompanyRole(StrEnum):
    """The side a company plays in a delivery."""

    SELLER = "SELLER"
    BUYER = "BUYER"

    @property
    def other(self) -> "CompanyRole":
        """Return the counterpart role."""
        return CompanyRole.BUYER if self is CompanyRole.SELLER else CompanyRole.SELLER


class DeliveryStatus(StrEnum):
    """States in the delivery negotiation lifecycle."""

    DRAFT = "DRAFT"
    AWAITING_BUYER = "AWAITING_BUYER"
    AWAITING_SELLER = "AWAITING_SELLER"
    CONFIRMED = "CONFIRMED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class DeliveryAction(StrEnum):
    """Actions a party can invoke on a delivery."""

    ACCEPT = "ACCEPT"
    COUNTER_PROPOSE = "COUNTER_PROPOSE"
    CANCEL = "CANCEL"
    MARK_IN_TRANSIT = "MARK_IN_TRANSIT"
    CONFIRM_RECEIPT = "CONFIRM_RECEIPT"


class TimelineAction(StrEnum):
    """Tags recorded on timeline entries."""

    CREATED = "CREATED"
    CONFIRMED = "CONFIRMED"
    PROPOSED_NEW_DATE = "PROPOSED_NEW_DATE"
    CANCELLED = "CANCELLED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"


class NotificationType(StrEnum):
    """Type tags for user notifications."""

    NEW_DELIVERY = "NEW_DELIVERY"
    BALL_WITH_YOU = "BALL_WITH_YOU"
    DELIVERY_CONFIRMED = "DELIVERY_CONFIRMED"
    DELIVERY_CANCELLED = "DELIVERY_CANCELLED"
    DELIVERY_IN_TRANSIT = "DELIVERY_IN_TRANSIT"
    DELIVERY_COMPLETED = "DELIVERY_COMPLETED"
    MESSAGE_RECEIVED = "MESSAGE_RECEIVED"


class PartnerStatus(StrEnum):
    """Status of a seller/buyer partner relationship."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class UserRole(StrEnum):
    """A user's role inside their own company; admins manage the team."""

    ADMIN = "ADMIN"
    USER = "USER"
