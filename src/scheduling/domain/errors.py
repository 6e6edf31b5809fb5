"""Domain-specific exception classes for delivery scheduling."""

from scheduling.domain.types import CompanyRole, DeliveryAction, DeliveryStatus


class SchedulingError(Exception):
    """Base class for all domain errors in the scheduling service."""


class DeliveryValidationError(SchedulingError):
    """Raised when user input fails a guard before any mutation.

    Attributes:
        field: The input field the message refers to, if any.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class ProposalValidationError(DeliveryValidationError):
    """Raised when a proposed date or time window is invalid."""


class CancellationValidationError(DeliveryValidationError):
    """Raised when a cancellation reason is missing or too short."""


class MessageValidationError(DeliveryValidationError):
    """Raised when a chat message is empty or too long."""


class ActionNotAvailableError(SchedulingError):
    """Raised when an action is not offered to the actor in the current state.

    Attributes:
        status: The delivery status when the action was attempted.
        action: The rejected action.
        role: The actor's role on the delivery, or ``None`` for non-parties.
    """

    def __init__(
        self,
        status: DeliveryStatus,
        action: DeliveryAction,
        role: CompanyRole | None,
    ) -> None:
        self.status = status
        self.action = action
        self.role = role
        super().__init__(
            f"Action '{action}' not available for {role or 'non-party'} in status '{status}'"
        )


class StaleDeliveryError(SchedulingError):
    """Raised when a delivery changed between read and write.

    Attributes:
        delivery_id: The delivery whose update lost the race.
        expected_version: The version the caller read.
    """

    def __init__(self, delivery_id: str, expected_version: int) -> None:
        self.delivery_id = delivery_id
        self.expected_version = expected_version
        super().__init__(
            f"Delivery {delivery_id} was modified concurrently (expected version "
            f"{expected_version})"
        )


class NotFoundError(SchedulingError):
    """Raised when a referenced record does not exist."""

    def __init__(self, kind: str, record_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id}")


class UnknownActorError(SchedulingError):
    """Raised when the calling user cannot be resolved to an active profile."""


class StoreError(SchedulingError):
    """Raised when the record store fails (disk, lock, integrity)."""


class PermissionDeniedError(SchedulingError):
    """Raised when the actor lacks the user role an operation requires."""
