"""Input guards evaluated before any delivery mutation.

The same checks run for the initial proposal at creation and for every
counter-proposal.  Each guard raises a :class:`DeliveryValidationError`
subclass and never touches state.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from scheduling.domain.errors import (
    CancellationValidationError,
    MessageValidationError,
    ProposalValidationError,
)
from scheduling.domain.models import Proposal

DEFAULT_MIN_WINDOW_MINUTES = 60
DEFAULT_MIN_CANCELLATION_REASON_LENGTH = 10
DEFAULT_MAX_SUGGESTION_REASON_LENGTH = 500
DEFAULT_MAX_MESSAGE_LENGTH = 2000


def validate_time_window(
    time_start: time,
    time_end: time,
    min_minutes: int = DEFAULT_MIN_WINDOW_MINUTES,
) -> None:
    """Ensure *time_end* is after *time_start* by at least *min_minutes*.

    Args:
        time_start: Start of the delivery window.
        time_end: End of the delivery window.
        min_minutes: Minimum length of the window.

    Raises:
        ProposalValidationError: If either time carries a UTC offset, the end
            is not after the start, or the window is shorter than *min_minutes*.
    """
    if time_start.tzinfo is not None or time_end.tzinfo is not None:
        raise ProposalValidationError("Times must not carry a UTC offset", field="time_start")
    start = datetime.combine(date.min, time_start)
    end = datetime.combine(date.min, time_end)
    if end <= start:
        raise ProposalValidationError("End time must be after start time", field="time_end")
    if end - start < timedelta(minutes=min_minutes):
        raise ProposalValidationError(
            f"Delivery window must be at least {min_minutes} minutes long",
            field="time_end",
        )


def validate_proposed_date(proposed: date, today: date) -> None:
    """Reject dates strictly before *today* (date-only comparison).

    Raises:
        ProposalValidationError: If *proposed* is in the past.
    """
    if proposed < today:
        raise ProposalValidationError("Date cannot be in the past", field="delivery_date")


def validate_proposal(
    proposal: Proposal,
    today: date,
    min_minutes: int = DEFAULT_MIN_WINDOW_MINUTES,
) -> None:
    """Run the date and window guards for a proposal."""
    validate_proposed_date(proposal.delivery_date, today)
    validate_time_window(proposal.time_start, proposal.time_end, min_minutes)


def validate_cancellation_reason(
    reason: str | None,
    min_length: int = DEFAULT_MIN_CANCELLATION_REASON_LENGTH,
) -> str:
    """Return the trimmed cancellation reason if it is long enough.

    Raises:
        CancellationValidationError: If the trimmed reason is empty or
            shorter than *min_length*.
    """
    trimmed = (reason or "").strip()
    if not trimmed:
        raise CancellationValidationError("Cancellation reason is required", field="reason")
    if len(trimmed) < min_length:
        raise CancellationValidationError(
            f"Cancellation reason must have at least {min_length} characters",
            field="reason",
        )
    return trimmed


def validate_suggestion_reason(
    reason: str | None,
    max_length: int = DEFAULT_MAX_SUGGESTION_REASON_LENGTH,
) -> str | None:
    """Return the trimmed optional reason for a counter-proposal.

    Raises:
        ProposalValidationError: If the reason exceeds *max_length*.
    """
    trimmed = (reason or "").strip()
    if len(trimmed) > max_length:
        raise ProposalValidationError(
            f"Reason must have at most {max_length} characters", field="reason"
        )
    return trimmed or None


def validate_message(text: str | None, max_length: int = DEFAULT_MAX_MESSAGE_LENGTH) -> str:
    """Return the trimmed chat message.

    Raises:
        MessageValidationError: If the message is blank or longer than
            *max_length*.
    """
    trimmed = (text or "").strip()
    if not trimmed:
        raise MessageValidationError("Message cannot be empty", field="message")
    if len(trimmed) > max_length:
        raise MessageValidationError(
            f"Message must have at most {max_length} characters", field="message"
        )
    return trimmed
