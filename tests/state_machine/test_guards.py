"""Tests for the input guards shared by creation and counter-proposals."""

from datetime import UTC, date, time, timedelta, timezone

import pytest

from scheduling.domain.errors import (
    CancellationValidationError,
    DeliveryValidationError,
    MessageValidationError,
    ProposalValidationError,
)
from scheduling.domain.models import Proposal
from scheduling.state_machine.guards import (
    validate_cancellation_reason,
    validate_message,
    validate_proposal,
    validate_proposed_date,
    validate_suggestion_reason,
    validate_time_window,
)

TODAY = date(2026, 3, 10)


class TestTimeWindow:
    @pytest.mark.parametrize(
        ("start", "end"),
        [
            (time(9, 0), time(10, 0)),
            (time(0, 0), time(1, 0)),
            (time(8, 15), time(17, 45)),
        ],
    )
    def test_accepts_windows_of_at_least_an_hour(self, start, end):
        validate_time_window(start, end)

    @pytest.mark.parametrize(
        ("start", "end"),
        [
            (time(9, 0), time(9, 30)),
            (time(9, 0), time(9, 59)),
            (time(23, 30), time(23, 59)),
        ],
    )
    def test_rejects_short_windows(self, start, end):
        with pytest.raises(ProposalValidationError, match="at least 60 minutes"):
            validate_time_window(start, end)

    @pytest.mark.parametrize(
        ("start", "end"),
        [(time(10, 0), time(10, 0)), (time(10, 0), time(9, 0)), (time(23, 0), time(0, 30))],
    )
    def test_rejects_end_not_after_start(self, start, end):
        with pytest.raises(ProposalValidationError, match="End time must be after start time"):
            validate_time_window(start, end)

    def test_custom_minimum(self):
        validate_time_window(time(9, 0), time(9, 30), min_minutes=30)
        with pytest.raises(ProposalValidationError):
            validate_time_window(time(9, 0), time(9, 29), min_minutes=30)

    def test_is_a_delivery_validation_error(self):
        with pytest.raises(DeliveryValidationError):
            validate_time_window(time(9, 0), time(9, 30))

    def test_rejects_times_with_utc_offset(self):
        minus_three = timezone(timedelta(hours=-3))
        with pytest.raises(ProposalValidationError, match="UTC offset") as exc_info:
            validate_time_window(time(9, 0, tzinfo=minus_three), time(11, 0))
        assert exc_info.value.field == "time_start"
        with pytest.raises(ProposalValidationError, match="UTC offset"):
            validate_time_window(time(9, 0), time(11, 0, tzinfo=UTC))


class TestProposedDate:
    def test_today_is_allowed(self):
        validate_proposed_date(TODAY, TODAY)

    def test_future_is_allowed(self):
        validate_proposed_date(date(2026, 12, 31), TODAY)

    def test_yesterday_rejected(self):
        with pytest.raises(ProposalValidationError, match="Date cannot be in the past") as exc:
            validate_proposed_date(date(2026, 3, 9), TODAY)
        assert exc.value.field == "delivery_date"

    def test_validate_proposal_runs_both_guards(self):
        with pytest.raises(ProposalValidationError, match="past"):
            validate_proposal(
                Proposal(delivery_date=date(2026, 3, 1), time_start=time(9), time_end=time(10)),
                TODAY,
            )
        with pytest.raises(ProposalValidationError, match="60 minutes"):
            validate_proposal(
                Proposal(delivery_date=TODAY, time_start=time(9), time_end=time(9, 30)),
                TODAY,
            )


class TestCancellationReason:
    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_empty_reason_rejected(self, reason):
        with pytest.raises(CancellationValidationError, match="required"):
            validate_cancellation_reason(reason)

    @pytest.mark.parametrize("reason", ["ok", "123456789", "   curto   "])
    def test_short_reason_rejected(self, reason):
        with pytest.raises(CancellationValidationError, match="at least 10 characters"):
            validate_cancellation_reason(reason)

    def test_padding_does_not_count(self):
        with pytest.raises(CancellationValidationError):
            validate_cancellation_reason("  123456789  ")

    def test_returns_trimmed_reason(self):
        assert validate_cancellation_reason("  Cliente fechado hoje ") == "Cliente fechado hoje"

    def test_exactly_minimum_length(self):
        assert validate_cancellation_reason("1234567890") == "1234567890"


class TestSuggestionReason:
    def test_optional(self):
        assert validate_suggestion_reason(None) is None
        assert validate_suggestion_reason("   ") is None

    def test_trimmed(self):
        assert validate_suggestion_reason(" feriado ") == "feriado"

    def test_too_long(self):
        with pytest.raises(ProposalValidationError, match="at most 500"):
            validate_suggestion_reason("x" * 501)


class TestMessage:
    def test_trimmed(self):
        assert validate_message("  ola  ") == "ola"

    @pytest.mark.parametrize("text", ["", "  \n ", None])
    def test_blank_rejected(self, text):
        with pytest.raises(MessageValidationError, match="empty"):
            validate_message(text)

    def test_too_long(self):
        with pytest.raises(MessageValidationError, match="at most 10"):
            validate_message("x" * 11, max_length=10)
