"""Tests for row <-> model conversion helpers."""

from datetime import UTC, datetime, time, timedelta, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from scheduling.domain.models import TimelineEntry
from scheduling.domain.types import DeliveryStatus, TimelineAction
from scheduling.store.serializers import (
    DELIVERY_COLUMNS,
    MUTABLE_DELIVERY_COLUMNS,
    delivery_to_row,
    from_db_timestamp,
    timeline_entry_to_params,
    to_db_timestamp,
)


class TestTimestamps:
    def test_normalized_to_utc(self):
        brt = timezone(timedelta(hours=-3))
        value = datetime(2026, 3, 10, 11, 30, tzinfo=brt)
        assert to_db_timestamp(value) == "2026-03-10T14:30:00.000000+00:00"

    def test_naive_is_taken_as_utc(self):
        assert to_db_timestamp(datetime(2026, 3, 10, 14, 30)) == (
            "2026-03-10T14:30:00.000000+00:00"
        )

    def test_lexical_order_matches_time_order(self):
        earlier = to_db_timestamp(datetime(2026, 3, 10, 9, 0, 0, 999999, tzinfo=UTC))
        later = to_db_timestamp(datetime(2026, 3, 10, 9, 0, 1, tzinfo=UTC))
        assert earlier < later

    def test_parse(self):
        assert from_db_timestamp(None) is None
        parsed = from_db_timestamp("2026-03-10T14:30:00.000000+00:00")
        assert parsed == datetime(2026, 3, 10, 14, 30, tzinfo=UTC)


class TestDeliveryRow:
    def test_columns_cover_the_row(self, make_delivery):
        row = delivery_to_row(make_delivery())
        assert set(row) == set(DELIVERY_COLUMNS)
        assert set(MUTABLE_DELIVERY_COLUMNS) < set(DELIVERY_COLUMNS)

    def test_identity_columns_are_not_mutable(self):
        for column in ("id", "seller_company_id", "buyer_company_id", "invoice_number", "version"):
            assert column not in MUTABLE_DELIVERY_COLUMNS

    def test_values(self, make_delivery):
        row = delivery_to_row(make_delivery())
        assert row["invoice_value"] == "1500.00"
        assert row["status"] == "AWAITING_BUYER"
        assert row["ball_with"] == "BUYER"
        assert row["proposed_time_start"] == "09:00"
        assert row["proposed_date"] == "2026-03-11"
        assert row["confirmed_date"] is None

    def test_decimal_precision_kept(self, make_delivery, sample_invoice):
        invoice = sample_invoice.model_copy(update={"value": Decimal("0.10")})
        row = delivery_to_row(make_delivery(invoice=invoice))
        assert Decimal(row["invoice_value"]) == Decimal("0.10")

    def test_invalid_snapshot_cannot_be_built(self, make_delivery):
        with pytest.raises(ValidationError):
            make_delivery(status=DeliveryStatus.CONFIRMED)


class TestTimelineParams:
    def test_json_payloads(self):
        entry = TimelineEntry(
            delivery_id="d-1",
            action=TimelineAction.PROPOSED_NEW_DATE,
            description="x",
            old_data={"proposed_time_start": time(9).isoformat(timespec="minutes")},
        )
        fallback = datetime(2026, 3, 10, tzinfo=UTC)
        params = timeline_entry_to_params(entry, fallback)
        assert params[1] == "PROPOSED_NEW_DATE"
        assert params[4] == '{"proposed_time_start": "09:00"}'
        assert params[5] is None
        assert params[6] == "2026-03-10T00:00:00.000000+00:00"
