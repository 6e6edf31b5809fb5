"""Row <-> model conversion for the scheduling tables.

Decimal values are stored as strings so no precision is lost; dates and
times use ISO 8601; timestamps are normalized to UTC with microseconds so
that lexical order in SQLite matches chronological order.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, date, datetime, time
from decimal import Decimal
from typing import Any

from scheduling.domain.models import (
    Address,
    ChatMessage,
    Company,
    Delivery,
    Invoice,
    Notification,
    TimelineEntry,
    User,
)


def to_db_timestamp(value: datetime) -> str:
    """Serialize *value* as a UTC ISO 8601 string (naive values are taken as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def from_db_timestamp(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _date(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


def _time(value: time | None) -> str | None:
    return value.isoformat(timespec="minutes") if value is not None else None


def _ts(value: datetime | None) -> str | None:
    return to_db_timestamp(value) if value is not None else None


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value is not None else None


def _parse_time(value: str | None) -> time | None:
    return time.fromisoformat(value) if value is not None else None


def _json(value: dict[str, Any] | None) -> str | None:
    return json.dumps(value) if value is not None else None


def _parse_json(value: str | None) -> dict[str, Any] | None:
    if value is None:
        return None
    result: dict[str, Any] = json.loads(value)
    return result


# ------------------------------------------------------------------
# Deliveries
# ------------------------------------------------------------------

DELIVERY_COLUMNS: tuple[str, ...] = (
    "id",
    "seller_company_id",
    "buyer_company_id",
    "invoice_number",
    "invoice_series",
    "invoice_issue_date",
    "invoice_value",
    "invoice_document_url",
    "address_street",
    "address_number",
    "address_complement",
    "address_neighborhood",
    "address_city",
    "address_state",
    "address_postal_code",
    "status",
    "ball_with",
    "proposed_date",
    "proposed_time_start",
    "proposed_time_end",
    "confirmed_date",
    "confirmed_time_start",
    "confirmed_time_end",
    "cancellation_reason",
    "cancelled_at",
    "completed_at",
    "notes",
    "internal_notes",
    "created_by_user_id",
    "created_at",
    "updated_at",
    "version",
)

# Columns a transition may change; invoice, parties and address are immutable.
MUTABLE_DELIVERY_COLUMNS: tuple[str, ...] = (
    "status",
    "ball_with",
    "proposed_date",
    "proposed_time_start",
    "proposed_time_end",
    "confirmed_date",
    "confirmed_time_start",
    "confirmed_time_end",
    "cancellation_reason",
    "cancelled_at",
    "completed_at",
    "updated_at",
)


def delivery_to_row(delivery: Delivery) -> dict[str, Any]:
    """Flatten a :class:`Delivery` into a column -> value mapping."""
    return {
        "id": delivery.id,
        "seller_company_id": delivery.seller_company_id,
        "buyer_company_id": delivery.buyer_company_id,
        "invoice_number": delivery.invoice.number,
        "invoice_series": delivery.invoice.series,
        "invoice_issue_date": _date(delivery.invoice.issue_date),
        "invoice_value": str(delivery.invoice.value),
        "invoice_document_url": delivery.invoice.document_url,
        "address_street": delivery.address.street,
        "address_number": delivery.address.number,
        "address_complement": delivery.address.complement,
        "address_neighborhood": delivery.address.neighborhood,
        "address_city": delivery.address.city,
        "address_state": delivery.address.state,
        "address_postal_code": delivery.address.postal_code,
        "status": delivery.status.value,
        "ball_with": delivery.ball_with.value if delivery.ball_with is not None else None,
        "proposed_date": _date(delivery.proposed_date),
        "proposed_time_start": _time(delivery.proposed_time_start),
        "proposed_time_end": _time(delivery.proposed_time_end),
        "confirmed_date": _date(delivery.confirmed_date),
        "confirmed_time_start": _time(delivery.confirmed_time_start),
        "confirmed_time_end": _time(delivery.confirmed_time_end),
        "cancellation_reason": delivery.cancellation_reason,
        "cancelled_at": _ts(delivery.cancelled_at),
        "completed_at": _ts(delivery.completed_at),
        "notes": delivery.notes,
        "internal_notes": delivery.internal_notes,
        "created_by_user_id": delivery.created_by_user_id,
        "created_at": _ts(delivery.created_at),
        "updated_at": _ts(delivery.updated_at),
        "version": delivery.version,
    }


def delivery_from_row(row: sqlite3.Row) -> Delivery:
    """Rebuild a :class:`Delivery` from a ``deliveries`` row.

    Construction re-runs the model validators, so a row that violates the
    aggregate invariants raises ``pydantic.ValidationError``.
    """
    return Delivery(
        id=row["id"],
        seller_company_id=row["seller_company_id"],
        buyer_company_id=row["buyer_company_id"],
        invoice=Invoice(
            number=row["invoice_number"],
            series=row["invoice_series"],
            issue_date=date.fromisoformat(row["invoice_issue_date"]),
            value=Decimal(row["invoice_value"]),
            document_url=row["invoice_document_url"],
        ),
        address=Address(
            street=row["address_street"],
            number=row["address_number"],
            complement=row["address_complement"],
            neighborhood=row["address_neighborhood"],
            city=row["address_city"],
            state=row["address_state"],
            postal_code=row["address_postal_code"],
        ),
        status=row["status"],
        ball_with=row["ball_with"],
        proposed_date=_parse_date(row["proposed_date"]),
        proposed_time_start=_parse_time(row["proposed_time_start"]),
        proposed_time_end=_parse_time(row["proposed_time_end"]),
        confirmed_date=_parse_date(row["confirmed_date"]),
        confirmed_time_start=_parse_time(row["confirmed_time_start"]),
        confirmed_time_end=_parse_time(row["confirmed_time_end"]),
        cancellation_reason=row["cancellation_reason"],
        cancelled_at=from_db_timestamp(row["cancelled_at"]),
        completed_at=from_db_timestamp(row["completed_at"]),
        notes=row["notes"],
        internal_notes=row["internal_notes"],
        created_by_user_id=row["created_by_user_id"],
        created_at=from_db_timestamp(row["created_at"]),
        updated_at=from_db_timestamp(row["updated_at"]),
        version=row["version"],
    )


# ------------------------------------------------------------------
# Companies and users
# ------------------------------------------------------------------


def company_from_row(row: sqlite3.Row) -> Company:
    return Company(
        id=row["id"],
        name=row["name"],
        cnpj=row["cnpj"],
        email=row["email"],
        phone=row["phone"],
        address=row["address"],
        role=row["role"],
    )


def user_from_row(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        company_id=row["company_id"],
        full_name=row["full_name"],
        email=row["email"],
        role=row["role"],
        is_active=bool(row["is_active"]),
        created_at=from_db_timestamp(row["created_at"]),
    )


# ------------------------------------------------------------------
# Timeline, messages, notifications
# ------------------------------------------------------------------


def timeline_entry_to_params(entry: TimelineEntry, created_at: datetime) -> tuple[Any, ...]:
    """Positional parameters for a ``delivery_timeline`` insert."""
    return (
        entry.delivery_id,
        entry.action.value,
        entry.description,
        entry.user_id,
        _json(entry.old_data),
        _json(entry.new_data),
        to_db_timestamp(entry.created_at or created_at),
    )


def timeline_entry_from_row(row: sqlite3.Row) -> TimelineEntry:
    return TimelineEntry(
        id=row["id"],
        delivery_id=row["delivery_id"],
        action=row["action"],
        description=row["description"],
        user_id=row["user_id"],
        old_data=_parse_json(row["old_data"]),
        new_data=_parse_json(row["new_data"]),
        created_at=from_db_timestamp(row["created_at"]),
    )


def message_from_row(row: sqlite3.Row) -> ChatMessage:
    return ChatMessage(
        id=row["id"],
        delivery_id=row["delivery_id"],
        user_id=row["user_id"],
        message=row["message"],
        created_at=from_db_timestamp(row["created_at"]),
    )


def notification_from_row(row: sqlite3.Row) -> Notification:
    return Notification(
        id=row["id"],
        user_id=row["user_id"],
        delivery_id=row["delivery_id"],
        type=row["type"],
        title=row["title"],
        message=row["message"],
        is_read=bool(row["is_read"]),
        created_at=from_db_timestamp(row["created_at"]),
    )
