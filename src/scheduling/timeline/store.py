"""Append-only delivery timeline storage.

Timeline entries are only ever inserted, never updated or deleted.  Inserts
normally run inside the store's transaction that updates the delivery, so
``insert_timeline_entry`` leaves committing to the caller unless asked.
Uses parameterized queries exclusively.
"""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime

from scheduling.domain.models import TimelineEntry
from scheduling.store.serializers import (
    timeline_entry_from_row,
    timeline_entry_to_params,
)


def insert_timeline_entry(
    conn: sqlite3.Connection,
    entry: TimelineEntry,
    *,
    commit: bool = False,
) -> int:
    """Insert a timeline entry.

    Args:
        conn: An open database connection.
        entry: The entry to append.  ``created_at`` defaults to now (UTC).
        commit: Commit immediately; leave ``False`` inside a transaction.

    Returns:
        The row ID of the inserted entry.
    """
    cursor = conn.execute(
        """
        INSERT INTO delivery_timeline (
            delivery_id, action, description, user_id, old_data, new_data, created_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        timeline_entry_to_params(entry, datetime.now(tz=UTC)),
    )
    if commit:
        conn.commit()
    return cursor.lastrowid or 0


def query_timeline(
    conn: sqlite3.Connection,
    *,
    delivery_id: str | None = None,
    action: str | None = None,
    from_date: str | None = None,
    to_date: str | None = None,
    limit: int | None = None,
    newest_first: bool = False,
) -> list[TimelineEntry]:
    """Query timeline entries with optional filters.

    Results are ordered by creation time, then id, so entries written in the
    same microsecond keep their insertion order.

    Args:
        conn: An open database connection.
        delivery_id: Filter by delivery (exact match).
        action: Filter by timeline action tag (exact match).
        from_date: Entries created on or after this ISO 8601 date/time.
        to_date: Entries created on or before this ISO 8601 date/time.
        limit: Maximum number of entries to return.
        newest_first: Reverse the ordering.

    Returns:
        The matching entries.
    """
    conditions: list[str] = []
    params: list[str | int] = []

    if delivery_id is not None:
        conditions.append("delivery_id = ?")
        params.append(delivery_id)

    if action is not None:
        conditions.append("action = ?")
        params.append(action)

    if from_date is not None:
        conditions.append("created_at >= ?")
        params.append(from_date)

    if to_date is not None:
        # A bare date includes the whole day.
        conditions.append("created_at <= ?")
        params.append(to_date + "T23:59:59.999999+00:00" if len(to_date) == 10 else to_date)

    where_clause = ""
    if conditions:
        where_clause = "WHERE " + " AND ".join(conditions)

    direction = "DESC" if newest_first else "ASC"
    query = (
        f"SELECT * FROM delivery_timeline {where_clause} "
        f"ORDER BY created_at {direction}, id {direction}"
    )
    if limit is not None:
        query += " LIMIT ?"
        params.append(limit)

    rows = conn.execute(query, params).fetchall()
    return [timeline_entry_from_row(row) for row in rows]
