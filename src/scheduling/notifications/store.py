"""SQLite-backed notification inbox.

Notifications are written in batches (one row per recipient) and read per
user.  Shares the connection and write lock of the ``DeliveryStore``.
"""

from __future__ import annotations

import sqlite3
import threading
from datetime import UTC, datetime

import structlog

from scheduling.domain.errors import NotFoundError, StoreError
from scheduling.domain.models import Notification
from scheduling.realtime.feed import ChangeEvent, ChangeFeed, Collection, Operation
from scheduling.store.serializers import notification_from_row, to_db_timestamp

logger = structlog.get_logger()


class NotificationStore:
    """Persist and query per-user notifications.

    Args:
        conn: An open connection with the scheduling schema.
        feed: Change feed to publish committed writes on, if any.
        lock: The write lock shared with the other stores on *conn*.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        feed: ChangeFeed | None = None,
        lock: threading.Lock | None = None,
    ) -> None:
        self._conn = conn
        self._feed = feed
        self._lock = lock or threading.Lock()

    def insert_batch(self, notifications: list[Notification]) -> list[Notification]:
        """Insert all *notifications* in one transaction.

        Returns:
            The stored notifications with ids and timestamps assigned.

        Raises:
            StoreError: If the batch could not be written; nothing is stored.
        """
        if not notifications:
            return []

        now = datetime.now(tz=UTC)
        stored: list[Notification] = []
        with self._lock:
            try:
                with self._conn:
                    for item in notifications:
                        created_at = item.created_at or now
                        cursor = self._conn.execute(
                            """
                            INSERT INTO notifications (
                                user_id, delivery_id, type, title, message, is_read, created_at
                            ) VALUES (?, ?, ?, ?, ?, ?, ?)
                            """,
                            (
                                item.user_id,
                                item.delivery_id,
                                item.type.value,
                                item.title,
                                item.message,
                                int(item.is_read),
                                to_db_timestamp(created_at),
                            ),
                        )
                        stored.append(
                            item.model_copy(
                                update={"id": cursor.lastrowid, "created_at": created_at}
                            )
                        )
            except sqlite3.Error as exc:
                raise StoreError(f"Notification batch failed: {exc}") from exc

        if self._feed is not None:
            for item in stored:
                self._feed.publish(
                    ChangeEvent(
                        collection=Collection.NOTIFICATIONS,
                        operation=Operation.INSERT,
                        record_id=str(item.id),
                        delivery_id=item.delivery_id,
                        user_id=item.user_id,
                    )
                )
        return stored

    def list_for_user(self, user_id: str, limit: int = 10) -> list[Notification]:
        """Return the user's most recent notifications, newest first."""
        rows = self._read(
            "SELECT * FROM notifications WHERE user_id = ? "
            "ORDER BY created_at DESC, id DESC LIMIT ?",
            (user_id, limit),
        )
        return [notification_from_row(row) for row in rows]

    def unread_count(self, user_id: str) -> int:
        rows = self._read(
            "SELECT COUNT(*) AS total FROM notifications WHERE user_id = ? AND is_read = 0",
            (user_id,),
        )
        return int(rows[0]["total"])

    def mark_as_read(self, notification_id: int, user_id: str) -> None:
        """Mark one of the user's notifications as read.

        Raises:
            NotFoundError: If the notification does not exist or belongs to
                another user.
        """
        with self._lock:
            try:
                with self._conn:
                    cursor = self._conn.execute(
                        "UPDATE notifications SET is_read = 1 WHERE id = ? AND user_id = ?",
                        (notification_id, user_id),
                    )
            except sqlite3.Error as exc:
                raise StoreError(f"Notification update failed: {exc}") from exc
        if cursor.rowcount == 0:
            raise NotFoundError("notification", str(notification_id))
        self._publish_update(str(notification_id), user_id)

    def mark_all_as_read(self, user_id: str) -> int:
        """Mark every unread notification of the user as read.

        Returns:
            The number of notifications updated.
        """
        with self._lock:
            try:
                with self._conn:
                    cursor = self._conn.execute(
                        "UPDATE notifications SET is_read = 1 WHERE user_id = ? AND is_read = 0",
                        (user_id,),
                    )
            except sqlite3.Error as exc:
                raise StoreError(f"Notification update failed: {exc}") from exc
        if cursor.rowcount:
            self._publish_update("*", user_id)
        return cursor.rowcount

    def _read(self, query: str, params: tuple[object, ...]) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(query, params).fetchall()
            except sqlite3.Error as exc:
                logger.error("store_read_failed", error=str(exc))
                raise StoreError(f"Record store read failed: {exc}") from exc

    def _publish_update(self, record_id: str, user_id: str) -> None:
        if self._feed is None:
            return
        self._feed.publish(
            ChangeEvent(
                collection=Collection.NOTIFICATIONS,
                operation=Operation.UPDATE,
                record_id=record_id,
                user_id=user_id,
            )
        )
