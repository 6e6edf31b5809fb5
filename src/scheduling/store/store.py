"""SQLite-backed record store for companies, deliveries and chat.

Accepts a sqlite3.Connection, uses parameterized queries exclusively, and
commits synchronously after writes.  Writes are serialized by a lock shared
with the notification store, and every committed write is announced on the
change feed.

Delivery updates are a compare-and-swap on the ``version`` column; the
timeline entry describing the change is written in the same transaction.
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

from scheduling.domain.errors import NotFoundError, StaleDeliveryError, StoreError
from scheduling.domain.models import (
    ChatMessage,
    Company,
    Delivery,
    Partner,
    TimelineEntry,
    User,
)
from scheduling.domain.types import DeliveryStatus, PartnerStatus, UserRole
from scheduling.realtime.feed import ChangeEvent, ChangeFeed, Collection, Operation
from scheduling.store.serializers import (
    DELIVERY_COLUMNS,
    MUTABLE_DELIVERY_COLUMNS,
    company_from_row,
    delivery_from_row,
    delivery_to_row,
    message_from_row,
    to_db_timestamp,
    user_from_row,
)
from scheduling.timeline.store import insert_timeline_entry, query_timeline

if TYPE_CHECKING:
    from scheduling.state_machine.machine import TransitionOutcome

logger = structlog.get_logger()


def _now() -> str:
    return to_db_timestamp(datetime.now(tz=UTC))


class DeliveryStore:
    """Persist and query deliveries, parties, partners and chat messages.

    Args:
        conn: An open connection whose database has the scheduling schema
              (see :func:`scheduling.store.schema.open_database`).
        feed: Change feed to publish committed writes on, if any.
        lock: Write lock; pass the same lock to every store sharing *conn*.
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

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    @property
    def lock(self) -> threading.Lock:
        return self._lock

    @property
    def feed(self) -> ChangeFeed | None:
        return self._feed

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the block in one transaction under the write lock.

        Commits on success, rolls back on any exception.  ``sqlite3.Error``
        is wrapped in :class:`StoreError`; domain errors pass through.
        """
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.Error as exc:
                logger.error("store_write_failed", error=str(exc))
                raise StoreError(f"Record store write failed: {exc}") from exc

    def _fetchall(self, query: str, params: tuple[Any, ...] | list[Any] = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(query, params).fetchall()
            except sqlite3.Error as exc:
                logger.error("store_read_failed", error=str(exc))
                raise StoreError(f"Record store read failed: {exc}") from exc

    def _fetchone(self, query: str, params: tuple[Any, ...] = ()) -> sqlite3.Row | None:
        rows = self._fetchall(query, params)
        return rows[0] if rows else None

    def _publish(self, *events: ChangeEvent) -> None:
        if self._feed is None:
            return
        for event in events:
            self._feed.publish(event)

    def ping(self) -> None:
        """Run a trivial query; raises :class:`StoreError` if the database is unusable."""
        self._fetchall("SELECT 1")

    # ------------------------------------------------------------------
    # Companies and users
    # ------------------------------------------------------------------

    def add_company(self, company: Company) -> Company:
        """Insert a company and return it."""
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO companies (id, name, cnpj, email, phone, address, role, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    company.id,
                    company.name,
                    company.cnpj,
                    company.email,
                    company.phone,
                    company.address,
                    company.role.value,
                    _now(),
                ),
            )
        return company

    def get_company(self, company_id: str) -> Company:
        """Return the company with *company_id*.

        Raises:
            NotFoundError: If no such company exists.
        """
        row = self._fetchone("SELECT * FROM companies WHERE id = ?", (company_id,))
        if row is None:
            raise NotFoundError("company", company_id)
        return company_from_row(row)

    def find_company_by_cnpj(self, cnpj: str) -> Company | None:
        row = self._fetchone("SELECT * FROM companies WHERE cnpj = ?", (cnpj,))
        return company_from_row(row) if row is not None else None

    def add_user(self, user: User) -> User:
        """Insert a user and return it."""
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO users (id, company_id, full_name, email, role, is_active, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user.id,
                    user.company_id,
                    user.full_name,
                    user.email,
                    user.role.value,
                    int(user.is_active),
                    _now(),
                ),
            )
        return user

    def get_user(self, user_id: str) -> User:
        """Return the user with *user_id*.

        Raises:
            NotFoundError: If no such user exists.
        """
        row = self._fetchone("SELECT * FROM users WHERE id = ?", (user_id,))
        if row is None:
            raise NotFoundError("user", user_id)
        return user_from_row(row)

    def set_user_active(self, user_id: str, is_active: bool) -> None:
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE users SET is_active = ? WHERE id = ?", (int(is_active), user_id)
            )
            if cursor.rowcount == 0:
                raise NotFoundError("user", user_id)

    def set_user_role(self, user_id: str, role: UserRole) -> None:
        with self._transaction() as conn:
            cursor = conn.execute("UPDATE users SET role = ? WHERE id = ?", (role.value, user_id))
            if cursor.rowcount == 0:
                raise NotFoundError("user", user_id)

    def list_users(self, company_id: str) -> list[User]:
        """Return every user of *company_id*, active or not, oldest first."""
        rows = self._fetchall(
            "SELECT * FROM users WHERE company_id = ? ORDER BY created_at, id", (company_id,)
        )
        return [user_from_row(row) for row in rows]

    def active_user_ids(self, company_id: str) -> list[str]:
        """Return the ids of the active users of *company_id*, oldest first."""
        rows = self._fetchall(
            "SELECT id FROM users WHERE company_id = ? AND is_active = 1 ORDER BY created_at, id",
            (company_id,),
        )
        return [row["id"] for row in rows]

    # ------------------------------------------------------------------
    # Partners
    # ------------------------------------------------------------------

    def add_partner(self, seller_company_id: str, buyer_company_id: str) -> bool:
        """Link a buyer to a seller; idempotent.

        Returns:
            ``True`` if a new relationship was created.
        """
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO partner_relationships (
                    seller_company_id, buyer_company_id, status, created_at
                ) VALUES (?, ?, ?, ?)
                """,
                (seller_company_id, buyer_company_id, PartnerStatus.ACTIVE.value, _now()),
            )
        return cursor.rowcount > 0

    def list_partners(self, seller_company_id: str) -> list[Partner]:
        """Return the seller's buyer partners with their delivery counts, by name."""
        rows = self._fetchall(
            """
            SELECT c.*, p.status AS partner_status,
                   (SELECT COUNT(*) FROM deliveries d
                     WHERE d.seller_company_id = p.seller_company_id
                       AND d.buyer_company_id = p.buyer_company_id) AS delivery_count
            FROM partner_relationships p
            JOIN companies c ON c.id = p.buyer_company_id
            WHERE p.seller_company_id = ?
            ORDER BY c.name, c.id
            """,
            (seller_company_id,),
        )
        return [
            Partner(
                company=company_from_row(row),
                status=row["partner_status"],
                delivery_count=row["delivery_count"],
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Deliveries
    # ------------------------------------------------------------------

    def insert_delivery(self, outcome: TransitionOutcome) -> Delivery:
        """Insert a newly created delivery together with its CREATED entry.

        Args:
            outcome: The result of ``DeliveryStateMachine.create``.

        Returns:
            The stored delivery.
        """
        delivery = outcome.delivery
        row = delivery_to_row(delivery)
        placeholders = ", ".join("?" for _ in DELIVERY_COLUMNS)
        with self._transaction() as conn:
            conn.execute(
                f"INSERT INTO deliveries ({', '.join(DELIVERY_COLUMNS)}) VALUES ({placeholders})",
                [row[column] for column in DELIVERY_COLUMNS],
            )
            entry_id = insert_timeline_entry(conn, outcome.timeline)

        self._publish(
            ChangeEvent(
                collection=Collection.DELIVERIES,
                operation=Operation.INSERT,
                record_id=delivery.id,
                delivery_id=delivery.id,
            ),
            ChangeEvent(
                collection=Collection.TIMELINE,
                operation=Operation.INSERT,
                record_id=str(entry_id),
                delivery_id=delivery.id,
            ),
        )
        return delivery

    def get_delivery(self, delivery_id: str) -> Delivery:
        """Return the current snapshot of a delivery.

        Raises:
            NotFoundError: If no such delivery exists.
        """
        row = self._fetchone("SELECT * FROM deliveries WHERE id = ?", (delivery_id,))
        if row is None:
            raise NotFoundError("delivery", delivery_id)
        return delivery_from_row(row)

    def apply_transition(self, outcome: TransitionOutcome, expected_version: int) -> Delivery:
        """Persist a transition: update the delivery and append its timeline entry.

        The update only succeeds if the stored version still equals
        *expected_version*; both writes commit together or not at all.

        Args:
            outcome: The result of ``DeliveryStateMachine.apply``.
            expected_version: The version of the snapshot the outcome was
                computed from.

        Returns:
            The stored delivery, with its version incremented.

        Raises:
            StaleDeliveryError: If another writer updated the delivery first.
            NotFoundError: If the delivery does not exist.
        """
        delivery = outcome.delivery
        row = delivery_to_row(delivery)
        assignments = ", ".join(f"{column} = ?" for column in MUTABLE_DELIVERY_COLUMNS)
        params = [row[column] for column in MUTABLE_DELIVERY_COLUMNS]

        with self._transaction() as conn:
            cursor = conn.execute(
                f"UPDATE deliveries SET {assignments}, version = version + 1 "
                "WHERE id = ? AND version = ?",
                [*params, delivery.id, expected_version],
            )
            if cursor.rowcount == 0:
                exists = conn.execute(
                    "SELECT 1 FROM deliveries WHERE id = ?", (delivery.id,)
                ).fetchone()
                if exists is None:
                    raise NotFoundError("delivery", delivery.id)
                raise StaleDeliveryError(delivery.id, expected_version)
            entry_id = insert_timeline_entry(conn, outcome.timeline)

        self._publish(
            ChangeEvent(
                collection=Collection.DELIVERIES,
                operation=Operation.UPDATE,
                record_id=delivery.id,
                delivery_id=delivery.id,
            ),
            ChangeEvent(
                collection=Collection.TIMELINE,
                operation=Operation.INSERT,
                record_id=str(entry_id),
                delivery_id=delivery.id,
            ),
        )
        return delivery.model_copy(update={"version": expected_version + 1})

    def list_for_company(
        self,
        company_id: str,
        *,
        search: str | None = None,
        partner_company_id: str | None = None,
        status: DeliveryStatus | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
    ) -> list[Delivery]:
        """List the deliveries *company_id* takes part in, newest first.

        Args:
            company_id: The viewer's company.
            search: Case-insensitive substring of the invoice number.
            partner_company_id: Restrict to deliveries with this counterparty.
            status: Restrict to one status.
            created_from: Deliveries created at or after this time.
            created_to: Deliveries created at or before this time.
        """
        conditions = ["(seller_company_id = ? OR buyer_company_id = ?)"]
        params: list[Any] = [company_id, company_id]

        if search:
            conditions.append("instr(lower(invoice_number), lower(?)) > 0")
            params.append(search.strip())

        if partner_company_id is not None:
            conditions.append("(seller_company_id = ? OR buyer_company_id = ?)")
            params.extend([partner_company_id, partner_company_id])

        if status is not None:
            conditions.append("status = ?")
            params.append(status.value)

        if created_from is not None:
            conditions.append("created_at >= ?")
            params.append(to_db_timestamp(created_from))

        if created_to is not None:
            conditions.append("created_at <= ?")
            params.append(to_db_timestamp(created_to))

        rows = self._fetchall(
            f"SELECT * FROM deliveries WHERE {' AND '.join(conditions)} "
            "ORDER BY created_at DESC, id DESC",
            params,
        )
        return [delivery_from_row(row) for row in rows]

    def status_counts(self) -> dict[DeliveryStatus, int]:
        """Return the number of deliveries in each status (zero included)."""
        rows = self._fetchall("SELECT status, COUNT(*) AS total FROM deliveries GROUP BY status")
        counts = {status: 0 for status in DeliveryStatus}
        for row in rows:
            counts[DeliveryStatus(row["status"])] = row["total"]
        return counts

    def timeline(self, delivery_id: str) -> list[TimelineEntry]:
        """Return the delivery's timeline, oldest first."""
        with self._lock:
            try:
                return query_timeline(self._conn, delivery_id=delivery_id)
            except sqlite3.Error as exc:
                logger.error("store_read_failed", error=str(exc))
                raise StoreError(f"Record store read failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    def add_message(self, message: ChatMessage) -> ChatMessage:
        """Insert a chat message and return it with its id and timestamp."""
        created_at = message.created_at or datetime.now(tz=UTC)
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO delivery_messages (delivery_id, user_id, message, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (message.delivery_id, message.user_id, message.message, to_db_timestamp(created_at)),
            )
        stored = message.model_copy(update={"id": cursor.lastrowid, "created_at": created_at})
        self._publish(
            ChangeEvent(
                collection=Collection.MESSAGES,
                operation=Operation.INSERT,
                record_id=str(stored.id),
                delivery_id=message.delivery_id,
                user_id=message.user_id,
            )
        )
        return stored

    def list_messages(self, delivery_id: str) -> list[ChatMessage]:
        """Return the delivery's chat messages, oldest first."""
        rows = self._fetchall(
            "SELECT * FROM delivery_messages WHERE delivery_id = ? ORDER BY created_at, id",
            (delivery_id,),
        )
        return [message_from_row(row) for row in rows]
