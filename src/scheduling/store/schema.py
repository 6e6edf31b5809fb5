"""SQLite schema for the scheduling record store.

Provides ``open_database()`` (connection setup: WAL mode, foreign keys,
``sqlite3.Row`` rows) and the DDL for every table the service owns.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

MEMORY_DATABASE = ":memory:"


def open_database(db_path: Path | str) -> sqlite3.Connection:
    """Open (creating if needed) the scheduling database.

    The connection is shared across the worker threads FastAPI uses for sync
    calls, so ``check_same_thread`` is disabled; writers serialize on the
    store's lock.

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.

    Returns:
        An open sqlite3.Connection with the schema in place.
    """
    if str(db_path) != MEMORY_DATABASE:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")

    init_schema(conn)
    return conn


def init_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes if they do not already exist.

    The ``deliveries`` table repeats the aggregate's core invariants as CHECK
    constraints: distinct parties, and ``ball_with`` set exactly while the
    delivery awaits a reply.

    Args:
        conn: An open sqlite3.Connection.
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS companies (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            cnpj TEXT NOT NULL UNIQUE,
            email TEXT NOT NULL,
            phone TEXT,
            address TEXT,
            role TEXT NOT NULL CHECK (role IN ('SELLER', 'BUYER')),
            created_at TEXT NOT NULL
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            company_id TEXT NOT NULL REFERENCES companies (id),
            full_name TEXT NOT NULL,
            email TEXT NOT NULL,
            role TEXT NOT NULL DEFAULT 'USER',
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_users_company ON users (company_id)")

    conn.execute("""
        CREATE TABLE IF NOT EXISTS partner_relationships (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            seller_company_id TEXT NOT NULL REFERENCES companies (id),
            buyer_company_id TEXT NOT NULL REFERENCES companies (id),
            status TEXT NOT NULL DEFAULT 'ACTIVE',
            created_at TEXT NOT NULL,
            UNIQUE (seller_company_id, buyer_company_id)
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS deliveries (
            id TEXT PRIMARY KEY,
            seller_company_id TEXT NOT NULL REFERENCES companies (id),
            buyer_company_id TEXT NOT NULL REFERENCES companies (id),
            invoice_number TEXT NOT NULL,
            invoice_series TEXT,
            invoice_issue_date TEXT NOT NULL,
            invoice_value TEXT NOT NULL,
            invoice_document_url TEXT,
            address_street TEXT NOT NULL,
            address_number TEXT NOT NULL,
            address_complement TEXT,
            address_neighborhood TEXT NOT NULL,
            address_city TEXT NOT NULL,
            address_state TEXT NOT NULL,
            address_postal_code TEXT NOT NULL,
            status TEXT NOT NULL,
            ball_with TEXT,
            proposed_date TEXT,
            proposed_time_start TEXT,
            proposed_time_end TEXT,
            confirmed_date TEXT,
            confirmed_time_start TEXT,
            confirmed_time_end TEXT,
            cancellation_reason TEXT,
            cancelled_at TEXT,
            completed_at TEXT,
            notes TEXT,
            internal_notes TEXT,
            created_by_user_id TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            version INTEGER NOT NULL DEFAULT 1,
            CHECK (seller_company_id <> buyer_company_id),
            CHECK (
                (status IN ('AWAITING_BUYER', 'AWAITING_SELLER')) = (ball_with IS NOT NULL)
            )
        )
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_deliveries_seller ON deliveries (seller_company_id)"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_deliveries_buyer ON deliveries (buyer_company_id)"
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_deliveries_status ON deliveries (status)")

    conn.execute("""
        CREATE TABLE IF NOT EXISTS delivery_timeline (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            delivery_id TEXT NOT NULL REFERENCES deliveries (id),
            action TEXT NOT NULL,
            description TEXT NOT NULL,
            user_id TEXT,
            old_data TEXT,
            new_data TEXT,
            created_at TEXT NOT NULL
        )
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_timeline_delivery "
        "ON delivery_timeline (delivery_id, created_at)"
    )

    conn.execute("""
        CREATE TABLE IF NOT EXISTS delivery_messages (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            delivery_id TEXT NOT NULL REFERENCES deliveries (id),
            user_id TEXT NOT NULL,
            message TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_messages_delivery "
        "ON delivery_messages (delivery_id, created_at)"
    )

    conn.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL REFERENCES users (id),
            delivery_id TEXT REFERENCES deliveries (id),
            type TEXT NOT NULL,
            title TEXT NOT NULL,
            message TEXT NOT NULL,
            is_read INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        )
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_notifications_user "
        "ON notifications (user_id, created_at)"
    )

    conn.commit()
