"""Shared pytest fixtures for the delivery scheduling test suite."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Callable, Iterator
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest

from scheduling.config import Settings
from scheduling.domain.models import (
    Actor,
    Address,
    Company,
    Delivery,
    Invoice,
    NewDelivery,
    Proposal,
    User,
)
from scheduling.domain.types import CompanyRole, DeliveryStatus, UserRole
from scheduling.notifications.store import NotificationStore
from scheduling.realtime.feed import ChangeEvent, ChangeFeed
from scheduling.service import DeliveryService
from scheduling.store.schema import open_database
from scheduling.store.store import DeliveryStore

SELLER_ID = "seller-co"
BUYER_ID = "buyer-co"
OTHER_BUYER_ID = "other-buyer-co"

TODAY = date(2026, 3, 10)
NOW = datetime(2026, 3, 10, 14, 30, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Plain domain objects
# ---------------------------------------------------------------------------


@pytest.fixture
def seller_actor() -> Actor:
    return Actor(
        user_id="seller-ana",
        full_name="Ana Souza",
        company_id=SELLER_ID,
        company_role=CompanyRole.SELLER,
        user_role=UserRole.ADMIN,
    )


@pytest.fixture
def buyer_actor() -> Actor:
    return Actor(
        user_id="buyer-bruno",
        full_name="Bruno Lima",
        company_id=BUYER_ID,
        company_role=CompanyRole.BUYER,
        user_role=UserRole.ADMIN,
    )


@pytest.fixture
def outsider_actor() -> Actor:
    return Actor(
        user_id="other-carla",
        full_name="Carla Dias",
        company_id=OTHER_BUYER_ID,
        company_role=CompanyRole.BUYER,
    )


@pytest.fixture
def sample_invoice() -> Invoice:
    return Invoice(
        number="12345",
        series="1",
        issue_date=date(2026, 3, 1),
        value=Decimal("1500.00"),
    )


@pytest.fixture
def sample_address() -> Address:
    return Address(
        street="Rua das Flores",
        number="100",
        neighborhood="Centro",
        city="Porto Alegre",
        state="RS",
        postal_code="90010-000",
    )


@pytest.fixture
def make_delivery(
    sample_invoice: Invoice, sample_address: Address
) -> Callable[..., Delivery]:
    """Factory for Delivery snapshots in any state (no store involved)."""

    def _make(**overrides: Any) -> Delivery:
        fields: dict[str, Any] = {
            "id": "delivery-1",
            "seller_company_id": SELLER_ID,
            "buyer_company_id": BUYER_ID,
            "invoice": sample_invoice,
            "address": sample_address,
            "status": DeliveryStatus.AWAITING_BUYER,
            "ball_with": CompanyRole.BUYER,
            "proposed_date": TODAY + timedelta(days=1),
            "proposed_time_start": time(9, 0),
            "proposed_time_end": time(10, 0),
            "created_at": NOW,
            "updated_at": NOW,
        }
        fields.update(overrides)
        return Delivery(**fields)

    return _make


# ---------------------------------------------------------------------------
# Store and service wiring
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(_env_file=None, database_path=tmp_path / "scheduling.db")  # type: ignore[call-arg]


@pytest.fixture
def conn() -> Iterator[sqlite3.Connection]:
    """In-memory scheduling database with the full schema."""
    connection = open_database(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def feed() -> ChangeFeed:
    return ChangeFeed()


@pytest.fixture
def events(feed: ChangeFeed) -> list[ChangeEvent]:
    """Every change event published on ``feed``, in order."""
    received: list[ChangeEvent] = []
    feed.subscribe(received.append)
    return received


@pytest.fixture
def lock() -> threading.Lock:
    return threading.Lock()


@pytest.fixture
def store(conn: sqlite3.Connection, feed: ChangeFeed, lock: threading.Lock) -> DeliveryStore:
    return DeliveryStore(conn, feed, lock)


@pytest.fixture
def notification_store(
    conn: sqlite3.Connection, feed: ChangeFeed, lock: threading.Lock
) -> NotificationStore:
    return NotificationStore(conn, feed, lock)


def seed_parties(store: DeliveryStore) -> DeliveryStore:
    """Add a seller, two buyers and their users to *store*.

    The buyer company has two active users and one inactive user; the seller
    has one active user and one inactive user.
    """
    store.add_company(
        Company(
            id=SELLER_ID,
            name="Distribuidora Sul",
            cnpj="11.111.111/0001-11",
            email="contato@dsul.com.br",
            role=CompanyRole.SELLER,
        )
    )
    store.add_company(
        Company(
            id=BUYER_ID,
            name="Mercado Central",
            cnpj="22.222.222/0001-22",
            email="compras@central.com.br",
            role=CompanyRole.BUYER,
        )
    )
    store.add_company(
        Company(
            id=OTHER_BUYER_ID,
            name="Atacado Norte",
            cnpj="33.333.333/0001-33",
            email="compras@norte.com.br",
            role=CompanyRole.BUYER,
        )
    )
    for user in (
        User(
            id="seller-ana",
            company_id=SELLER_ID,
            full_name="Ana Souza",
            email="ana@dsul",
            role=UserRole.ADMIN,
        ),
        User(
            id="seller-old",
            company_id=SELLER_ID,
            full_name="Ex Funcionario",
            email="old@dsul",
            is_active=False,
        ),
        User(
            id="buyer-bruno",
            company_id=BUYER_ID,
            full_name="Bruno Lima",
            email="b@central",
            role=UserRole.ADMIN,
        ),
        User(id="buyer-bia", company_id=BUYER_ID, full_name="Bia Rocha", email="bia@central"),
        User(
            id="buyer-old",
            company_id=BUYER_ID,
            full_name="Antigo Comprador",
            email="old@central",
            is_active=False,
        ),
        User(id="other-carla", company_id=OTHER_BUYER_ID, full_name="Carla Dias", email="c@n"),
    ):
        store.add_user(user)
    return store


@pytest.fixture
def service(
    seeded_store: DeliveryStore,
    notification_store: NotificationStore,
    settings: Settings,
) -> DeliveryService:
    return DeliveryService(seeded_store, notification_store, settings)


@pytest.fixture
def new_delivery(
    settings: Settings, sample_invoice: Invoice, sample_address: Address
) -> NewDelivery:
    """A seller offer for tomorrow, 09:00-10:00 (relative to the real clock)."""
    return NewDelivery(
        seller_company_id=SELLER_ID,
        buyer_company_id=BUYER_ID,
        invoice=sample_invoice.model_copy(update={"issue_date": settings.today()}),
        address=sample_address,
        proposal=Proposal(
            delivery_date=settings.today() + timedelta(days=1),
            time_start=time(9, 0),
            time_end=time(10, 0),
        ),
        notes="Entregar na doca 2",
        internal_notes="Cliente prioritario",
    )


@pytest.fixture
def seeded_store(store: DeliveryStore) -> DeliveryStore:
    """The in-memory store with the standard parties (see ``seed_parties``)."""
    return seed_parties(store)


@pytest.fixture
def seed() -> Callable[[DeliveryStore], DeliveryStore]:
    """Seeding helper for stores built outside the ``store`` fixture."""
    return seed_parties
