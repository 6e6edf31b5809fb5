"""Tests for /health and /ready observability endpoints.

Uses FastAPI TestClient with in-memory SQLite stores to verify liveness and
readiness probes without external dependencies.
"""

from __future__ import annotations

import sqlite3

from fastapi import FastAPI
from fastapi.testclient import TestClient

from scheduling.health import register_health_routes
from scheduling.store.schema import open_database
from scheduling.store.store import DeliveryStore

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_app(services: dict | None = None) -> FastAPI:
    """Create a minimal FastAPI app with health routes and given services."""
    app = FastAPI()
    app.state.services = services or {}
    register_health_routes(app)
    return app


# ---------------------------------------------------------------------------
# /health (liveness)
# ---------------------------------------------------------------------------


class TestHealthEndpoint:
    """GET /health liveness probe."""

    def test_health_returns_200(self) -> None:
        client = TestClient(_make_app())

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


# ---------------------------------------------------------------------------
# /ready (readiness)
# ---------------------------------------------------------------------------


class TestReadyEndpoint:
    """GET /ready readiness probe."""

    def test_ready_returns_200_when_services_ok(self) -> None:
        conn = open_database(":memory:")
        app = _make_app(
            {"delivery_store": DeliveryStore(conn), "delivery_service": object()}
        )

        response = TestClient(app).get("/ready")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ready"
        assert body["checks"] == {"database": "ok", "delivery_service": "ok"}
        conn.close()

    def test_ready_returns_503_when_store_missing(self) -> None:
        app = _make_app({"delivery_service": object()})

        response = TestClient(app).get("/ready")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "not_ready"
        assert body["checks"]["database"] == "fail"
        assert body["checks"]["delivery_service"] == "ok"

    def test_ready_returns_503_when_database_closed(self) -> None:
        conn = sqlite3.connect(":memory:", check_same_thread=False)
        conn.close()
        app = _make_app(
            {"delivery_store": DeliveryStore(conn), "delivery_service": object()}
        )

        response = TestClient(app).get("/ready")

        assert response.status_code == 503
        assert response.json()["checks"]["database"] == "fail"

    def test_ready_returns_503_when_service_missing(self) -> None:
        conn = open_database(":memory:")
        app = _make_app({"delivery_store": DeliveryStore(conn)})

        response = TestClient(app).get("/ready")

        assert response.status_code == 503
        assert response.json()["checks"]["delivery_service"] == "fail"
        conn.close()
