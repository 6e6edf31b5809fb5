"""Tests for the HTTP API, driven through FastAPI's TestClient."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import timedelta
from typing import Any

import pytest
from fastapi.testclient import TestClient

from scheduling.app import create_app, initialize_services
from scheduling.config import Settings
from scheduling.domain.errors import StoreError

SELLER = {"X-User-Id": "seller-ana"}
BUYER = {"X-User-Id": "buyer-bruno"}
OUTSIDER = {"X-User-Id": "other-carla"}


@pytest.fixture
def services(settings: Settings, seed) -> dict[str, Any]:
    services = initialize_services(settings)
    seed(services["delivery_store"])
    return services


@pytest.fixture
def client(services: dict[str, Any]) -> Iterator[TestClient]:
    with TestClient(create_app(services)) as test_client:
        yield test_client


@pytest.fixture
def body(settings: Settings) -> dict[str, Any]:
    today = settings.today()
    return {
        "buyer_company_id": "buyer-co",
        "invoice": {
            "number": "12345",
            "series": "1",
            "issue_date": today.isoformat(),
            "value": "1500.00",
        },
        "address": {
            "street": "Rua das Flores",
            "number": "100",
            "neighborhood": "Centro",
            "city": "Porto Alegre",
            "state": "RS",
            "postal_code": "90010-000",
        },
        "delivery_date": (today + timedelta(days=1)).isoformat(),
        "time_start": "09:00",
        "time_end": "10:00",
        "notes": "Entregar na doca 2",
        "internal_notes": "Cliente prioritario",
    }


@pytest.fixture
def delivery_id(client: TestClient, body: dict[str, Any]) -> str:
    response = client.post("/deliveries", json=body, headers=SELLER)
    assert response.status_code == 201
    return response.json()["delivery"]["id"]


class TestIdentity:
    def test_missing_header(self, client: TestClient) -> None:
        response = client.get("/deliveries")
        assert response.status_code == 401
        assert response.json()["error"] == "unknown_actor"

    def test_unknown_user(self, client: TestClient) -> None:
        response = client.get("/deliveries", headers={"X-User-Id": "ghost"})
        assert response.status_code == 401

    def test_inactive_user(self, client: TestClient) -> None:
        response = client.get("/deliveries", headers={"X-User-Id": "buyer-old"})
        assert response.status_code == 401

    def test_request_id_is_echoed(self, client: TestClient) -> None:
        response = client.get("/deliveries", headers={**SELLER, "X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"


class TestCreate:
    def test_seller_creates(self, client: TestClient, body: dict[str, Any]) -> None:
        response = client.post("/deliveries", json=body, headers=SELLER)

        assert response.status_code == 201
        view = response.json()
        assert view["viewer_role"] == "SELLER"
        assert view["is_my_turn"] is False
        assert view["available_actions"] == []
        assert view["delivery"]["status"] == "AWAITING_BUYER"
        assert view["delivery"]["ball_with"] == "BUYER"
        assert view["delivery"]["invoice"]["value"] == "1500.00"
        assert view["delivery"]["internal_notes"] == "Cliente prioritario"

    def test_buyer_cannot_create(self, client: TestClient, body: dict[str, Any]) -> None:
        response = client.post("/deliveries", json=body, headers=BUYER)
        assert response.status_code == 422
        assert response.json()["field"] == "seller_company_id"

    def test_buyer_addressing_another_buyer_is_a_role_error(
        self, client: TestClient, body: dict[str, Any]
    ) -> None:
        body["buyer_company_id"] = "other-buyer-co"
        response = client.post("/deliveries", json=body, headers=BUYER)
        assert response.status_code == 422
        assert response.json()["field"] == "seller_company_id"

    def test_time_with_utc_offset_rejected(
        self, client: TestClient, body: dict[str, Any]
    ) -> None:
        body["time_start"] = "09:00-03:00"
        response = client.post("/deliveries", json=body, headers=SELLER)
        assert response.status_code == 422
        assert response.json()["field"] == "time_start"

    def test_seller_cannot_be_its_own_buyer(
        self, client: TestClient, body: dict[str, Any]
    ) -> None:
        body["buyer_company_id"] = "seller-co"
        response = client.post("/deliveries", json=body, headers=SELLER)
        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    def test_short_window(self, client: TestClient, body: dict[str, Any]) -> None:
        body["time_end"] = "09:30"
        response = client.post("/deliveries", json=body, headers=SELLER)
        assert response.status_code == 422
        assert response.json()["field"] == "time_end"

    def test_float_value_rejected(self, client: TestClient, body: dict[str, Any]) -> None:
        body["invoice"]["value"] = 1500.5
        response = client.post("/deliveries", json=body, headers=SELLER)
        assert response.status_code == 422

    def test_unknown_buyer(self, client: TestClient, body: dict[str, Any]) -> None:
        body["buyer_company_id"] = "missing"
        response = client.post("/deliveries", json=body, headers=SELLER)
        assert response.status_code == 404


class TestViews:
    def test_buyer_view(self, client: TestClient, delivery_id: str) -> None:
        view = client.get(f"/deliveries/{delivery_id}", headers=BUYER).json()
        assert view["is_my_turn"] is True
        assert view["counterparty_id"] == "seller-co"
        assert view["available_actions"] == ["ACCEPT", "COUNTER_PROPOSE", "CANCEL"]
        assert view["delivery"]["internal_notes"] is None

    def test_outsider_gets_404(self, client: TestClient, delivery_id: str) -> None:
        response = client.get(f"/deliveries/{delivery_id}", headers=OUTSIDER)
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_list_and_filters(self, client: TestClient, delivery_id: str) -> None:
        listed = client.get("/deliveries", headers=BUYER).json()
        assert [v["delivery"]["id"] for v in listed] == [delivery_id]

        params = {"status": "CONFIRMED"}
        assert client.get("/deliveries", params=params, headers=BUYER).json() == []
        params = {"period": "week", "search": "234"}
        assert len(client.get("/deliveries", params=params, headers=BUYER).json()) == 1
        assert client.get("/deliveries", headers=OUTSIDER).json() == []

    def test_invalid_period(self, client: TestClient) -> None:
        response = client.get("/deliveries", params={"period": "year"}, headers=SELLER)
        assert response.status_code == 422

    def test_board(self, client: TestClient, delivery_id: str) -> None:
        board = client.get("/deliveries/board", headers=BUYER).json()
        assert [d["id"] for d in board["your_turn"]] == [delivery_id]
        assert board["confirmed"] == []


class TestActions:
    def test_accept(self, client: TestClient, delivery_id: str) -> None:
        response = client.post(f"/deliveries/{delivery_id}/accept", headers=BUYER)
        assert response.status_code == 200
        delivery = response.json()["delivery"]
        assert delivery["status"] == "CONFIRMED"
        assert delivery["ball_with"] is None
        assert delivery["confirmed_time_start"] == "09:00:00"
        assert delivery["version"] == 2

    def test_wrong_turn_is_409(self, client: TestClient, delivery_id: str) -> None:
        response = client.post(f"/deliveries/{delivery_id}/accept", headers=SELLER)
        assert response.status_code == 409
        assert response.json()["error"] == "action_not_available"

    def test_outsider_action_is_404(self, client: TestClient, delivery_id: str) -> None:
        response = client.post(f"/deliveries/{delivery_id}/accept", headers=OUTSIDER)
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

        view = client.get(f"/deliveries/{delivery_id}", headers=SELLER).json()
        assert view["delivery"]["status"] == "AWAITING_BUYER"

    def test_counter_proposal(
        self, client: TestClient, delivery_id: str, settings: Settings
    ) -> None:
        payload = {
            "delivery_date": (settings.today() + timedelta(days=2)).isoformat(),
            "time_start": "14:00",
            "time_end": "16:00",
            "reason": "Doca ocupada",
        }
        response = client.post(
            f"/deliveries/{delivery_id}/counter-proposal", json=payload, headers=BUYER
        )
        assert response.status_code == 200
        view = response.json()
        assert view["delivery"]["status"] == "AWAITING_SELLER"
        assert view["is_my_turn"] is False

        seller_view = client.get(f"/deliveries/{delivery_id}", headers=SELLER).json()
        assert seller_view["is_my_turn"] is True

    def test_short_counter_window(
        self, client: TestClient, delivery_id: str, settings: Settings
    ) -> None:
        payload = {
            "delivery_date": (settings.today() + timedelta(days=2)).isoformat(),
            "time_start": "09:00",
            "time_end": "09:30",
        }
        response = client.post(
            f"/deliveries/{delivery_id}/counter-proposal", json=payload, headers=BUYER
        )
        assert response.status_code == 422
        assert response.json()["field"] == "time_end"

    def test_cancel(self, client: TestClient, delivery_id: str) -> None:
        short = client.post(
            f"/deliveries/{delivery_id}/cancel", json={"reason": "ok"}, headers=BUYER
        )
        assert short.status_code == 422
        assert short.json()["field"] == "reason"

        response = client.post(
            f"/deliveries/{delivery_id}/cancel",
            json={"reason": "Cliente fechado hoje"},
            headers=BUYER,
        )
        assert response.status_code == 200
        assert response.json()["delivery"]["status"] == "CANCELLED"

    def test_in_transit_before_date(self, client: TestClient, delivery_id: str) -> None:
        client.post(f"/deliveries/{delivery_id}/accept", headers=BUYER)
        response = client.post(f"/deliveries/{delivery_id}/in-transit", headers=SELLER)
        assert response.status_code == 422
        assert response.json()["field"] == "confirmed_date"

    def test_full_lifecycle(
        self, client: TestClient, body: dict[str, Any], settings: Settings
    ) -> None:
        body["delivery_date"] = settings.today().isoformat()
        delivery_id = client.post("/deliveries", json=body, headers=SELLER).json()["delivery"][
            "id"
        ]
        client.post(f"/deliveries/{delivery_id}/accept", headers=BUYER)

        shipped = client.post(f"/deliveries/{delivery_id}/in-transit", headers=SELLER)
        assert shipped.json()["delivery"]["status"] == "IN_TRANSIT"

        received = client.post(
            f"/deliveries/{delivery_id}/receipt", json={"notes": "Tudo certo"}, headers=BUYER
        )
        assert received.json()["delivery"]["status"] == "DELIVERED"
        assert received.json()["available_actions"] == []

        timeline = client.get(f"/deliveries/{delivery_id}/timeline", headers=SELLER).json()
        assert [entry["action"] for entry in timeline] == [
            "CREATED",
            "CONFIRMED",
            "IN_TRANSIT",
            "DELIVERED",
        ]

    def test_store_failure_is_503(
        self, client: TestClient, services: dict[str, Any], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def broken(delivery_id: str):
            raise StoreError("database is locked")

        monkeypatch.setattr(services["delivery_store"], "get_delivery", broken)
        response = client.post("/deliveries/any/accept", headers=BUYER)
        assert response.status_code == 503
        assert response.json() == {
            "error": "store_unavailable",
            "detail": "Temporary failure, please try again",
        }


class TestChat:
    def test_post_and_list(self, client: TestClient, delivery_id: str) -> None:
        response = client.post(
            f"/deliveries/{delivery_id}/messages", json={"message": "Pode ser as 8h?"}, headers=BUYER
        )
        assert response.status_code == 201
        assert response.json()["user_id"] == "buyer-bruno"

        messages = client.get(f"/deliveries/{delivery_id}/messages", headers=SELLER).json()
        assert [m["message"] for m in messages] == ["Pode ser as 8h?"]

    def test_blank_message(self, client: TestClient, delivery_id: str) -> None:
        response = client.post(
            f"/deliveries/{delivery_id}/messages", json={"message": "  "}, headers=BUYER
        )
        assert response.status_code == 422
        assert response.json()["field"] == "message"


class TestNotifications:
    def test_inbox_flow(self, client: TestClient, delivery_id: str) -> None:
        page = client.get("/notifications", headers=BUYER).json()
        assert page["unread_count"] == 1
        [item] = page["items"]
        assert item["type"] == "NEW_DELIVERY"
        assert item["delivery_id"] == delivery_id

        response = client.post(f"/notifications/{item['id']}/read", headers=BUYER)
        assert response.status_code == 204
        assert client.get("/notifications", headers=BUYER).json()["unread_count"] == 0

    def test_cannot_mark_another_users(self, client: TestClient, delivery_id: str) -> None:
        [item] = client.get("/notifications", headers=BUYER).json()["items"]
        response = client.post(f"/notifications/{item['id']}/read", headers=SELLER)
        assert response.status_code == 404

    def test_read_all(self, client: TestClient, delivery_id: str) -> None:
        response = client.post("/notifications/read-all", headers=BUYER)
        assert response.json() == {"updated": 1}

    def test_seller_inbox_empty_after_own_action(
        self, client: TestClient, delivery_id: str
    ) -> None:
        page = client.get("/notifications", headers=SELLER).json()
        assert page == {"items": [], "unread_count": 0}


class TestPartners:
    def test_add_and_list(self, client: TestClient) -> None:
        response = client.post(
            "/partners",
            json={"name": "Padaria Boa", "cnpj": "55.555.555/0001-55", "email": "p@b"},
            headers=SELLER,
        )
        assert response.status_code == 201
        assert response.json()["company"]["role"] == "BUYER"

        partners = client.get("/partners", headers=SELLER).json()
        assert [p["company"]["name"] for p in partners] == ["Padaria Boa"]

    def test_blank_name(self, client: TestClient) -> None:
        response = client.post(
            "/partners",
            json={"name": " ", "cnpj": "55.555.555/0001-55", "email": "p@b"},
            headers=SELLER,
        )
        assert response.status_code == 422

    def test_buyer_cannot_add(self, client: TestClient) -> None:
        response = client.post(
            "/partners",
            json={"name": "X", "cnpj": "66.666.666/0001-66", "email": "x@y"},
            headers=BUYER,
        )
        assert response.status_code == 422


class TestTeam:
    def test_list(self, client: TestClient) -> None:
        team = client.get("/team", headers=BUYER).json()
        assert sorted(u["id"] for u in team) == ["buyer-bia", "buyer-bruno", "buyer-old"]
        assert {u["id"]: u["role"] for u in team}["buyer-bruno"] == "ADMIN"

    def test_deactivated_member_is_locked_out(self, client: TestClient) -> None:
        response = client.post("/team/buyer-bia/active", json={"is_active": False}, headers=BUYER)
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        denied = client.get("/deliveries", headers={"X-User-Id": "buyer-bia"})
        assert denied.status_code == 401

    def test_members_cannot_manage(self, client: TestClient) -> None:
        listed = client.get("/team", headers={"X-User-Id": "buyer-bia"})
        assert listed.status_code == 403

        response = client.post(
            "/team/buyer-bruno/active",
            json={"is_active": False},
            headers={"X-User-Id": "buyer-bia"},
        )
        assert response.status_code == 403
        assert response.json()["error"] == "permission_denied"

    def test_other_company_member_is_404(self, client: TestClient) -> None:
        response = client.post("/team/buyer-bia/role", json={"role": "ADMIN"}, headers=SELLER)
        assert response.status_code == 404

    def test_promote(self, client: TestClient) -> None:
        response = client.post("/team/buyer-bia/role", json={"role": "ADMIN"}, headers=BUYER)
        assert response.status_code == 200
        assert response.json()["role"] == "ADMIN"

    def test_unknown_role(self, client: TestClient) -> None:
        response = client.post("/team/buyer-bia/role", json={"role": "OWNER"}, headers=BUYER)
        assert response.status_code == 422
