import pytest
from fastapi.testclient import TestClient

import config
import main


class TestCustomerApi:
    def test_price_before_anything_is_set(self, client):
        res = client.get("/api/price")
        assert res.status_code == 200
        assert res.json() == {"amount": None, "currency": "USD", "updatedAt": None}

    def test_new_code_is_pending_without_price(self, client):
        res = client.post("/api/validate", json={"code": "ABC123"})
        assert res.status_code == 200
        data = res.json()
        assert data["status"] == "pending"
        assert data["price"] is None
        assert data["code"] == "ABC123"
        assert data["createdAt"].endswith("Z")
        assert data["updatedAt"] is None

    def test_code_is_normalized(self, client):
        res = client.post("/api/validate", json={"code": "  abc123 "})
        assert res.json()["code"] == "ABC123"

    def test_symbols_are_rejected(self, client, stores):
        res = client.post("/api/validate", json={"code": "abc-123!"})
        assert res.status_code == 400
        assert "Invalid gift card format" in res.json()["error"]
        assert stores[0].count() == 0

    @pytest.mark.parametrize("body", [{}, {"code": None}, {"code": 12345}, None])
    def test_missing_code(self, client, body):
        res = client.post("/api/validate", json=body)
        assert res.status_code == 400
        assert res.json() == {"error": "Gift card code is required"}

    def test_malformed_json_is_bad_request(self, client):
        res = client.post(
            "/api/validate",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert res.status_code == 400

    def test_resubmitting_keeps_record(self, admin_client):
        first = admin_client.post("/api/validate", json={"code": "ABC123"}).json()
        admin_client.put("/api/admin/cards/ABC123/status", json={"status": "declined"})
        second = admin_client.post("/api/validate", json={"code": "abc123"}).json()

        assert second["createdAt"] == first["createdAt"]
        assert second["status"] == "declined"


class TestAdminSession:
    def test_status_flow(self, client):
        assert client.get("/api/admin/status").json() == {"isAuthenticated": False}

        res = client.post(
            "/api/admin/login",
            json={"username": config.ADMIN_USERNAME, "password": config.ADMIN_PASSWORD},
        )
        assert res.json() == {"success": True, "message": "Login successful"}
        assert client.get("/api/admin/status").json() == {"isAuthenticated": True}

        res = client.post("/api/admin/logout")
        assert res.status_code == 200
        assert client.get("/api/admin/status").json() == {"isAuthenticated": False}
        assert client.get("/api/admin/cards").status_code == 401

    def test_wrong_password(self, client):
        res = client.post(
            "/api/admin/login",
            json={"username": config.ADMIN_USERNAME, "password": "nope"},
        )
        assert res.status_code == 401
        assert res.json() == {"error": "Invalid credentials"}
        assert client.get("/api/admin/status").json() == {"isAuthenticated": False}

    def test_missing_credentials(self, client):
        res = client.post("/api/admin/login", json={"username": config.ADMIN_USERNAME})
        assert res.status_code == 400
        assert res.json() == {"error": "Username and password are required"}


class TestAdminGateOnEndpoints:
    @pytest.mark.parametrize(
        "method, path, body",
        [
            ("get", "/api/admin/cards", None),
            ("get", "/api/admin/price", None),
            ("put", "/api/admin/cards/ABC123/status", {"status": "accepted"}),
            ("put", "/api/admin/cards/ABC123/price", {"amount": 1, "currency": "EUR"}),
            ("put", "/api/admin/price", {"amount": 9.99, "currency": "USD"}),
            ("delete", "/api/admin/cards/ABC123", None),
        ],
    )
    def test_anonymous_is_rejected_without_side_effects(self, client, stores, method, path, body):
        registry, price_store = stores
        before = client.post("/api/validate", json={"code": "ABC123"}).json()

        kwargs = {"json": body} if body is not None else {}
        res = getattr(client, method)(path, **kwargs)

        assert res.status_code == 401
        assert res.json() == {"error": "Unauthorized. Please log in as admin."}
        assert registry.get("ABC123").to_dict()["status"] == before["status"]
        assert registry.get("ABC123").price is None
        assert registry.get("ABC123").updated_at is None
        assert price_store.get() is None

    @pytest.mark.parametrize(
        "path",
        ["/api/admin/price", "/api/admin/cards/ABC123/status", "/api/admin/cards/ABC123/price"],
    )
    def test_anonymous_malformed_body_is_unauthorized(self, client, stores, path):
        res = client.put(path, content=b"{bad", headers={"Content-Type": "application/json"})
        assert res.status_code == 401
        assert res.json() == {"error": "Unauthorized. Please log in as admin."}
        assert stores[1].get() is None

    def test_admin_malformed_body_is_bad_request(self, admin_client):
        res = admin_client.put("/api/admin/price", content=b"{bad", headers={"Content-Type": "application/json"})
        assert res.status_code == 400
        assert res.json() == {"error": "Invalid request body"}


class TestAdminCards:
    def test_global_price_applies_to_cards(self, admin_client):
        res = admin_client.put("/api/admin/price", json={"amount": 9.99, "currency": "USD"})
        assert res.status_code == 200
        assert res.json()["price"]["amount"] == 9.99
        assert res.json()["price"]["updatedAt"] is not None

        data = admin_client.post("/api/validate", json={"code": "ABC123"}).json()
        assert data["price"] == {"amount": 9.99, "currency": "USD"}
        assert admin_client.get("/api/price").json()["currency"] == "USD"

    def test_override_only_affects_its_card(self, admin_client):
        admin_client.put("/api/admin/price", json={"amount": 9.99, "currency": "USD"})
        admin_client.post("/api/validate", json={"code": "ABC123"})

        res = admin_client.put("/api/admin/cards/ABC123/price", json={"amount": 4.5, "currency": "EUR"})
        assert res.status_code == 200
        assert res.json()["card"]["price"] == {"amount": 4.5, "currency": "EUR"}

        own = admin_client.post("/api/validate", json={"code": "ABC123"}).json()
        other = admin_client.post("/api/validate", json={"code": "XYZ789"}).json()
        assert own["price"] == {"amount": 4.5, "currency": "EUR"}
        assert other["price"] == {"amount": 9.99, "currency": "USD"}

    def test_clearing_override_falls_back_to_global(self, admin_client):
        admin_client.put("/api/admin/price", json={"amount": 9.99, "currency": "USD"})
        admin_client.post("/api/validate", json={"code": "ABC123"})
        admin_client.put("/api/admin/cards/ABC123/price", json={"amount": 4.5, "currency": "EUR"})

        res = admin_client.put("/api/admin/cards/ABC123/price", json={"amount": None})
        assert res.status_code == 200
        assert res.json()["card"]["price"] is None

        data = admin_client.post("/api/validate", json={"code": "ABC123"}).json()
        assert data["price"] == {"amount": 9.99, "currency": "USD"}

    def test_card_currency_defaults_to_global_currency(self, admin_client):
        admin_client.put("/api/admin/price", json={"amount": 20, "currency": "GBP"})
        admin_client.post("/api/validate", json={"code": "ABC123"})

        res = admin_client.put("/api/admin/cards/ABC123/price", json={"amount": 5})
        assert res.json()["card"]["price"] == {"amount": 5.0, "currency": "GBP"}

    def test_card_currency_defaults_to_usd_without_global(self, admin_client):
        admin_client.post("/api/validate", json={"code": "ABC123"})
        res = admin_client.put("/api/admin/cards/ABC123/price", json={"amount": 5, "currency": ""})
        assert res.json()["card"]["price"] == {"amount": 5.0, "currency": "USD"}

    @pytest.mark.parametrize(
        "body",
        [{"amount": -1, "currency": "USD"}, {"amount": "5", "currency": "USD"}, {"amount": 5, "currency": "PLN"}],
    )
    def test_invalid_card_price(self, admin_client, stores, body):
        admin_client.post("/api/validate", json={"code": "ABC123"})
        res = admin_client.put("/api/admin/cards/ABC123/price", json=body)
        assert res.status_code == 400
        assert stores[0].get("ABC123").updated_at is None

    @pytest.mark.parametrize(
        "body",
        [{"amount": 9.99}, {"currency": "USD"}, {"amount": -2, "currency": "USD"}, {"amount": 1, "currency": "XXX"}],
    )
    def test_invalid_global_price(self, admin_client, stores, body):
        res = admin_client.put("/api/admin/price", json=body)
        assert res.status_code == 400
        assert "USD, EUR, GBP, CAD, AUD, JPY" in res.json()["error"]
        assert stores[1].get() is None

    def test_huge_amount_is_invalid_price(self, admin_client, stores):
        res = admin_client.put("/api/admin/price", json={"amount": 10**400, "currency": "USD"})
        assert res.status_code == 400
        assert "USD, EUR, GBP, CAD, AUD, JPY" in res.json()["error"]
        assert stores[1].get() is None

    def test_integer_amount_stays_integer(self, admin_client):
        res = admin_client.put("/api/admin/price", json={"amount": 5, "currency": "USD"})
        assert type(res.json()["price"]["amount"]) is int
        assert type(admin_client.get("/api/price").json()["amount"]) is int

    def test_status_update_and_stats(self, admin_client):
        created = admin_client.post("/api/validate", json={"code": "ABC123"}).json()

        res = admin_client.put("/api/admin/cards/abc123/status", json={"status": "accepted"})
        assert res.status_code == 200
        card = res.json()["card"]
        assert res.json()["message"] == "Card ABC123 status updated to accepted"
        assert card["status"] == "accepted"
        assert card["updatedAt"] is not None
        assert card["updatedAt"] > created["createdAt"]

        listing = admin_client.get("/api/admin/cards").json()
        assert listing["stats"] == {"total": 1, "accepted": 1, "declined": 0, "pending": 0}

    def test_invalid_status(self, admin_client, stores):
        admin_client.post("/api/validate", json={"code": "ABC123"})
        res = admin_client.put("/api/admin/cards/ABC123/status", json={"status": "approved"})
        assert res.status_code == 400
        assert res.json() == {"error": "Invalid status. Use: accepted, declined, or pending"}
        assert stores[0].get("ABC123").status.value == "pending"

    def test_unknown_card(self, admin_client):
        assert admin_client.put("/api/admin/cards/NOPE/status", json={"status": "accepted"}).status_code == 404
        assert admin_client.put("/api/admin/cards/NOPE/price", json={"amount": 1}).status_code == 404
        res = admin_client.delete("/api/admin/cards/NOPE")
        assert res.status_code == 404
        assert res.json() == {"error": "Gift card not found"}

    def test_admin_path_code_must_be_valid(self, admin_client):
        res = admin_client.put("/api/admin/cards/BAD!CODE/status", json={"status": "accepted"})
        assert res.status_code == 400
        assert "Invalid gift card format" in res.json()["error"]

    def test_delete_then_resubmit(self, admin_client):
        first = admin_client.post("/api/validate", json={"code": "ABC123"}).json()
        admin_client.put("/api/admin/cards/ABC123/status", json={"status": "accepted"})

        res = admin_client.delete("/api/admin/cards/ABC123")
        assert res.json() == {"success": True, "message": "Card ABC123 deleted successfully"}

        again = admin_client.post("/api/validate", json={"code": "ABC123"}).json()
        assert again["status"] == "pending"
        assert again["updatedAt"] is None
        assert again["createdAt"] > first["createdAt"]

    def test_list_newest_first_with_effective_price(self, admin_client):
        admin_client.put("/api/admin/price", json={"amount": 10, "currency": "CAD"})
        for code in ("OLDEST", "MIDDLE", "NEWEST"):
            admin_client.post("/api/validate", json={"code": code})
        admin_client.put("/api/admin/cards/MIDDLE/price", json={"amount": 2, "currency": "JPY"})

        data = admin_client.get("/api/admin/cards").json()
        assert [c["code"] for c in data["cards"]] == ["NEWEST", "MIDDLE", "OLDEST"]
        assert data["cards"][1]["effectivePrice"] == {"amount": 2.0, "currency": "JPY"}
        assert data["cards"][0]["price"] is None
        assert data["cards"][0]["effectivePrice"] == {"amount": 10.0, "currency": "CAD"}
        assert data["globalPrice"]["currency"] == "CAD"


class TestMisc:
    def test_health(self, client):
        client.post("/api/validate", json={"code": "ABC123"})
        data = client.get("/api/health").json()
        assert data["status"] == "healthy"
        assert data["cardsCount"] == 1
        assert data["globalPriceSet"] is False

    def test_unknown_endpoint(self, client):
        res = client.get("/api/does-not-exist")
        assert res.status_code == 404
        assert res.json() == {"error": "Endpoint not found"}

    def test_pages(self, client):
        assert "text/html" in client.get("/").headers["content-type"]
        assert "Panel" in client.get("/admin").text

    def test_unexpected_error_is_generic(self, stores, monkeypatch):
        def boom():
            raise RuntimeError("secret detail")

        monkeypatch.setattr(stores[0], "list_all", boom)
        client = TestClient(main.app, raise_server_exceptions=False)
        client.post(
            "/api/admin/login",
            json={"username": config.ADMIN_USERNAME, "password": config.ADMIN_PASSWORD},
        )

        res = client.get("/api/admin/cards")
        assert res.status_code == 500
        assert res.json() == {"error": "Something went wrong!", "message": "Internal server error"}
