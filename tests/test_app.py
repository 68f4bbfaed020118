"""Application wiring: health, error envelopes, users."""

from fastapi.testclient import TestClient

from main import app


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestErrorEnvelopes:
    def test_validation_error_is_invalid_argument(self, client, user, headers_for):
        response = client.post("/api/cart/add", json={"quantity": 1}, headers=headers_for(user))

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "invalid_argument"
        assert "product_id" in body["message"]

    def test_unexpected_error_hides_details(self, client, user, headers_for, monkeypatch):
        from modules.cart.service import cart_service

        def _boom(db, user_id):
            raise RuntimeError("database exploded")

        monkeypatch.setattr(cart_service, "get_cart", _boom)
        safe_client = TestClient(app, raise_server_exceptions=False)

        response = safe_client.get("/api/cart", headers=headers_for(user))

        assert response.status_code == 500
        assert response.json() == {"success": False, "code": "internal", "message": "Internal Server Error"}


class TestUsers:
    def test_me(self, client, user, headers_for):
        body = client.get("/api/users/me", headers=headers_for(user)).json()

        assert body["user"]["email"] == user.email
        assert body["user"]["role"] == "user"

    def test_list_admin_only(self, client, user, admin, headers_for):
        assert client.get("/api/users", headers=headers_for(user)).status_code == 403

        body = client.get("/api/users?role=user", headers=headers_for(admin)).json()
        assert body["total"] == 1
        assert body["data"][0]["id"] == user.id
