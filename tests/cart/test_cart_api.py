"""Integration tests for Cart API endpoints via TestClient."""

from modules.catalog.models import Product
from modules.order.models import Order


SHIPPING = {"address": "1 Main St", "city": "Springfield", "postal_code": "12345", "country": "US"}


def _add(client, headers, product_id, quantity=1):
    response = client.post("/api/cart/add", json={"product_id": product_id, "quantity": quantity}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()["cart"]


class TestCartAuth:
    def test_requires_identity(self, client):
        response = client.get("/api/cart")
        assert response.status_code == 401
        assert response.json()["code"] == "unauthenticated"

    def test_rejects_bad_token(self, client):
        response = client.get("/api/cart", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_cookie_token_accepted(self, client, user):
        from common.security import create_token

        token = create_token({"sub": str(user.id)})
        response = client.get("/api/cart", headers={"Cookie": f"auth_token={token}"})
        assert response.status_code == 200


class TestCartEndpoints:
    def test_empty_cart(self, client, user, headers_for):
        response = client.get("/api/cart", headers=headers_for(user))

        assert response.status_code == 200
        assert response.json()["cart"] == {"id": None, "items": [], "total_price": 0}

    def test_add_and_view(self, client, user, make_product, headers_for):
        product = make_product(price="4.50")
        headers = headers_for(user)

        _add(client, headers, product.id, 2)
        cart = client.get("/api/cart", headers=headers).json()["cart"]

        assert cart["items"][0]["product_id"] == product.id
        assert cart["items"][0]["quantity"] == 2
        assert cart["items"][0]["product"]["name"] == product.name
        assert cart["total_price"] == 9.0

    def test_add_invalid_quantity(self, client, user, make_product, headers_for):
        product = make_product()

        response = client.post(
            "/api/cart/add", json={"product_id": product.id, "quantity": 0}, headers=headers_for(user),
        )

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_argument"

    def test_add_huge_quantity(self, client, user, make_product, headers_for):
        product = make_product()

        response = client.post(
            "/api/cart/add", json={"product_id": product.id, "quantity": 10 ** 20}, headers=headers_for(user),
        )

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_argument"

    def test_add_unknown_product(self, client, user, headers_for):
        response = client.post("/api/cart/add", json={"product_id": 404}, headers=headers_for(user))

        assert response.status_code == 404
        assert response.json() == {"success": False, "code": "not_found", "message": "Product not found"}

    def test_update_quantity(self, client, user, make_product, headers_for):
        product = make_product(price="2.00")
        headers = headers_for(user)
        _add(client, headers, product.id, 1)

        response = client.patch(f"/api/cart/item/{product.id}", json={"quantity": 5}, headers=headers)

        assert response.status_code == 200
        assert response.json()["cart"]["items"][0]["quantity"] == 5
        assert response.json()["cart"]["total_price"] == 10.0

    def test_update_missing_line(self, client, user, make_product, headers_for):
        product = make_product()

        response = client.patch(f"/api/cart/item/{product.id}", json={"quantity": 5}, headers=headers_for(user))

        assert response.status_code == 404

    def test_remove_item(self, client, user, make_product, headers_for):
        a, b = make_product(), make_product()
        headers = headers_for(user)
        _add(client, headers, a.id)
        _add(client, headers, b.id)

        response = client.delete(f"/api/cart/item/{a.id}", headers=headers)

        assert response.status_code == 200
        assert [i["product_id"] for i in response.json()["cart"]["items"]] == [b.id]

    def test_clear_two_line_cart_keeps_id(self, client, user, make_product, headers_for):
        a, b = make_product(), make_product()
        headers = headers_for(user)
        _add(client, headers, a.id)
        cart_id = _add(client, headers, b.id, 2)["id"]

        assert client.delete("/api/cart", headers=headers).status_code == 200
        cart = client.get("/api/cart", headers=headers).json()["cart"]

        assert cart["id"] == cart_id
        assert cart["items"] == []
        assert cart["total_price"] == 0


class TestCheckout:
    def test_checkout_places_order_and_empties_cart(self, client, db, user, make_product, headers_for):
        product = make_product(price="10.00", stock=5)
        headers = headers_for(user)
        _add(client, headers, product.id, 3)

        response = client.post(
            "/api/cart/checkout",
            json={"shipping_address": SHIPPING, "payment_method": "card", "shipping_price": 5},
            headers=headers,
        )

        assert response.status_code == 201, response.text
        order = response.json()["order"]
        assert order["status"] == "pending"
        assert order["items_price"] == 30.0
        assert order["total_price"] == 35.0
        assert order["order_items"][0]["quantity"] == 3
        assert client.get("/api/cart", headers=headers).json()["cart"]["items"] == []
        assert db.get(Product, product.id).stock == 2

    def test_checkout_uses_current_price_not_cart_snapshot(self, client, db, user, make_product, headers_for):
        product = make_product(price="10.00", stock=5)
        headers = headers_for(user)
        _add(client, headers, product.id, 1)
        product.price = 12
        db.commit()

        order = client.post(
            "/api/cart/checkout", json={"shipping_address": SHIPPING, "payment_method": "cash"}, headers=headers,
        ).json()["order"]

        assert order["order_items"][0]["unit_price"] == 12.0

    def test_empty_cart(self, client, user, headers_for):
        response = client.post(
            "/api/cart/checkout", json={"shipping_address": SHIPPING, "payment_method": "card"},
            headers=headers_for(user),
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Cart is empty"

    def test_failed_order_leaves_cart(self, client, db, user, make_product, headers_for):
        product = make_product(stock=5)
        headers = headers_for(user)
        _add(client, headers, product.id, 3)
        product.stock = 1
        db.commit()

        response = client.post(
            "/api/cart/checkout", json={"shipping_address": SHIPPING, "payment_method": "card"}, headers=headers,
        )

        assert response.status_code == 409
        assert response.json()["code"] == "insufficient_stock"
        assert client.get("/api/cart", headers=headers).json()["cart"]["items"][0]["quantity"] == 3
        assert db.query(Order).count() == 0
