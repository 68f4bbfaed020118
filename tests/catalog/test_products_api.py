"""Integration tests for catalog endpoints via TestClient."""

import io

from PIL import Image

from modules.cart.models import CartItem
from modules.cart.service import cart_service
from modules.catalog.models import Product
from modules.order.models import OrderItem
from modules.order.service import order_service


def _create(client, headers, **fields):
    body = {"name": "Desk Lamp", "price": 30, "category": "home", "stock": 4}
    body.update(fields)
    return client.post("/api/admin/products", json=body, headers=headers)


def _png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (1600, 1200), color=(200, 30, 30)).save(buffer, format="PNG")
    buffer.seek(0)
    return buffer


class TestBrowse:
    def test_requires_login(self, client):
        assert client.get("/api/products").status_code == 401

    def test_list_filter_sort(self, client, user, make_product, headers_for):
        make_product("Cheap", price="1.00", category="misc")
        make_product("Mid", price="5.00", category="misc")
        make_product("Pricey", price="50.00", category="gadgets")

        body = client.get(
            "/api/products?category=misc&sort=-price", headers=headers_for(user),
        ).json()

        assert body["total"] == 2
        assert [p["name"] for p in body["data"]] == ["Mid", "Cheap"]

    def test_comparison_filter(self, client, user, make_product, headers_for):
        make_product("A", price="1.00")
        make_product("B", price="5.00")

        body = client.get("/api/products?price__gte=2", headers=headers_for(user)).json()

        assert [p["name"] for p in body["data"]] == ["B"]

    def test_unsupported_filter(self, client, user, headers_for):
        response = client.get("/api/products?image_public_id=x", headers=headers_for(user))

        assert response.status_code == 400

    def test_get_one(self, client, user, make_product, headers_for):
        product = make_product("Kettle", price="12.00")

        body = client.get(f"/api/products/{product.id}", headers=headers_for(user)).json()

        assert body["product"]["name"] == "Kettle"
        assert body["product"]["price"] == 12.0

    def test_get_missing(self, client, user, headers_for):
        assert client.get("/api/products/404", headers=headers_for(user)).status_code == 404


class TestAdminProducts:
    def test_create(self, client, admin, headers_for):
        response = _create(client, headers_for(admin))

        assert response.status_code == 201
        product = response.json()["product"]
        assert product["name"] == "Desk Lamp"
        assert product["stock"] == 4
        assert product["user_id"] == admin.id

    def test_non_admin_forbidden(self, client, user, headers_for):
        assert _create(client, headers_for(user)).status_code == 403

    def test_duplicate_name(self, client, admin, headers_for):
        headers = headers_for(admin)
        _create(client, headers)

        response = _create(client, headers)

        assert response.status_code == 400
        assert response.json()["message"] == "This name already exists"

    def test_negative_stock_rejected(self, client, admin, headers_for):
        response = _create(client, headers_for(admin), stock=-1)

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_argument"

    def test_update(self, client, admin, make_product, headers_for):
        product = make_product("Old name", price="3.00")

        response = client.patch(
            f"/api/admin/products/{product.id}", json={"name": "New name", "stock": 9}, headers=headers_for(admin),
        )

        assert response.status_code == 200
        assert response.json()["product"]["name"] == "New name"
        assert response.json()["product"]["stock"] == 9
        assert response.json()["product"]["price"] == 3.0

    def test_update_to_taken_name(self, client, admin, make_product, headers_for):
        make_product("Taken")
        other = make_product("Free")

        response = client.patch(
            f"/api/admin/products/{other.id}", json={"name": "Taken"}, headers=headers_for(admin),
        )

        assert response.status_code == 400

    def test_delete_cleans_carts_and_detaches_orders(self, client, db, user, admin, make_product, headers_for):
        product = make_product("Doomed", price="4.00", stock=5)
        order = order_service.create_order(db, user, {
            "order_items": [{"product_id": product.id, "quantity": 1}],
            "shipping_address": "1 Main St",
            "payment_method": "card",
        })
        cart_service.add_item(db, user.id, product.id, 2)
        db.commit()
        product_id, order_id = product.id, order.id

        response = client.delete(f"/api/admin/products/{product_id}", headers=headers_for(admin))

        assert response.status_code == 204
        db.expire_all()
        assert db.get(Product, product_id) is None
        assert db.query(CartItem).count() == 0
        line = db.query(OrderItem).filter(OrderItem.order_id == order_id).one()
        assert line.product_id is None
        assert line.product_name == "Doomed"

        order_body = client.get(f"/api/orders/{order_id}", headers=headers_for(user)).json()["order"]
        assert order_body["order_items"][0]["product"] is None
        assert order_body["order_items"][0]["unit_price"] == 4.0


class TestProductImage:
    def test_upload_resizes_and_replaces(self, client, db, admin, make_product, headers_for):
        from common.storage import storage
        import os

        product = make_product()
        headers = headers_for(admin)

        first = client.post(
            f"/api/admin/products/{product.id}/image",
            files={"file": ("lamp.png", _png_bytes(), "image/png")},
            headers=headers,
        ).json()["product"]
        first_path = os.path.join(storage.root, first["image_public_id"])
        assert os.path.exists(first_path)
        with Image.open(first_path) as img:
            assert max(img.size) <= 800

        second = client.post(
            f"/api/admin/products/{product.id}/image",
            files={"file": ("lamp2.png", _png_bytes(), "image/png")},
            headers=headers,
        ).json()["product"]

        assert second["image_public_id"] != first["image_public_id"]
        assert second["image_url"].endswith(second["image_public_id"])
        assert not os.path.exists(first_path)

    def test_rejects_non_image(self, client, admin, make_product, headers_for):
        product = make_product()

        response = client.post(
            f"/api/admin/products/{product.id}/image",
            files={"file": ("notes.txt", io.BytesIO(b"hello"), "text/plain")},
            headers=headers_for(admin),
        )

        assert response.status_code == 400

    def test_rejects_corrupt_image(self, client, admin, make_product, headers_for):
        product = make_product()

        response = client.post(
            f"/api/admin/products/{product.id}/image",
            files={"file": ("broken.jpg", io.BytesIO(b"not really a jpeg"), "image/jpeg")},
            headers=headers_for(admin),
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid image file"
