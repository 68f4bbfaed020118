"""User accounts: profile edits, profile pictures and removal."""

import io
import os

import pytest
from PIL import Image

from common.exceptions import ForbiddenError, InvalidArgumentError, NotFoundError
from common.storage import storage
from modules.cart.models import Cart, CartItem
from modules.cart.service import cart_service
from modules.order.models import Order
from modules.order.service import order_service
from modules.user.models import User
from modules.user.service import user_service


def _png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (640, 480), color=(30, 120, 200)).save(buffer, format="PNG")
    buffer.seek(0)
    return buffer


class TestUpdateUser:
    def test_owner_edits_profile(self, client, user, headers_for):
        response = client.patch(
            f"/api/users/{user.id}", json={"name": " Alice B ", "phone": "555-0100"}, headers=headers_for(user),
        )

        assert response.status_code == 200
        body = response.json()["user"]
        assert body["name"] == "Alice B"
        assert body["phone"] == "555-0100"

    def test_admin_edits_anyone(self, client, user, admin, headers_for):
        response = client.patch(f"/api/users/{user.id}", json={"name": "Renamed"}, headers=headers_for(admin))

        assert response.status_code == 200
        assert response.json()["user"]["name"] == "Renamed"

    def test_other_user_is_forbidden(self, client, user, other_user, headers_for):
        response = client.patch(f"/api/users/{user.id}", json={"name": "Mallory"}, headers=headers_for(other_user))

        assert response.status_code == 403
        assert response.json()["code"] == "forbidden"

    def test_requires_login(self, client, user):
        assert client.patch(f"/api/users/{user.id}", json={"name": "X"}).status_code == 401

    def test_role_cannot_be_changed(self, client, db, user, headers_for):
        response = client.patch(f"/api/users/{user.id}", json={"role": "admin"}, headers=headers_for(user))

        assert response.status_code == 400
        db.expire_all()
        assert db.get(User, user.id).role == "user"

    def test_email_is_normalized_and_unique(self, client, user, other_user, headers_for):
        headers = headers_for(user)

        taken = client.patch(f"/api/users/{user.id}", json={"email": other_user.email.upper()}, headers=headers)
        changed = client.patch(f"/api/users/{user.id}", json={"email": "Alice@Example.org"}, headers=headers)

        assert taken.status_code == 400
        assert taken.json()["message"] == "This email already exists"
        assert changed.json()["user"]["email"] == "alice@example.org"

    @pytest.mark.parametrize("data", [{"email": "nope"}, {"name": "   "}, {"phone": 5}])
    def test_invalid_values(self, db, user, data):
        with pytest.raises(InvalidArgumentError):
            user_service.update_user(db, user, user.id, data)

    def test_missing_user(self, db, admin):
        with pytest.raises(NotFoundError):
            user_service.update_user(db, admin, 999, {"name": "Ghost"})


class TestProfilePic:
    def test_upload_replaces_previous_picture(self, client, db, user, headers_for):
        headers = headers_for(user)

        first = client.post(
            f"/api/users/{user.id}/profile-pic",
            files={"file": ("me.png", _png_bytes(), "image/png")},
            headers=headers,
        )
        assert first.status_code == 200
        db.expire_all()
        first_path = os.path.join(storage.root, db.get(User, user.id).profile_pic_id)
        assert first_path.startswith(os.path.join(storage.root, "users"))
        assert os.path.exists(first_path)

        second = client.post(
            f"/api/users/{user.id}/profile-pic",
            files={"file": ("me2.png", _png_bytes(), "image/png")},
            headers=headers,
        )

        db.expire_all()
        stored = db.get(User, user.id)
        assert second.json()["user"]["profile_pic"] == stored.profile_pic
        assert stored.profile_pic.endswith(stored.profile_pic_id)
        assert not os.path.exists(first_path)

    def test_other_user_is_forbidden(self, client, user, other_user, headers_for):
        response = client.post(
            f"/api/users/{user.id}/profile-pic",
            files={"file": ("me.png", _png_bytes(), "image/png")},
            headers=headers_for(other_user),
        )

        assert response.status_code == 403


class TestDeleteUser:
    def test_account_without_orders_is_removed_with_its_cart(self, client, db, user, make_product, headers_for):
        user_id = user.id
        cart_service.add_item(db, user_id, make_product().id, 2)
        db.commit()

        response = client.delete(f"/api/users/{user_id}", headers=headers_for(user))

        assert response.status_code == 204
        db.expire_all()
        assert db.get(User, user_id) is None
        assert db.query(Cart).count() == 0
        assert db.query(CartItem).count() == 0

    def test_account_with_orders_is_deactivated(self, client, db, user, make_product, headers_for):
        headers = headers_for(user)
        order = order_service.create_order(db, user, {
            "order_items": [{"product_id": make_product().id, "quantity": 1}],
            "shipping_address": "1 Main St",
            "payment_method": "card",
        })
        db.commit()

        response = client.delete(f"/api/users/{user.id}", headers=headers)

        assert response.status_code == 204
        db.expire_all()
        assert db.get(User, user.id).is_active is False
        assert db.get(Order, order.id).user_id == user.id
        assert client.get("/api/users/me", headers=headers).status_code == 401

    def test_other_user_is_forbidden(self, db, user, other_user):
        with pytest.raises(ForbiddenError):
            user_service.delete_user(db, other_user, user.id)

    def test_admin_removes_any_account(self, client, db, user, admin, headers_for):
        user_id = user.id

        response = client.delete(f"/api/users/{user_id}", headers=headers_for(admin))

        assert response.status_code == 204
        db.expire_all()
        assert db.get(User, user_id) is None

    def test_missing_account(self, client, admin, headers_for):
        assert client.delete("/api/users/999", headers=headers_for(admin)).status_code == 404
