"""
User Module - Service Layer
==============================
Account lookups, profile edits, profile pictures, account removal,
and the admin user list.
"""

import logging
from typing import Any, Mapping

from fastapi import UploadFile
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from common.exceptions import NotFoundError, InvalidArgumentError
from common.helpers import iso
from common.listing import Page, paginate
from common.storage import storage
from modules.auth.guard import require_owner_or_admin
from modules.cart.models import Cart, CartItem
from modules.order.models import Order
from modules.user.models import User

logger = logging.getLogger("storefront.user")

USER_FILTERS = ("name", "email", "role", "is_active", "created_at")
USER_SORTS = ("name", "email", "role", "created_at")
PROFILE_FIELDS = ("name", "email", "phone")


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "role": user.role,
        "profile_pic": user.profile_pic,
        "is_active": user.is_active,
        "created_at": iso(user.created_at),
        "updated_at": iso(user.updated_at),
    }


def _clean_profile(data: Mapping[str, Any]) -> dict:
    unknown = set(data) - set(PROFILE_FIELDS)
    if unknown:
        raise InvalidArgumentError("Only name, email or phone can be updated")

    values = {}
    for field in PROFILE_FIELDS:
        if field not in data:
            continue
        raw = data[field]
        if not isinstance(raw, str):
            raise InvalidArgumentError(f"{field} must be a string")
        values[field] = raw.strip()

    if "name" in values and not values["name"]:
        raise InvalidArgumentError("Name is required")
    if "email" in values:
        values["email"] = values["email"].lower()
        local, _, domain = values["email"].partition("@")
        if not local or "." not in domain:
            raise InvalidArgumentError("Please provide a valid email")
    return values


class UserService:

    def list_users(self, db: Session, params: Mapping[str, Any]) -> Page:
        return paginate(db.query(User), User, params, filterable=USER_FILTERS, sortable=USER_SORTS)

    def get_user(self, db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("No user found with that ID")
        return user

    def _owned(self, db: Session, actor, user_id: int) -> User:
        require_owner_or_admin(actor, user_id)
        return self.get_user(db, user_id)

    # ==========================================
    # Profile
    # ==========================================

    def update_user(self, db: Session, actor, user_id: int, data: Mapping[str, Any]) -> User:
        """Edit name/email/phone of one's own account (or any account, for admins)."""
        values = _clean_profile(data)
        user = self._owned(db, actor, user_id)

        if "email" in values:
            taken = db.query(User.id).filter(User.email == values["email"], User.id != user.id).first()
            if taken:
                raise InvalidArgumentError("This email already exists")

        for key, value in values.items():
            setattr(user, key, value)
        try:
            db.flush()
        except IntegrityError:
            # Lost a race on the unique email
            db.rollback()
            raise InvalidArgumentError("This email already exists")

        logger.info("User #%s updated by #%s: %s", user.id, actor.id, ", ".join(sorted(values)) or "-")
        return user

    def set_profile_pic(self, db: Session, actor, user_id: int, upload_file: UploadFile) -> User:
        """Upload a new profile picture and drop the previous one from storage."""
        user = self._owned(db, actor, user_id)
        stored = storage.upload(upload_file, folder="users")

        previous = user.profile_pic_id
        user.profile_pic = stored.url
        user.profile_pic_id = stored.public_id
        db.flush()

        if previous:
            storage.delete(previous)
        return user

    # ==========================================
    # Removal
    # ==========================================

    def delete_user(self, db: Session, actor, user_id: int) -> bool:
        """
        Remove an account and its cart. Accounts with orders are deactivated
        instead, so order history keeps its customer. Returns True if the row
        was deleted.
        """
        user = self._owned(db, actor, user_id)

        cart_ids = db.query(Cart.id).filter(Cart.user_id == user.id)
        db.query(CartItem).filter(CartItem.cart_id.in_(cart_ids.scalar_subquery())).delete(
            synchronize_session=False,
        )
        db.query(Cart).filter(Cart.user_id == user.id).delete(synchronize_session=False)

        if db.query(Order.id).filter(Order.user_id == user.id).first():
            user.is_active = False
            db.flush()
            logger.info("User #%s deactivated by #%s (has orders)", user.id, actor.id)
            return False

        picture = user.profile_pic_id
        db.delete(user)
        db.flush()
        if picture:
            storage.delete(picture)
        logger.info("User #%s deleted by #%s", user_id, actor.id)
        return True


user_service = UserService()
