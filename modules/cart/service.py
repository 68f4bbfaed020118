"""
Cart Module - Service Layer
==============================
Cart management: get/create, add/update/remove items, clear, checkout.

Adds are single upsert statements, so two concurrent adds of the same product
by the same user both land (quantities are summed by the database).
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session, selectinload
from sqlalchemy.dialects import postgresql, sqlite

from common.exceptions import NotFoundError, InvalidArgumentError
from common.helpers import safe_int, money_json, iso, now_utc
from config.settings import MAX_ITEM_QUANTITY
from modules.cart.models import Cart, CartItem
from modules.catalog.models import Product

logger = logging.getLogger("storefront.cart")

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert_insert(db: Session, model):
    """INSERT construct supporting ON CONFLICT for the session's database."""
    dialect = db.get_bind().dialect.name
    try:
        return _DIALECT_INSERTS[dialect](model)
    except KeyError:
        raise RuntimeError(f"Cart upserts are not supported on {dialect}")


def _quantity(value) -> int:
    qty = safe_int(value)
    if qty is None or qty < 1:
        raise InvalidArgumentError("Quantity must be an integer of at least 1")
    if qty > MAX_ITEM_QUANTITY:
        raise InvalidArgumentError(f"Quantity cannot exceed {MAX_ITEM_QUANTITY}")
    return qty


def cart_to_dict(cart: Optional[Cart]) -> dict:
    """JSON view of a cart. A user without a cart gets an empty one."""
    if cart is None:
        return {"id": None, "items": [], "total_price": 0}

    return {
        "id": cart.id,
        "user_id": cart.user_id,
        "items": [
            {
                "id": item.id,
                "product_id": item.product_id,
                "product": {
                    "id": item.product.id,
                    "name": item.product.name,
                    "image_url": item.product.image_url,
                    "price": money_json(item.product.price),
                    "stock": item.product.stock,
                },
                "quantity": item.quantity,
                "unit_price": money_json(item.unit_price),
                "line_total": money_json(item.line_total),
            }
            for item in cart.items
        ],
        "item_count": cart.item_count,
        "total_price": money_json(cart.total_price),
        "created_at": iso(cart.created_at),
        "updated_at": iso(cart.updated_at),
    }


class CartService:

    # ==========================================
    # Read
    # ==========================================

    def get_cart(self, db: Session, user_id: int) -> Optional[Cart]:
        """Fresh copy of the user's cart with lines and products, or None."""
        return (
            db.query(Cart)
            .options(selectinload(Cart.items).selectinload(CartItem.product))
            .filter(Cart.user_id == user_id)
            .first()
        )

    def get_or_create_cart(self, db: Session, user_id: int) -> Cart:
        """INSERT ... ON CONFLICT DO NOTHING, then read back."""
        stmt = upsert_insert(db, Cart).values(user_id=user_id)
        db.execute(stmt.on_conflict_do_nothing(index_elements=["user_id"]))
        return db.query(Cart).filter(Cart.user_id == user_id).one()

    def _reload(self, db: Session, user_id: int) -> Optional[Cart]:
        # Rows were changed behind the identity map by bulk statements
        db.flush()
        db.expire_all()
        return self.get_cart(db, user_id)

    # ==========================================
    # Mutations
    # ==========================================

    def add_item(self, db: Session, user_id: int, product_id: int, quantity=1) -> Cart:
        """
        Add `quantity` of a product. An existing line is incremented and its
        unit price refreshed to the product's current price.
        """
        qty = _quantity(quantity)
        product = db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise NotFoundError("Product not found")

        cart = self.get_or_create_cart(db, user_id)
        in_cart = db.query(CartItem.quantity).filter(
            CartItem.cart_id == cart.id,
            CartItem.product_id == product.id,
        ).scalar() or 0
        if in_cart + qty > MAX_ITEM_QUANTITY:
            raise InvalidArgumentError(f"Quantity cannot exceed {MAX_ITEM_QUANTITY}")

        stmt = upsert_insert(db, CartItem).values(
            cart_id=cart.id,
            product_id=product.id,
            quantity=qty,
            unit_price=product.price,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["cart_id", "product_id"],
            set_={
                "quantity": CartItem.__table__.c.quantity + stmt.excluded.quantity,
                "unit_price": stmt.excluded.unit_price,
            },
        )
        db.execute(stmt)
        cart.updated_at = now_utc()

        logger.debug("Cart #%s: +%s x product #%s", cart.id, qty, product.id)
        return self._reload(db, user_id)

    def update_item_quantity(self, db: Session, user_id: int, product_id: int, quantity) -> Cart:
        """Set a line's quantity and refresh its unit price."""
        qty = _quantity(quantity)
        cart = db.query(Cart).filter(Cart.user_id == user_id).first()
        if not cart:
            raise NotFoundError("Cart not found")

        item = db.query(CartItem).filter(
            CartItem.cart_id == cart.id,
            CartItem.product_id == product_id,
        ).first()
        if not item:
            raise NotFoundError("Item not found in cart")

        item.quantity = qty
        item.unit_price = item.product.price
        cart.updated_at = now_utc()
        return self._reload(db, user_id)

    def remove_item(self, db: Session, user_id: int, product_id: int) -> Optional[Cart]:
        """Remove a line if present. Missing cart or line is not an error."""
        cart = db.query(Cart).filter(Cart.user_id == user_id).first()
        if not cart:
            return None

        db.query(CartItem).filter(
            CartItem.cart_id == cart.id,
            CartItem.product_id == product_id,
        ).delete(synchronize_session=False)
        return self._reload(db, user_id)

    def clear_cart(self, db: Session, user_id: int) -> Cart:
        """Empty the cart. The cart row itself is kept."""
        cart = self.get_or_create_cart(db, user_id)
        db.query(CartItem).filter(CartItem.cart_id == cart.id).delete(synchronize_session=False)
        cart.updated_at = now_utc()
        return self._reload(db, user_id)

    # ==========================================
    # Checkout
    # ==========================================

    def checkout(self, db: Session, user, data: dict):
        """
        Place an order for the cart contents and empty the cart.
        Prices are re-read from the catalog by the order engine. If the order
        fails, the cart is left as it was.
        """
        from modules.order.service import order_service

        cart = self.get_cart(db, user.id)
        if not cart or not cart.items:
            raise InvalidArgumentError("Cart is empty")

        order_items = [
            {"product_id": item.product_id, "quantity": item.quantity}
            for item in cart.items
        ]
        order = order_service.create_order(db, user, {**data, "order_items": order_items})

        db.query(CartItem).filter(CartItem.cart_id == cart.id).delete(synchronize_session=False)
        db.flush()
        logger.info("Cart #%s checked out as order #%s", cart.id, order.id)
        return order


# Singleton
cart_service = CartService()
