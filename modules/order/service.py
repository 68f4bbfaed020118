"""
Order Module - Service Layer
===============================
Order creation with stock reservation, lifecycle transitions, admin edits.

Create flow (one transaction, committed by the route):
  1. Validate input and merge duplicate product lines
  2. Check every product exists and has enough stock (no writes yet)
  3. Snapshot current catalog prices into order lines
  4. Insert the order, then decrement stock per line with a conditional UPDATE
  5. If any decrement loses a race, roll everything back and raise ConflictError
"""

import logging
from collections import OrderedDict
from decimal import Decimal
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session, selectinload

from common.exceptions import (
    NotFoundError, InvalidArgumentError, InsufficientStockError,
    AlreadyPaidError, AlreadyDeliveredError, ConflictError,
)
from common.helpers import safe_int, safe_decimal, to_money, money_json, iso, now_utc
from common.listing import Page, paginate
from config.settings import MAX_ITEM_QUANTITY
from modules.auth.guard import authorize, require_admin
from modules.catalog.models import Product
from modules.inventory.service import inventory_service
from modules.order.models import (
    Order, OrderItem, OrderStatus, PaymentMethod, SHIPPING_ADDRESS_FIELDS, can_transition,
)

logger = logging.getLogger("storefront.order")

UPDATABLE_FIELDS = {
    "shipping_address", "payment_method", "tax_price", "shipping_price",
    "is_paid", "is_delivered", "status",
}
ORDER_FILTERS = ("status", "is_paid", "is_delivered", "payment_method", "total_price", "user_id", "created_at")
ORDER_SORTS = ("created_at", "total_price", "status", "paid_at", "delivered_at")


# ==========================================
# Input parsing
# ==========================================

def parse_shipping(value) -> dict:
    """Shipping address as an object (address required) or a plain address string."""
    if isinstance(value, str):
        value = {"address": value}
    if not isinstance(value, Mapping):
        raise InvalidArgumentError("Shipping address is required")

    unknown = set(value) - set(SHIPPING_ADDRESS_FIELDS)
    if unknown:
        raise InvalidArgumentError(f"Unknown shipping field(s): {', '.join(sorted(unknown))}")

    address = str(value.get("address") or "").strip()
    if not address:
        raise InvalidArgumentError("Shipping address is required")

    columns = {"shipping_address": address}
    for field in SHIPPING_ADDRESS_FIELDS[1:]:
        raw = value.get(field)
        columns[f"shipping_{field}"] = str(raw).strip() if raw is not None else None
    return columns


def parse_payment_method(value) -> str:
    try:
        return PaymentMethod(value).value
    except ValueError:
        allowed = ", ".join(m.value for m in PaymentMethod)
        raise InvalidArgumentError(f"Payment method is required (one of: {allowed})")


def parse_surcharge(value, field: str) -> Decimal:
    if value is None:
        return Decimal("0.00")
    amount = safe_decimal(value)
    if amount is None or amount < 0:
        raise InvalidArgumentError(f"{field} must be a number >= 0")
    return to_money(amount)


def parse_flag(value, field: str) -> bool:
    if not isinstance(value, bool):
        raise InvalidArgumentError(f"{field} must be true or false")
    return value


def merge_order_items(raw_items) -> "OrderedDict[int, int]":
    """{product_id: total quantity}, first-seen order kept."""
    if not isinstance(raw_items, (list, tuple)) or not raw_items:
        raise InvalidArgumentError("No order items")

    merged = OrderedDict()
    for raw in raw_items:
        if not isinstance(raw, Mapping):
            raise InvalidArgumentError("Each order item must be an object")
        product_id = safe_int(raw.get("product_id"))
        if product_id is None or product_id < 1:
            raise InvalidArgumentError(f"Invalid product id: {raw.get('product_id')}")
        qty = safe_int(raw.get("quantity"))
        if qty is None or qty < 1:
            raise InvalidArgumentError(f"Invalid quantity for product {product_id}")
        merged[product_id] = merged.get(product_id, 0) + qty
        if merged[product_id] > MAX_ITEM_QUANTITY:
            raise InvalidArgumentError(f"Quantity for product {product_id} exceeds {MAX_ITEM_QUANTITY}")
    return merged


# ==========================================
# Serialization
# ==========================================

def order_item_to_dict(item: OrderItem) -> dict:
    product = item.product
    return {
        "id": item.id,
        "product_id": item.product_id,
        "product": {
            "id": product.id,
            "name": product.name,
            "image_url": product.image_url,
            "price": money_json(product.price),
        } if product else None,
        "name": item.product_name,
        "quantity": item.quantity,
        "unit_price": money_json(item.unit_price),
        "line_total": money_json(item.line_total),
    }


def order_to_dict(order: Order) -> dict:
    user = order.user
    return {
        "id": order.id,
        "user_id": order.user_id,
        "user": {"id": user.id, "name": user.name, "email": user.email} if user else None,
        "order_items": [order_item_to_dict(item) for item in order.items],
        "shipping_address": order.shipping,
        "payment_method": order.payment_method,
        "payment_result": order.payment_result,
        "items_price": money_json(order.items_price),
        "tax_price": money_json(order.tax_price),
        "shipping_price": money_json(order.shipping_price),
        "total_price": money_json(order.total_price),
        "status": order.status,
        "is_paid": order.is_paid,
        "paid_at": iso(order.paid_at),
        "is_delivered": order.is_delivered,
        "delivered_at": iso(order.delivered_at),
        "created_at": iso(order.created_at),
        "updated_at": iso(order.updated_at),
    }


class OrderService:

    # ==========================================
    # Create
    # ==========================================

    def create_order(self, db: Session, user, data: Mapping[str, Any]) -> Order:
        """
        Place an order. Keys of `data`: order_items [{product_id, quantity}],
        shipping_address, payment_method, tax_price, shipping_price.

        Raises InvalidArgumentError / NotFoundError / InsufficientStockError
        before anything is written, ConflictError if stock was taken
        concurrently (everything rolled back).
        """
        authorize(user)
        quantities = merge_order_items(data.get("order_items"))
        shipping = parse_shipping(data.get("shipping_address"))
        payment_method = parse_payment_method(data.get("payment_method"))
        tax_price = parse_surcharge(data.get("tax_price"), "tax_price")
        shipping_price = parse_surcharge(data.get("shipping_price"), "shipping_price")

        products = {
            p.id: p for p in db.query(Product).filter(Product.id.in_(list(quantities))).all()
        }
        for product_id, qty in quantities.items():
            product = products.get(product_id)
            if not product:
                raise NotFoundError(f"Product not found: {product_id}")
            if product.stock < qty:
                raise InsufficientStockError(product.name, product.stock)

        order = Order(
            user_id=user.id,
            payment_method=payment_method,
            tax_price=tax_price,
            shipping_price=shipping_price,
            status=OrderStatus.PENDING.value,
            is_paid=False,
            is_delivered=False,
            stock_released=False,
            **shipping,
        )

        items_price = Decimal("0.00")
        for product_id, qty in quantities.items():
            product = products[product_id]
            unit_price = to_money(product.price)
            line_total = unit_price * qty
            items_price += line_total
            order.items.append(OrderItem(
                product_id=product.id,
                product_name=product.name,
                quantity=qty,
                unit_price=unit_price,
                line_total=line_total,
            ))

        order.items_price = items_price
        order.total_price = items_price + tax_price + shipping_price

        db.add(order)
        db.flush()  # get order.id

        # Fixed row order so two orders touching the same products cannot deadlock
        for product_id, qty in sorted(quantities.items()):
            if not inventory_service.decrement_stock(db, product_id, qty):
                name = products[product_id].name
                db.rollback()
                logger.warning("Order for user #%s aborted: stock for %s taken concurrently", user.id, name)
                raise ConflictError(f"Stock for {name} changed while placing the order. Please retry.")

        logger.info(
            "Order #%s created for user #%s: %s line(s), total %s",
            order.id, user.id, len(order.items), order.total_price,
        )
        return order

    # ==========================================
    # Read
    # ==========================================

    def _load(self, db: Session, order_id: int, for_update: bool = False) -> Order:
        query = db.query(Order).options(
            selectinload(Order.items).selectinload(OrderItem.product),
            selectinload(Order.user),
        )
        if for_update:
            # Mutations decide on flags and status, so read the locked row, not the session cache
            query = query.with_for_update().populate_existing()
        order = query.filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError("Order not found")
        return order

    def get_order(self, db: Session, actor, order_id: int, for_update: bool = False) -> Order:
        authorize(actor)
        order = self._load(db, order_id, for_update=for_update)
        authorize(actor, owner_id=order.user_id)
        return order

    def list_orders(self, db: Session, actor, scope: str, params: Mapping[str, Any]) -> Page:
        """scope='own' for the actor's orders, scope='all' (admin) for everyone's."""
        query = db.query(Order).options(
            selectinload(Order.items).selectinload(OrderItem.product),
            selectinload(Order.user),
        )
        if scope == "own":
            authorize(actor)
            query = query.filter(Order.user_id == actor.id)
        elif scope == "all":
            require_admin(actor)
        else:
            raise InvalidArgumentError(f"Unknown scope: {scope}")

        return paginate(query, Order, params, filterable=ORDER_FILTERS, sortable=ORDER_SORTS)

    # ==========================================
    # Lifecycle
    # ==========================================

    def pay(self, db: Session, actor, order_id: int, payment_result: Optional[dict] = None) -> Order:
        order = self.get_order(db, actor, order_id, for_update=True)
        if order.is_paid:
            raise AlreadyPaidError()
        if order.status == OrderStatus.CANCELLED.value:
            raise InvalidArgumentError("Cannot pay a cancelled order")
        if payment_result is not None and not isinstance(payment_result, Mapping):
            raise InvalidArgumentError("payment_result must be an object")

        order.is_paid = True
        order.paid_at = now_utc()
        if payment_result is not None:
            order.payment_result = dict(payment_result)
        if order.status == OrderStatus.PENDING.value:
            order.status = OrderStatus.PAID.value
        db.flush()

        logger.info("Order #%s paid (%s)", order.id, order.payment_method)
        return order

    def deliver(self, db: Session, actor, order_id: int) -> Order:
        require_admin(actor)
        order = self._load(db, order_id, for_update=True)
        if order.is_delivered:
            raise AlreadyDeliveredError()
        if order.status == OrderStatus.CANCELLED.value:
            raise InvalidArgumentError("Cannot deliver a cancelled order")

        order.is_delivered = True
        order.delivered_at = now_utc()
        if order.status == OrderStatus.SHIPPED.value:
            order.status = OrderStatus.DELIVERED.value
        db.flush()

        logger.info("Order #%s delivered", order.id)
        return order

    def update_order(self, db: Session, actor, order_id: int, fields: Mapping[str, Any]) -> Order:
        """
        Admin edit of a whitelisted field set. Everything is validated before
        the first assignment, so a rejected request changes nothing.
        total_price is never recomputed.
        """
        require_admin(actor)
        if not isinstance(fields, Mapping) or not fields:
            raise InvalidArgumentError("No fields to update")

        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidArgumentError(f"Field(s) not allowed: {', '.join(sorted(unknown))}")

        order = self._load(db, order_id, for_update=True)

        changes = {}
        if "shipping_address" in fields:
            changes.update(parse_shipping(fields["shipping_address"]))
        if "payment_method" in fields:
            changes["payment_method"] = parse_payment_method(fields["payment_method"])
        if "tax_price" in fields:
            if fields["tax_price"] is None:
                raise InvalidArgumentError("tax_price must be a number >= 0")
            changes["tax_price"] = parse_surcharge(fields["tax_price"], "tax_price")
        if "shipping_price" in fields:
            if fields["shipping_price"] is None:
                raise InvalidArgumentError("shipping_price must be a number >= 0")
            changes["shipping_price"] = parse_surcharge(fields["shipping_price"], "shipping_price")

        is_paid = parse_flag(fields["is_paid"], "is_paid") if "is_paid" in fields else None
        is_delivered = parse_flag(fields["is_delivered"], "is_delivered") if "is_delivered" in fields else None

        current = order.status
        target = current
        if "status" in fields:
            try:
                target = OrderStatus(fields["status"]).value
            except ValueError:
                raise InvalidArgumentError(f"Unknown status: {fields['status']}")
            if not can_transition(current, target):
                raise InvalidArgumentError(f"Cannot change status from {current} to {target}")

        cancelled = target == OrderStatus.CANCELLED.value
        newly_paid = is_paid is True and not order.is_paid
        newly_delivered = is_delivered is True and not order.is_delivered
        if cancelled and (newly_paid or newly_delivered):
            raise InvalidArgumentError("Cannot mark a cancelled order as paid or delivered")

        # Apply
        for key, value in changes.items():
            setattr(order, key, value)

        order.status = target
        if is_paid is not None and is_paid != order.is_paid:
            order.is_paid = is_paid
            order.paid_at = now_utc() if is_paid else None
            if is_paid and "status" not in fields and order.status == OrderStatus.PENDING.value:
                order.status = OrderStatus.PAID.value
        if is_delivered is not None and is_delivered != order.is_delivered:
            order.is_delivered = is_delivered
            order.delivered_at = now_utc() if is_delivered else None
            if is_delivered and "status" not in fields and order.status == OrderStatus.SHIPPED.value:
                order.status = OrderStatus.DELIVERED.value

        if cancelled and current != target:
            inventory_service.release_order_stock(db, order)

        db.flush()
        logger.info("Order #%s updated by admin #%s: %s", order.id, actor.id, ", ".join(sorted(fields)))
        return order

    def delete_order(self, db: Session, actor, order_id: int):
        """Remove an order for good, giving its stock back unless already released."""
        require_admin(actor)
        order = self._load(db, order_id, for_update=True)

        inventory_service.release_order_stock(db, order)
        db.delete(order)
        db.flush()
        logger.info("Order #%s deleted by admin #%s", order_id, actor.id)


order_service = OrderService()
