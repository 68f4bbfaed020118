"""
Order Module - Models
======================
Order with a frozen price snapshot per line.

Two independent axes are tracked on an order:
  status                   fulfillment stage (pending → paid → processing → shipped → delivered,
                           cancelled from any non-terminal stage)
  is_paid / is_delivered   payment and delivery tracking, each with its timestamp
"""

import enum
from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, Text, JSON,
    ForeignKey, DateTime, CheckConstraint, false,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    CARD = "card"
    CASH = "cash"
    COD = "cod"
    PAYPAL = "paypal"


TERMINAL_STATUSES = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}

# Allowed status moves (setting the current status again is a no-op)
ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
}

SHIPPING_ADDRESS_FIELDS = ("address", "city", "state", "postal_code", "country")


def can_transition(current: str, target: str) -> bool:
    current, target = OrderStatus(current), OrderStatus(target)
    if current == target:
        return True
    if current in TERMINAL_STATUSES:
        return False
    return target in ORDER_TRANSITIONS[current]


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)

    # Shipping
    shipping_address = Column(Text, nullable=False)
    shipping_city = Column(String, nullable=True)
    shipping_state = Column(String, nullable=True)
    shipping_postal_code = Column(String, nullable=True)
    shipping_country = Column(String, nullable=True)

    # Payment (label only, no settlement)
    payment_method = Column(String, nullable=False)
    payment_result = Column(JSON, nullable=True)

    # Amounts, frozen at creation
    items_price = Column(Numeric(12, 2), nullable=False)
    tax_price = Column(Numeric(12, 2), default=0, server_default="0", nullable=False)
    shipping_price = Column(Numeric(12, 2), default=0, server_default="0", nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)

    status = Column(String, default=OrderStatus.PENDING.value, nullable=False, index=True)
    is_paid = Column(Boolean, default=False, server_default=false(), nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    is_delivered = Column(Boolean, default=False, server_default=false(), nullable=False)
    delivered_at = Column(DateTime(timezone=True), nullable=True)

    # Set once the order's stock went back to the catalog (cancellation)
    stock_released = Column(Boolean, default=False, server_default=false(), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", foreign_keys=[user_id])
    items = relationship(
        "OrderItem", back_populates="order",
        cascade="all, delete-orphan", order_by="OrderItem.id",
    )

    __table_args__ = (
        CheckConstraint("total_price >= 0", name="ck_order_total"),
    )

    @property
    def shipping(self) -> dict:
        return {
            "address": self.shipping_address,
            "city": self.shipping_city,
            "state": self.shipping_state,
            "postal_code": self.shipping_postal_code,
            "country": self.shipping_country,
        }


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)

    # Snapshot at time of purchase
    product_name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_item_qty"),
    )
