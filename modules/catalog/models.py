"""
Catalog Module - Models
========================
Product records: price and the shared stock counter.
"""

from sqlalchemy import (
    Column, Integer, String, Numeric, Text,
    ForeignKey, DateTime, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, unique=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(12, 2), nullable=False)
    category = Column(String, nullable=False, index=True)
    stock = Column(Integer, default=0, server_default="0", nullable=False)

    # Object storage references (never binary content)
    image_url = Column(String, nullable=True)
    image_public_id = Column(String, nullable=True)

    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    owner = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_product_stock"),
        CheckConstraint("price >= 0", name="ck_product_price"),
    )

    def __repr__(self):
        return f"<Product {self.name} (stock={self.stock})>"
