"""
Catalog Module - Service Layer
================================
Product CRUD, image replacement, and listing.
"""

import logging
from typing import Any, Mapping, Optional

from fastapi import UploadFile
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from common.exceptions import NotFoundError, InvalidArgumentError
from common.helpers import safe_int, safe_decimal, to_money, money_json, iso
from common.listing import Page, paginate
from common.storage import storage
from modules.catalog.models import Product
from modules.cart.models import CartItem
from modules.order.models import OrderItem

logger = logging.getLogger("storefront.catalog")

PRODUCT_FILTERS = ("name", "category", "price", "stock", "user_id", "created_at")
PRODUCT_SORTS = ("name", "category", "price", "stock", "created_at")
EDITABLE_FIELDS = ("name", "description", "price", "category", "stock")


def product_to_dict(product: Product) -> dict:
    return {
        "id": product.id,
        "name": product.name,
        "description": product.description,
        "price": money_json(product.price),
        "category": product.category,
        "stock": product.stock,
        "image_url": product.image_url,
        "image_public_id": product.image_public_id,
        "user_id": product.user_id,
        "created_at": iso(product.created_at),
        "updated_at": iso(product.updated_at),
    }


def _clean(data: Mapping[str, Any], partial: bool) -> dict:
    """Validate product fields. With partial=True only the given keys are checked."""
    unknown = set(data) - set(EDITABLE_FIELDS)
    if unknown:
        raise InvalidArgumentError(f"Unknown product field(s): {', '.join(sorted(unknown))}")

    values = {}

    if "name" in data or not partial:
        name = (data.get("name") or "").strip()
        if not name:
            raise InvalidArgumentError("Name is required")
        values["name"] = name

    if "category" in data or not partial:
        category = (data.get("category") or "").strip()
        if not category:
            raise InvalidArgumentError("Category is required")
        values["category"] = category

    if "price" in data or not partial:
        price = safe_decimal(data.get("price"))
        if price is None or price < 0:
            raise InvalidArgumentError("Price must be a number >= 0")
        values["price"] = to_money(price)

    if "stock" in data or not partial:
        raw = data.get("stock")
        stock = 0 if raw is None and not partial else safe_int(raw)
        if stock is None or stock < 0:
            raise InvalidArgumentError("Count in stock must be an integer >= 0")
        values["stock"] = stock

    if "description" in data:
        values["description"] = data.get("description")

    return values


class ProductService:

    def list_products(self, db: Session, params: Mapping[str, Any]) -> Page:
        return paginate(
            db.query(Product), Product, params,
            filterable=PRODUCT_FILTERS, sortable=PRODUCT_SORTS,
        )

    def get_by_id(self, db: Session, product_id: int) -> Optional[Product]:
        return db.query(Product).filter(Product.id == product_id).first()

    def get_product(self, db: Session, product_id: int) -> Product:
        product = self.get_by_id(db, product_id)
        if not product:
            raise NotFoundError("Product not found")
        return product

    def _ensure_unique_name(self, db: Session, name: str, exclude_id: int = None):
        q = db.query(Product.id).filter(Product.name == name)
        if exclude_id is not None:
            q = q.filter(Product.id != exclude_id)
        if q.first():
            raise InvalidArgumentError("This name already exists")

    def _flush(self, db: Session):
        try:
            db.flush()
        except IntegrityError:
            # Lost a race on the unique name
            db.rollback()
            raise InvalidArgumentError("This name already exists")

    def create(self, db: Session, data: Mapping[str, Any], owner=None) -> Product:
        values = _clean(data, partial=False)
        self._ensure_unique_name(db, values["name"])

        product = Product(user_id=owner.id if owner else None, **values)
        db.add(product)
        self._flush(db)
        logger.info("Product #%s created: %s", product.id, product.name)
        return product

    def update(self, db: Session, product_id: int, data: Mapping[str, Any]) -> Product:
        product = self.get_product(db, product_id)
        values = _clean(data, partial=True)
        if "name" in values and values["name"] != product.name:
            self._ensure_unique_name(db, values["name"], exclude_id=product.id)

        for key, value in values.items():
            setattr(product, key, value)
        self._flush(db)
        return product

    def set_image(self, db: Session, product_id: int, upload_file: UploadFile) -> Product:
        """Upload a new image and drop the previous one from storage."""
        product = self.get_product(db, product_id)
        stored = storage.upload(upload_file, folder="products")

        previous = product.image_public_id
        product.image_url = stored.url
        product.image_public_id = stored.public_id
        db.flush()

        if previous:
            storage.delete(previous)
        return product

    def delete(self, db: Session, product_id: int):
        """
        Remove a product. Cart lines for it disappear; order lines keep their
        name/price snapshot with the product reference cleared.
        """
        product = self.get_product(db, product_id)

        db.query(CartItem).filter(CartItem.product_id == product.id).delete(synchronize_session=False)
        db.query(OrderItem).filter(OrderItem.product_id == product.id).update(
            {OrderItem.product_id: None}, synchronize_session=False,
        )

        public_id = product.image_public_id
        db.delete(product)
        db.flush()

        if public_id:
            storage.delete(public_id)
        logger.info("Product #%s deleted", product_id)


product_service = ProductService()
