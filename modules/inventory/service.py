"""
Inventory Module - Service Layer
==================================
Stock counter operations on products.

All changes are single UPDATE statements evaluated by the database, so two
sessions can never read-modify-write the same counter. They run inside the
caller's transaction; committing is the route's job.
"""

import logging

from sqlalchemy.orm import Session

from modules.catalog.models import Product

logger = logging.getLogger("storefront.inventory")


class InventoryService:

    def decrement_stock(self, db: Session, product_id: int, quantity: int) -> bool:
        """
        Conditional decrement: stock = stock - n WHERE stock >= n.
        Returns False if no row matched (product gone or not enough stock).
        """
        updated = (
            db.query(Product)
            .filter(Product.id == product_id, Product.stock >= quantity)
            .update({Product.stock: Product.stock - quantity}, synchronize_session="fetch")
        )
        if not updated:
            logger.warning("Stock decrement refused: product=%s qty=%s", product_id, quantity)
            return False
        return True

    def restore_stock(self, db: Session, product_id: int, quantity: int) -> bool:
        """stock = stock + n. Returns False if the product no longer exists."""
        updated = (
            db.query(Product)
            .filter(Product.id == product_id)
            .update({Product.stock: Product.stock + quantity}, synchronize_session="fetch")
        )
        return bool(updated)

    def release_order_stock(self, db: Session, order) -> int:
        """
        Give an order's quantities back to the catalog, once.
        Lines whose product was deleted are skipped. Returns units restored.
        """
        if order.stock_released:
            return 0

        restored = 0
        # Same row order as the decrements in order creation
        lines = sorted((i for i in order.items if i.product_id is not None), key=lambda i: i.product_id)
        for item in lines:
            if self.restore_stock(db, item.product_id, item.quantity):
                restored += item.quantity

        order.stock_released = True
        db.flush()
        logger.info("Order #%s: released %s unit(s) back to stock", order.id, restored)
        return restored


inventory_service = InventoryService()
