"""
Cart Routes
=============
Cart view, item add/update/remove, clear, checkout. Always the caller's own cart.
"""

from decimal import Decimal
from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_login
from modules.cart.service import cart_service, cart_to_dict
from modules.order.service import order_service, order_to_dict

router = APIRouter(prefix="/api/cart", tags=["cart"])


# ==========================================
# Schemas
# ==========================================

class AddItemRequest(BaseModel):
    product_id: int
    quantity: Any = 1


class QuantityRequest(BaseModel):
    quantity: Any


class CheckoutRequest(BaseModel):
    shipping_address: Union[Dict[str, Any], str]
    payment_method: str
    tax_price: Optional[Decimal] = Field(None)
    shipping_price: Optional[Decimal] = Field(None)


# ==========================================
# 🛒 View Cart
# ==========================================

@router.get("")
async def view_cart(
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    return {"success": True, "cart": cart_to_dict(cart_service.get_cart(db, me.id))}


# ==========================================
# ➕➖ Update Cart
# ==========================================

@router.post("/add")
async def add_to_cart(
    body: AddItemRequest,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    cart_service.add_item(db, me.id, body.product_id, body.quantity)
    db.commit()
    return {"success": True, "cart": cart_to_dict(cart_service.get_cart(db, me.id))}


@router.patch("/item/{product_id}")
async def update_cart_item(
    product_id: int,
    body: QuantityRequest,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    cart_service.update_item_quantity(db, me.id, product_id, body.quantity)
    db.commit()
    return {"success": True, "cart": cart_to_dict(cart_service.get_cart(db, me.id))}


@router.delete("/item/{product_id}")
async def remove_cart_item(
    product_id: int,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    cart_service.remove_item(db, me.id, product_id)
    db.commit()
    return {"success": True, "cart": cart_to_dict(cart_service.get_cart(db, me.id))}


@router.delete("")
async def clear_cart(
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    cart_service.clear_cart(db, me.id)
    db.commit()
    return {"success": True, "cart": cart_to_dict(cart_service.get_cart(db, me.id))}


# ==========================================
# ✅ Checkout
# ==========================================

@router.post("/checkout", status_code=status.HTTP_201_CREATED)
async def checkout(
    body: CheckoutRequest,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    order = cart_service.checkout(db, me, body.model_dump(exclude_none=True))
    db.commit()
    return {"success": True, "order": order_to_dict(order_service.get_order(db, me, order.id))}
