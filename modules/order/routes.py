"""
Order Module - Routes
=======================
Customer-facing order API.

Endpoints:
  POST  /api/orders              - Place an order
  GET   /api/orders/my-orders    - Own orders (filter/sort/paginate)
  GET   /api/orders/{id}         - Order detail (owner or admin)
  PATCH /api/orders/{id}/pay     - Mark as paid (owner or admin)
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Request, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_login
from modules.order.service import order_service, order_to_dict

router = APIRouter(prefix="/api/orders", tags=["orders"])


# ==========================================
# Schemas
# ==========================================

class ShippingAddress(BaseModel):
    model_config = ConfigDict(extra="forbid")

    address: str = Field(..., min_length=1)
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class OrderLine(BaseModel):
    product_id: Any
    quantity: Any = 1


class PlaceOrderRequest(BaseModel):
    order_items: List[OrderLine] = Field(..., min_length=1)
    shipping_address: Union[ShippingAddress, str]
    payment_method: str
    tax_price: Optional[Decimal] = None
    shipping_price: Optional[Decimal] = None

    def to_service(self) -> dict:
        data = self.model_dump(exclude_none=True)
        if isinstance(self.shipping_address, ShippingAddress):
            data["shipping_address"] = self.shipping_address.model_dump(exclude_none=True)
        return data


class PayRequest(BaseModel):
    payment_result: Optional[Dict[str, Any]] = None


# ==========================================
# 🧾 Orders
# ==========================================

@router.post("", status_code=status.HTTP_201_CREATED)
async def place_order(
    body: PlaceOrderRequest,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    order = order_service.create_order(db, me, body.to_service())
    db.commit()
    return {"success": True, "order": order_to_dict(order_service.get_order(db, me, order.id))}


@router.get("/my-orders")
async def my_orders(
    request: Request,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    page = order_service.list_orders(db, me, "own", dict(request.query_params))
    return page.envelope([order_to_dict(o) for o in page.items])


@router.get("/{order_id}")
async def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    order = order_service.get_order(db, me, order_id)
    return {"success": True, "order": order_to_dict(order)}


@router.patch("/{order_id}/pay")
async def pay_order(
    order_id: int,
    body: Optional[PayRequest] = None,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    payment_result = body.payment_result if body else None
    order = order_service.pay(db, me, order_id, payment_result)
    db.commit()
    return {"success": True, "order": order_to_dict(order_service.get_order(db, me, order.id))}
