"""
Order Module - Admin Routes
==============================
Order management for admin: list all, stats, edit, deliver, delete.

Declared before the customer routes so /api/orders/stats is not taken
for an order id.
"""

from typing import Any, Dict

from fastapi import APIRouter, Request, Depends, Response, status
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_admin
from modules.admin.stats_service import stats_service
from modules.order.service import order_service, order_to_dict

router = APIRouter(prefix="/api/orders", tags=["order-admin"])


@router.get("/stats")
async def order_stats(
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    return {"success": True, "data": stats_service.get_order_stats(db, admin)}


@router.get("")
async def all_orders(
    request: Request,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    page = order_service.list_orders(db, admin, "all", dict(request.query_params))
    return page.envelope([order_to_dict(o) for o in page.items])


@router.patch("/{order_id}/deliver")
async def deliver_order(
    order_id: int,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    order = order_service.deliver(db, admin, order_id)
    db.commit()
    return {"success": True, "order": order_to_dict(order_service.get_order(db, admin, order.id))}


@router.patch("/{order_id}")
async def update_order(
    order_id: int,
    data: Dict[str, Any],
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    order = order_service.update_order(db, admin, order_id, data)
    db.commit()
    return {"success": True, "order": order_to_dict(order_service.get_order(db, admin, order.id))}


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_order(
    order_id: int,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    order_service.delete_order(db, admin, order_id)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
