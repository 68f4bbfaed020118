"""
Catalog Module - Routes
=========================
Product browsing for signed-in users.

Endpoints:
  GET /api/products       - Product list (filter/sort/paginate)
  GET /api/products/{id}  - Single product
"""

from fastapi import APIRouter, Request, Depends
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_login
from modules.catalog.service import product_service, product_to_dict

router = APIRouter(prefix="/api/products", tags=["catalog"])


@router.get("")
async def list_products(
    request: Request,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    page = product_service.list_products(db, dict(request.query_params))
    return page.envelope([product_to_dict(p) for p in page.items])


@router.get("/{product_id}")
async def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    product = product_service.get_product(db, product_id)
    return {"success": True, "product": product_to_dict(product)}
