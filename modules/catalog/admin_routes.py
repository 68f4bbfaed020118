"""
Catalog Module - Admin Routes
===============================
Product CRUD and image upload. All routes require an admin.
"""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile, Response, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_admin
from modules.catalog.service import product_service, product_to_dict

router = APIRouter(prefix="/api/admin/products", tags=["catalog-admin"])


# ==========================================
# Schemas
# ==========================================

class ProductCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    category: str = Field(..., min_length=1)
    stock: int = Field(0, ge=0)


class ProductUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    category: Optional[str] = Field(None, min_length=1)
    stock: Optional[int] = Field(None, ge=0)


# ==========================================
# 📦 Products
# ==========================================

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_product(
    body: ProductCreate,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    product = product_service.create(db, body.model_dump(), owner=admin)
    db.commit()
    db.refresh(product)
    return {"success": True, "product": product_to_dict(product)}


@router.patch("/{product_id}")
async def update_product(
    product_id: int,
    body: ProductUpdate,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    product = product_service.update(db, product_id, body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(product)
    return {"success": True, "product": product_to_dict(product)}


@router.post("/{product_id}/image")
async def upload_product_image(
    product_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    product = product_service.set_image(db, product_id, file)
    db.commit()
    db.refresh(product)
    return {"success": True, "product": product_to_dict(product)}


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: int,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    product_service.delete(db, product_id)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
