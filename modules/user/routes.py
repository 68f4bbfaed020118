"""
User Module - Routes
======================
  GET    /api/users/me                - Current user
  GET    /api/users                   - All users (admin)
  PATCH  /api/users/{id}              - Edit name/email/phone (owner or admin)
  POST   /api/users/{id}/profile-pic  - Replace profile picture (owner or admin)
  DELETE /api/users/{id}              - Remove account (owner or admin)
"""

from typing import Optional

from fastapi import APIRouter, Request, Depends, File, UploadFile, Response, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_login, require_admin
from modules.user.service import user_service, user_to_dict

router = APIRouter(prefix="/api/users", tags=["users"])


class UserUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


@router.get("/me")
async def me(user=Depends(require_login)):
    return {"success": True, "user": user_to_dict(user)}


@router.get("")
async def list_users(
    request: Request,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    page = user_service.list_users(db, dict(request.query_params))
    return page.envelope([user_to_dict(u) for u in page.items])


@router.patch("/{user_id}")
async def update_user(
    user_id: int,
    body: UserUpdate,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    user = user_service.update_user(db, me, user_id, body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(user)
    return {"success": True, "message": "User updated successfully", "user": user_to_dict(user)}


@router.post("/{user_id}/profile-pic")
async def upload_profile_pic(
    user_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    user = user_service.set_profile_pic(db, me, user_id, file)
    db.commit()
    db.refresh(user)
    return {"success": True, "user": user_to_dict(user)}


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    user_service.delete_user(db, me, user_id)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
