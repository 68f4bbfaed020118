"""
Auth Module - Dependencies
===========================
FastAPI dependencies for user authentication and authorization.
These are injected into route handlers via Depends().

Identity comes from a signed token (bearer header or auth_token cookie)
whose `sub` is the user id.
"""

from fastapi import Request, Depends
from sqlalchemy.orm import Session

from config.database import get_db
from common.exceptions import AuthenticationError
from common.helpers import safe_int
from common.security import decode_token, token_from_request
from modules.auth import guard
from modules.user.models import User


def get_current_user(request: Request, db: Session = Depends(get_db)):
    """
    Identify the current user from the request token.
    Returns User object or None.
    """
    token = token_from_request(request)
    if not token:
        return None

    payload = decode_token(token)
    if not payload:
        return None

    user_id = safe_int(payload.get("sub"))
    if user_id is None:
        return None

    return db.query(User).filter(User.id == user_id, User.is_active == True).first()  # noqa: E712


def require_login(user=Depends(get_current_user)):
    """Require any authenticated active user. Raises 401 if not logged in."""
    if not user:
        raise AuthenticationError()
    return user


def require_admin(user=Depends(require_login)):
    """Only allow admin users. Raises 403 otherwise."""
    return guard.require_admin(user)
