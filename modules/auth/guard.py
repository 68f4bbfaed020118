"""
Auth Module - Access Guard
============================
One predicate for ownership and role checks, shared by every service.

    authorize(actor)                          any identified actor
    authorize(actor, owner_id=order.user_id)  owner (or admin)
    authorize(actor, required_role="admin")   admin only

Admins always pass.
"""

from typing import Optional

from common.exceptions import AuthenticationError, ForbiddenError
from modules.user.models import UserRole


def authorize(actor, owner_id: Optional[int] = None, required_role: Optional[str] = None):
    """Raise unless `actor` may act on a resource owned by `owner_id`."""
    if actor is None:
        raise AuthenticationError()

    if actor.role == UserRole.ADMIN.value:
        return actor

    if required_role is not None and actor.role != required_role:
        raise ForbiddenError()

    if owner_id is not None and actor.id != owner_id:
        raise ForbiddenError()

    return actor


def can_access(actor, owner_id: int) -> bool:
    try:
        authorize(actor, owner_id=owner_id)
    except (AuthenticationError, ForbiddenError):
        return False
    return True


def require_admin(actor):
    return authorize(actor, required_role=UserRole.ADMIN.value)


def require_owner_or_admin(actor, owner_id: int):
    return authorize(actor, owner_id=owner_id)
