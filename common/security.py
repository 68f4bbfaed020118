"""
Storefront - Security Utilities
=================================
JWT encode/decode for identities issued by the session service.

The storefront never checks credentials itself: a token carries the user id in
`sub`, and the auth dependencies load the user it names.
"""

import logging
from datetime import timedelta
from typing import Optional

from fastapi import Request
from jose import jwt, JWTError

from config.settings import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES, AUTH_COOKIE_NAME
from common.helpers import now_utc

logger = logging.getLogger("storefront.security")


def create_token(data: dict, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    """Create a signed JWT. `data` must include `sub`."""
    to_encode = data.copy()
    to_encode["exp"] = now_utc() + timedelta(minutes=expires_minutes)
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode a JWT token. Returns payload or None."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.debug("Rejected token: %s", e)
        return None


def token_from_request(request: Request) -> Optional[str]:
    """Bearer header first, then the auth cookie."""
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header.split(" ", 1)[1].strip() or None
    return request.cookies.get(AUTH_COOKIE_NAME)
