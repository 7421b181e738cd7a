"""
Bearer tokens for the payment routes.

Login lives in the identity service; tokens it issues carry the user id as
``sub`` and ``type == "access"``. ``create_access_token`` mirrors that
format for local tooling and tests.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt

from core.config import settings

ACCESS_TOKEN_TYPE = "access"


def create_access_token(sub: str, extra: Dict[str, Any] | None = None) -> str:
    issued = datetime.now(timezone.utc)
    claims: Dict[str, Any] = dict(extra or {})
    claims.update(
        sub=sub,
        type=ACCESS_TOKEN_TYPE,
        iat=int(issued.timestamp()),
        exp=int((issued + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)).timestamp()),
    )
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def decode_access(token: str) -> Dict[str, Any]:
    payload = jwt.decode(
        token,
        settings.JWT_SECRET,
        algorithms=[settings.JWT_ALG],
        options={"require": ["sub", "exp"]},
    )
    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise jwt.InvalidTokenError("Not an access token")
    return payload
