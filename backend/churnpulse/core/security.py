# Session token helpers. Dashboard sessions are issued by the auth
# provider; this service only verifies them with the shared secret.
# `create_access_token` exists for scripts and tests.

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt

from churnpulse.core.config import settings


def create_access_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = dict(data)
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    # Raises JWTError on bad signature, expiry or malformed input.
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


def resolve_owner_id(token: str) -> Optional[str]:
    try:
        payload = decode_access_token(token)
    except JWTError:
        return None
    owner_id = payload.get("sub") or payload.get("user_id")
    if not owner_id:
        return None
    return str(owner_id)
