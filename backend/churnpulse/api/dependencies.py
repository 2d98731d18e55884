from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import HTTPException, Request, status
from sqlalchemy.orm import Session

from churnpulse.core.config import settings
from churnpulse.core.keys import is_allowed_static_key
from churnpulse.core.security import resolve_owner_id
from churnpulse.crud.api_keys import get_active_api_key, mark_api_key_used

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": (
        "authorization, x-client-info, apikey, content-type, x-api-key, x-sdk-version"
    ),
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


def _parse_bearer_token(request: Request) -> Optional[str]:
    auth = request.headers.get("Authorization")
    if not auth:
        return None
    parts = auth.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def get_current_owner_id(request: Request) -> str:
    """Owner id of the dashboard session behind the bearer token."""
    if not request.headers.get("Authorization"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authorization required")
    token = _parse_bearer_token(request)
    owner_id = resolve_owner_id(token) if token else None
    if not owner_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authorization")
    return owner_id


@dataclass(frozen=True)
class APIKeyIdentity:
    owner_id: str
    api_key_id: Optional[int] = None


def extract_api_key(request: Request, body: Any) -> Optional[str]:
    # Header wins over the body fields.
    header_key = request.headers.get("X-API-Key")
    if header_key:
        return header_key.strip()
    if isinstance(body, dict):
        body_key = body.get("api_key") or body.get("apiKey")
        if isinstance(body_key, str) and body_key.strip():
            return body_key.strip()
    return None


def authenticate_api_key(db: Session, raw_key: Optional[str]) -> APIKeyIdentity:
    if not raw_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key is required. Include it in X-API-Key header or api_key field in request body.",
        )

    allowed = settings.allowed_api_keys
    if allowed:
        if not is_allowed_static_key(raw_key, allowed):
            logger.info("track.api_key_rejected", extra={"validation": "allowlist"})
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
        return APIKeyIdentity(owner_id=settings.DEFAULT_OWNER_ID)

    api_key = get_active_api_key(db, raw_key)
    if api_key is None:
        logger.info("track.api_key_rejected", extra={"validation": "database"})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    mark_api_key_used(db, api_key)
    return APIKeyIdentity(owner_id=api_key.user_id, api_key_id=api_key.id)
