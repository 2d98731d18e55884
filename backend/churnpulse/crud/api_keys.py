from datetime import datetime, timezone

from sqlalchemy.orm import Session

from churnpulse.core.keys import generate_api_key, hash_api_key, key_display_prefix
from churnpulse.models.api_keys import APIKey

MAX_KEY_GENERATION_ATTEMPTS = 5


def _generate_unique_key(db: Session) -> str:
    for _ in range(MAX_KEY_GENERATION_ATTEMPTS):
        raw_key = generate_api_key()
        existing = db.query(APIKey).filter(APIKey.key_hash == hash_api_key(raw_key)).first()
        if not existing:
            return raw_key
    raise RuntimeError("Unable to generate a unique API key.")


def create_api_key(db: Session, user_id: str, name: str | None = None) -> tuple[APIKey, str]:
    """Create an active key for `user_id`. The raw key is only returned here."""
    raw_key = _generate_unique_key(db)
    api_key = APIKey(
        user_id=user_id,
        name=name,
        key_prefix=key_display_prefix(raw_key),
        key_hash=hash_api_key(raw_key),
        is_active=True,
    )
    db.add(api_key)
    db.commit()
    db.refresh(api_key)
    return api_key, raw_key


def get_active_api_key(db: Session, raw_key: str) -> APIKey | None:
    return (
        db.query(APIKey)
        .filter(APIKey.key_hash == hash_api_key(raw_key), APIKey.is_active.is_(True))
        .first()
    )


def mark_api_key_used(db: Session, api_key: APIKey) -> APIKey:
    api_key.last_used_at = datetime.now(timezone.utc).replace(tzinfo=None)
    db.commit()
    db.refresh(api_key)
    return api_key


def revoke_api_key(db: Session, user_id: str, api_key_id: int) -> APIKey | None:
    api_key = (
        db.query(APIKey)
        .filter(APIKey.id == api_key_id, APIKey.user_id == user_id)
        .first()
    )
    if api_key is None:
        return None
    api_key.is_active = False
    api_key.revoked_at = datetime.now(timezone.utc).replace(tzinfo=None)
    db.commit()
    db.refresh(api_key)
    return api_key
