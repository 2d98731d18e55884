import hashlib
import hmac
import secrets

from churnpulse.core.config import settings

API_KEY_PREFIX = "cp_"
KEY_PREFIX_LENGTH = 10


def generate_api_key() -> str:
    return f"{API_KEY_PREFIX}{secrets.token_urlsafe(32)}"


def hash_api_key(raw_key: str) -> str:
    digest = hmac.new(settings.SECRET_KEY.encode(), raw_key.encode(), hashlib.sha256)
    return digest.hexdigest()


def key_display_prefix(raw_key: str) -> str:
    return raw_key[:KEY_PREFIX_LENGTH]


def is_allowed_static_key(raw_key: str, allowed: list[str]) -> bool:
    return any(hmac.compare_digest(raw_key, candidate) for candidate in allowed)
