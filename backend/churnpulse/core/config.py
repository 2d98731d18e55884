# Central place for all configurable settings. We use Pydantic's
# BaseSettings so values can be read from env vars or a .env file.
# This keeps deployment flexible without hardcoding secrets.

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core DB connection string, like sqlite:///./churnpulse.db or a Postgres URL.
    DATABASE_URL: str

    # Secret key used for verifying session JWTs and hashing API keys.
    # Must be kept private in production.
    SECRET_KEY: str

    # JWT algorithm used by the auth provider that issues dashboard sessions.
    ALGORITHM: str = "HS256"

    # Lifetime of locally minted tokens (scripts and tests), in minutes.
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # "production" turns on the stricter startup checks.
    ENVIRONMENT: str = "development"

    # Toggle SQLAlchemy echo logs. Useful for debugging queries locally.
    DB_ECHO: bool = False

    # External churn prediction service. Both must be set for the
    # model to be called; otherwise the local heuristics are used.
    CHURN_API_URL: Optional[str] = None
    CHURN_API_KEY: Optional[str] = None
    CHURN_API_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)

    # Tracking API keys. When ALLOWED_API_KEYS is set (comma separated),
    # keys are checked against it and every record is owned by
    # DEFAULT_OWNER_ID; otherwise keys are looked up in the api_keys table.
    ALLOWED_API_KEYS: str = ""
    DEFAULT_OWNER_ID: str = "env-validated-user"

    # Downstream playbook processor, fired after a successful track call.
    PLAYBOOK_WEBHOOK_URL: Optional[str] = None
    PLAYBOOK_WEBHOOK_TOKEN: Optional[str] = None
    PLAYBOOK_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)

    # Request size guards for the two ingestion paths.
    TRACK_MAX_BATCH_SIZE: int = Field(default=1000, gt=0)
    CSV_MAX_ROWS: int = Field(default=10000, gt=0)

    # Security headers on every response.
    SECURITY_HEADERS_ENABLED: bool = True
    X_FRAME_OPTIONS: str = "DENY"
    REFERRER_POLICY: str = "no-referrer"

    @property
    def allowed_api_keys(self) -> List[str]:
        return _split_csv(self.ALLOWED_API_KEYS)

    @property
    def churn_model_configured(self) -> bool:
        return bool(self.CHURN_API_URL and self.CHURN_API_KEY)


# Instantiate a single settings object for app-wide import.
# Any module can just `from churnpulse.core.config import settings`.
settings = Settings()
