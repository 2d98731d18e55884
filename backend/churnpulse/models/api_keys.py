from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String

from churnpulse.core.db import Base
from churnpulse.models.mixins import TimestampMixin


class APIKey(TimestampMixin, Base):
    __tablename__ = "api_keys"
    __table_args__ = (
        Index("ix_api_keys_user_id", "user_id"),
        Index("ix_api_keys_user_active", "user_id", "is_active"),
    )

    id = Column(Integer, primary_key=True, index=True)
    # Owner of the key; every record tracked with it is stored under this id.
    user_id = Column(String, nullable=False)
    name = Column(String, nullable=True)
    key_prefix = Column(String, nullable=False)
    key_hash = Column(String, nullable=False, unique=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_used_at = Column(DateTime, nullable=True)
    revoked_at = Column(DateTime, nullable=True)
