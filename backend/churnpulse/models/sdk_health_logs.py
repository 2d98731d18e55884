from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, Text

from churnpulse.core.db import Base
from churnpulse.core.time import utcnow


class SDKHealthLog(Base):
    __tablename__ = "sdk_health_logs"
    __table_args__ = (
        Index("ix_sdk_health_logs_user_ping", "user_id", "ping_timestamp"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False)
    api_key_id = Column(Integer, ForeignKey("api_keys.id", ondelete="SET NULL"), nullable=True)
    ping_timestamp = Column(DateTime, nullable=False, default=utcnow)
    status = Column(String, nullable=False)
    error_message = Column(Text, nullable=True)
    request_data = Column(JSON, nullable=True)
    user_agent = Column(String, nullable=True)
    source = Column(String, nullable=True)
