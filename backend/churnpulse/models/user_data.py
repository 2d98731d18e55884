from sqlalchemy import Boolean, Column, DateTime, Float, Index, Integer, String, Text, UniqueConstraint

from churnpulse.core.db import Base
from churnpulse.models.mixins import TimestampMixin


class UserData(TimestampMixin, Base):
    """Latest churn assessment for one end-customer of one owner.

    Rows are upserted on (owner_id, user_id) and never versioned; each new
    signal for the pair overwrites the previous assessment.
    """

    __tablename__ = "user_data"
    __table_args__ = (
        UniqueConstraint("owner_id", "user_id", name="uq_user_data_owner_user"),
        Index("ix_user_data_owner_risk", "owner_id", "risk_level"),
        Index("ix_user_data_owner_updated_at", "owner_id", "updated_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String, nullable=False)
    user_id = Column(String, nullable=False)
    plan = Column(String, nullable=False, default="Free")
    # Tracking stores monthly revenue here, CSV uploads store 30-day logins.
    usage = Column(Float, nullable=False, default=0)
    last_login = Column(DateTime, nullable=True)
    churn_score = Column(Float, nullable=False)
    churn_reason = Column(Text, nullable=True)
    risk_level = Column(String, nullable=False)
    user_stage = Column(String, nullable=False)
    understanding_score = Column(Integer, nullable=False, default=0)
    days_until_mature = Column(Integer, nullable=False, default=0)
    action_recommended = Column(Text, nullable=True)
    source = Column(String, nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
