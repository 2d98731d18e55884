from sqlalchemy import Column, Index, Integer, String

from churnpulse.core.db import Base
from churnpulse.models.mixins import TimestampMixin


class CSVUpload(TimestampMixin, Base):
    __tablename__ = "csv_uploads"
    __table_args__ = (
        Index("ix_csv_uploads_user_created_at", "user_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False)
    filename = Column(String, nullable=False)
    # Successful rows only; failures are counted separately.
    rows_processed = Column(Integer, nullable=False, default=0)
    rows_failed = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, default="completed")
