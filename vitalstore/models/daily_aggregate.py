from sqlalchemy import Column, String, DateTime, Integer, BigInteger, Float, JSON, UniqueConstraint, Index
from datetime import datetime
from vitalstore.database.base import Base
import cuid


class DailyAggregate(Base):
    """
    Derived per-day summary of one metric for one user.
    `date` is the ISO calendar day (YYYY-MM-DD) in the configured bucket timezone.
    Rows are rebuilt from raw data; a day with no raw data has no row.
    """
    __tablename__ = "daily_aggregates"

    id = Column(String(25), primary_key=True, index=True, default=lambda: cuid.cuid())
    user_id = Column(Integer, nullable=False, index=True)
    metric_type = Column(String(32), nullable=False)
    date = Column(String(10), nullable=False)

    value = Column(Float, nullable=True)  # headline value, e.g. avg bpm or total steps
    secondary_value = Column(Float, nullable=True)  # e.g. avg diastolic
    stats = Column(JSON, nullable=False, default=dict)  # {"min_bpm": 58, "max_bpm": 131, ...}
    sample_count = Column(Integer, nullable=False, default=0)
    last_updated = Column(BigInteger, nullable=False)  # epoch seconds of the last rebuild

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "metric_type", "date", name="uq_daily_user_type_date"),
        Index("ix_daily_type_date", "metric_type", "date"),
    )
