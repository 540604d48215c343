from sqlalchemy import Column, String, DateTime, Integer, BigInteger, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from vitalstore.database.base import Base
import cuid


class IngestBatch(Base):
    """
    Bookkeeping row for one delivery of samples from the ring.
    """
    __tablename__ = "ingest_batches"

    id = Column(String(25), primary_key=True, index=True, default=lambda: cuid.cuid())
    user_id = Column(Integer, nullable=False, index=True)
    metric_type = Column(String(32), nullable=False)
    batch_time = Column(BigInteger, nullable=False)
    received_at = Column(DateTime, default=datetime.utcnow)
    count_received = Column(Integer, default=0)
    count_stored = Column(Integer, default=0)
    count_duplicates = Column(Integer, default=0)
    count_rejected = Column(Integer, default=0)

    records = relationship("MetricRecord", back_populates="ingest_batch")

    __table_args__ = (
        Index("ix_ingest_user_metric", "user_id", "metric_type"),
    )
