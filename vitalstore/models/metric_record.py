from sqlalchemy import Column, String, ForeignKey, DateTime, Integer, BigInteger, Boolean, JSON, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from vitalstore.database.base import Base
import cuid


class MetricRecord(Base):
    """
    One timestamped reading from the ring, for any registered sample metric.
    Field values live in `values` keyed by the names the metric registry declares,
    e.g. {"bpm": 62} or {"systolic": 118, "diastolic": 76}.
    """
    __tablename__ = "metric_records"

    id = Column(String(25), primary_key=True, index=True, default=lambda: cuid.cuid())
    user_id = Column(Integer, nullable=False, index=True)
    metric_type = Column(String(32), nullable=False)
    ingest_batch_id = Column(String(25), ForeignKey("ingest_batches.id"), nullable=True)

    timestamp = Column(BigInteger, nullable=False)  # epoch seconds, measurement time
    values = Column("sample_values", JSON, nullable=False)
    batch_time = Column(BigInteger, nullable=False)  # epoch seconds, when the batch arrived
    is_synced = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    ingest_batch = relationship("IngestBatch", back_populates="records")

    __table_args__ = (
        UniqueConstraint("user_id", "metric_type", "timestamp", name="uq_metric_user_type_ts"),
        Index("ix_metric_type_batch", "metric_type", "batch_time"),
        Index("ix_metric_type_synced", "metric_type", "is_synced", "timestamp"),
    )

    def __repr__(self):
        return f"<MetricRecord {self.metric_type} ts={self.timestamp} values={self.values}>"
