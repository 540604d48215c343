from sqlalchemy import Column, String, DateTime, Integer, Float, Boolean, LargeBinary, Index
from sqlalchemy.orm import deferred
from datetime import datetime
from typing import List
from vitalstore.database.base import Base
from vitalstore.enums import ECGDiagnosis
from vitalstore.utils.waveform_codec import decode_waveform


class ECGRecord(Base):
    """
    One ECG measurement, keyed by its local measurement time ("YYYY-MM-DD HH:MM:SS").
    The waveform blob is deferred: plain queries never load it.
    """
    __tablename__ = "ecg_records"

    timestamp = Column(String(19), primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)

    heart_rate = Column(Integer, nullable=False, default=0)
    sbp = Column(Integer, nullable=False, default=0)
    dbp = Column(Integer, nullable=False, default=0)
    hrv = Column(Integer, nullable=False, default=0)
    blood_oxygen = Column(Integer, nullable=False, default=0)
    temperature = Column(Float, nullable=False, default=0.0)
    respiratory_rate = Column(Integer, nullable=False, default=0)
    diagnose_type = Column(Integer, nullable=False)  # ECGDiagnosis code, never 0
    is_afib = Column(Boolean, nullable=False, default=False)

    # Analysis indices; 0 when the ring does not report them
    hrv_index = Column(Integer, nullable=False, default=0)
    load_index = Column(Integer, nullable=False, default=0)
    pressure_index = Column(Integer, nullable=False, default=0)
    body_index = Column(Integer, nullable=False, default=0)
    sym_para_index = Column(Integer, nullable=False, default=0)
    flag = Column(Integer, nullable=False, default=0)

    sample_count = Column(Integer, nullable=False, default=0)
    waveform = deferred(Column(LargeBinary, nullable=True))

    is_synced = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_ecg_synced", "is_synced", "timestamp"),
    )

    @property
    def diagnosis(self) -> ECGDiagnosis:
        return ECGDiagnosis(self.diagnose_type)

    def decode_waveform(self) -> List[int]:
        """Only valid when the waveform column was loaded (undefer or explicit select)."""
        return decode_waveform(self.waveform)
