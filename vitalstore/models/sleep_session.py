from sqlalchemy import Column, String, ForeignKey, DateTime, Integer, BigInteger, Boolean, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from typing import Dict
from vitalstore.database.base import Base
from vitalstore.enums import SleepStage
import cuid


class SleepSession(Base):
    """
    One sleep session reported by the ring, with its stage totals.
    Times are epoch seconds; stage totals are seconds.
    """
    __tablename__ = "sleep_sessions"

    id = Column(String(25), primary_key=True, index=True, default=lambda: cuid.cuid())
    user_id = Column(Integer, nullable=False, index=True)
    statistic_time = Column(BigInteger, nullable=False)  # device-assigned session key

    start_time = Column(BigInteger, nullable=False)
    end_time = Column(BigInteger, nullable=False)
    total_times = Column(Integer, nullable=False, default=0)
    deep_sleep_times = Column(Integer, nullable=False, default=0)
    light_sleep_times = Column(Integer, nullable=False, default=0)
    rem_sleep_times = Column(Integer, nullable=False, default=0)
    wakeup_times = Column(Integer, nullable=False, default=0)

    batch_time = Column(BigInteger, nullable=False)
    is_synced = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    details = relationship(
        "SleepDetail",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SleepDetail.start_time",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "statistic_time", name="uq_sleep_user_statistic_time"),
        Index("ix_sleep_user_start", "user_id", "start_time"),
        Index("ix_sleep_synced", "is_synced", "statistic_time"),
    )

    @property
    def stage_totals(self) -> Dict[SleepStage, int]:
        return {
            SleepStage.DEEP: self.deep_sleep_times or 0,
            SleepStage.LIGHT: self.light_sleep_times or 0,
            SleepStage.REM: self.rem_sleep_times or 0,
            SleepStage.AWAKE: self.wakeup_times or 0,
        }

    def stage_discrepancies(self, tolerance_s: int = 60) -> Dict[SleepStage, int]:
        """
        Compare detail durations summed per stage against the session's stage totals.
        Returns {stage: detail_sum - session_total} for every stage off by more than
        `tolerance_s` seconds. Details must be loaded.
        """
        summed = {stage: 0 for stage in self.stage_totals}
        for detail in self.details:
            stage = SleepStage(detail.sleep_type)
            if stage in summed:
                summed[stage] += detail.duration

        discrepancies = {}
        for stage, total in self.stage_totals.items():
            delta = summed[stage] - total
            if abs(delta) > tolerance_s:
                discrepancies[stage] = delta
        return discrepancies


class SleepDetail(Base):
    """One stage segment inside a sleep session."""

    __tablename__ = "sleep_details"

    id = Column(String(25), primary_key=True, index=True, default=lambda: cuid.cuid())
    session_id = Column(String(25), ForeignKey("sleep_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    start_time = Column(BigInteger, nullable=False)
    end_time = Column(BigInteger, nullable=False)
    duration = Column(Integer, nullable=False)  # seconds
    sleep_type = Column(Integer, nullable=False)  # SleepStage code

    created_at = Column(DateTime, default=datetime.utcnow)

    session = relationship("SleepSession", back_populates="details")

    @property
    def stage(self) -> SleepStage:
        return SleepStage(self.sleep_type)
