from pydantic import BaseModel, Field, validator
from typing import Optional, List
from datetime import datetime

from vitalstore.enums import SleepStage, ECGDiagnosis


class SleepDetailInputSchema(BaseModel):
    """One stage segment of a sleep session (epoch seconds)"""
    start_time: int = Field(..., gt=0, description="Segment start (epoch seconds)")
    end_time: int = Field(..., gt=0, description="Segment end (epoch seconds)")
    duration: Optional[int] = Field(None, ge=0, description="Seconds; derived from the bounds when omitted")
    sleep_type: SleepStage = Field(..., description="0 unknown, 1 deep, 2 light, 3 REM, 4 awake")

    @validator('end_time')
    def end_not_before_start(cls, v, values):
        start = values.get('start_time')
        if start is not None and v < start:
            raise ValueError(f"Detail ends before it starts ({v} < {start})")
        return v

    def resolved_duration(self) -> int:
        if self.duration is None:
            return self.end_time - self.start_time
        return self.duration


class SleepSessionInputSchema(BaseModel):
    """Sleep session as delivered by the ring, with optional stage details"""
    statistic_time: int = Field(..., gt=0, description="Device session key")
    start_time: int = Field(..., gt=0, description="Session start (epoch seconds)")
    end_time: int = Field(..., gt=0, description="Session end (epoch seconds)")
    deep_sleep_times: int = Field(0, ge=0, description="Seconds of deep sleep")
    light_sleep_times: int = Field(0, ge=0, description="Seconds of light sleep")
    rem_sleep_times: int = Field(0, ge=0, description="Seconds of REM sleep")
    wakeup_times: int = Field(0, ge=0, description="Seconds awake")
    total_times: Optional[int] = Field(None, ge=0, description="Seconds; sum of the stages when omitted")
    details: List[SleepDetailInputSchema] = Field(default_factory=list)

    @validator('end_time')
    def end_not_before_start(cls, v, values):
        start = values.get('start_time')
        if start is not None and v < start:
            raise ValueError(f"Session ends before it starts ({v} < {start})")
        return v

    def resolved_total(self) -> int:
        if self.total_times is None:
            return self.deep_sleep_times + self.light_sleep_times + self.rem_sleep_times + self.wakeup_times
        return self.total_times


class ECGRecordInputSchema(BaseModel):
    """Single ECG measurement result"""
    timestamp: str = Field(..., description="Local measurement time, 'YYYY-MM-DD HH:MM:SS'")
    heart_rate: int = Field(0, ge=0, le=300)
    sbp: int = Field(0, ge=0, le=300)
    dbp: int = Field(0, ge=0, le=250)
    hrv: int = Field(0, ge=0)
    waveform: List[int] = Field(default_factory=list, description="Raw ECG samples")
    diagnose_type: ECGDiagnosis = Field(..., description="1-7; 0 means the measurement failed")
    is_afib: bool = False
    hrv_index: int = 0
    load_index: int = 0
    pressure_index: int = 0
    body_index: int = 0
    sym_para_index: int = 0
    blood_oxygen: int = Field(0, ge=0, le=100)
    temperature: float = 0.0
    respiratory_rate: int = Field(0, ge=0)
    flag: int = 0

    @validator('timestamp', pre=True)
    def normalize_timestamp(cls, v):
        if isinstance(v, datetime):
            return v.strftime("%Y-%m-%d %H:%M:%S")
        if not isinstance(v, str):
            raise ValueError("timestamp must be a 'YYYY-MM-DD HH:MM:SS' string")
        datetime.strptime(v, "%Y-%m-%d %H:%M:%S")
        return v
