from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Union

from vitalstore.enums import SleepStage, ECGDiagnosis

NO_DATA = "--"


class IngestResult(BaseModel):
    """Outcome of one batch delivery"""
    metric_type: str
    batch_id: Optional[str] = None
    total_received: int = 0
    inserted_count: int = 0
    duplicates_skipped: int = 0
    rejected_count: int = 0
    errors: List[str] = Field(default_factory=list)
    affected_dates: List[str] = Field(default_factory=list)


class MetricRecordResponse(BaseModel):
    id: str
    user_id: int
    metric_type: str
    timestamp: int
    values: Dict[str, Union[int, float]]
    batch_time: int
    is_synced: bool

    class Config:
        from_attributes = True


class DailyAggregateResponse(BaseModel):
    """
    A day of one metric. Days without data come back with has_data=False and
    render as "--"; a real zero renders as "0".
    """
    user_id: int
    metric_type: str
    date: str
    has_data: bool = True
    value: Optional[float] = None
    secondary_value: Optional[float] = None
    stats: Optional[Dict[str, Union[int, float]]] = None
    sample_count: int = 0
    last_updated: Optional[int] = None

    class Config:
        from_attributes = True

    @classmethod
    def no_data(cls, user_id: int, metric_type: str, date: str) -> "DailyAggregateResponse":
        return cls(user_id=user_id, metric_type=metric_type, date=date, has_data=False)

    def display(self, key: str = "value", precision: int = 0) -> str:
        if not self.has_data:
            return NO_DATA
        if key in ("value", "secondary_value"):
            number = getattr(self, key)
        else:
            number = (self.stats or {}).get(key)
        if number is None:
            return NO_DATA
        return f"{number:.{precision}f}"


class SleepDetailResponse(BaseModel):
    id: str
    session_id: str
    start_time: int
    end_time: int
    duration: int
    sleep_type: SleepStage

    class Config:
        from_attributes = True


class SleepSessionResponse(BaseModel):
    id: str
    user_id: int
    statistic_time: int
    start_time: int
    end_time: int
    total_times: int
    deep_sleep_times: int
    light_sleep_times: int
    rem_sleep_times: int
    wakeup_times: int
    batch_time: int
    is_synced: bool
    details: List[SleepDetailResponse] = Field(default_factory=list)

    class Config:
        from_attributes = True


class SleepDayResponse(BaseModel):
    """Grouped sleep period ending on `date`"""
    date: str
    sessions: List[SleepSessionResponse] = Field(default_factory=list)
    total_times: int = 0
    deep_sleep_times: int = 0
    light_sleep_times: int = 0
    rem_sleep_times: int = 0
    wakeup_times: int = 0


class ECGRecordResponse(BaseModel):
    """ECG summary; the waveform is only included when explicitly requested"""
    timestamp: str
    user_id: int
    heart_rate: int
    sbp: int
    dbp: int
    hrv: int
    blood_oxygen: int
    temperature: float
    respiratory_rate: int
    diagnose_type: ECGDiagnosis
    is_afib: bool
    hrv_index: int
    load_index: int
    pressure_index: int
    body_index: int
    sym_para_index: int
    flag: int
    sample_count: int
    is_synced: bool
    waveform: Optional[List[int]] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_record(cls, record, waveform: Optional[List[int]] = None) -> "ECGRecordResponse":
        # Never touch record.waveform here: it is deferred and loading it needs a live session
        data = {name: getattr(record, name) for name in cls.model_fields if name != "waveform"}
        return cls(**data, waveform=waveform)


class SyncStatusResponse(BaseModel):
    user_id: int
    pending: Dict[str, int]
    total_pending: int


class SyncPushResult(BaseModel):
    """Result of pushing one record kind to the remote backend"""
    kind: str
    attempted: int = 0
    acknowledged: int = 0
    marked_synced: int = 0
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None
