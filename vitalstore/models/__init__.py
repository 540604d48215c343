"""
Models package for the store.
"""

from .ingest_batch import IngestBatch
from .metric_record import MetricRecord
from .daily_aggregate import DailyAggregate
from .sleep_session import SleepSession, SleepDetail
from .ecg_record import ECGRecord

__all__ = [
    "IngestBatch",
    "MetricRecord",
    "DailyAggregate",
    "SleepSession",
    "SleepDetail",
    "ECGRecord",
]
