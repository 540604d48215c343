"""
Enums package for the store.
"""

from .metric_enums import MetricType, Aggregation, SleepStage, ECGDiagnosis

__all__ = [
    "MetricType",
    "Aggregation",
    "SleepStage",
    "ECGDiagnosis",
]
