"""
Health-metric enums shared by the store, the sync tracker and the query API.
"""

from enum import Enum, IntEnum


class MetricType(str, Enum):
    HEART_RATE = "heart_rate"
    BLOOD_OXYGEN = "blood_oxygen"
    BLOOD_PRESSURE = "blood_pressure"
    HRV = "hrv"
    TEMPERATURE = "temperature"
    STEPS = "steps"
    BLOOD_GLUCOSE = "blood_glucose"
    BODY_TEMPERATURE = "body_temperature"
    # Record kinds with their own tables
    SLEEP = "sleep"
    ECG = "ecg"


class Aggregation(str, Enum):
    MIN_MAX_AVG = "min_max_avg"
    SUM = "sum"


class SleepStage(IntEnum):
    """Local stage codes stored on sleep details."""
    UNKNOWN = 0
    DEEP = 1
    LIGHT = 2
    REM = 3
    AWAKE = 4

    @property
    def api_code(self) -> int:
        # Remote API numbering: 0=deep, 1=light, 3=awake, 4=REM
        return {
            SleepStage.DEEP: 0,
            SleepStage.LIGHT: 1,
            SleepStage.AWAKE: 3,
            SleepStage.REM: 4,
        }.get(self, 2)


class ECGDiagnosis(IntEnum):
    """Diagnosis classification reported by the ring's ECG algorithm."""
    FAILED = 0
    NORMAL = 1
    ATRIAL_FIBRILLATION = 2
    PREMATURE_ATRIAL = 3
    PREMATURE_VENTRICULAR = 4
    BRADYCARDIA = 5
    TACHYCARDIA = 6
    ARRHYTHMIA = 7

    @property
    def is_abnormal(self) -> bool:
        return self >= ECGDiagnosis.ATRIAL_FIBRILLATION

    @property
    def label(self) -> str:
        return {
            ECGDiagnosis.NORMAL: "Normal ECG",
            ECGDiagnosis.ATRIAL_FIBRILLATION: "Suspected Atrial Fibrillation",
            ECGDiagnosis.PREMATURE_ATRIAL: "Suspected Atrial Premature Beats",
            ECGDiagnosis.PREMATURE_VENTRICULAR: "Suspected Ventricular Premature Beats",
            ECGDiagnosis.BRADYCARDIA: "Suspected Bradycardia",
            ECGDiagnosis.TACHYCARDIA: "Suspected Tachycardia",
            ECGDiagnosis.ARRHYTHMIA: "Suspected Arrhythmia",
        }.get(self, "Unknown")
