"""Shared fixtures for the health store tests."""

from __future__ import annotations

import asyncio
import os

# Keep test runs from writing rotating log files
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("DAY_BUCKET_TIMEZONE", "UTC")

from datetime import datetime, timezone

import pytest
import pytest_asyncio

from vitalstore.database.connection import HealthStore
from vitalstore.services.daily_aggregate_service import DailyAggregateService
from vitalstore.services.ecg_record_service import ECGRecordService
from vitalstore.services.metric_record_service import MetricRecordService
from vitalstore.services.sleep_session_service import SleepSessionService
from vitalstore.services.sync_tracker_service import SyncTrackerService

TEST_USER_ID = 7
TEST_DAY = "2026-03-10"
# 2026-03-10T00:00:00Z
DAY_START = 1773100800
HOUR = 3600


def utc_ts(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> int:
    return int(datetime(year, month, day, hour, minute, tzinfo=timezone.utc).timestamp())


def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'health.db'}"


class TransactionGate:
    """
    Parks a write at its daily-aggregate step, inside the open transaction, so
    a test can cancel it there. Calls made after `cancel` pass straight through.
    """

    def __init__(self, aggregates: DailyAggregateService, monkeypatch) -> None:
        self.reached = asyncio.Event()
        self._release = asyncio.Event()
        original = aggregates.recompute_in_session

        async def parked(*args, **kwargs):
            row = await original(*args, **kwargs)
            self.reached.set()
            await self._release.wait()
            return row

        monkeypatch.setattr(aggregates, "recompute_in_session", parked)

    async def cancel(self, task: asyncio.Task) -> None:
        await asyncio.wait_for(self.reached.wait(), timeout=10)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        self._release.set()


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def store(tmp_path):
    """Open store on a throwaway SQLite file, UTC day buckets."""
    health_store = HealthStore(
        database_url(tmp_path),
        day_bucket_timezone="UTC",
        default_user_id=TEST_USER_ID,
    )
    await health_store.open()
    yield health_store
    await health_store.close()


@pytest.fixture
def records(store: HealthStore) -> MetricRecordService:
    return MetricRecordService(store)


@pytest.fixture
def aggregates(store: HealthStore) -> DailyAggregateService:
    return DailyAggregateService(store)


@pytest.fixture
def sleep(store: HealthStore) -> SleepSessionService:
    return SleepSessionService(store)


@pytest.fixture
def ecg(store: HealthStore) -> ECGRecordService:
    return ECGRecordService(store)


@pytest.fixture
def tracker(store: HealthStore) -> SyncTrackerService:
    return SyncTrackerService(store)


# ---------------------------------------------------------------------------
# Sample payloads
# ---------------------------------------------------------------------------


@pytest.fixture
def night_session() -> dict:
    """One night: 23:00 on the 9th to 07:00 on TEST_DAY, with stage details."""
    start = utc_ts(2026, 3, 9, 23)
    return {
        "statistic_time": start,
        "start_time": start,
        "end_time": start + 8 * HOUR,
        "deep_sleep_times": 2 * HOUR,
        "light_sleep_times": 4 * HOUR,
        "rem_sleep_times": HOUR + 1800,
        "wakeup_times": 1800,
        "details": [
            {"start_time": start, "end_time": start + 2 * HOUR, "sleep_type": 1},
            {"start_time": start + 2 * HOUR, "end_time": start + 6 * HOUR, "sleep_type": 2},
            {"start_time": start + 6 * HOUR, "end_time": start + 7 * HOUR + 1800, "sleep_type": 3},
            {"start_time": start + 7 * HOUR + 1800, "end_time": start + 8 * HOUR, "sleep_type": 4},
        ],
    }


@pytest.fixture
def ecg_payload() -> dict:
    return {
        "timestamp": "2026-03-10 08:30:00",
        "heart_rate": 72,
        "sbp": 118,
        "dbp": 76,
        "hrv": 45,
        "waveform": [0, 120, -340, 2048, 40000, -7],
        "diagnose_type": 1,
        "is_afib": False,
        "blood_oxygen": 98,
        "temperature": 36.6,
        "respiratory_rate": 14,
    }
