"""Tests for the synced watermark across all record kinds."""

from __future__ import annotations

import pytest

from vitalstore.services.ecg_record_service import ECGRecordService
from vitalstore.services.metric_record_service import MetricRecordService
from vitalstore.services.sleep_session_service import SleepSessionService
from vitalstore.services.sync_tracker_service import SyncTrackerService
from vitalstore.tests.conftest import DAY_START


class TestPendingRecords:
    @pytest.mark.asyncio
    async def test_oldest_first_with_limit(
        self, records: MetricRecordService, tracker: SyncTrackerService
    ) -> None:
        await records.insert_batch("heart_rate", [(DAY_START + 30, 61), (DAY_START + 10, 60), (DAY_START + 20, 62)])

        pending = await tracker.pending_records("heart_rate", limit=2)
        assert [r.timestamp for r in pending] == [DAY_START + 10, DAY_START + 20]

    @pytest.mark.asyncio
    async def test_zero_limit(self, records: MetricRecordService, tracker: SyncTrackerService) -> None:
        await records.insert_batch("heart_rate", [(DAY_START, 60)])
        assert await tracker.pending_records("heart_rate", limit=0) == []

    @pytest.mark.asyncio
    async def test_kinds_do_not_mix(self, records: MetricRecordService, tracker: SyncTrackerService) -> None:
        await records.insert_batch("heart_rate", [(DAY_START, 60)])
        await records.insert_batch("hrv", [(DAY_START, 40)])

        pending = await tracker.pending_records("hrv")
        assert [r.metric_type for r in pending] == ["hrv"]


class TestMarkSynced:
    @pytest.mark.asyncio
    async def test_marking_is_idempotent(
        self, records: MetricRecordService, tracker: SyncTrackerService
    ) -> None:
        await records.insert_batch("heart_rate", [(DAY_START + 10, 60), (DAY_START + 20, 62)])
        pending = await tracker.pending_records("heart_rate")
        first_id = pending[0].id

        assert await tracker.mark_synced([first_id]) == 1
        assert await tracker.mark_synced([first_id]) == 0
        assert [r.id for r in await tracker.pending_records("heart_rate")] == [pending[1].id]

    @pytest.mark.asyncio
    async def test_unknown_ids_are_ignored(self, tracker: SyncTrackerService) -> None:
        assert await tracker.mark_synced(["nope", "still-nope"]) == 0
        assert await tracker.mark_synced([]) == 0

    @pytest.mark.asyncio
    async def test_mixed_kinds_in_one_call(
        self,
        records: MetricRecordService,
        sleep: SleepSessionService,
        ecg: ECGRecordService,
        tracker: SyncTrackerService,
        night_session: dict,
        ecg_payload: dict,
    ) -> None:
        await records.insert_batch("steps", [(DAY_START, {"steps": 10, "distance": 7, "calories": 1})])
        session_id = await sleep.create_session(night_session)
        await ecg.save_record(ecg_payload)
        step_id = (await tracker.pending_records("steps"))[0].id

        marked = await tracker.mark_synced([step_id, session_id, ecg_payload["timestamp"], "unknown"])

        assert marked == 3
        counts = await tracker.pending_counts()
        assert counts["steps"] == 0
        assert counts["sleep"] == 0
        assert counts["ecg"] == 0


class TestPendingCounts:
    @pytest.mark.asyncio
    async def test_counts_include_every_kind(
        self, records: MetricRecordService, sleep: SleepSessionService, tracker: SyncTrackerService,
        night_session: dict,
    ) -> None:
        await records.insert_batch("heart_rate", [(DAY_START, 60), (DAY_START + 60, 61)])
        await sleep.create_session(night_session)

        counts = await tracker.pending_counts()

        assert counts["heart_rate"] == 2
        assert counts["sleep"] == 1
        assert counts["blood_glucose"] == 0
        assert counts["ecg"] == 0
        assert await tracker.pending_counts(user_id=999) == {k: 0 for k in counts}
