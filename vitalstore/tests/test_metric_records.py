"""Tests for batch ingestion and raw-sample queries."""

from __future__ import annotations

import math

import pytest

from vitalstore.exceptions.errors import UnknownMetricError
from vitalstore.services.metric_record_service import MetricRecordService
from vitalstore.services.sync_tracker_service import SyncTrackerService
from vitalstore.tests.conftest import DAY_START, HOUR, TEST_DAY, TEST_USER_ID


class TestInsertBatch:
    @pytest.mark.asyncio
    async def test_duplicate_timestamps_keep_first_value(self, records: MetricRecordService) -> None:
        result = await records.insert_batch("heart_rate", [(100, 60), (200, 62), (100, 65)])

        assert result.total_received == 3
        assert result.inserted_count == 2
        assert result.duplicates_skipped == 1
        assert result.rejected_count == 0

        stored = await records.query_range("heart_rate", 0, 1000)
        assert [(r.timestamp, r.values["bpm"]) for r in stored] == [(100, 60), (200, 62)]

    @pytest.mark.asyncio
    async def test_reingesting_a_batch_changes_nothing(self, records: MetricRecordService) -> None:
        batch = [(DAY_START + 60, 71), (DAY_START + 120, 74)]
        await records.insert_batch("heart_rate", batch)

        again = await records.insert_batch("heart_rate", [(DAY_START + 60, 99), (DAY_START + 120, 99)])

        assert again.inserted_count == 0
        assert again.duplicates_skipped == 2
        assert again.affected_dates == []
        assert await records.count("heart_rate") == 2
        stored = await records.query_range("heart_rate", DAY_START, DAY_START + 24 * HOUR)
        assert [r.values["bpm"] for r in stored] == [71, 74]

    @pytest.mark.asyncio
    async def test_invalid_samples_are_reported_not_fatal(self, records: MetricRecordService) -> None:
        result = await records.insert_batch("heart_rate", [
            (0, 60),
            (DAY_START + 1, math.nan),
            (DAY_START + 2, 70),
            (DAY_START + 3, {"bpm": 10}),
            ("soon", 70),
        ])

        assert result.inserted_count == 1
        assert result.rejected_count == 4
        assert len(result.errors) == 4
        assert result.errors[0].startswith("sample 0:")
        assert await records.count("heart_rate") == 1

    @pytest.mark.asyncio
    async def test_accepts_mapping_samples(self, records: MetricRecordService) -> None:
        result = await records.insert_batch("blood_pressure", [
            {"timestamp": DAY_START + 10, "values": {"systolic": 121, "diastolic": 79}},
            {"timestamp": DAY_START + 20, "values": [118, 77]},
        ])
        assert result.inserted_count == 2

        latest = await records.query_latest("blood_pressure")
        assert latest.values == {"systolic": 118, "diastolic": 77}

    @pytest.mark.asyncio
    async def test_result_lists_affected_dates(self, records: MetricRecordService) -> None:
        result = await records.insert_batch("hrv", [
            (DAY_START + HOUR, 40),
            (DAY_START + 25 * HOUR, 42),
        ])
        assert result.affected_dates == ["2026-03-10", "2026-03-11"]
        assert result.batch_id is not None

    @pytest.mark.asyncio
    async def test_empty_batch(self, records: MetricRecordService) -> None:
        result = await records.insert_batch("steps", [])
        assert result.total_received == 0
        assert result.inserted_count == 0
        assert result.batch_id is None

    @pytest.mark.asyncio
    async def test_unknown_metric(self, records: MetricRecordService) -> None:
        with pytest.raises(UnknownMetricError):
            await records.insert_batch("mood", [(DAY_START, 3)])

    @pytest.mark.asyncio
    async def test_users_are_isolated(self, records: MetricRecordService) -> None:
        await records.insert_batch("heart_rate", [(DAY_START, 60)], user_id=1)
        result = await records.insert_batch("heart_rate", [(DAY_START, 80)], user_id=2)

        assert result.inserted_count == 1
        assert (await records.query_latest("heart_rate", user_id=1)).values["bpm"] == 60
        assert (await records.query_latest("heart_rate", user_id=2)).values["bpm"] == 80
        assert await records.query_latest("heart_rate") is None

    @pytest.mark.asyncio
    async def test_default_user_comes_from_the_store(self, records: MetricRecordService) -> None:
        await records.insert_batch("heart_rate", [(DAY_START, 60)])
        latest = await records.query_latest("heart_rate")
        assert latest.user_id == TEST_USER_ID


class TestQueries:
    @pytest.mark.asyncio
    async def test_range_is_half_open_and_ascending(self, records: MetricRecordService) -> None:
        await records.insert_batch("blood_oxygen", [(300, 97), (100, 98), (200, 96)])

        stored = await records.query_range("blood_oxygen", 100, 300)
        assert [r.timestamp for r in stored] == [100, 200]

    @pytest.mark.asyncio
    async def test_latest_is_highest_timestamp(self, records: MetricRecordService) -> None:
        await records.insert_batch("heart_rate", [(500, 66), (900, 70), (700, 68)])
        latest = await records.query_latest("heart_rate")
        assert latest.timestamp == 900

    @pytest.mark.asyncio
    async def test_latest_batch_uses_max_batch_time(self, records: MetricRecordService) -> None:
        await records.insert_batch("heart_rate", [(10, 60), (20, 61)], batch_time=1000)
        await records.insert_batch("heart_rate", [(30, 62), (5, 63)], batch_time=2000)

        newest = await records.query_latest_batch("heart_rate")
        assert [r.timestamp for r in newest] == [5, 30]
        assert {r.batch_time for r in newest} == {2000}

    @pytest.mark.asyncio
    async def test_per_sample_batch_time_overrides_batch(self, records: MetricRecordService) -> None:
        await records.insert_batch("heart_rate", [(50, 61), (60, 62, 1000)], batch_time=3000)

        newest = await records.query_latest_batch("heart_rate")
        assert [r.timestamp for r in newest] == [50]

    @pytest.mark.asyncio
    async def test_latest_batch_empty_store(self, records: MetricRecordService) -> None:
        assert await records.query_latest_batch("heart_rate") == []

    @pytest.mark.asyncio
    async def test_latest_for_day(self, records: MetricRecordService) -> None:
        await records.insert_batch("temperature", [
            (DAY_START - HOUR, 36.1),
            (DAY_START + 2 * HOUR, 36.4),
            (DAY_START + 9 * HOUR, 36.8),
            (DAY_START + 30 * HOUR, 37.0),
        ])
        latest = await records.latest_for_day("temperature", TEST_DAY)
        assert latest.values["temperature"] == 36.8
        assert await records.latest_for_day("temperature", "2026-03-01") is None

    @pytest.mark.asyncio
    async def test_existing_timestamps(self, records: MetricRecordService) -> None:
        await records.insert_batch("blood_glucose", [(100, 95.5), (200, 101.0)])
        assert await records.existing_timestamps("blood_glucose") == {100, 200}
        assert await records.existing_timestamps("heart_rate") == set()


class TestPurge:
    @pytest.mark.asyncio
    async def test_purge_keeps_unsynced_rows_by_default(
        self, records: MetricRecordService, tracker: SyncTrackerService
    ) -> None:
        await records.insert_batch("heart_rate", [(DAY_START + 10, 60), (DAY_START + 20, 70)])
        first = (await records.query_range("heart_rate", DAY_START, DAY_START + 30))[0]
        await tracker.mark_synced([first.id])

        deleted = await records.purge("heart_rate")

        assert deleted == 1
        remaining = await records.query_range("heart_rate", DAY_START, DAY_START + 30)
        assert [r.values["bpm"] for r in remaining] == [70]

    @pytest.mark.asyncio
    async def test_purge_rebuilds_aggregates_from_what_remains(
        self, records: MetricRecordService, tracker: SyncTrackerService, aggregates
    ) -> None:
        await records.insert_batch("heart_rate", [(DAY_START + 10, 60), (DAY_START + 20, 70)])
        first = (await records.query_range("heart_rate", DAY_START, DAY_START + 30))[0]
        await tracker.mark_synced([first.id])

        await records.purge("heart_rate")
        day = await aggregates.get_day(None, "heart_rate", TEST_DAY)
        assert day.sample_count == 1
        assert day.value == 70

        await records.purge("heart_rate", include_unsynced=True)
        day = await aggregates.get_day(None, "heart_rate", TEST_DAY)
        assert day.has_data is False

    @pytest.mark.asyncio
    async def test_purge_all_metrics(self, records: MetricRecordService) -> None:
        await records.insert_batch("heart_rate", [(100, 60)])
        await records.insert_batch("hrv", [(100, 40)])

        deleted = await records.purge(include_unsynced=True)

        assert deleted == 2
        assert await records.count("heart_rate") == 0
        assert await records.count("hrv") == 0
