"""Tests for write serialization, snapshot reads and cancellation rollback."""

from __future__ import annotations

import asyncio

import pytest

from vitalstore.database.connection import HealthStore
from vitalstore.exceptions.errors import StoreUnavailableError
from vitalstore.services.daily_aggregate_service import DailyAggregateService
from vitalstore.services.metric_record_service import MetricRecordService
from vitalstore.tests.conftest import DAY_START, TransactionGate, database_url

BIG_BATCH = 3000


def _big_batch(offset: int = 0) -> list:
    return [(DAY_START + offset + i * 30, 55 + i % 60) for i in range(BIG_BATCH)]


class TestSnapshotReads:
    @pytest.mark.asyncio
    async def test_reads_during_insert_see_none_or_all(self, records: MetricRecordService) -> None:
        insert = asyncio.create_task(records.insert_batch("heart_rate", _big_batch()))

        observed = []
        while not insert.done():
            observed.append(await records.count("heart_rate"))
            await asyncio.sleep(0)
        await insert
        observed.append(await records.count("heart_rate"))

        assert set(observed) <= {0, BIG_BATCH}
        assert observed[-1] == BIG_BATCH

    @pytest.mark.asyncio
    async def test_concurrent_batches_are_serialized(self, records: MetricRecordService) -> None:
        first = [(DAY_START + i, 60) for i in range(0, 200)]
        second = [(DAY_START + i, 90) for i in range(100, 300)]

        a, b = await asyncio.gather(
            records.insert_batch("heart_rate", first),
            records.insert_batch("heart_rate", second),
        )

        assert a.inserted_count + b.inserted_count == 300
        assert a.duplicates_skipped + b.duplicates_skipped == 100
        assert await records.count("heart_rate") == 300


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_insert_leaves_nothing_behind(
        self, records: MetricRecordService, aggregates: DailyAggregateService, monkeypatch
    ) -> None:
        gate = TransactionGate(records.aggregates, monkeypatch)
        task = asyncio.create_task(records.insert_batch("heart_rate", _big_batch()))
        await gate.cancel(task)

        assert await records.count("heart_rate") == 0
        assert await aggregates.query(None, "heart_rate", "2026-03-10", "2026-03-12") == []

    @pytest.mark.asyncio
    async def test_store_is_usable_after_cancellation(self, records: MetricRecordService, monkeypatch) -> None:
        gate = TransactionGate(records.aggregates, monkeypatch)
        task = asyncio.create_task(records.insert_batch("heart_rate", _big_batch()))
        await gate.cancel(task)

        result = await records.insert_batch("heart_rate", [(DAY_START - 60, 70)])
        assert result.inserted_count == 1
        assert await records.count("heart_rate") == 1

    @pytest.mark.asyncio
    async def test_cancelled_purge_deletes_nothing(
        self, records: MetricRecordService, aggregates: DailyAggregateService, monkeypatch
    ) -> None:
        await records.insert_batch("heart_rate", _big_batch())
        before = await aggregates.query(None, "heart_rate", "2026-03-10", "2026-03-12")

        gate = TransactionGate(records.aggregates, monkeypatch)
        task = asyncio.create_task(records.purge("heart_rate", include_unsynced=True))
        await gate.cancel(task)

        assert await records.count("heart_rate") == BIG_BATCH
        assert await aggregates.query(None, "heart_rate", "2026-03-10", "2026-03-12") == before


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_closed_store_refuses_work(self, tmp_path) -> None:
        store = HealthStore(database_url(tmp_path))
        with pytest.raises(StoreUnavailableError):
            await MetricRecordService(store).count("heart_rate")

        async with store:
            assert store.is_open
            assert await MetricRecordService(store).count("heart_rate") == 0
        assert not store.is_open

        with pytest.raises(StoreUnavailableError):
            async with store.write():
                pass

    @pytest.mark.asyncio
    async def test_data_survives_reopen(self, tmp_path) -> None:
        async with HealthStore(database_url(tmp_path)) as store:
            await MetricRecordService(store).insert_batch("heart_rate", [(DAY_START, 60)])

        async with HealthStore(database_url(tmp_path)) as store:
            assert await MetricRecordService(store).count("heart_rate") == 1

    @pytest.mark.asyncio
    async def test_in_memory_store(self) -> None:
        async with HealthStore("sqlite+aiosqlite:///:memory:") as store:
            records = MetricRecordService(store)
            await records.insert_batch("hrv", [(DAY_START, 41), (DAY_START + 60, 43)])
            assert await records.count("hrv") == 2
