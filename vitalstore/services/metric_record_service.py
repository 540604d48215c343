"""
Metric Record Service
Ingests device batches for every sample metric and answers the raw-data queries.
"""

import time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from sqlalchemy import delete, func, select

from vitalstore.core.logger import get_logger
from vitalstore.database.connection import HealthStore
from vitalstore.enums import MetricType
from vitalstore.exceptions.errors import SampleValidationError
from vitalstore.models.ingest_batch import IngestBatch
from vitalstore.models.metric_record import MetricRecord
from vitalstore.schemas.store_schemas import IngestResult
from vitalstore.services.daily_aggregate_service import DailyAggregateService
from vitalstore.services.metric_registry import SAMPLE_METRICS, MetricSchema, get_schema
from vitalstore.utils.day_buckets import DayLike, day_bounds, day_key

logger = get_logger("metric_record_service")

# Keep IN (...) lists under SQLite's bound-parameter limit
_IN_CHUNK = 500


def _unpack_sample(sample: Any) -> Tuple[Any, Any, Any]:
    """
    A sample is (timestamp, values[, batch_time]), a mapping with those keys
    ("value" is accepted for single-field metrics), or an object exposing them.
    """
    if isinstance(sample, Mapping):
        if "timestamp" not in sample:
            raise SampleValidationError("Sample has no timestamp")
        values = sample.get("values", sample.get("value"))
        return sample["timestamp"], values, sample.get("batch_time")
    if isinstance(sample, (list, tuple)):
        if len(sample) == 2:
            return sample[0], sample[1], None
        if len(sample) == 3:
            return sample[0], sample[1], sample[2]
        raise SampleValidationError(f"Sample tuple must have 2 or 3 items, got {len(sample)}")
    if hasattr(sample, "timestamp") and hasattr(sample, "values"):
        return sample.timestamp, sample.values, getattr(sample, "batch_time", None)
    raise SampleValidationError(f"Unrecognized sample: {sample!r}")


class MetricRecordService:
    """Generic raw-sample store driven by the metric registry"""

    def __init__(self, store: HealthStore, aggregates: Optional[DailyAggregateService] = None):
        self.store = store
        self.aggregates = aggregates or DailyAggregateService(store)

    async def insert_batch(
        self,
        metric_type: Union[MetricType, str],
        samples: Iterable[Any],
        user_id: Optional[int] = None,
        batch_time: Optional[int] = None,
    ) -> IngestResult:
        """
        Validate, deduplicate and insert one device batch, then rebuild the daily
        aggregate of every day that gained rows. All of it commits together.

        Invalid samples are reported in the result and skipped. A timestamp that
        is already stored, or repeated within the batch, keeps its first value.
        """
        schema = get_schema(metric_type)
        user_id = self.store.resolve_user(user_id)
        samples = list(samples)
        result = IngestResult(metric_type=schema.metric_type.value, total_received=len(samples))
        if not samples:
            return result

        default_batch_time = int(time.time()) if batch_time is None else batch_time
        logger.info(f"Ingesting {len(samples)} {schema.metric_type.value} samples for user {user_id}")

        prepared = []
        for index, sample in enumerate(samples):
            try:
                raw_ts, raw_values, raw_batch_time = _unpack_sample(sample)
                timestamp = schema.validate_timestamp(raw_ts)
                values = schema.validate_values(raw_values)
                sample_batch_time = schema.validate_timestamp(
                    default_batch_time if raw_batch_time is None else raw_batch_time
                )
            except SampleValidationError as e:
                result.rejected_count += 1
                result.errors.append(f"sample {index}: {e.message}")
                logger.warning(f"Rejected {schema.metric_type.value} sample {index}: {e.message}")
                continue
            prepared.append((timestamp, values, sample_batch_time))

        touched_days: Set[str] = set()
        async with self.store.write() as db:
            batch = IngestBatch(
                user_id=user_id,
                metric_type=schema.metric_type.value,
                batch_time=default_batch_time,
                count_received=len(samples),
            )
            db.add(batch)
            await db.flush()

            # Prefetch stored timestamps to minimize per-row queries
            existing = await self._stored_among(db, schema, user_id, {ts for ts, _, _ in prepared})

            for timestamp, values, sample_batch_time in prepared:
                if timestamp in existing:
                    result.duplicates_skipped += 1
                    continue
                # track within-batch duplicates
                existing.add(timestamp)

                db.add(MetricRecord(
                    user_id=user_id,
                    metric_type=schema.metric_type.value,
                    ingest_batch_id=batch.id,
                    timestamp=timestamp,
                    values=values,
                    batch_time=sample_batch_time,
                ))
                result.inserted_count += 1
                touched_days.add(day_key(timestamp, self.store.tz))

            batch.count_stored = result.inserted_count
            batch.count_duplicates = result.duplicates_skipped
            batch.count_rejected = result.rejected_count
            await db.flush()

            for day in sorted(touched_days):
                await self.aggregates.recompute_in_session(db, schema.metric_type, user_id, day)

        result.batch_id = batch.id
        result.affected_dates = sorted(touched_days)
        logger.info(
            f"{schema.metric_type.value} ingest complete: {result.inserted_count} stored, "
            f"{result.duplicates_skipped} duplicates, {result.rejected_count} rejected"
        )
        return result

    async def _stored_among(self, db, schema: MetricSchema, user_id: int, timestamps: Set[int]) -> Set[int]:
        found: Set[int] = set()
        ordered = sorted(timestamps)
        for i in range(0, len(ordered), _IN_CHUNK):
            chunk = ordered[i:i + _IN_CHUNK]
            rows = await db.execute(
                select(MetricRecord.timestamp).where(
                    MetricRecord.user_id == user_id,
                    MetricRecord.metric_type == schema.metric_type.value,
                    MetricRecord.timestamp.in_(chunk),
                )
            )
            found.update(rows.scalars().all())
        return found

    async def query_range(
        self,
        metric_type: Union[MetricType, str],
        start: int,
        end: int,
        user_id: Optional[int] = None,
    ) -> List[MetricRecord]:
        """Records with start <= timestamp < end, oldest first."""
        schema = get_schema(metric_type)
        async with self.store.read() as db:
            result = await db.execute(
                select(MetricRecord).where(
                    MetricRecord.user_id == self.store.resolve_user(user_id),
                    MetricRecord.metric_type == schema.metric_type.value,
                    MetricRecord.timestamp >= start,
                    MetricRecord.timestamp < end,
                ).order_by(MetricRecord.timestamp.asc())
            )
            return list(result.scalars().all())

    async def query_latest(
        self,
        metric_type: Union[MetricType, str],
        user_id: Optional[int] = None,
    ) -> Optional[MetricRecord]:
        schema = get_schema(metric_type)
        async with self.store.read() as db:
            result = await db.execute(
                select(MetricRecord).where(
                    MetricRecord.user_id == self.store.resolve_user(user_id),
                    MetricRecord.metric_type == schema.metric_type.value,
                ).order_by(MetricRecord.timestamp.desc()).limit(1)
            )
            return result.scalars().first()

    async def query_latest_batch(
        self,
        metric_type: Union[MetricType, str],
        user_id: Optional[int] = None,
    ) -> List[MetricRecord]:
        """Every record whose batch_time equals the newest batch_time, oldest first."""
        schema = get_schema(metric_type)
        user_id = self.store.resolve_user(user_id)
        scope = (
            MetricRecord.user_id == user_id,
            MetricRecord.metric_type == schema.metric_type.value,
        )
        newest = select(func.max(MetricRecord.batch_time)).where(*scope).scalar_subquery()

        async with self.store.read() as db:
            result = await db.execute(
                select(MetricRecord)
                .where(*scope, MetricRecord.batch_time == newest)
                .order_by(MetricRecord.timestamp.asc())
            )
            return list(result.scalars().all())

    async def latest_for_day(
        self,
        metric_type: Union[MetricType, str],
        day: DayLike,
        user_id: Optional[int] = None,
    ) -> Optional[MetricRecord]:
        start, end = day_bounds(day, self.store.tz)
        schema = get_schema(metric_type)
        async with self.store.read() as db:
            result = await db.execute(
                select(MetricRecord).where(
                    MetricRecord.user_id == self.store.resolve_user(user_id),
                    MetricRecord.metric_type == schema.metric_type.value,
                    MetricRecord.timestamp >= start,
                    MetricRecord.timestamp < end,
                ).order_by(MetricRecord.timestamp.desc()).limit(1)
            )
            return result.scalars().first()

    async def existing_timestamps(
        self,
        metric_type: Union[MetricType, str],
        user_id: Optional[int] = None,
    ) -> Set[int]:
        schema = get_schema(metric_type)
        async with self.store.read() as db:
            result = await db.execute(
                select(MetricRecord.timestamp).where(
                    MetricRecord.user_id == self.store.resolve_user(user_id),
                    MetricRecord.metric_type == schema.metric_type.value,
                )
            )
            return set(result.scalars().all())

    async def count(
        self,
        metric_type: Union[MetricType, str],
        user_id: Optional[int] = None,
    ) -> int:
        schema = get_schema(metric_type)
        async with self.store.read() as db:
            total = await db.scalar(
                select(func.count()).select_from(MetricRecord).where(
                    MetricRecord.user_id == self.store.resolve_user(user_id),
                    MetricRecord.metric_type == schema.metric_type.value,
                )
            )
            return total or 0

    async def purge(
        self,
        metric_type: Union[MetricType, str, None] = None,
        user_id: Optional[int] = None,
        include_unsynced: bool = False,
    ) -> int:
        """
        Bulk delete for resets and housekeeping. Only synced rows go unless
        include_unsynced is set; daily aggregates of the affected days are rebuilt
        from what remains. One transaction: cancelling it deletes nothing.
        """
        kinds = list(SAMPLE_METRICS) if metric_type is None else [get_schema(metric_type).metric_type]
        user_id = self.store.resolve_user(user_id)
        conditions = [
            MetricRecord.user_id == user_id,
            MetricRecord.metric_type.in_([kind.value for kind in kinds]),
        ]
        if not include_unsynced:
            conditions.append(MetricRecord.is_synced.is_(True))

        async with self.store.write() as db:
            doomed = await db.execute(select(MetricRecord.metric_type, MetricRecord.timestamp).where(*conditions))
            affected: Dict[str, Set[str]] = {}
            for kind, timestamp in doomed.all():
                affected.setdefault(kind, set()).add(day_key(timestamp, self.store.tz))

            result = await db.execute(delete(MetricRecord).where(*conditions))
            deleted = result.rowcount or 0

            for kind, days in affected.items():
                for day in sorted(days):
                    await self.aggregates.recompute_in_session(db, kind, user_id, day)

        logger.info(
            f"Purged {deleted} records for user {user_id} "
            f"({', '.join(k.value for k in kinds)}; include_unsynced={include_unsynced})"
        )
        return deleted
