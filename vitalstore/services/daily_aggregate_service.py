"""
Daily Aggregate Service
Rebuilds per-day rollups from raw data. Rows are always recomputed from
scratch for the whole day, never patched incrementally.
"""

import time
from typing import List, Optional, Tuple, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vitalstore.core.logger import get_logger
from vitalstore.database.connection import HealthStore
from vitalstore.enums import MetricType
from vitalstore.models.daily_aggregate import DailyAggregate
from vitalstore.models.metric_record import MetricRecord
from vitalstore.models.sleep_session import SleepSession
from vitalstore.schemas.store_schemas import DailyAggregateResponse
from vitalstore.services.metric_registry import coerce_metric_type, get_schema
from vitalstore.utils.day_buckets import DayLike, day_bounds, iter_days, parse_day

logger = get_logger("daily_aggregate_service")


class DailyAggregateService:
    """Owns the daily_aggregates table for every metric type and for sleep"""

    def __init__(self, store: HealthStore):
        self.store = store

    async def recompute(
        self,
        metric_type: Union[MetricType, str],
        user_id: Optional[int],
        day: DayLike,
    ) -> Optional[DailyAggregate]:
        async with self.store.write() as db:
            return await self.recompute_in_session(db, metric_type, user_id, day)

    async def recompute_range(
        self,
        metric_type: Union[MetricType, str],
        user_id: Optional[int],
        start_day: DayLike,
        end_day: DayLike,
    ) -> int:
        """
        Rebuild every day in [start_day, end_day] inside one transaction.
        Returns the number of days that ended up with a row.
        """
        days = list(iter_days(start_day, end_day))
        logger.info(f"Recomputing {len(days)} days of {metric_type} for user {user_id}")

        with_data = 0
        async with self.store.write() as db:
            for day in days:
                row = await self.recompute_in_session(db, metric_type, user_id, day)
                if row is not None:
                    with_data += 1
        return with_data

    async def recompute_in_session(
        self,
        db: AsyncSession,
        metric_type: Union[MetricType, str],
        user_id: Optional[int],
        day: DayLike,
    ) -> Optional[DailyAggregate]:
        """Recompute one day inside the caller's write transaction."""
        kind = coerce_metric_type(metric_type)
        user_id = self.store.resolve_user(user_id)
        day = parse_day(day)
        start, end = day_bounds(day, self.store.tz)

        if kind == MetricType.SLEEP:
            stats, sample_count = await self._sleep_stats(db, user_id, start, end)
            value = stats.get("total_sleep_minutes")
            secondary = stats.get("deep_sleep_minutes")
        else:
            schema = get_schema(kind)
            result = await db.execute(
                select(MetricRecord.values).where(
                    MetricRecord.user_id == user_id,
                    MetricRecord.metric_type == kind.value,
                    MetricRecord.timestamp >= start,
                    MetricRecord.timestamp < end,
                )
            )
            rows = list(result.scalars().all())
            stats = schema.aggregate(rows)
            sample_count = len(rows)
            value, secondary = schema.headline_values(stats)

        existing = (await db.execute(
            select(DailyAggregate).where(
                DailyAggregate.user_id == user_id,
                DailyAggregate.metric_type == kind.value,
                DailyAggregate.date == day.isoformat(),
            )
        )).scalar_one_or_none()

        if sample_count == 0:
            if existing is not None:
                await db.delete(existing)
                await db.flush()
            return None

        if existing is None:
            existing = DailyAggregate(user_id=user_id, metric_type=kind.value, date=day.isoformat())
            db.add(existing)

        existing.value = value
        existing.secondary_value = secondary
        existing.stats = stats
        existing.sample_count = sample_count
        existing.last_updated = int(time.time())
        await db.flush()
        return existing

    async def _sleep_stats(self, db: AsyncSession, user_id: int, start: int, end: int) -> Tuple[dict, int]:
        # Sessions count toward the day they end on
        result = await db.execute(
            select(SleepSession).where(
                SleepSession.user_id == user_id,
                SleepSession.end_time >= start,
                SleepSession.end_time < end,
            )
        )
        sessions = list(result.scalars().all())
        if not sessions:
            return {}, 0

        deep = sum(s.deep_sleep_times or 0 for s in sessions)
        light = sum(s.light_sleep_times or 0 for s in sessions)
        rem = sum(s.rem_sleep_times or 0 for s in sessions)
        awake = sum(s.wakeup_times or 0 for s in sessions)
        total = sum(s.total_times or 0 for s in sessions)
        stats = {
            "deep_sleep_minutes": deep // 60,
            "light_sleep_minutes": light // 60,
            "rem_sleep_minutes": rem // 60,
            "awake_minutes": awake // 60,
            "total_sleep_minutes": total // 60,
            "session_count": len(sessions),
        }
        return stats, len(sessions)

    async def query(
        self,
        user_id: Optional[int],
        metric_type: Union[MetricType, str],
        start_day: DayLike,
        end_day: DayLike,
        fill_missing: bool = False,
    ) -> List[DailyAggregateResponse]:
        """
        Aggregates for [start_day, end_day], ascending by date. With fill_missing,
        days that have no row come back as has_data=False placeholders.
        """
        kind = coerce_metric_type(metric_type)
        user_id = self.store.resolve_user(user_id)
        first, last = parse_day(start_day), parse_day(end_day)

        async with self.store.read() as db:
            result = await db.execute(
                select(DailyAggregate).where(
                    DailyAggregate.user_id == user_id,
                    DailyAggregate.metric_type == kind.value,
                    DailyAggregate.date >= first.isoformat(),
                    DailyAggregate.date <= last.isoformat(),
                ).order_by(DailyAggregate.date.asc())
            )
            rows = [DailyAggregateResponse.model_validate(row) for row in result.scalars().all()]

        if not fill_missing:
            return rows

        by_date = {row.date: row for row in rows}
        return [
            by_date.get(day.isoformat()) or DailyAggregateResponse.no_data(user_id, kind.value, day.isoformat())
            for day in iter_days(first, last)
        ]

    async def get_day(
        self,
        user_id: Optional[int],
        metric_type: Union[MetricType, str],
        day: DayLike,
    ) -> DailyAggregateResponse:
        rows = await self.query(user_id, metric_type, day, day, fill_missing=True)
        return rows[0]
