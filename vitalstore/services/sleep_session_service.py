"""
Sleep Session Service
Stores ring sleep sessions together with their stage details and keeps the
daily sleep rollup in step with them.
"""

import time
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from vitalstore.core.logger import get_logger
from vitalstore.database.connection import HealthStore
from vitalstore.enums import MetricType
from vitalstore.exceptions.errors import (
    CascadeIntegrityError,
    DuplicateRecordError,
    RecordNotFoundError,
    SampleValidationError,
)
from vitalstore.models.ingest_batch import IngestBatch
from vitalstore.models.sleep_session import SleepDetail, SleepSession
from vitalstore.schemas.health_input import SleepDetailInputSchema, SleepSessionInputSchema
from vitalstore.schemas.store_schemas import IngestResult, SleepDayResponse, SleepSessionResponse
from vitalstore.services.daily_aggregate_service import DailyAggregateService
from vitalstore.utils.day_buckets import DayLike, day_bounds, day_key, day_of, parse_day

logger = get_logger("sleep_session_service")

# Sessions separated by at most this much belong to the same night
SLEEP_GAP_SECONDS = 12 * 60 * 60


def _coerce_session(session: Any, details: Optional[Iterable[Any]] = None) -> SleepSessionInputSchema:
    try:
        payload = SleepSessionInputSchema.model_validate(session)
        if details is not None:
            payload = payload.model_copy(
                update={"details": [SleepDetailInputSchema.model_validate(d) for d in details]}
            )
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(part) for part in first.get("loc", ()))
        raise SampleValidationError(f"Invalid sleep session ({where}): {first.get('msg')}") from e
    return payload


def group_sleep_periods(sessions: Iterable[SleepSession]) -> List[List[SleepSession]]:
    """Chain sessions, oldest first, whenever the gap to the previous one is <= 12h."""
    groups: List[List[SleepSession]] = []
    group_end = None
    for session in sorted(sessions, key=lambda s: s.start_time):
        if groups and session.start_time - group_end <= SLEEP_GAP_SECONDS:
            groups[-1].append(session)
            group_end = max(group_end, session.end_time)
        else:
            groups.append([session])
            group_end = session.end_time
    return groups


class SleepSessionService:
    """Sleep sessions and their owned stage details"""

    def __init__(self, store: HealthStore, aggregates: Optional[DailyAggregateService] = None):
        self.store = store
        self.aggregates = aggregates or DailyAggregateService(store)

    def _build(self, payload: SleepSessionInputSchema, user_id: int, batch_time: int) -> SleepSession:
        return SleepSession(
            user_id=user_id,
            statistic_time=payload.statistic_time,
            start_time=payload.start_time,
            end_time=payload.end_time,
            total_times=payload.resolved_total(),
            deep_sleep_times=payload.deep_sleep_times,
            light_sleep_times=payload.light_sleep_times,
            rem_sleep_times=payload.rem_sleep_times,
            wakeup_times=payload.wakeup_times,
            batch_time=batch_time,
            details=[
                SleepDetail(
                    start_time=detail.start_time,
                    end_time=detail.end_time,
                    duration=detail.resolved_duration(),
                    sleep_type=int(detail.sleep_type),
                )
                for detail in payload.details
            ],
        )

    async def create_session(
        self,
        session: Any,
        details: Optional[Iterable[Any]] = None,
        user_id: Optional[int] = None,
        batch_time: Optional[int] = None,
    ) -> str:
        """
        Insert one session with its details in a single transaction.
        An invalid detail fails the whole create; nothing is written.
        """
        payload = _coerce_session(session, details)
        user_id = self.store.resolve_user(user_id)
        batch_time = int(time.time()) if batch_time is None else batch_time

        async with self.store.write() as db:
            clash = await db.scalar(
                select(SleepSession.id).where(
                    SleepSession.user_id == user_id,
                    SleepSession.statistic_time == payload.statistic_time,
                )
            )
            if clash is not None:
                raise DuplicateRecordError(f"Sleep session {payload.statistic_time} already stored")

            entity = self._build(payload, user_id, batch_time)
            db.add(entity)
            await db.flush()
            await self.aggregates.recompute_in_session(
                db, MetricType.SLEEP, user_id, day_of(entity.end_time, self.store.tz)
            )

        logger.info(f"Created sleep session {entity.id} with {len(payload.details)} details for user {user_id}")
        return entity.id

    async def save_batch(
        self,
        sessions: Iterable[Any],
        user_id: Optional[int] = None,
        batch_time: Optional[int] = None,
    ) -> IngestResult:
        """Device re-delivery: sessions whose statistic_time is already stored are skipped."""
        sessions = list(sessions)
        user_id = self.store.resolve_user(user_id)
        batch_time = int(time.time()) if batch_time is None else batch_time
        result = IngestResult(metric_type=MetricType.SLEEP.value, total_received=len(sessions))
        if not sessions:
            return result

        payloads = []
        for index, raw in enumerate(sessions):
            try:
                payloads.append(_coerce_session(raw))
            except SampleValidationError as e:
                result.rejected_count += 1
                result.errors.append(f"session {index}: {e.message}")
                logger.warning(f"Rejected sleep session {index}: {e.message}")

        touched_days = set()
        async with self.store.write() as db:
            batch = IngestBatch(
                user_id=user_id,
                metric_type=MetricType.SLEEP.value,
                batch_time=batch_time,
                count_received=len(sessions),
            )
            db.add(batch)
            await db.flush()

            keys = {p.statistic_time for p in payloads}
            existing = set()
            if keys:
                rows = await db.execute(
                    select(SleepSession.statistic_time).where(
                        SleepSession.user_id == user_id,
                        SleepSession.statistic_time.in_(keys),
                    )
                )
                existing = set(rows.scalars().all())

            for payload in payloads:
                if payload.statistic_time in existing:
                    result.duplicates_skipped += 1
                    continue
                existing.add(payload.statistic_time)
                db.add(self._build(payload, user_id, batch_time))
                result.inserted_count += 1
                touched_days.add(day_key(payload.end_time, self.store.tz))

            batch.count_stored = result.inserted_count
            batch.count_duplicates = result.duplicates_skipped
            batch.count_rejected = result.rejected_count
            await db.flush()

            for day in sorted(touched_days):
                await self.aggregates.recompute_in_session(db, MetricType.SLEEP, user_id, day)

        result.batch_id = batch.id
        result.affected_dates = sorted(touched_days)
        logger.info(
            f"Sleep ingest complete: {result.inserted_count} stored, "
            f"{result.duplicates_skipped} duplicates, {result.rejected_count} rejected"
        )
        return result

    async def delete_session(self, session_id: str) -> bool:
        """
        Delete a session and, through the cascade, all of its details.
        Rolls back with CascadeIntegrityError if any detail survives.
        """
        async with self.store.write() as db:
            entity = (await db.execute(
                select(SleepSession)
                .options(selectinload(SleepSession.details))
                .where(SleepSession.id == session_id)
            )).scalar_one_or_none()
            if entity is None:
                return False

            user_id = entity.user_id
            day = day_of(entity.end_time, self.store.tz)
            await db.delete(entity)
            await db.flush()

            orphans = await db.scalar(
                select(func.count()).select_from(SleepDetail).where(SleepDetail.session_id == session_id)
            )
            if orphans:
                logger.error(f"Deleting sleep session {session_id} left {orphans} details behind")
                raise CascadeIntegrityError(f"Sleep session {session_id} still owns {orphans} details")

            await self.aggregates.recompute_in_session(db, MetricType.SLEEP, user_id, day)

        logger.info(f"Deleted sleep session {session_id}")
        return True

    async def purge(self, user_id: Optional[int] = None, include_unsynced: bool = False) -> int:
        """Delete a user's sessions (synced ones only by default) with their details."""
        user_id = self.store.resolve_user(user_id)
        conditions = [SleepSession.user_id == user_id]
        if not include_unsynced:
            conditions.append(SleepSession.is_synced.is_(True))

        async with self.store.write() as db:
            sessions = (await db.execute(
                select(SleepSession).options(selectinload(SleepSession.details)).where(*conditions)
            )).scalars().all()
            days = {day_key(s.end_time, self.store.tz) for s in sessions}
            for session in sessions:
                await db.delete(session)
            await db.flush()
            for day in sorted(days):
                await self.aggregates.recompute_in_session(db, MetricType.SLEEP, user_id, day)

        logger.info(f"Purged {len(sessions)} sleep sessions for user {user_id}")
        return len(sessions)

    async def get_session(self, session_id: str) -> Optional[SleepSession]:
        async with self.store.read() as db:
            result = await db.execute(
                select(SleepSession)
                .options(selectinload(SleepSession.details))
                .where(SleepSession.id == session_id)
            )
            return result.scalar_one_or_none()

    async def query_by_date_range(self, user_id: Optional[int], start: int, end: int) -> List[SleepSession]:
        """Sessions with start <= start_time < end, oldest first, details loaded."""
        async with self.store.read() as db:
            result = await db.execute(
                select(SleepSession)
                .options(selectinload(SleepSession.details))
                .where(
                    SleepSession.user_id == self.store.resolve_user(user_id),
                    SleepSession.start_time >= start,
                    SleepSession.start_time < end,
                )
                .order_by(SleepSession.start_time.asc())
            )
            return list(result.scalars().all())

    async def details_for_sessions(self, session_ids: Iterable[str]) -> List[SleepDetail]:
        ids = list(session_ids)
        if not ids:
            return []
        async with self.store.read() as db:
            result = await db.execute(
                select(SleepDetail)
                .where(SleepDetail.session_id.in_(ids))
                .order_by(SleepDetail.start_time.asc())
            )
            return list(result.scalars().all())

    async def sleep_for_day(self, user_id: Optional[int], day: DayLike) -> SleepDayResponse:
        """The night that ends on `day`: the session group whose last session ends that day."""
        user_id = self.store.resolve_user(user_id)
        day = parse_day(day)
        _, day_end = day_bounds(day, self.store.tz)

        async with self.store.read() as db:
            result = await db.execute(
                select(SleepSession)
                .options(selectinload(SleepSession.details))
                .where(SleepSession.user_id == user_id, SleepSession.start_time < day_end)
                .order_by(SleepSession.start_time.asc())
            )
            sessions = list(result.scalars().all())

        for group in reversed(group_sleep_periods(sessions)):
            last_end = max(s.end_time for s in group)
            if day_of(last_end, self.store.tz) == day:
                return SleepDayResponse(
                    date=day.isoformat(),
                    sessions=[SleepSessionResponse.model_validate(s) for s in group],
                    total_times=sum(s.total_times for s in group),
                    deep_sleep_times=sum(s.deep_sleep_times for s in group),
                    light_sleep_times=sum(s.light_sleep_times for s in group),
                    rem_sleep_times=sum(s.rem_sleep_times for s in group),
                    wakeup_times=sum(s.wakeup_times for s in group),
                )
        return SleepDayResponse(date=day.isoformat())

    async def verify_session(self, session_id: str, tolerance_s: int = 60) -> Dict[str, int]:
        """Stage totals that disagree with the summed details, keyed by stage name."""
        entity = await self.get_session(session_id)
        if entity is None:
            raise RecordNotFoundError(f"Sleep session {session_id} not found")
        return {stage.name.lower(): delta for stage, delta in entity.stage_discrepancies(tolerance_s).items()}

    async def recompute_daily(self, user_id: Optional[int], day: DayLike):
        return await self.aggregates.recompute(MetricType.SLEEP, user_id, day)
