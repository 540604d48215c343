"""
Sync State Tracker
Exposes which records still need uploading and flips the synced watermark
once the remote side has accepted them. Retrying is the caller's business.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Union

from sqlalchemy import func, select, update
from sqlalchemy.orm import selectinload, undefer

from vitalstore.core.config import settings
from vitalstore.core.logger import get_logger
from vitalstore.database.connection import HealthStore
from vitalstore.enums import MetricType
from vitalstore.models.ecg_record import ECGRecord
from vitalstore.models.metric_record import MetricRecord
from vitalstore.models.sleep_session import SleepSession
from vitalstore.services.metric_registry import SAMPLE_METRICS, coerce_metric_type, get_schema

logger = get_logger("sync_tracker_service")

_IN_CHUNK = 500


class SyncTrackerService:

    def __init__(self, store: HealthStore):
        self.store = store

    async def pending_records(
        self,
        metric_type: Union[MetricType, str],
        limit: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> List[Union[MetricRecord, SleepSession, ECGRecord]]:
        """
        Unsynced records of one kind, oldest first. Sleep sessions come with
        their details and ECG records with their waveform blob loaded, since
        both are needed to build an upload.
        """
        kind = coerce_metric_type(metric_type)
        limit = settings.SYNC_BATCH_LIMIT if limit is None else limit
        if limit <= 0:
            return []
        user_id = self.store.resolve_user(user_id)

        if kind == MetricType.SLEEP:
            stmt = (
                select(SleepSession)
                .options(selectinload(SleepSession.details))
                .where(SleepSession.user_id == user_id, SleepSession.is_synced.is_(False))
                .order_by(SleepSession.statistic_time.asc(), SleepSession.id.asc())
            )
        elif kind == MetricType.ECG:
            stmt = (
                select(ECGRecord)
                .options(undefer(ECGRecord.waveform))
                .where(ECGRecord.user_id == user_id, ECGRecord.is_synced.is_(False))
                .order_by(ECGRecord.timestamp.asc())
            )
        else:
            schema = get_schema(kind)
            stmt = (
                select(MetricRecord)
                .where(
                    MetricRecord.user_id == user_id,
                    MetricRecord.metric_type == schema.metric_type.value,
                    MetricRecord.is_synced.is_(False),
                )
                .order_by(MetricRecord.timestamp.asc(), MetricRecord.id.asc())
            )

        async with self.store.read() as db:
            result = await db.execute(stmt.limit(limit))
            return list(result.scalars().all())

    async def mark_synced(self, ids: Iterable[str]) -> int:
        """
        Flag records as uploaded. Ids may mix metric record ids, sleep session
        ids and ECG timestamps; unknown or already synced ids are ignored.
        Returns how many records changed state.
        """
        ids = sorted({str(i) for i in ids if i is not None})
        if not ids:
            return 0

        marked = 0
        now = datetime.utcnow()
        async with self.store.write() as db:
            for i in range(0, len(ids), _IN_CHUNK):
                chunk = ids[i:i + _IN_CHUNK]
                for key_column, model in (
                    (MetricRecord.id, MetricRecord),
                    (SleepSession.id, SleepSession),
                    (ECGRecord.timestamp, ECGRecord),
                ):
                    result = await db.execute(
                        update(model)
                        .where(key_column.in_(chunk), model.is_synced.is_(False))
                        .values(is_synced=True, updated_at=now)
                        .execution_options(synchronize_session=False)
                    )
                    marked += result.rowcount or 0

        logger.info(f"Marked {marked} of {len(ids)} records as synced")
        return marked

    async def pending_counts(self, user_id: Optional[int] = None) -> Dict[str, int]:
        """Unsynced totals per record kind, zero included."""
        user_id = self.store.resolve_user(user_id)
        counts = {kind.value: 0 for kind in SAMPLE_METRICS}

        async with self.store.read() as db:
            rows = await db.execute(
                select(MetricRecord.metric_type, func.count())
                .where(MetricRecord.user_id == user_id, MetricRecord.is_synced.is_(False))
                .group_by(MetricRecord.metric_type)
            )
            for kind, total in rows.all():
                counts[kind] = total

            counts[MetricType.SLEEP.value] = await db.scalar(
                select(func.count()).select_from(SleepSession).where(
                    SleepSession.user_id == user_id, SleepSession.is_synced.is_(False)
                )
            ) or 0
            counts[MetricType.ECG.value] = await db.scalar(
                select(func.count()).select_from(ECGRecord).where(
                    ECGRecord.user_id == user_id, ECGRecord.is_synced.is_(False)
                )
            ) or 0

        return counts
