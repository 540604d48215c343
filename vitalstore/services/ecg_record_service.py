"""
ECG Record Service
One row per measurement keyed by its local timestamp string. Waveforms are
stored encoded and only decoded when a caller asks for them.
"""

from typing import Any, List, Optional

from pydantic import ValidationError
from sqlalchemy import delete, select, update

from vitalstore.core.logger import get_logger
from vitalstore.database.connection import HealthStore
from vitalstore.enums import ECGDiagnosis
from vitalstore.exceptions.errors import DuplicateRecordError, RecordNotFoundError, SampleValidationError
from vitalstore.models.ecg_record import ECGRecord
from vitalstore.schemas.health_input import ECGRecordInputSchema
from vitalstore.utils.waveform_codec import decode_waveform, encode_waveform

logger = get_logger("ecg_record_service")


def _coerce_record(record: Any) -> ECGRecordInputSchema:
    try:
        payload = ECGRecordInputSchema.model_validate(record)
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(part) for part in first.get("loc", ()))
        raise SampleValidationError(f"Invalid ECG record ({where}): {first.get('msg')}") from e
    if payload.diagnose_type == ECGDiagnosis.FAILED:
        raise SampleValidationError("Failed ECG measurements (diagnose_type 0) are not stored")
    return payload


class ECGRecordService:
    """ECG measurements with lazily decoded waveforms"""

    def __init__(self, store: HealthStore):
        self.store = store

    async def save_record(self, record: Any, user_id: Optional[int] = None) -> ECGRecord:
        payload = _coerce_record(record)
        blob = encode_waveform(payload.waveform)

        async with self.store.write() as db:
            clash = await db.scalar(select(ECGRecord.timestamp).where(ECGRecord.timestamp == payload.timestamp))
            if clash is not None:
                raise DuplicateRecordError(f"ECG record {payload.timestamp} already stored")

            fields = payload.model_dump(exclude={"waveform", "diagnose_type"})
            entity = ECGRecord(
                **fields,
                user_id=self.store.resolve_user(user_id),
                diagnose_type=int(payload.diagnose_type),
                sample_count=len(payload.waveform),
                waveform=blob,
            )
            db.add(entity)

        logger.info(
            f"Saved ECG record {payload.timestamp}: {payload.diagnose_type.label}, "
            f"{len(payload.waveform)} samples"
        )
        return entity

    async def fetch_all(self, user_id: Optional[int] = None) -> List[ECGRecord]:
        """Newest first, without waveforms."""
        async with self.store.read() as db:
            result = await db.execute(
                select(ECGRecord)
                .where(ECGRecord.user_id == self.store.resolve_user(user_id))
                .order_by(ECGRecord.timestamp.desc())
            )
            return list(result.scalars().all())

    async def fetch_record(self, timestamp: str) -> Optional[ECGRecord]:
        async with self.store.read() as db:
            return await db.get(ECGRecord, timestamp)

    async def fetch_waveform(self, timestamp: str) -> List[int]:
        async with self.store.read() as db:
            result = await db.execute(select(ECGRecord.waveform).where(ECGRecord.timestamp == timestamp))
            row = result.first()
        if row is None:
            raise RecordNotFoundError(f"ECG record {timestamp} not found")
        return decode_waveform(row[0])

    async def fetch_unsynced(self, user_id: Optional[int] = None) -> List[ECGRecord]:
        """Oldest first."""
        async with self.store.read() as db:
            result = await db.execute(
                select(ECGRecord)
                .where(
                    ECGRecord.user_id == self.store.resolve_user(user_id),
                    ECGRecord.is_synced.is_(False),
                )
                .order_by(ECGRecord.timestamp.asc())
            )
            return list(result.scalars().all())

    async def _set_synced(self, timestamp: str, synced: bool) -> bool:
        async with self.store.write() as db:
            result = await db.execute(
                update(ECGRecord).where(ECGRecord.timestamp == timestamp).values(is_synced=synced)
            )
            return (result.rowcount or 0) > 0

    async def mark_synced(self, timestamp: str) -> bool:
        return await self._set_synced(timestamp, True)

    async def mark_unsynced(self, timestamp: str) -> bool:
        return await self._set_synced(timestamp, False)

    async def delete_record(self, timestamp: str) -> bool:
        async with self.store.write() as db:
            result = await db.execute(delete(ECGRecord).where(ECGRecord.timestamp == timestamp))
            deleted = (result.rowcount or 0) > 0
        if deleted:
            logger.info(f"Deleted ECG record {timestamp}")
        return deleted

    async def delete_all(self, user_id: Optional[int] = None, include_unsynced: bool = True) -> int:
        conditions = [ECGRecord.user_id == self.store.resolve_user(user_id)]
        if not include_unsynced:
            conditions.append(ECGRecord.is_synced.is_(True))
        async with self.store.write() as db:
            result = await db.execute(delete(ECGRecord).where(*conditions))
            deleted = result.rowcount or 0
        logger.info(f"Deleted {deleted} ECG records")
        return deleted
