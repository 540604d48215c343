from typing import Dict, Optional

from vitalstore.database.connection import HealthStore
from vitalstore.exceptions.errors import RecordNotFoundError
from vitalstore.schemas.store_schemas import ECGRecordResponse
from vitalstore.services.ecg_record_service import ECGRecordService


class ECGController:

    @staticmethod
    async def list_records(store: HealthStore, user_id: Optional[int] = None) -> Dict:
        records = await ECGRecordService(store).fetch_all(user_id=user_id)
        return {
            "count": len(records),
            "records": [ECGRecordResponse.from_record(r) for r in records],
        }

    @staticmethod
    async def get_record(store: HealthStore, timestamp: str, include_waveform: bool = False) -> Dict:
        service = ECGRecordService(store)
        record = await service.fetch_record(timestamp)
        if record is None:
            raise RecordNotFoundError(f"ECG record {timestamp} not found")

        waveform = await service.fetch_waveform(timestamp) if include_waveform else None
        response = ECGRecordResponse.from_record(record, waveform=waveform)
        return {
            **response.model_dump(),
            "diagnosis": record.diagnosis.label,
            "is_abnormal": record.diagnosis.is_abnormal,
        }
