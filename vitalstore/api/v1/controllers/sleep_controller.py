from datetime import date
from typing import Dict, Optional

from vitalstore.database.connection import HealthStore
from vitalstore.exceptions.errors import SampleValidationError
from vitalstore.schemas.store_schemas import SleepSessionResponse
from vitalstore.services.sleep_session_service import SleepSessionService


class SleepController:

    @staticmethod
    async def get_sessions(store: HealthStore, start: int, end: int, user_id: Optional[int] = None) -> Dict:
        if end <= start:
            raise SampleValidationError("end must be greater than start")
        sessions = await SleepSessionService(store).query_by_date_range(user_id, start, end)
        return {
            "count": len(sessions),
            "sessions": [SleepSessionResponse.model_validate(s) for s in sessions],
        }

    @staticmethod
    async def get_day(store: HealthStore, day: date, user_id: Optional[int] = None) -> Dict:
        night = await SleepSessionService(store).sleep_for_day(user_id, day)
        return night.model_dump()
