from typing import Optional

from vitalstore.database.connection import HealthStore
from vitalstore.schemas.store_schemas import SyncStatusResponse
from vitalstore.services.sync_tracker_service import SyncTrackerService


class SyncController:

    @staticmethod
    async def get_status(store: HealthStore, user_id: Optional[int] = None) -> SyncStatusResponse:
        pending = await SyncTrackerService(store).pending_counts(user_id)
        return SyncStatusResponse(
            user_id=store.resolve_user(user_id),
            pending=pending,
            total_pending=sum(pending.values()),
        )
