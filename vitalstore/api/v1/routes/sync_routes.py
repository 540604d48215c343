from fastapi import APIRouter, Depends, Query
from typing import Optional

from vitalstore.database.connection import HealthStore, get_store
from vitalstore.api.v1.controllers.sync_controller import SyncController

router = APIRouter(prefix="/sync", tags=["Sync"])


@router.get("/status")
async def get_sync_status(
    user_id: Optional[int] = Query(None),
    store: HealthStore = Depends(get_store),
):
    """Records still waiting for upload, per kind."""
    return await SyncController.get_status(store, user_id)
