from fastapi import APIRouter, Depends, Query
from typing import Optional

from vitalstore.database.connection import HealthStore, get_store
from vitalstore.api.v1.controllers.ecg_controller import ECGController

router = APIRouter(prefix="/ecg", tags=["ECG"])


@router.get("/records")
async def list_ecg_records(
    user_id: Optional[int] = Query(None),
    store: HealthStore = Depends(get_store),
):
    """ECG summaries, newest first. Waveforms are not included."""
    return await ECGController.list_records(store, user_id)


@router.get("/records/{timestamp}")
async def get_ecg_record(
    timestamp: str,
    include_waveform: bool = Query(False, description="Decode and return the raw samples"),
    store: HealthStore = Depends(get_store),
):
    return await ECGController.get_record(store, timestamp, include_waveform)
