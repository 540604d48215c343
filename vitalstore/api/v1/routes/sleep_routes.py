from datetime import date
from fastapi import APIRouter, Depends, Query
from typing import Optional

from vitalstore.database.connection import HealthStore, get_store
from vitalstore.api.v1.controllers.sleep_controller import SleepController

router = APIRouter(prefix="/sleep", tags=["Sleep"])


@router.get("/sessions")
async def get_sleep_sessions(
    start: int = Query(..., ge=0, description="Session start lower bound, epoch seconds (inclusive)"),
    end: int = Query(..., gt=0, description="Session start upper bound, epoch seconds (exclusive)"),
    user_id: Optional[int] = Query(None),
    store: HealthStore = Depends(get_store),
):
    return await SleepController.get_sessions(store, start, end, user_id)


@router.get("/day/{day}")
async def get_sleep_for_day(
    day: date,
    user_id: Optional[int] = Query(None),
    store: HealthStore = Depends(get_store),
):
    """The grouped sleep period that ends on `day`."""
    return await SleepController.get_day(store, day, user_id)
