from datetime import date
from fastapi import APIRouter, Depends, Query
from typing import Optional

from vitalstore.database.connection import HealthStore, get_store
from vitalstore.api.v1.controllers.metric_controller import MetricController

router = APIRouter(prefix="/metrics", tags=["Metrics"])


@router.get("/{metric_type}/records")
async def get_metric_records(
    metric_type: str,
    start: int = Query(..., ge=0, description="Range start, epoch seconds (inclusive)"),
    end: int = Query(..., gt=0, description="Range end, epoch seconds (exclusive)"),
    user_id: Optional[int] = Query(None, description="Defaults to the ring owner"),
    store: HealthStore = Depends(get_store),
):
    """Raw samples of one metric in a time range, oldest first."""
    return await MetricController.get_records(store, metric_type, start, end, user_id)


@router.get("/{metric_type}/latest")
async def get_latest_metric_record(
    metric_type: str,
    user_id: Optional[int] = Query(None),
    store: HealthStore = Depends(get_store),
):
    return await MetricController.get_latest(store, metric_type, user_id)


@router.get("/{metric_type}/latest-batch")
async def get_latest_metric_batch(
    metric_type: str,
    user_id: Optional[int] = Query(None),
    store: HealthStore = Depends(get_store),
):
    """Every sample delivered with the most recent batch_time."""
    return await MetricController.get_latest_batch(store, metric_type, user_id)


@router.get("/{metric_type}/daily")
async def get_daily_aggregates(
    metric_type: str,
    start_date: date = Query(..., description="First day, YYYY-MM-DD"),
    end_date: date = Query(..., description="Last day, YYYY-MM-DD (inclusive)"),
    fill_missing: bool = Query(True, description="Return days without data as '--' placeholders"),
    user_id: Optional[int] = Query(None),
    store: HealthStore = Depends(get_store),
):
    """
    Daily rollups for a metric (or `sleep`).
    Days without data have has_data=false and display_value "--".
    """
    return await MetricController.get_daily(store, metric_type, start_date, end_date, fill_missing, user_id)
