from datetime import date
from typing import Dict, Optional

from vitalstore.core.config import settings
from vitalstore.database.connection import HealthStore
from vitalstore.enums import MetricType
from vitalstore.exceptions.errors import SampleValidationError, UnknownMetricError
from vitalstore.schemas.store_schemas import MetricRecordResponse
from vitalstore.services.daily_aggregate_service import DailyAggregateService
from vitalstore.services.metric_record_service import MetricRecordService
from vitalstore.services.metric_registry import coerce_metric_type, get_schema


class MetricController:
    """Read-only access to raw samples and their daily rollups."""

    @staticmethod
    async def get_records(
        store: HealthStore,
        metric_type: str,
        start: int,
        end: int,
        user_id: Optional[int] = None,
    ) -> Dict:
        if end <= start:
            raise SampleValidationError("end must be greater than start")
        schema = get_schema(metric_type)
        records = await MetricRecordService(store).query_range(schema.metric_type, start, end, user_id=user_id)
        return {
            "metric_type": schema.metric_type.value,
            "unit": schema.unit,
            "count": len(records),
            "records": [MetricRecordResponse.model_validate(r) for r in records],
        }

    @staticmethod
    async def get_latest(store: HealthStore, metric_type: str, user_id: Optional[int] = None) -> Dict:
        schema = get_schema(metric_type)
        record = await MetricRecordService(store).query_latest(schema.metric_type, user_id=user_id)
        return {
            "metric_type": schema.metric_type.value,
            "record": MetricRecordResponse.model_validate(record) if record else None,
        }

    @staticmethod
    async def get_latest_batch(store: HealthStore, metric_type: str, user_id: Optional[int] = None) -> Dict:
        schema = get_schema(metric_type)
        records = await MetricRecordService(store).query_latest_batch(schema.metric_type, user_id=user_id)
        return {
            "metric_type": schema.metric_type.value,
            "batch_time": records[0].batch_time if records else None,
            "records": [MetricRecordResponse.model_validate(r) for r in records],
        }

    @staticmethod
    async def get_daily(
        store: HealthStore,
        metric_type: str,
        start_date: date,
        end_date: date,
        fill_missing: bool = True,
        user_id: Optional[int] = None,
    ) -> Dict:
        kind = coerce_metric_type(metric_type)
        if kind == MetricType.ECG:
            raise UnknownMetricError(metric_type)
        if end_date < start_date:
            raise SampleValidationError("end_date must not be before start_date")
        if (end_date - start_date).days + 1 > settings.QUERY_MAX_DAYS:
            raise SampleValidationError(f"Date range exceeds {settings.QUERY_MAX_DAYS} days")

        days = await DailyAggregateService(store).query(
            user_id, kind, start_date, end_date, fill_missing=fill_missing
        )
        return {
            "metric_type": kind.value,
            "days": [
                {**day.model_dump(), "display_value": day.display("value")}
                for day in days
            ],
        }
