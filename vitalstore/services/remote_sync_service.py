"""
Remote Sync Service
Pushes pending records of one kind to the backend REST API and marks what the
server accepted. No retries or backoff: a failed push leaves records pending
for the next call.

Endpoints (relative to SYNC_API_BASE_URL):
    SYNC_METRIC_ENDPOINT : {"user_id", "type", "values": [{"value", "timestamp"}]}
    SYNC_ECG_ENDPOINT    : {"userId", "type": "ECG", "records": [...]}
    SYNC_SLEEP_ENDPOINT  : {"user_id", "sessions": [...]}

A 2xx response acknowledges every uploaded record unless its JSON body lists
a subset under data.acknowledged (metric timestamps, ECG timestamps or sleep
statistic times), in which case only that subset is marked.
"""

from typing import Any, Dict, List, Optional, Tuple, Union

import httpx

from vitalstore.core.config import settings
from vitalstore.core.logger import get_logger
from vitalstore.database.connection import HealthStore
from vitalstore.enums import MetricType, SleepStage
from vitalstore.schemas.store_schemas import SyncPushResult
from vitalstore.services.metric_registry import SAMPLE_METRICS, coerce_metric_type, get_schema
from vitalstore.services.sync_tracker_service import SyncTrackerService
from vitalstore.utils.day_buckets import to_local

logger = get_logger("remote_sync_service")


class RemoteSyncService:

    def __init__(
        self,
        store: HealthStore,
        http_client: Optional[httpx.AsyncClient] = None,
        tracker: Optional[SyncTrackerService] = None,
        base_url: Optional[str] = None,
        api_token: Optional[str] = None,
    ):
        """
        Args:
            store:       Open health store.
            http_client: Optional pre-configured httpx client (for testing).
            tracker:     Sync tracker; one is built on the store when omitted.
            base_url:    Backend base URL (SYNC_API_BASE_URL).
            api_token:   Bearer token (SYNC_API_TOKEN).
        """
        self.store = store
        self.tracker = tracker or SyncTrackerService(store)
        self._http_client = http_client
        self._base_url = base_url or settings.SYNC_API_BASE_URL
        self._api_token = api_token if api_token is not None else settings.SYNC_API_TOKEN

    def _url(self, endpoint: str) -> str:
        return f"{self._base_url.rstrip('/')}/{endpoint.lstrip('/')}"

    def _build_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self._api_token:
            headers["Authorization"] = f"Bearer {self._api_token}"
        return headers

    async def _post(self, url: str, payload: Dict[str, Any]) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.post(url, json=payload, headers=self._build_headers())
        async with httpx.AsyncClient(timeout=settings.SYNC_TIMEOUT_SECONDS) as client:
            return await client.post(url, json=payload, headers=self._build_headers())

    def _metric_payload(self, kind: MetricType, records, user_id: int) -> Tuple[Dict[str, Any], Dict[str, str]]:
        schema = get_schema(kind)
        values = []
        refs = {}
        for record in records:
            values.append({"value": schema.format_upload_value(record.values), "timestamp": record.timestamp})
            refs[str(record.timestamp)] = record.id
        return {"user_id": user_id, "type": kind.value, "values": values}, refs

    def _ecg_payload(self, records, user_id: int) -> Tuple[Dict[str, Any], Dict[str, str]]:
        uploads = []
        for record in records:
            uploads.append({
                "timestamp": record.timestamp,
                "ecgData": record.decode_waveform(),
                "heartRate": record.heart_rate,
                "sbp": record.sbp,
                "dbp": record.dbp,
                "hrv": float(record.hrv),
                "diagnose_type": record.diagnose_type,
                "is_afib": 1 if record.is_afib else 0,
                "hrv_index": float(record.hrv_index),
                "load_index": float(record.load_index),
                "pressure_index": float(record.pressure_index),
                "body_index": float(record.body_index),
                "respiratory_index": float(record.respiratory_rate),
                "sym_para_index": float(record.sym_para_index),
                "flag": record.flag,
            })
        refs = {record.timestamp: record.timestamp for record in records}
        return {"userId": user_id, "type": "ECG", "records": uploads}, refs

    def _sleep_payload(self, sessions, user_id: int) -> Tuple[Dict[str, Any], Dict[str, str]]:
        uploads = []
        for session in sessions:
            start = to_local(session.start_time, self.store.tz)
            end = to_local(session.end_time, self.store.tz)
            uploads.append({
                "statisticTime": session.statistic_time,
                "startSleepHour": start.hour,
                "startSleepMinute": start.minute,
                "endSleepHour": end.hour,
                "endSleepMinute": end.minute,
                "totalTimes": session.total_times,
                "deepSleepTimes": session.deep_sleep_times,
                "lightSleepTimes": session.light_sleep_times,
                "wakeupTimes": session.wakeup_times,
                "sleepDetailList": [
                    {
                        "startTime": detail.start_time,
                        "endTime": detail.end_time,
                        "sleepType": SleepStage(detail.sleep_type).api_code,
                    }
                    for detail in session.details
                ],
            })
        refs = {str(session.statistic_time): session.id for session in sessions}
        return {"user_id": user_id, "sessions": uploads}, refs

    @staticmethod
    def _acknowledged(response: httpx.Response, refs: Dict[str, str]) -> List[str]:
        try:
            body = response.json()
        except ValueError:
            return list(refs.values())
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict) or not isinstance(data.get("acknowledged"), list):
            return list(refs.values())
        return [refs[str(ref)] for ref in data["acknowledged"] if str(ref) in refs]

    async def push(
        self,
        metric_type: Union[MetricType, str],
        limit: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> SyncPushResult:
        kind = coerce_metric_type(metric_type)
        user_id = self.store.resolve_user(user_id)
        records = await self.tracker.pending_records(kind, limit, user_id=user_id)
        result = SyncPushResult(kind=kind.value, attempted=len(records))
        if not records:
            return result

        if kind == MetricType.ECG:
            payload, refs = self._ecg_payload(records, user_id)
            endpoint = settings.SYNC_ECG_ENDPOINT
        elif kind == MetricType.SLEEP:
            payload, refs = self._sleep_payload(records, user_id)
            endpoint = settings.SYNC_SLEEP_ENDPOINT
        else:
            payload, refs = self._metric_payload(kind, records, user_id)
            endpoint = settings.SYNC_METRIC_ENDPOINT

        url = self._url(endpoint)
        logger.info(f"Uploading {len(records)} {kind.value} records to {url}")
        try:
            response = await self._post(url, payload)
        except httpx.HTTPError as e:
            logger.error(f"Upload of {kind.value} failed: {repr(e)}")
            result.error = f"{type(e).__name__}: {e}"
            return result

        result.status_code = response.status_code
        if not response.is_success:
            logger.warning(f"Upload of {kind.value} rejected with HTTP {response.status_code}")
            result.error = f"HTTP {response.status_code}"
            return result

        acknowledged = self._acknowledged(response, refs)
        result.acknowledged = len(acknowledged)
        result.marked_synced = await self.tracker.mark_synced(acknowledged)
        logger.info(
            f"Upload of {kind.value} accepted: {result.acknowledged}/{result.attempted} acknowledged, "
            f"{result.marked_synced} newly marked"
        )
        return result

    async def push_all(self, user_id: Optional[int] = None) -> List[SyncPushResult]:
        """One push per record kind; a failing kind does not stop the others."""
        results = []
        for kind in (*SAMPLE_METRICS, MetricType.SLEEP, MetricType.ECG):
            results.append(await self.push(kind, user_id=user_id))
        return results
