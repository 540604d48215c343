"""
Calendar-day bucketing for epoch-second timestamps.
Day keys are ISO dates (YYYY-MM-DD) in the store's bucket timezone.
"""

from datetime import date, datetime, time, timedelta
from typing import Iterator, Tuple, Union

import pytz

from vitalstore.core.config import settings
from vitalstore.exceptions.errors import SampleValidationError

ECG_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# 9999-12-31T23:59:59Z; anything later cannot be bucketed
MAX_TIMESTAMP = 253402300799

DayLike = Union[date, str]


def bucket_timezone(name: str = None):
    try:
        return pytz.timezone(name or settings.DAY_BUCKET_TIMEZONE)
    except pytz.UnknownTimeZoneError as e:
        raise SampleValidationError(f"Unknown day bucket timezone: {e}") from e


def parse_day(value: DayLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise SampleValidationError(f"Invalid day '{value}', expected YYYY-MM-DD") from e


def to_local(timestamp: int, tz) -> datetime:
    return datetime.fromtimestamp(timestamp, tz)


def day_of(timestamp: int, tz) -> date:
    return to_local(timestamp, tz).date()


def day_key(timestamp: int, tz) -> str:
    return day_of(timestamp, tz).isoformat()


def _start_of_day(day: date, tz) -> datetime:
    """
    First instant whose local date is `day`. Midnight can be skipped or repeated
    by a DST change, so both readings are normalized and the earliest one that
    still falls on `day` wins.
    """
    midnight = datetime.combine(day, time.min)
    readings = [tz.normalize(tz.localize(midnight, is_dst=flag)) for flag in (True, False)]
    return min(moment for moment in readings if moment.date() == day)


def day_bounds(day: DayLike, tz) -> Tuple[int, int]:
    """Epoch-second range [start, end) covering the calendar day in `tz`."""
    day = parse_day(day)
    start = _start_of_day(day, tz)
    end = _start_of_day(day + timedelta(days=1), tz)
    return int(start.timestamp()), int(end.timestamp())


def iter_days(start_day: DayLike, end_day: DayLike) -> Iterator[date]:
    """Inclusive on both ends."""
    current, last = parse_day(start_day), parse_day(end_day)
    while current <= last:
        yield current
        current += timedelta(days=1)


def format_ecg_timestamp(moment: datetime) -> str:
    return moment.strftime(ECG_TIMESTAMP_FORMAT)


def parse_ecg_timestamp(value: str) -> datetime:
    try:
        return datetime.strptime(value, ECG_TIMESTAMP_FORMAT)
    except (TypeError, ValueError) as e:
        raise SampleValidationError(
            f"Invalid ECG timestamp '{value}', expected YYYY-MM-DD HH:MM:SS"
        ) from e
