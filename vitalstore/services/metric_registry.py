"""
Metric schema descriptors.

Every sample metric the ring reports is described once here: its fields,
their numeric kind and plausible bounds, which statistics the daily rollup
computes, and how a record is rendered for upload. The record store, the
aggregate store and the uploader are all driven by these descriptors.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from vitalstore.enums import Aggregation, MetricType
from vitalstore.exceptions.errors import SampleValidationError, UnknownMetricError
from vitalstore.utils.day_buckets import MAX_TIMESTAMP

Number = Union[int, float]


@dataclass(frozen=True)
class FieldSpec:
    name: str
    integer: bool = True
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    aggregations: Tuple[Aggregation, ...] = (Aggregation.MIN_MAX_AVG,)
    required: bool = True

    def coerce(self, raw: Any) -> Number:
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise SampleValidationError(f"Field '{self.name}' must be numeric, got {raw!r}")
        if not math.isfinite(raw):
            raise SampleValidationError(f"Field '{self.name}' is not finite: {raw}")
        if self.min_value is not None and raw < self.min_value:
            raise SampleValidationError(f"Field '{self.name}' below {self.min_value}: {raw}")
        if self.max_value is not None and raw > self.max_value:
            raise SampleValidationError(f"Field '{self.name}' above {self.max_value}: {raw}")
        if self.integer:
            if isinstance(raw, float) and not raw.is_integer():
                raise SampleValidationError(f"Field '{self.name}' must be a whole number, got {raw}")
            return int(raw)
        return float(raw)


@dataclass(frozen=True)
class MetricSchema:
    metric_type: MetricType
    fields: Tuple[FieldSpec, ...]
    headline: Tuple[str, ...]  # stat keys copied into value / secondary_value
    unit: str = ""

    @property
    def field_names(self) -> List[str]:
        return [spec.name for spec in self.fields]

    @property
    def required_count(self) -> int:
        return sum(1 for spec in self.fields if spec.required)

    def validate_timestamp(self, timestamp: Any) -> int:
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            raise SampleValidationError(f"Timestamp must be an integer, got {timestamp!r}")
        if isinstance(timestamp, float):
            if not math.isfinite(timestamp) or not timestamp.is_integer():
                raise SampleValidationError(f"Timestamp must be a whole number of seconds, got {timestamp}")
            timestamp = int(timestamp)
        if timestamp <= 0 or timestamp > MAX_TIMESTAMP:
            raise SampleValidationError(f"Timestamp out of range: {timestamp}")
        return timestamp

    def validate_values(self, values: Any) -> Dict[str, Number]:
        """
        Accepts a mapping keyed by field name, a sequence in field order, or a bare
        number when only the first field is required. Optional fields may be
        left out; absent ones are not stored.
        """
        if isinstance(values, Mapping):
            unexpected = set(values) - set(self.field_names)
            if unexpected:
                raise SampleValidationError(f"Unexpected fields for {self.metric_type.value}: {sorted(unexpected)}")
            mapped = values
        elif isinstance(values, (list, tuple)):
            if not self.required_count <= len(values) <= len(self.fields):
                raise SampleValidationError(
                    f"{self.metric_type.value} expects {len(self.fields)} values, got {len(values)}"
                )
            mapped = dict(zip(self.field_names, values))
        elif all(not spec.required for spec in self.fields[1:]):
            mapped = {self.fields[0].name: values}
        else:
            raise SampleValidationError(f"{self.metric_type.value} expects fields {self.field_names}")

        clean = {}
        for spec in self.fields:
            if mapped.get(spec.name) is None:
                if not spec.required:
                    continue
                raise SampleValidationError(f"Missing field '{spec.name}'")
            clean[spec.name] = spec.coerce(mapped[spec.name])
        return clean

    def aggregate(self, rows: Iterable[Mapping[str, Number]]) -> Dict[str, Number]:
        rows = list(rows)
        stats: Dict[str, Number] = {}
        if not rows:
            return stats

        for spec in self.fields:
            column = [row[spec.name] for row in rows if row.get(spec.name) is not None]
            if not column:
                continue
            if Aggregation.SUM in spec.aggregations:
                total = sum(column)
                stats[f"total_{spec.name}"] = round(total, 2) if isinstance(total, float) else total
            if Aggregation.MIN_MAX_AVG in spec.aggregations:
                stats[f"min_{spec.name}"] = min(column)
                stats[f"max_{spec.name}"] = max(column)
                stats[f"avg_{spec.name}"] = round(sum(column) / len(column), 2)
        return stats

    def headline_values(self, stats: Mapping[str, Number]) -> Tuple[Optional[float], Optional[float]]:
        picked = [stats.get(key) for key in self.headline]
        value = picked[0] if picked else None
        secondary = picked[1] if len(picked) > 1 else None
        return value, secondary

    def format_upload_value(self, values: Mapping[str, Number]) -> str:
        """Single-field metrics upload their number; blood pressure uploads "sys/dia"."""
        if self.metric_type == MetricType.STEPS:
            return str(values.get("steps"))
        return "/".join(str(values.get(name)) for name in self.field_names)


_SUM_AND_RANGE = (Aggregation.SUM, Aggregation.MIN_MAX_AVG)

METRIC_SCHEMAS: Dict[MetricType, MetricSchema] = {
    MetricType.HEART_RATE: MetricSchema(
        MetricType.HEART_RATE,
        fields=(FieldSpec("bpm", min_value=20, max_value=300),),
        headline=("avg_bpm",),
        unit="bpm",
    ),
    MetricType.BLOOD_OXYGEN: MetricSchema(
        MetricType.BLOOD_OXYGEN,
        fields=(FieldSpec("oxygen", min_value=0, max_value=100),),
        headline=("avg_oxygen",),
        unit="%",
    ),
    MetricType.BLOOD_PRESSURE: MetricSchema(
        MetricType.BLOOD_PRESSURE,
        fields=(
            FieldSpec("systolic", min_value=30, max_value=300),
            FieldSpec("diastolic", min_value=10, max_value=250),
        ),
        headline=("avg_systolic", "avg_diastolic"),
        unit="mmHg",
    ),
    MetricType.HRV: MetricSchema(
        MetricType.HRV,
        fields=(FieldSpec("hrv", min_value=0, max_value=1000),),
        headline=("avg_hrv",),
        unit="ms",
    ),
    MetricType.TEMPERATURE: MetricSchema(
        MetricType.TEMPERATURE,
        fields=(FieldSpec("temperature", integer=False, min_value=20, max_value=45),),
        headline=("avg_temperature",),
        unit="°C",
    ),
    MetricType.STEPS: MetricSchema(
        MetricType.STEPS,
        fields=(
            FieldSpec("steps", min_value=0, aggregations=(Aggregation.SUM,)),
            FieldSpec("distance", min_value=0, aggregations=(Aggregation.SUM,), required=False),
            FieldSpec("calories", min_value=0, aggregations=_SUM_AND_RANGE, required=False),
        ),
        headline=("total_steps", "total_calories"),
        unit="steps",
    ),
    MetricType.BLOOD_GLUCOSE: MetricSchema(
        MetricType.BLOOD_GLUCOSE,
        fields=(FieldSpec("glucose", integer=False, min_value=0, max_value=1000),),
        headline=("avg_glucose",),
        unit="mg/dL",
    ),
    MetricType.BODY_TEMPERATURE: MetricSchema(
        MetricType.BODY_TEMPERATURE,
        fields=(FieldSpec("temperature", integer=False, min_value=20, max_value=45),),
        headline=("avg_temperature",),
        unit="°C",
    ),
}

SAMPLE_METRICS: Tuple[MetricType, ...] = tuple(METRIC_SCHEMAS)


def coerce_metric_type(metric_type: Union[MetricType, str]) -> MetricType:
    try:
        return MetricType(metric_type)
    except ValueError:
        raise UnknownMetricError(metric_type) from None


def get_schema(metric_type: Union[MetricType, str]) -> MetricSchema:
    kind = coerce_metric_type(metric_type)
    if kind not in METRIC_SCHEMAS:
        raise UnknownMetricError(metric_type)
    return METRIC_SCHEMAS[kind]
