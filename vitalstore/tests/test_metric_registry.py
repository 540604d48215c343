"""Tests for metric schema descriptors: validation, aggregation, upload values."""

from __future__ import annotations

import math

import pytest

from vitalstore.enums import MetricType
from vitalstore.exceptions.errors import SampleValidationError, UnknownMetricError
from vitalstore.services.metric_registry import (
    METRIC_SCHEMAS,
    SAMPLE_METRICS,
    coerce_metric_type,
    get_schema,
)


class TestLookup:
    def test_every_sample_metric_has_a_schema(self) -> None:
        assert set(SAMPLE_METRICS) == set(METRIC_SCHEMAS)
        assert MetricType.SLEEP not in SAMPLE_METRICS
        assert MetricType.ECG not in SAMPLE_METRICS

    def test_get_schema_accepts_strings(self) -> None:
        assert get_schema("heart_rate").metric_type == MetricType.HEART_RATE

    def test_unknown_metric_raises(self) -> None:
        with pytest.raises(UnknownMetricError) as exc:
            get_schema("cholesterol")
        assert exc.value.status_code == 400

    def test_sleep_is_a_kind_but_not_a_sample_metric(self) -> None:
        assert coerce_metric_type("sleep") == MetricType.SLEEP
        with pytest.raises(UnknownMetricError):
            get_schema("sleep")


class TestValidation:
    def test_bare_number_for_single_field_metric(self) -> None:
        assert get_schema("heart_rate").validate_values(60) == {"bpm": 60}

    def test_sequence_in_field_order(self) -> None:
        values = get_schema("blood_pressure").validate_values((120, 80))
        assert values == {"systolic": 120, "diastolic": 80}

    def test_whole_float_coerced_for_integer_field(self) -> None:
        values = get_schema("heart_rate").validate_values(60.0)
        assert values == {"bpm": 60}
        assert isinstance(values["bpm"], int)

    def test_float_field_keeps_fraction(self) -> None:
        assert get_schema("temperature").validate_values(36.55) == {"temperature": 36.55}

    @pytest.mark.parametrize("bad", [math.nan, math.inf, -math.inf])
    def test_non_finite_rejected(self, bad: float) -> None:
        with pytest.raises(SampleValidationError):
            get_schema("temperature").validate_values(bad)

    def test_fractional_integer_field_rejected(self) -> None:
        with pytest.raises(SampleValidationError):
            get_schema("heart_rate").validate_values(60.5)

    def test_bool_is_not_a_number(self) -> None:
        with pytest.raises(SampleValidationError):
            get_schema("heart_rate").validate_values(True)

    def test_out_of_bounds_rejected(self) -> None:
        with pytest.raises(SampleValidationError):
            get_schema("heart_rate").validate_values(10)
        with pytest.raises(SampleValidationError):
            get_schema("blood_oxygen").validate_values(101)

    def test_missing_field_rejected(self) -> None:
        with pytest.raises(SampleValidationError, match="diastolic"):
            get_schema("blood_pressure").validate_values({"systolic": 120})

    def test_unexpected_field_rejected(self) -> None:
        with pytest.raises(SampleValidationError):
            get_schema("heart_rate").validate_values({"bpm": 60, "spo2": 98})

    def test_multi_field_metric_needs_all_values(self) -> None:
        with pytest.raises(SampleValidationError):
            get_schema("blood_pressure").validate_values(120)

    def test_bare_step_count_accepted(self) -> None:
        assert get_schema("steps").validate_values(100) == {"steps": 100}

    def test_optional_fields_may_be_left_out(self) -> None:
        schema = get_schema("steps")
        assert schema.validate_values({"steps": 100}) == {"steps": 100}
        assert schema.validate_values((100, 70)) == {"steps": 100, "distance": 70}
        assert schema.validate_values({"steps": 100, "distance": None, "calories": 4}) == {
            "steps": 100,
            "calories": 4,
        }

    def test_required_field_still_enforced(self) -> None:
        with pytest.raises(SampleValidationError, match="steps"):
            get_schema("steps").validate_values({"distance": 70})
        with pytest.raises(SampleValidationError):
            get_schema("steps").validate_values(())

    @pytest.mark.parametrize("bad", [0, -5, 1.5, "1700000000", None, True, 10 ** 13])
    def test_bad_timestamps_rejected(self, bad) -> None:
        with pytest.raises(SampleValidationError):
            get_schema("heart_rate").validate_timestamp(bad)

    def test_whole_float_timestamp_accepted(self) -> None:
        assert get_schema("heart_rate").validate_timestamp(1773100800.0) == 1773100800


class TestAggregation:
    def test_steps_are_summed(self) -> None:
        schema = get_schema("steps")
        stats = schema.aggregate([
            {"steps": 100, "distance": 70, "calories": 4},
            {"steps": 200, "distance": 140, "calories": 9},
            {"steps": 300, "distance": 210, "calories": 11},
        ])
        assert stats["total_steps"] == 600
        assert stats["total_distance"] == 420
        assert stats["total_calories"] == 24
        assert stats["min_calories"] == 4
        assert stats["max_calories"] == 11
        assert stats["avg_calories"] == 8.0
        assert "avg_steps" not in stats
        assert schema.headline_values(stats) == (600, 24)

    def test_heart_rate_min_max_avg(self) -> None:
        schema = get_schema("heart_rate")
        stats = schema.aggregate([{"bpm": 60}, {"bpm": 62}, {"bpm": 65}])
        assert stats == {"min_bpm": 60, "max_bpm": 65, "avg_bpm": 62.33}
        assert schema.headline_values(stats) == (62.33, None)

    def test_blood_pressure_headline_is_both_averages(self) -> None:
        schema = get_schema("blood_pressure")
        stats = schema.aggregate([
            {"systolic": 120, "diastolic": 80},
            {"systolic": 130, "diastolic": 84},
        ])
        assert schema.headline_values(stats) == (125.0, 82.0)

    def test_empty_rows_give_no_stats(self) -> None:
        assert get_schema("heart_rate").aggregate([]) == {}


class TestUploadValues:
    def test_blood_pressure_renders_as_fraction(self) -> None:
        schema = get_schema("blood_pressure")
        assert schema.format_upload_value({"systolic": 120, "diastolic": 80}) == "120/80"

    def test_single_field_renders_number(self) -> None:
        assert get_schema("heart_rate").format_upload_value({"bpm": 60}) == "60"
        assert get_schema("temperature").format_upload_value({"temperature": 36.5}) == "36.5"

    def test_steps_upload_the_step_count(self) -> None:
        schema = get_schema("steps")
        assert schema.format_upload_value({"steps": 812, "distance": 560, "calories": 31}) == "812"
