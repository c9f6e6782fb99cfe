from datetime import datetime, timezone

import pytest

from errors import ValidationError
from utils.timefmt import format_date_for_api, format_time_metric, normalize_period, to_day


class TestFormatTimeMetric:

    @pytest.mark.parametrize("ms, expected", [
        (0, "0ms"),
        (999, "999ms"),
        (1000, "1.0s"),
        (59999, "60.0s"),
        (60000, "1.0m"),
        (3599999, "60.0m"),
        (3600000, "1.0h"),
        (86399999, "24.0h"),
        (86400000, "1.0d"),
        (3 * 86400000, "3.0d"),
    ])
    def test_bucket_boundaries_in_milliseconds(self, ms, expected):
        assert format_time_metric({"average": ms, "unit": "milliseconds"}) == expected

    def test_seconds_are_converted_to_milliseconds(self):
        assert format_time_metric({"average": 500, "unit": "seconds"}) == "8.3m"
        assert format_time_metric({"average": 0.25, "unit": "seconds"}) == "250ms"

    def test_ties_round_up(self):
        assert format_time_metric({"average": 1.25, "unit": "seconds"}) == "1.3s"
        assert format_time_metric({"average": 12.5, "unit": "milliseconds"}) == "13ms"
        assert format_time_metric({"average": 4_500_000, "unit": "milliseconds"}) == "1.3h"

    def test_numeric_string_average(self):
        assert format_time_metric({"average": "2.5", "unit": "seconds"}) == "2.5s"

    def test_non_numeric_average_uses_unit_zero(self):
        assert format_time_metric({"average": "n/a", "unit": "seconds"}) == "0s"
        assert format_time_metric({"average": None, "unit": "milliseconds"}) == "0ms"
        assert format_time_metric({"unit": "seconds"}) == "0s"

    def test_missing_metric_defaults_to_zero(self):
        assert format_time_metric(None) == "0ms"
        assert format_time_metric([]) == "0ms"


class TestNormalizePeriod:

    def test_calendar_month(self):
        period = normalize_period("2024-01-01", "2024-01-31")
        assert period.start_date == "2024-01-01T00:00:00.000"
        assert period.end_date == "2024-01-31T00:00:00.000"
        assert period.days == 30

    def test_future_end_is_clamped_to_now_and_truncated(self):
        now = datetime(2024, 1, 15, 12, 0, 0, 123999, tzinfo=timezone.utc)
        period = normalize_period("2024-01-01", "2030-01-01", now=now)
        assert period.end_date == "2024-01-15T12:00:00.123"
        assert period.days == 15

    def test_zero_length_window_counts_one_day(self):
        period = normalize_period("2024-03-01T10:00:00Z", "2024-03-01T10:00:00Z")
        assert period.days == 1

    def test_offsets_are_converted_to_utc(self):
        period = normalize_period("2024-01-01T10:00:00+02:00", "2024-01-02T10:00:00+02:00")
        assert period.start_date == "2024-01-01T08:00:00.000"
        assert len(period.start_date) == 23

    def test_unparseable_dates_are_rejected(self):
        with pytest.raises(ValidationError):
            normalize_period("yesterday", "2024-01-31")

    def test_missing_dates_are_rejected(self):
        with pytest.raises(ValidationError):
            normalize_period(None, "2024-01-31")

    def test_start_after_end_is_rejected(self):
        with pytest.raises(ValidationError):
            normalize_period("2024-02-01", "2024-01-01")


def test_format_date_for_api_truncates_microseconds():
    dt = datetime(2024, 5, 6, 7, 8, 9, 999999, tzinfo=timezone.utc)
    assert format_date_for_api(dt) == "2024-05-06T07:08:09.999"


def test_to_day():
    now = datetime(2024, 7, 4, tzinfo=timezone.utc)
    assert to_day("2024-02-03T23:59:59.000Z") == "2024-02-03"
    assert to_day(None, now) == "2024-07-04"
    assert to_day("garbage", now) == "2024-07-04"
