import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from errors import ValidationError
from schemas import ReportPeriod
from utils.coerce import as_dict, as_number, to_fixed

MS_PER_DAY = 86_400_000

# (exclusive upper bound in ms, divisor, suffix, decimals); anything larger renders in days
TIME_BUCKETS = (
    (1_000, 1, "ms", 0),
    (60_000, 1_000, "s", 1),
    (3_600_000, 60_000, "m", 1),
    (MS_PER_DAY, 3_600_000, "h", 1),
)


def parse_timestamp(value: str) -> datetime:
    """ISO-8601 date or datetime; naive values are read as UTC."""
    dt = datetime.fromisoformat(value.strip())
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def truncate_ms(dt: datetime) -> datetime:
    return dt.replace(microsecond=dt.microsecond // 1000 * 1000)


def format_date_for_api(dt: datetime) -> str:
    """23-character `YYYY-MM-DDTHH:MM:SS.mmm` in UTC, no offset suffix."""
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S") + f".{dt.microsecond // 1000:03d}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_period(start_date: Any, end_date: Any, now: Optional[datetime] = None) -> ReportPeriod:
    if not isinstance(start_date, str) or not isinstance(end_date, str):
        raise ValidationError("timeframe.startDate and timeframe.endDate are required")
    try:
        start = parse_timestamp(start_date)
        end = parse_timestamp(end_date)
    except ValueError as e:
        raise ValidationError(f"Invalid timeframe: {e}") from e

    now = now or utcnow()
    if end > now:
        end = now
    start, end = truncate_ms(start), truncate_ms(end)
    if start > end:
        raise ValidationError("timeframe.startDate must not be after timeframe.endDate")

    diff_ms = abs(end - start) // timedelta(milliseconds=1)
    days = math.ceil(diff_ms / MS_PER_DAY) or 1
    return ReportPeriod(
        start_date=format_date_for_api(start),
        end_date=format_date_for_api(end),
        days=days,
    )


def format_time_metric(metric: Optional[Dict]) -> str:
    """Render a `{average, unit}` mean-time metric as a compact duration."""
    metric = as_dict(metric) or {"average": 0, "unit": "seconds"}
    in_seconds = metric.get("unit") == "seconds"
    avg = as_number(metric.get("average"), default=math.nan)
    if math.isnan(avg):
        return "0s" if in_seconds else "0ms"

    ms = avg * 1000 if in_seconds else avg
    for bound, divisor, suffix, decimals in TIME_BUCKETS:
        if ms < bound:
            return f"{to_fixed(ms / divisor, decimals)}{suffix}"
    return f"{to_fixed(ms / MS_PER_DAY, 1)}d"


def to_day(value: Any, now: Optional[datetime] = None) -> str:
    """`YYYY-MM-DD` for a timestamp string, falling back to today."""
    if isinstance(value, str) and value:
        try:
            return parse_timestamp(value).strftime("%Y-%m-%d")
        except ValueError:
            pass
    return (now or utcnow()).strftime("%Y-%m-%d")
