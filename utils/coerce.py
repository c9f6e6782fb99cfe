import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List


def as_list(value: Any) -> List:
    return value if isinstance(value, list) else []


def as_dict(value: Any) -> Dict:
    return value if isinstance(value, dict) else {}


def as_number(value: Any, default: float = 0.0) -> float:
    """Numbers and numeric strings pass through; anything else (NaN included) is `default`."""
    if isinstance(value, bool) or value is None:
        return default
    try:
        v = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(v) or math.isinf(v):
        return default
    return v


def as_int(value: Any, default: int = 0) -> int:
    return int(as_number(value, default))


def as_str(value: Any, default: str = "") -> str:
    if isinstance(value, str) and value:
        return value
    return default


def first_str(*values: Any, default: str = "") -> str:
    """First non-empty string among `values`."""
    for v in values:
        if isinstance(v, str) and v:
            return v
    return default


def to_fixed(value: float, decimals: int) -> str:
    """Fixed-point string with ties rounded away from zero, like JS `toFixed`."""
    q = Decimal(value).quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)
    return f"{q:f}"
