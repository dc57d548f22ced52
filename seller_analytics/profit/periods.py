"""
Period Bucketer

Maps timestamps to sortable bucket keys:

- day      -> YYYY-MM-DD
- week     -> YYYY-MM-DD of the Monday on/before the timestamp
- month    -> YYYY-MM
- quarter  -> YYYY-Q1..Q4
- year     -> YYYY
"""

from datetime import date, datetime, timedelta
from enum import Enum
from typing import List, Union

from .errors import ValidationError


class Granularity(str, Enum):
    """Time bucket granularity"""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


# Interval names used by the simplified trends endpoint
INTERVAL_ALIASES = {
    "daily": Granularity.DAY,
    "weekly": Granularity.WEEK,
    "monthly": Granularity.MONTH,
    "quarterly": Granularity.QUARTER,
    "yearly": Granularity.YEAR,
}


def parse_granularity(value: Union[str, Granularity, None], default: Granularity = Granularity.DAY) -> Granularity:
    """Parse a granularity name, raising ValidationError for unknown values."""
    if value is None or value == "":
        return default
    if isinstance(value, Granularity):
        return value
    name = str(value).lower()
    if name in INTERVAL_ALIASES:
        return INTERVAL_ALIASES[name]
    try:
        return Granularity(name)
    except ValueError:
        allowed = [g.value for g in Granularity]
        raise ValidationError(f"Unsupported period '{value}'. Must be one of: {allowed}")


def _as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def week_start(value: Union[date, datetime]) -> date:
    """Monday on or before the given day"""
    day = _as_date(value)
    return day - timedelta(days=day.weekday())


def period_key(value: Union[date, datetime], granularity: Granularity) -> str:
    """
    Bucket key for a timestamp.

    Args:
        value: Date or datetime to bucket
        granularity: Bucket size

    Returns:
        Sortable string key
    """
    day = _as_date(value)
    granularity = Granularity(granularity)

    if granularity == Granularity.WEEK:
        return week_start(day).isoformat()
    if granularity == Granularity.MONTH:
        return f"{day.year}-{day.month:02d}"
    if granularity == Granularity.QUARTER:
        quarter = (day.month - 1) // 3 + 1
        return f"{day.year}-Q{quarter}"
    if granularity == Granularity.YEAR:
        return f"{day.year}"
    return day.isoformat()


def bucket_keys(start: Union[date, datetime], end: Union[date, datetime], granularity: Granularity) -> List[str]:
    """Every bucket key touched by the inclusive window [start, end], ascending."""
    first = _as_date(start)
    last = _as_date(end)
    keys: List[str] = []
    day = first
    while day <= last:
        key = period_key(day, granularity)
        if not keys or keys[-1] != key:
            keys.append(key)
        day += timedelta(days=1)
    return keys
