"""
Report filter parsing and validation.
"""

from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Tuple, Union

from .errors import ValidationError
from .periods import Granularity, parse_granularity

DateLike = Union[str, date, datetime, None]


def parse_date(value: DateLike, field_name: str) -> Optional[date]:
    """Parse an ISO calendar date (a full ISO timestamp is truncated to its day)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise ValidationError(f"{field_name} must be an ISO date (YYYY-MM-DD), got '{value}'")


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, datetime.min.time())


def end_of_day(day: date) -> datetime:
    """Inclusive upper bound: 23:59:59.999999 of the given day"""
    return datetime.combine(day, datetime.max.time())


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are naive UTC; aware values are converted first"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class ReportFilters:
    """
    Filter object accepted by every report.

    start_date/end_date are calendar dates; the window is inclusive through
    the end of end_date.
    """
    account_id: str
    marketplace_id: Optional[str] = None
    sku: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    period: Granularity = Granularity.DAY

    @classmethod
    def build(
        cls,
        account_id: Optional[str],
        marketplace_id: Optional[str] = None,
        sku: Optional[str] = None,
        start_date: DateLike = None,
        end_date: DateLike = None,
        period: Union[str, Granularity, None] = None,
        default_period: Granularity = Granularity.DAY,
        default_window_days: Optional[int] = None,
        today: Optional[date] = None,
    ) -> "ReportFilters":
        """
        Validate raw request parameters.

        Args:
            default_window_days: When set, a missing end defaults to today and a
                missing start to end minus this many days.

        Raises:
            ValidationError: accountId missing, bad date, start after end,
                unsupported period
        """
        if not account_id:
            raise ValidationError("accountId is required")

        start = parse_date(start_date, "startDate")
        end = parse_date(end_date, "endDate")

        if default_window_days is not None:
            if end is None:
                end = today or date.today()
            if start is None:
                start = end - timedelta(days=default_window_days)

        if start and end and start > end:
            raise ValidationError("startDate must be on or before endDate")

        return cls(
            account_id=account_id,
            marketplace_id=marketplace_id or None,
            sku=sku or None,
            start_date=start,
            end_date=end,
            period=parse_granularity(period, default_period),
        )

    def window(self) -> Tuple[Optional[datetime], Optional[datetime]]:
        """Inclusive datetime bounds of the filter window"""
        start = start_of_day(self.start_date) if self.start_date else None
        end = end_of_day(self.end_date) if self.end_date else None
        return start, end

    def with_dates(self, start_date: date, end_date: date) -> "ReportFilters":
        return replace(self, start_date=start_date, end_date=end_date)

    def cache_key(self) -> str:
        return ":".join(
            str(part or "-")
            for part in (
                self.account_id,
                self.marketplace_id,
                self.sku,
                self.start_date,
                self.end_date,
                self.period.value,
            )
        )
