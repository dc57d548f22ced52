"""
Unit Tests - Report Filters
"""
import pytest
from datetime import date, datetime, timedelta, timezone

from seller_analytics.profit.errors import ValidationError
from seller_analytics.profit.filters import ReportFilters, as_naive_utc, parse_date
from seller_analytics.profit.periods import Granularity


class TestReportFilters:
    """Tests for filter validation"""

    def test_account_required(self):
        with pytest.raises(ValidationError, match="accountId"):
            ReportFilters.build(None)

    def test_start_after_end_rejected(self):
        with pytest.raises(ValidationError):
            ReportFilters.build("acc-1", start_date="2026-03-02", end_date="2026-03-01")

    def test_bad_date_rejected(self):
        with pytest.raises(ValidationError, match="startDate"):
            ReportFilters.build("acc-1", start_date="03/01/2026")

    def test_open_window_by_default(self):
        filters = ReportFilters.build("acc-1")

        assert filters.window() == (None, None)
        assert filters.period == Granularity.DAY

    def test_default_window(self):
        filters = ReportFilters.build("acc-1", default_window_days=30, today=date(2026, 10, 19))

        assert filters.start_date == date(2026, 9, 19)
        assert filters.end_date == date(2026, 10, 19)

    def test_end_date_inclusive_through_end_of_day(self):
        filters = ReportFilters.build("acc-1", start_date="2026-03-01", end_date="2026-03-01")
        start, end = filters.window()

        assert start == datetime(2026, 3, 1)
        assert end == datetime(2026, 3, 1, 23, 59, 59, 999999)

    def test_timestamp_truncated_to_day(self):
        assert parse_date("2026-03-01T15:00:00Z", "endDate") == date(2026, 3, 1)

    def test_cache_key_distinguishes_filters(self):
        a = ReportFilters.build("acc-1", sku="SKU-A")
        b = ReportFilters.build("acc-1", sku="SKU-B")

        assert a.cache_key() != b.cache_key()
        assert a.cache_key() == ReportFilters.build("acc-1", sku="SKU-A").cache_key()


class TestNaiveUtc:

    def test_aware_value_converted(self):
        value = datetime(2026, 9, 1, 10, 0, tzinfo=timezone(timedelta(hours=2)))

        assert as_naive_utc(value) == datetime(2026, 9, 1, 8, 0)

    def test_naive_value_unchanged(self):
        assert as_naive_utc(datetime(2026, 9, 1, 10, 0)) == datetime(2026, 9, 1, 10, 0)
        assert as_naive_utc(None) is None
