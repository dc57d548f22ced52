"""
Profit Service

Profit summary, breakdowns, trends and the P&L report for an account.
"""

from datetime import date
from typing import Any, Dict, List, Optional

import structlog

from seller_analytics.profit.aggregator import Dimension, ProfitAggregator
from seller_analytics.profit.charts import ChartFormatter
from seller_analytics.profit.filters import ReportFilters
from seller_analytics.profit.pnl import PnLReportBuilder, build_period_ladder
from seller_analytics.config import get_settings
from seller_analytics.services.base import ReportService

logger = structlog.get_logger(__name__)
settings = get_settings()


class ProfitService(ReportService):
    """
    Example:
        service = ProfitService(session)
        summary = await service.summary(user_id, filters)
    """

    async def summary(self, user_id: Optional[str], filters: ReportFilters) -> Dict[str, Any]:
        await self.authorize(user_id, filters.account_id)

        async def build():
            snapshot = await self.repository.load_snapshot(filters)
            return ProfitAggregator(snapshot, self.cogs_method).summary(filters.sku).to_dict()

        return await self.cached("summary", filters, build)

    async def breakdown(
        self,
        user_id: Optional[str],
        filters: ReportFilters,
        dimension: Dimension,
    ) -> List[Dict[str, Any]]:
        """Rows by SKU, marketplace or country"""
        await self.authorize(user_id, filters.account_id)

        async def build():
            snapshot = await self.repository.load_snapshot(filters)
            rows = ProfitAggregator(snapshot, self.cogs_method).breakdown(
                dimension, filters.period, sku=filters.sku
            )
            return [row.to_dict() for row in rows]

        return await self.cached(f"by-{dimension.value}", filters, build)

    async def trends(self, user_id: Optional[str], filters: ReportFilters) -> List[Dict[str, Any]]:
        """Period rows, zero-filled over the window"""
        await self.authorize(user_id, filters.account_id)

        async def build():
            snapshot = await self.repository.load_snapshot(filters)
            formatter = ChartFormatter(
                snapshot, filters.start_date, filters.end_date, filters.period, self.cogs_method
            )
            rows = formatter.period_rows(filters.sku)
            empty = {
                "sales_revenue": 0.0,
                "total_expenses": 0.0,
                "total_fees": 0.0,
                "total_refunds": 0.0,
                "total_cogs": 0.0,
                "gross_profit": 0.0,
                "net_profit": 0.0,
                "gross_margin": 0.0,
                "net_margin": 0.0,
                "units_sold": 0,
                "order_count": 0,
                "uncosted_units": 0,
            }
            return [
                rows[label].to_dict() if label in rows else {"period": label, **empty}
                for label in formatter.labels
            ]

        return await self.cached("trends", filters, build)

    async def simple_trends(self, user_id: Optional[str], filters: ReportFilters) -> Dict[str, Any]:
        snapshot = await self.snapshot(user_id, filters)
        formatter = ChartFormatter(snapshot, filters.start_date, filters.end_date, filters.period, self.cogs_method)
        return formatter.simple_trends()

    async def product_trends(
        self,
        user_id: Optional[str],
        filters: ReportFilters,
        metric: str = "sales",
        limit: int = 10,
    ) -> Dict[str, Any]:
        snapshot = await self.snapshot(user_id, filters)
        formatter = ChartFormatter(snapshot, filters.start_date, filters.end_date, filters.period, self.cogs_method)
        return formatter.product_trends(metric, limit)

    async def order_items(
        self,
        user_id: Optional[str],
        filters: ReportFilters,
        limit: int = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """Per-line profit, newest first"""
        snapshot = await self.snapshot(user_id, filters)
        lines = ProfitAggregator(snapshot, self.cogs_method).order_lines()
        if filters.sku:
            lines = [line for line in lines if line.sku == filters.sku]
        page = lines[offset:offset + limit]
        return {
            "items": [vars(line) for line in page],
            "total": len(lines),
            "limit": limit,
            "offset": offset,
        }

    async def pnl(
        self,
        user_id: Optional[str],
        account_id: str,
        marketplace_id: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        """Month to date plus the trailing full months"""
        today = today or self.today or date.today()
        trailing = settings.reporting.pnl_trailing_months
        ladder = build_period_ladder(today, trailing)
        filters = ReportFilters.build(
            account_id,
            marketplace_id=marketplace_id,
            start_date=ladder[-1].start_date,
            end_date=today,
        )

        await self.authorize(user_id, account_id)

        async def build():
            snapshot = await self.repository.load_snapshot(filters)
            builder = PnLReportBuilder(snapshot, today=today, trailing_months=trailing, cogs_method=self.cogs_method)
            return builder.build().to_dict()

        return await self.cached("pnl", filters, build)
