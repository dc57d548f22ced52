"""
Charts Service
"""

from typing import Any, Dict, List, Optional

import structlog

from seller_analytics.profit.charts import ChartFormatter, comparison_chart, previous_window
from seller_analytics.profit.filters import ReportFilters
from seller_analytics.services.base import ReportService

logger = structlog.get_logger(__name__)


class ChartsService(ReportService):
    """Labelled time series for dashboards"""

    async def _formatter(self, filters: ReportFilters) -> ChartFormatter:
        snapshot = await self.repository.load_snapshot(filters)
        return ChartFormatter(snapshot, filters.start_date, filters.end_date, filters.period, self.cogs_method)

    async def chart(self, user_id: Optional[str], filters: ReportFilters, metric: str) -> Dict[str, Any]:
        await self.authorize(user_id, filters.account_id)

        async def build():
            formatter = await self._formatter(filters)
            return formatter.chart(metric, filters.sku).to_dict()

        return await self.cached(f"chart-{metric}", filters, build)

    async def comparison(self, user_id: Optional[str], filters: ReportFilters, metric: str) -> Dict[str, Any]:
        """
        Current window against the window of equal width that ends the day
        before it starts.
        """
        await self.authorize(user_id, filters.account_id)
        previous_start, previous_end = previous_window(filters.start_date, filters.end_date)
        previous_filters = filters.with_dates(previous_start, previous_end)

        async def build():
            current = await self._formatter(filters)
            previous = await self._formatter(previous_filters)
            chart = comparison_chart(current, previous, metric).to_dict()
            chart["previous_start_date"] = previous_start.isoformat()
            chart["previous_end_date"] = previous_end.isoformat()
            return chart

        return await self.cached(f"comparison-{metric}", filters, build)

    async def dashboard(self, user_id: Optional[str], filters: ReportFilters) -> Dict[str, Any]:
        await self.authorize(user_id, filters.account_id)
        formatter = await self._formatter(filters)
        return formatter.dashboard().to_dict()

    async def country_map(self, user_id: Optional[str], filters: ReportFilters) -> List[Dict[str, Any]]:
        """Net profit and order count per country"""
        await self.authorize(user_id, filters.account_id)
        formatter = await self._formatter(filters)
        return formatter.country_map()
