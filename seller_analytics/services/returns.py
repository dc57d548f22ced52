"""
Returns Service

Physical return summary: units by sellability, and units, refund and fee
amounts by reason code, marketplace and period.
"""

from typing import Any, Dict, List, Optional

import polars as pl
import structlog

from seller_analytics.profit.facts import ReturnFact
from seller_analytics.profit.filters import ReportFilters
from seller_analytics.profit.metrics import round_money
from seller_analytics.profit.periods import Granularity, period_key
from seller_analytics.services.base import ReportService

logger = structlog.get_logger(__name__)

RETURN_SCHEMA = {
    "reason_code": pl.Utf8,
    "marketplace_id": pl.Utf8,
    "period": pl.Utf8,
    "units": pl.Int64,
    "refund_amount": pl.Float64,
    "fee_amount": pl.Float64,
    "is_sellable": pl.Boolean,
}


def returns_frame(returns: List[ReturnFact], granularity: Granularity) -> pl.DataFrame:
    return pl.DataFrame(
        [
            {
                "reason_code": item.reason_code or "unknown",
                "marketplace_id": item.marketplace_id or "unknown",
                "period": period_key(item.returned_at, granularity),
                "units": item.quantity_returned,
                "refund_amount": item.refund_amount,
                "fee_amount": item.fee_amount,
                "is_sellable": item.is_sellable,
            }
            for item in returns
        ],
        schema=RETURN_SCHEMA,
    )


def _group(frame: pl.DataFrame, column: str) -> Dict[str, Dict[str, Any]]:
    grouped = (
        frame.group_by(column)
        .agg([
            pl.col("units").sum(),
            pl.col("refund_amount").sum(),
            pl.col("fee_amount").sum(),
        ])
        .sort(column)
    )
    return {
        row[column]: {
            "units": row["units"],
            "refund_amount": round_money(row["refund_amount"]),
            "fee_amount": round_money(row["fee_amount"]),
        }
        for row in grouped.iter_rows(named=True)
    }


def summarize_returns(returns: List[ReturnFact], granularity: Granularity = Granularity.DAY) -> Dict[str, Any]:
    """Totals and groupings of return events; lost units are the unsellable ones"""
    frame = returns_frame(returns, granularity)
    sellable = int(frame.filter(pl.col("is_sellable"))["units"].sum() or 0)
    unsellable = int(frame.filter(~pl.col("is_sellable"))["units"].sum() or 0)

    trends = [
        {"period": period, **values}
        for period, values in _group(frame, "period").items()
    ]

    return {
        "total_returned_units": sellable + unsellable,
        "total_refund_amount": round_money(frame["refund_amount"].sum() or 0.0),
        "total_fee_amount": round_money(frame["fee_amount"].sum() or 0.0),
        "sellable_units": sellable,
        "unsellable_units": unsellable,
        "lost_units": unsellable,
        "by_reason_code": _group(frame, "reason_code"),
        "by_marketplace": _group(frame, "marketplace_id"),
        "trends": trends,
    }


class ReturnsService(ReportService):

    async def summary(
        self,
        user_id: Optional[str],
        filters: ReportFilters,
        reason_code: Optional[str] = None,
    ) -> Dict[str, Any]:
        await self.authorize(user_id, filters.account_id)
        start, end = filters.window()
        returns = await self.repository.load_returns(
            filters.account_id, filters.marketplace_id, start, end, sku=filters.sku
        )
        if reason_code:
            returns = [item for item in returns if item.reason_code == reason_code]

        logger.debug("Returns summarized", account_id=filters.account_id, returns=len(returns))
        return summarize_returns(returns, filters.period)
