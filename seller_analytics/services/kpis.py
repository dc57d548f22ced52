"""
KPI Service

Units sold, returns cost, advertising, FBA fees, payout estimate and the
inventory coverage recalculation.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import polars as pl
import structlog

from seller_analytics.profit.aggregator import Dimension, ProfitAggregator, UNASSIGNED_MARKETPLACE
from seller_analytics.profit.classification import is_fba_fee
from seller_analytics.profit.filters import ReportFilters
from seller_analytics.profit.metrics import acos, roas, round_money
from seller_analytics.profit.periods import period_key
from seller_analytics.services.base import ReportService

logger = structlog.get_logger(__name__)

VELOCITY_WINDOW_DAYS = 30


def _period(filters: ReportFilters) -> Dict[str, Optional[str]]:
    return {
        "start_date": filters.start_date.isoformat() if filters.start_date else None,
        "end_date": filters.end_date.isoformat() if filters.end_date else None,
    }


class KpiService(ReportService):

    async def units_sold(self, user_id: Optional[str], filters: ReportFilters) -> Dict[str, Any]:
        """Units and distinct orders by SKU, marketplace and period"""
        snapshot = await self.snapshot(user_id, filters)
        lines = [line for line in snapshot.sales if not filters.sku or line.sku == filters.sku]

        frame = pl.DataFrame(
            [
                {
                    "sku": line.sku,
                    "marketplace_id": line.marketplace_id or UNASSIGNED_MARKETPLACE,
                    "period": period_key(line.ordered_at, filters.period),
                    "order_id": line.order_id,
                    "units": line.quantity,
                }
                for line in lines
            ],
            schema={
                "sku": pl.Utf8,
                "marketplace_id": pl.Utf8,
                "period": pl.Utf8,
                "order_id": pl.Utf8,
                "units": pl.Int64,
            },
        )
        grouped = (
            frame.group_by(["sku", "marketplace_id", "period"])
            .agg([
                pl.col("units").sum(),
                pl.col("order_id").n_unique().alias("order_count"),
            ])
            .sort(["units", "sku", "marketplace_id", "period"], descending=[True, False, False, False])
        )

        breakdown = []
        for row in grouped.iter_rows(named=True):
            row["marketplace_name"] = snapshot.marketplace_name(row["marketplace_id"])
            breakdown.append(row)

        return {
            "total_units": int(frame["units"].sum() or 0),
            "breakdown": breakdown,
            "period": _period(filters),
        }

    async def returns_cost(self, user_id: Optional[str], filters: ReportFilters) -> Dict[str, Any]:
        """Refunds attributed to SKUs by each line's share of its order"""
        snapshot = await self.snapshot(user_id, filters)
        rows = ProfitAggregator(snapshot, self.cogs_method).breakdown(Dimension.SKU, sku=filters.sku)
        breakdown = [
            {"sku": row.sku, "refunds": row.total_refunds, "units_sold": row.units_sold}
            for row in rows
            if row.total_refunds
        ]
        breakdown.sort(key=lambda item: (-item["refunds"], item["sku"]))
        return {
            "total_returns_cost": round_money(sum(item["refunds"] for item in breakdown)),
            "return_fees": round_money(sum(item.fee_amount for item in snapshot.returns)),
            "breakdown": breakdown,
            "period": _period(filters),
        }

    async def advertising(self, user_id: Optional[str], filters: ReportFilters) -> Dict[str, Any]:
        snapshot = await self.snapshot(user_id, filters)
        campaigns: Dict[str, Dict[str, Any]] = {}
        for spend in snapshot.ad_spend:
            entry = campaigns.setdefault(
                spend.campaign_id,
                {"campaign_id": spend.campaign_id, "campaign_name": spend.campaign_name, "spend": 0.0, "sales": 0.0},
            )
            entry["spend"] += spend.spend
            entry["sales"] += spend.attributed_sales

        total_spend = sum(c["spend"] for c in campaigns.values())
        total_sales = sum(c["sales"] for c in campaigns.values())
        breakdown = [
            {
                **entry,
                "spend": round_money(entry["spend"]),
                "sales": round_money(entry["sales"]),
                "acos": acos(entry["spend"], entry["sales"]),
                "roas": roas(entry["sales"], entry["spend"]),
            }
            for entry in sorted(campaigns.values(), key=lambda c: (-c["spend"], c["campaign_id"]))
        ]
        return {
            "total_spend": round_money(total_spend),
            "attributed_sales": round_money(total_sales),
            "acos": acos(total_spend, total_sales),
            "roas": roas(total_sales, total_spend),
            "breakdown": breakdown,
            "period": _period(filters),
        }

    async def fba_fees(self, user_id: Optional[str], filters: ReportFilters) -> Dict[str, Any]:
        """Fees whose type mentions FBA, by order period and fee type"""
        snapshot = await self.snapshot(user_id, filters)
        ordered_at = {line.order_id: line.ordered_at for line in snapshot.sales}

        buckets: Dict[tuple, float] = {}
        for fee in snapshot.fees:
            if not is_fba_fee(fee.fee_type) or fee.order_id not in ordered_at:
                continue
            key = (period_key(ordered_at[fee.order_id], filters.period), fee.fee_type)
            buckets[key] = buckets.get(key, 0.0) + fee.amount

        breakdown = [
            {"period": period, "fee_type": fee_type, "amount": round_money(amount)}
            for (period, fee_type), amount in sorted(buckets.items())
        ]
        return {
            "total_fba_fees": round_money(sum(buckets.values())),
            "breakdown": breakdown,
            "period": _period(filters),
        }

    async def payout_estimate(self, user_id: Optional[str], filters: ReportFilters) -> Dict[str, Any]:
        """Revenue less fees, refunds, advertising and cost of goods"""
        snapshot = await self.snapshot(user_id, filters)
        summary = ProfitAggregator(snapshot, self.cogs_method).summary()
        fba_fees = sum(fee.amount for fee in snapshot.fees if is_fba_fee(fee.fee_type))
        advertising = sum(spend.spend for spend in snapshot.ad_spend)

        deductions = summary.total_fees + summary.total_refunds + advertising + summary.total_cogs
        return {
            "gross_revenue": summary.sales_revenue,
            "fba_fees": round_money(fba_fees),
            "other_fees": round_money(summary.total_fees - fba_fees),
            "refunds": summary.total_refunds,
            "advertising": round_money(advertising),
            "cogs": summary.total_cogs,
            "estimated_payout": round_money(summary.sales_revenue - deductions),
            "period": _period(filters),
        }

    async def recalculate_inventory(
        self,
        user_id: Optional[str],
        account_id: str,
        now: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        """
        Refresh days of cover for every SKU with a stock level.

        Velocity is units sold per day over the trailing window. Each SKU is
        upserted on its own; a concurrent recalculation may interleave.
        """
        await self.authorize(user_id, account_id)
        now = now or datetime.now()
        window_start = (now - timedelta(days=VELOCITY_WINDOW_DAYS)).date()
        filters = ReportFilters.build(account_id, start_date=window_start, end_date=now.date())
        snapshot = await self.repository.load_snapshot(filters)

        sold: Dict[str, int] = {}
        for line in snapshot.sales:
            sold[line.sku] = sold.get(line.sku, 0) + line.quantity

        stock: Dict[str, int] = {}
        for level in await self.repository.list_inventory_levels(account_id):
            stock[level.sku] = stock.get(level.sku, 0) + level.quantity_available

        results = []
        for sku in sorted(stock):
            units = sold.get(sku, 0)
            velocity = units / VELOCITY_WINDOW_DAYS
            days_of_cover = round(stock[sku] / velocity, 1) if velocity > 0 else None
            kpi = await self.repository.upsert_inventory_kpi(
                account_id,
                sku,
                {
                    "stock_on_hand": stock[sku],
                    "units_sold": units,
                    "daily_velocity": round(velocity, 4),
                    "days_of_cover": days_of_cover,
                    "calculated_at": now,
                },
            )
            results.append({
                "sku": kpi.sku,
                "stock_on_hand": kpi.stock_on_hand,
                "units_sold": kpi.units_sold,
                "daily_velocity": kpi.daily_velocity,
                "days_of_cover": kpi.days_of_cover,
            })

        logger.info("Inventory KPIs recalculated", account_id=account_id, skus=len(results))
        return results
