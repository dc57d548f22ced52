"""
Profit Engine

Pure cost attribution and profit aggregation over in-memory fact snapshots.
"""
from .aggregator import Dimension, ProfitAggregator, ProfitRow, ProfitSummary, country_for_region
from .allocation import AllocationResult, ExpenseAllocator, allocate_by_key
from .charts import ChartFormatter, comparison_chart, previous_window
from .cost_lots import CogsMethod, CostLotLedger, lot_total_cost, weighted_average_unit_cost
from .errors import AccessDeniedError, NotFoundError, ProfitEngineError, ValidationError
from .facts import (
    AdSpendFact,
    AllocatedProduct,
    CostLot,
    CostMethod,
    ExpenseFact,
    ExpenseType,
    FactSnapshot,
    FeeFact,
    Marketplace,
    RefundFact,
    ReturnFact,
    SalesFact,
)
from .filters import ReportFilters
from .metrics import profit_metrics
from .periods import Granularity, bucket_keys, period_key
from .pnl import PnLReportBuilder, build_period_ladder

__all__ = [
    "Dimension",
    "ProfitAggregator",
    "ProfitRow",
    "ProfitSummary",
    "country_for_region",
    "AllocationResult",
    "ExpenseAllocator",
    "allocate_by_key",
    "ChartFormatter",
    "comparison_chart",
    "previous_window",
    "CogsMethod",
    "CostLotLedger",
    "lot_total_cost",
    "weighted_average_unit_cost",
    "AccessDeniedError",
    "NotFoundError",
    "ProfitEngineError",
    "ValidationError",
    "AdSpendFact",
    "AllocatedProduct",
    "CostLot",
    "CostMethod",
    "ExpenseFact",
    "ExpenseType",
    "FactSnapshot",
    "FeeFact",
    "Marketplace",
    "RefundFact",
    "ReturnFact",
    "SalesFact",
    "ReportFilters",
    "profit_metrics",
    "Granularity",
    "bucket_keys",
    "period_key",
    "PnLReportBuilder",
    "build_period_ladder",
]
