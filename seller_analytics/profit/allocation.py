"""
Expense Allocator

Splits discretionary expenses across reporting keys (SKU or marketplace).

Two tiers:
1. An explicit entry for a key takes amount * percentage / 100.
2. The unallocated remainder of every expense (100% minus its explicit
   percentages) forms one pool, shared across all keys in proportion to
   their revenue in the window.

Also hosts the revenue-share helper used to spread order-level fees and
refunds over order lines.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import structlog

from .facts import ExpenseFact

logger = structlog.get_logger(__name__)

# Maps an expense to its explicit (key, percentage) entries
ExplicitEntries = Callable[[ExpenseFact], Sequence[Tuple[str, float]]]


def sku_entries(expense: ExpenseFact) -> List[Tuple[str, float]]:
    return [(entry.sku, entry.percentage) for entry in expense.allocated_products]


def marketplace_entries(expense: ExpenseFact) -> List[Tuple[str, float]]:
    """An expense booked against a marketplace belongs to it entirely"""
    if expense.marketplace_id:
        return [(expense.marketplace_id, 100.0)]
    return []


def explicit_share(expense: ExpenseFact, sku: str) -> float:
    """Amount explicitly allocated to a SKU, 0 when the SKU has no entry"""
    for entry in expense.allocated_products:
        if entry.sku == sku:
            return expense.amount * (entry.percentage / 100)
    return 0.0


def unallocated_fraction(entries: Sequence[Tuple[str, float]]) -> float:
    allocated = sum(percentage for _, percentage in entries)
    return max(100.0 - allocated, 0.0) / 100


@dataclass
class AllocationResult:
    """Expense amount per key plus whatever could not be attributed"""
    by_key: Dict[str, float] = field(default_factory=dict)
    unattributed: float = 0.0

    def get(self, key: str) -> float:
        return self.by_key.get(key, 0.0)

    @property
    def total(self) -> float:
        return sum(self.by_key.values()) + self.unattributed


class ExpenseAllocator:
    """
    Revenue-aware expense allocation for one grouping.

    Example:
        allocator = ExpenseAllocator({"A": 30.0, "B": 70.0})
        result = allocator.allocate(expenses)
        result.get("A")
    """

    def __init__(
        self,
        revenue_by_key: Mapping[str, float],
        entries: ExplicitEntries = sku_entries,
    ):
        self.revenue_by_key = {key: value for key, value in revenue_by_key.items() if value > 0}
        self.total_revenue = sum(self.revenue_by_key.values())
        self.entries = entries

    def revenue_share(self, key: str) -> float:
        if self.total_revenue <= 0:
            return 0.0
        return self.revenue_by_key.get(key, 0.0) / self.total_revenue

    def allocate_one(self, expense: ExpenseFact, key: str) -> float:
        """Amount of a single expense attributed to a key"""
        entries = self.entries(expense)
        explicit = sum(
            expense.amount * (percentage / 100)
            for entry_key, percentage in entries
            if entry_key == key
        )
        remainder = expense.amount * unallocated_fraction(entries)
        return explicit + remainder * self.revenue_share(key)

    def allocate(self, expenses: Iterable[ExpenseFact]) -> AllocationResult:
        """Allocate every expense across keys"""
        result = AllocationResult()
        pool = 0.0

        for expense in expenses:
            entries = self.entries(expense)
            for key, percentage in entries:
                result.by_key[key] = result.by_key.get(key, 0.0) + expense.amount * (percentage / 100)
            pool += expense.amount * unallocated_fraction(entries)

        if pool == 0:
            return result

        if self.total_revenue <= 0:
            result.unattributed = pool
            logger.debug("No revenue to spread unallocated expenses over", pool=round(pool, 2))
            return result

        for key, revenue in self.revenue_by_key.items():
            result.by_key[key] = result.by_key.get(key, 0.0) + pool * (revenue / self.total_revenue)

        return result


def revenue_shares(amounts: Sequence[float]) -> List[float]:
    """
    Fraction of a total owed by each part.

    Parts share by amount; when the total is not positive they share evenly.
    """
    if not amounts:
        return []
    total = sum(amounts)
    if total > 0:
        return [amount / total for amount in amounts]
    return [1.0 / len(amounts)] * len(amounts)


def allocate_by_key(
    expenses: Iterable[ExpenseFact],
    revenue_by_key: Mapping[str, float],
    entries: ExplicitEntries = sku_entries,
    group_of: Optional[Callable[[str], str]] = None,
) -> AllocationResult:
    """
    Allocate expenses and optionally roll keys up into coarser groups.

    group_of maps an allocation key to its reporting group (for example a
    marketplace to its country).
    """
    result = ExpenseAllocator(revenue_by_key, entries).allocate(expenses)
    if group_of is None:
        return result

    grouped = AllocationResult(unattributed=result.unattributed)
    for key, amount in result.by_key.items():
        group = group_of(key)
        grouped.by_key[group] = grouped.by_key.get(group, 0.0) + amount
    return grouped
