"""
Expenses Service

Expense creation, listing, summaries and CSV bulk import. Allocation lists
are normalized on the way in so the allocator can trust them.
"""

import io
import json
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import polars as pl
import structlog

from seller_analytics.database.models import Expense
from seller_analytics.profit.aggregator import ProfitAggregator
from seller_analytics.profit.errors import ValidationError
from seller_analytics.profit.facts import AllocatedProduct, ExpenseFact, ExpenseType
from seller_analytics.profit.filters import ReportFilters, parse_date, start_of_day
from seller_analytics.profit.metrics import round_money
from seller_analytics.services.base import ReportService

logger = structlog.get_logger(__name__)

# Percentages may add up to slightly over 100 through rounding
MAX_ALLOCATION_TOTAL = 100.01

TYPE_ALIASES = {"one time": "one-time", "one_time": "one-time"}


def normalize_allocated_products(entries: Optional[Iterable[Any]]) -> Tuple[AllocatedProduct, ...]:
    """
    Trim SKUs and drop entries with no SKU or a non-positive percentage.

    Raises:
        ValidationError: Percentages add up to more than 100
    """
    cleaned: List[AllocatedProduct] = []
    for entry in entries or []:
        if isinstance(entry, AllocatedProduct):
            sku, percentage = entry.sku, entry.percentage
        elif isinstance(entry, dict):
            sku, percentage = entry.get("sku"), entry.get("percentage")
        else:
            sku, percentage = getattr(entry, "sku", None), getattr(entry, "percentage", None)

        sku = str(sku).strip() if sku is not None else ""
        try:
            percentage = float(percentage)
        except (TypeError, ValueError):
            continue
        if sku and percentage > 0:
            cleaned.append(AllocatedProduct(sku=sku, percentage=percentage))

    total = sum(entry.percentage for entry in cleaned)
    if total > MAX_ALLOCATION_TOTAL:
        raise ValidationError("Allocated product percentages cannot exceed 100")
    return tuple(cleaned)


def parse_allocated_products(value: Union[str, list, None]) -> Tuple[AllocatedProduct, ...]:
    """
    Accept a JSON list of {sku, percentage} or the short form "SKU1:50,SKU2:50".
    """
    if value is None or value == "":
        return ()
    if isinstance(value, list):
        return normalize_allocated_products(value)

    text = str(value).strip()
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        parsed = None
    if isinstance(parsed, list):
        return normalize_allocated_products(parsed)

    entries = []
    for part in text.split(","):
        sku, _, percentage = part.strip().partition(":")
        if sku:
            entries.append({"sku": sku, "percentage": percentage})
    return normalize_allocated_products(entries)


def parse_expense_type(value: Optional[str]) -> ExpenseType:
    name = (value or "").strip().lower()
    name = TYPE_ALIASES.get(name, name)
    try:
        return ExpenseType(name)
    except ValueError:
        raise ValidationError("Invalid expense type")


def serialize_expense(expense: Expense) -> Dict[str, Any]:
    return {
        "id": expense.id,
        "account_id": expense.account_id,
        "marketplace_id": expense.marketplace_id,
        "type": ExpenseType(expense.type).value,
        "category": expense.category,
        "amount": float(expense.amount),
        "currency": expense.currency,
        "description": expense.description,
        "allocated_products": expense.allocated_products or None,
        "incurred_at": expense.incurred_at.isoformat(),
    }


def allocated_amount_for_sku(expense: ExpenseFact, sku: Optional[str]) -> float:
    """Explicitly allocated amount; the whole amount when no SKU is asked for"""
    if not sku or not expense.allocated_products:
        return expense.amount
    for entry in expense.allocated_products:
        if entry.sku == sku:
            return expense.amount * (entry.percentage / 100)
    return 0.0


def summarize_expenses(expenses: Iterable[ExpenseFact], sku: Optional[str] = None) -> Dict[str, Any]:
    """Totals by recurrence type and by category"""
    by_type = {expense_type.value: 0.0 for expense_type in ExpenseType}
    by_category: Dict[str, float] = {}
    total = 0.0
    count = 0

    for expense in expenses:
        amount = allocated_amount_for_sku(expense, sku)
        if amount == 0:
            continue
        count += 1
        total += amount
        by_type[ExpenseType(expense.type).value] += amount
        by_category[expense.category] = by_category.get(expense.category, 0.0) + amount

    return {
        "total_amount": round_money(total),
        "count": count,
        "by_type": {key: round_money(value) for key, value in by_type.items()},
        "by_category": {key: round_money(value) for key, value in sorted(by_category.items())},
    }


class ExpensesService(ReportService):

    async def create(self, user_id: Optional[str], data: Dict[str, Any]) -> Dict[str, Any]:
        await self.authorize(user_id, data["account_id"])
        values = dict(data)
        values["type"] = parse_expense_type(values.get("type") or ExpenseType.ONE_TIME.value)
        allocations = normalize_allocated_products(values.get("allocated_products"))
        values["allocated_products"] = (
            [{"sku": a.sku, "percentage": a.percentage} for a in allocations] or None
        )
        expense = await self.repository.create_expense(values)
        await self.invalidate_account(expense.account_id)
        return serialize_expense(expense)

    async def list_expenses(self, user_id: Optional[str], filters: ReportFilters) -> Dict[str, Any]:
        """Expenses in the window with their summary"""
        await self.authorize(user_id, filters.account_id)
        start, end = filters.window()
        expenses = await self.repository.load_expenses(filters.account_id, filters.marketplace_id, start, end)
        if filters.sku:
            expenses = [e for e in expenses if allocated_amount_for_sku(e, filters.sku) != 0]

        return {
            "expenses": [
                {
                    "id": e.id,
                    "category": e.category,
                    "type": ExpenseType(e.type).value,
                    "amount": round_money(e.amount),
                    "marketplace_id": e.marketplace_id,
                    "allocated_products": [
                        {"sku": a.sku, "percentage": a.percentage} for a in e.allocated_products
                    ] or None,
                    "incurred_at": e.incurred_at.isoformat(),
                }
                for e in expenses
            ],
            "summary": summarize_expenses(expenses, filters.sku),
        }

    async def allocated_to_sku(self, user_id: Optional[str], filters: ReportFilters, sku: str) -> Dict[str, Any]:
        """
        Expense amount carried by one SKU: its explicit entries plus its
        revenue share of the unallocated remainder.
        """
        snapshot = await self.snapshot(user_id, filters)
        summary = ProfitAggregator(snapshot, self.cogs_method).summary(sku)
        return {
            "sku": sku,
            "allocated_expenses": summary.total_expenses,
            "sales_revenue": summary.sales_revenue,
        }

    async def bulk_import(self, user_id: Optional[str], account_id: Optional[str], content: bytes) -> Dict[str, Any]:
        """
        Create expenses from CSV rows.

        Columns: type, category, amount, incurred_at (or date), and optionally
        currency, description, marketplace_id, allocated_products. Rows that
        fail are reported and skipped.
        """
        if not account_id:
            raise ValidationError("accountId is required for bulk import")
        await self.authorize(user_id, account_id)

        try:
            frame = pl.read_csv(io.BytesIO(content), infer_schema_length=0)
        except (pl.exceptions.ComputeError, pl.exceptions.NoDataError) as e:
            raise ValidationError(f"Could not read CSV: {e}")

        frame = frame.rename({name: name.strip().lower() for name in frame.columns})

        created = 0
        errors = []
        for index, row in enumerate(frame.iter_rows(named=True), start=1):
            try:
                values = self._row_values(account_id, row)
                await self.repository.create_expense(values)
                created += 1
            except ValidationError as e:
                errors.append({"row": index, "message": e.message})

        if errors:
            logger.warning("Bulk expense import completed with errors", created=created, failed=len(errors))
        if created:
            await self.invalidate_account(account_id)

        return {"created": created, "failed": len(errors), "errors": errors}

    @staticmethod
    def _row_values(account_id: str, row: Dict[str, Optional[str]]) -> Dict[str, Any]:
        def text(*names: str) -> str:
            for name in names:
                value = row.get(name)
                if value is not None and str(value).strip():
                    return str(value).strip()
            return ""

        category = text("category")
        raw_amount = text("amount")
        incurred = text("incurred_at", "incurredat", "date")
        if not category or not raw_amount or not incurred or not text("type"):
            raise ValidationError("Missing required fields (type, category, amount, incurredAt)")

        try:
            amount = float(raw_amount)
        except ValueError:
            raise ValidationError(f"Invalid amount '{raw_amount}'")

        allocations = parse_allocated_products(text("allocated_products", "allocatedproducts"))
        return {
            "account_id": account_id,
            "marketplace_id": text("marketplace_id", "marketplaceid") or None,
            "type": parse_expense_type(text("type")),
            "category": category,
            "amount": amount,
            "currency": text("currency") or "USD",
            "description": text("description") or None,
            "allocated_products": [{"sku": a.sku, "percentage": a.percentage} for a in allocations] or None,
            "incurred_at": start_of_day(parse_date(incurred, "incurredAt")),
        }
