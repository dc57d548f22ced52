"""
Integration Tests - Repository and Services
"""
import pytest
from datetime import date, datetime

from seller_analytics.database.repository import FactRepository
from seller_analytics.profit.aggregator import Dimension
from seller_analytics.profit.errors import AccessDeniedError, NotFoundError, ValidationError
from seller_analytics.profit.filters import ReportFilters
from seller_analytics.services import (
    ChartsService,
    CogsService,
    ExpensesService,
    KpiService,
    ProfitService,
    ReturnsService,
)
from tests.integration.conftest import ACCOUNT_ID, ADMIN, OUTSIDER, STAFF

pytestmark = pytest.mark.integration

SEPTEMBER = ReportFilters.build(ACCOUNT_ID, start_date="2026-09-01", end_date="2026-09-30")


@pytest.fixture
async def session(seeded_db):
    async with seeded_db() as session:
        yield session
        await session.rollback()


class TestFactRepository:
    """Tests for snapshot loading"""

    async def test_load_snapshot(self, session):
        snapshot = await FactRepository(session).load_snapshot(SEPTEMBER)

        assert len(snapshot.sales) == 4
        assert sum(line.line_revenue for line in snapshot.sales) == 180.0
        assert len(snapshot.fees) == 2
        assert len(snapshot.refunds) == 1
        assert len(snapshot.returns) == 1
        assert len(snapshot.cost_lots) == 3
        assert snapshot.expenses[0].allocated_products[0].sku == "SKU-A"
        assert snapshot.marketplaces["mp-uk"].region == "UK"

    async def test_end_date_inclusive(self, session):
        filters = ReportFilters.build(ACCOUNT_ID, start_date="2026-09-03", end_date="2026-09-03")

        snapshot = await FactRepository(session).load_snapshot(filters)

        assert [line.order_id for line in snapshot.sales] == ["o-3"]

    async def test_marketplace_filter(self, session):
        filters = ReportFilters.build(ACCOUNT_ID, marketplace_id="mp-uk")

        snapshot = await FactRepository(session).load_snapshot(filters)

        assert [line.line_id for line in snapshot.sales] == ["l-3"]
        assert [fee.amount for fee in snapshot.fees] == [4.5]
        assert snapshot.refunds == ()

    async def test_access(self, session):
        repository = FactRepository(session)

        membership = await repository.verify_account_access(ADMIN, ACCOUNT_ID)
        assert repository.is_privileged(membership)

        with pytest.raises(AccessDeniedError):
            await repository.verify_account_access(OUTSIDER, ACCOUNT_ID)
        with pytest.raises(AccessDeniedError):
            await repository.verify_account_access(None, ACCOUNT_ID)


class TestProfitService:

    async def test_summary(self, session):
        summary = await ProfitService(session).summary(STAFF, SEPTEMBER)

        assert summary["sales_revenue"] == 180.0
        assert summary["total_cogs"] == 50.0
        assert summary["total_expenses"] == 100.0
        assert summary["net_profit"] == -4.5
        assert summary["period"] == {"start_date": "2026-09-01", "end_date": "2026-09-30"}

    async def test_summary_denied_before_any_read(self, session):
        with pytest.raises(AccessDeniedError):
            await ProfitService(session).summary(OUTSIDER, SEPTEMBER)

    async def test_breakdown_by_country(self, session):
        rows = await ProfitService(session).breakdown(STAFF, SEPTEMBER, Dimension.COUNTRY)

        assert [(row["country"], row["sales_revenue"]) for row in rows] == [("US", 150.0), ("GB", 30.0)]

    async def test_trends_zero_filled(self, session):
        filters = ReportFilters.build(ACCOUNT_ID, start_date="2026-08-31", end_date="2026-09-04")

        rows = await ProfitService(session).trends(STAFF, filters)

        assert [row["period"] for row in rows] == [
            "2026-08-31", "2026-09-01", "2026-09-02", "2026-09-03", "2026-09-04",
        ]
        assert rows[0]["sales_revenue"] == 0.0
        assert rows[1]["sales_revenue"] == 100.0

    async def test_order_items_paging(self, session):
        page = await ProfitService(session).order_items(STAFF, SEPTEMBER, limit=2, offset=1)

        assert page["total"] == 4
        assert [item["line_id"] for item in page["items"]] == ["l-3", "l-2"]

    async def test_pnl(self, session):
        report = await ProfitService(session).pnl(STAFF, ACCOUNT_ID, today=date(2026, 10, 19))

        sales = next(row for row in report["metrics"] if row["parameter"] == "Sales")
        assert report["periods"][1]["key"] == "2026-09"
        assert sales["periods"][1] == {"period": "2026-09", "value": 180.0}


class TestChartsService:

    async def test_comparison_windows(self, session):
        filters = ReportFilters.build(ACCOUNT_ID, start_date="2026-09-01", end_date="2026-09-10")

        chart = await ChartsService(session).comparison(STAFF, filters, "sales")

        assert chart["previous_start_date"] == "2026-08-22"
        assert chart["previous_end_date"] == "2026-08-31"
        assert len(chart["series"][1]["data"]) == len(chart["labels"]) == 10


class TestCogsService:

    async def test_create_recomputes_total(self, session):
        lot = await CogsService(session).create(ADMIN, {
            "account_id": ACCOUNT_ID,
            "sku": "SKU-C",
            "quantity": 4,
            "unit_cost": 2.5,
            "shipment_cost": 3.0,
            "purchased_at": datetime(2026, 9, 10),
        })

        assert lot["total_cost"] == 13.0
        assert lot["cost_method"] == "WEIGHTED_AVERAGE"

    async def test_update_requires_privileged_role(self, session):
        with pytest.raises(AccessDeniedError, match="Only admins and managers"):
            await CogsService(session).update(STAFF, "lot-1", {"unit_cost": 9.0})

    async def test_update(self, session):
        lot = await CogsService(session).update(ADMIN, "lot-1", {"unit_cost": 2.5, "sku": "ignored"})

        assert lot["unit_cost"] == 2.5
        assert lot["total_cost"] == 25.0
        assert lot["sku"] == "SKU-A"

    async def test_unknown_lot(self, session):
        with pytest.raises(NotFoundError):
            await CogsService(session).batch_details(ADMIN, "lot-missing")

    async def test_batch_details(self, session):
        details = await CogsService(session).batch_details(STAFF, "lot-1")

        # five SKU-A units sold so far, all from the oldest lot
        assert details["used_quantity"] == 5
        assert details["remaining_quantity"] == 5

    async def test_by_sku(self, session):
        result = await CogsService(session).by_sku(STAFF, ACCOUNT_ID, "SKU-A")

        assert result["total_quantity"] == 15
        assert result["total_cost"] == 35.0
        assert result["average_unit_cost"] == pytest.approx(2.3333)
        assert [entry["id"] for entry in result["entries"]] == ["lot-2", "lot-1"]

    async def test_historical_method_breakdown(self, session):
        result = await CogsService(session).historical(STAFF, ReportFilters.build(ACCOUNT_ID, sku="SKU-A"))

        assert result["summary"]["method_breakdown"]["BATCH"] == 20.0
        assert result["summary"]["method_breakdown"]["WEIGHTED_AVERAGE"] == 15.0

    async def test_resolve(self, session):
        result = await CogsService(session).resolve(STAFF, ACCOUNT_ID, "SKU-A", 12)

        assert result["cogs"] == 26.0
        assert result["uncosted_units"] == 0


class TestExpensesService:

    async def test_create_normalizes_allocations(self, session):
        expense = await ExpensesService(session).create(STAFF, {
            "account_id": ACCOUNT_ID,
            "type": "recurring",
            "category": "Advertising",
            "amount": 30.0,
            "allocated_products": [{"sku": " SKU-B ", "percentage": 50}, {"sku": "", "percentage": 10}],
            "incurred_at": datetime(2026, 9, 15),
        })

        assert expense["type"] == "recurring"
        assert expense["allocated_products"] == [{"sku": "SKU-B", "percentage": 50.0}]

    async def test_create_rejects_over_allocation(self, session):
        with pytest.raises(ValidationError):
            await ExpensesService(session).create(STAFF, {
                "account_id": ACCOUNT_ID,
                "category": "Rent",
                "amount": 10.0,
                "allocated_products": [{"sku": "A", "percentage": 80}, {"sku": "B", "percentage": 80}],
                "incurred_at": datetime(2026, 9, 15),
            })

    async def test_allocated_to_sku(self, session):
        result = await ExpensesService(session).allocated_to_sku(STAFF, SEPTEMBER, "SKU-A")

        assert result["allocated_expenses"] == 60.0

    async def test_bulk_import(self, session):
        content = (
            b"type,category,amount,incurredAt,allocatedProducts\n"
            b"fixed,Rent,500,2026-09-01,\n"
            b"recurring,Software,49.99,2026-09-02,SKU-A:100\n"
            b"weekly,Other,10,2026-09-03,\n"
        )

        result = await ExpensesService(session).bulk_import(STAFF, ACCOUNT_ID, content)

        assert result["created"] == 2
        assert result["failed"] == 1
        assert result["errors"][0]["row"] == 3

        listing = await ExpensesService(session).list_expenses(STAFF, SEPTEMBER)
        assert listing["summary"]["count"] == 3
        assert listing["summary"]["by_type"]["fixed"] == 500.0


class TestReturnsAndKpis:

    async def test_returns_summary(self, session):
        summary = await ReturnsService(session).summary(STAFF, SEPTEMBER)

        assert summary["total_returned_units"] == 1
        assert summary["sellable_units"] == 1
        assert summary["by_reason_code"]["DEFECTIVE"]["fee_amount"] == 2.0

    async def test_payout_estimate(self, session):
        payout = await KpiService(session).payout_estimate(STAFF, SEPTEMBER)

        assert payout["fba_fees"] == 10.0
        assert payout["other_fees"] == 4.5
        assert payout["advertising"] == 12.0
        assert payout["estimated_payout"] == 180.0 - 14.5 - 20.0 - 12.0 - 50.0

    async def test_advertising(self, session):
        result = await KpiService(session).advertising(STAFF, SEPTEMBER)

        assert result["acos"] == 20.0
        assert result["roas"] == 5.0

    async def test_units_sold(self, session):
        result = await KpiService(session).units_sold(STAFF, SEPTEMBER)

        assert result["total_units"] == 7

    async def test_recalculate_inventory(self, session):
        results = await KpiService(session).recalculate_inventory(STAFF, ACCOUNT_ID, now=datetime(2026, 9, 20))

        by_sku = {item["sku"]: item for item in results}
        assert by_sku["SKU-A"]["units_sold"] == 5
        assert by_sku["SKU-A"]["days_of_cover"] == 270.0
        assert by_sku["SKU-C"]["days_of_cover"] is None

        kpis = await FactRepository(session).list_inventory_kpis(ACCOUNT_ID)
        assert [kpi.sku for kpi in kpis] == ["SKU-A", "SKU-C"]
