"""
Fact builders shared by the test suite
"""
from seller_analytics.profit.facts import AllocatedProduct, CostLot, ExpenseFact, SalesFact

ACCOUNT_ID = "acc-1"


def sale(line_id, order_id, sku, quantity, unit_price, ordered_at, marketplace_id="mp-us", account_id=ACCOUNT_ID):
    return SalesFact(
        line_id=line_id,
        order_id=order_id,
        sku=sku,
        marketplace_id=marketplace_id,
        account_id=account_id,
        quantity=quantity,
        unit_price=unit_price,
        line_revenue=quantity * unit_price,
        ordered_at=ordered_at,
    )


def lot(lot_id, sku, quantity, unit_cost, purchased_at, shipment_cost=None, account_id=ACCOUNT_ID):
    return CostLot(
        id=lot_id,
        sku=sku,
        account_id=account_id,
        quantity=quantity,
        unit_cost=unit_cost,
        purchased_at=purchased_at,
        shipment_cost=shipment_cost,
    )


def expense(expense_id, amount, incurred_at, category="Software", allocations=(), marketplace_id=None):
    return ExpenseFact(
        id=expense_id,
        account_id=ACCOUNT_ID,
        category=category,
        amount=amount,
        incurred_at=incurred_at,
        marketplace_id=marketplace_id,
        allocated_products=tuple(AllocatedProduct(sku=s, percentage=p) for s, p in allocations),
    )
