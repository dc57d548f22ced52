"""
Profit Metric Calculator

Pure functions turning aggregated money amounts into profit and ratio
figures. Currency and percentages are rounded to 2 decimals.
"""

from dataclasses import dataclass


def round_money(value: float) -> float:
    """Round to cents; never returns -0.0"""
    return round(float(value), 2) + 0.0


def round_ratio(value: float) -> float:
    return round(float(value), 2) + 0.0


@dataclass(frozen=True)
class ProfitMetrics:
    gross_profit: float
    net_profit: float
    gross_margin: float
    net_margin: float


def profit_metrics(
    revenue: float,
    expenses: float,
    fees: float,
    refunds: float,
    cogs: float,
) -> ProfitMetrics:
    """
    Gross and net profit with their margins.

    gross = revenue - cogs - fees - refunds
    net   = gross - expenses
    Margins are 0 when revenue is not positive.
    """
    gross_profit = revenue - cogs - fees - refunds
    net_profit = gross_profit - expenses
    gross_margin = gross_profit / revenue * 100 if revenue > 0 else 0.0
    net_margin = net_profit / revenue * 100 if revenue > 0 else 0.0

    return ProfitMetrics(
        gross_profit=round_money(gross_profit),
        net_profit=round_money(net_profit),
        gross_margin=round_ratio(gross_margin),
        net_margin=round_ratio(net_margin),
    )


def margin(revenue: float, cost: float) -> float:
    if revenue == 0:
        return 0.0
    return round_ratio((revenue - cost) / revenue * 100)


def acos(ad_spend: float, sales: float) -> float:
    """Advertising Cost of Sales, percent"""
    if sales == 0:
        return 0.0
    return round_ratio(ad_spend / sales * 100)


def roas(revenue: float, ad_spend: float) -> float:
    """Return on Ad Spend"""
    if ad_spend == 0:
        return 0.0
    return round_ratio(revenue / ad_spend)


def roi(net_profit: float, cogs: float) -> float:
    """Return on investment in goods, percent"""
    if cogs == 0:
        return 0.0
    return round_ratio(net_profit / cogs * 100)


def ratio_percent(part: float, whole: float) -> float:
    if whole == 0:
        return 0.0
    return round_ratio(part / whole * 100)


def percent_change(current: float, previous: float) -> float:
    """
    Change from previous to current, percent.

    A move away from zero counts as +/-100; zero to zero is 0.
    """
    if previous == 0:
        if current == 0:
            return 0.0
        return 100.0 if current > 0 else -100.0
    return round_ratio((current - previous) / abs(previous) * 100)
