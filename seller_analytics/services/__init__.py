"""
Report services: authorized, cached access to the profit engine.
"""
from .charts import ChartsService
from .cogs import CogsService
from .expenses import ExpensesService
from .kpis import KpiService
from .profit import ProfitService
from .returns import ReturnsService

__all__ = [
    "ChartsService",
    "CogsService",
    "ExpensesService",
    "KpiService",
    "ProfitService",
    "ReturnsService",
]
