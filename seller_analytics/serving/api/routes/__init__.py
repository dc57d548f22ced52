"""
API Routes Module
"""
from .health import router as health_router
from .profit import router as profit_router
from .charts import router as charts_router
from .cogs import router as cogs_router
from .expenses import router as expenses_router
from .returns import router as returns_router
from .kpis import router as kpis_router

__all__ = [
    "health_router",
    "profit_router",
    "charts_router",
    "cogs_router",
    "expenses_router",
    "returns_router",
    "kpis_router",
]
