"""
FastAPI Application Factory

Creates and configures the API application.
"""

from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from seller_analytics.config import get_settings
from seller_analytics.profit.errors import ProfitEngineError
from seller_analytics.serving.api.middleware import RequestLoggingMiddleware
from seller_analytics.serving.api.routes import (
    charts_router,
    cogs_router,
    expenses_router,
    health_router,
    kpis_router,
    profit_router,
    returns_router,
)

settings = get_settings()
logger = structlog.get_logger(__name__)


async def profit_error_handler(request: Request, exc: ProfitEngineError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, error=exc.message)
    else:
        logger.info("Request rejected", path=request.url.path, status_code=exc.status_code, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message},
    )


def create_api_app(lifespan: Optional[Any] = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        lifespan: Startup/shutdown handler; omitted in tests

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="Seller Profit Analytics API",
        description="Cost attribution and profit reporting for marketplace sellers",
        version=settings.version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(ProfitEngineError, profit_error_handler)

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(profit_router, prefix="/api/v1/profit", tags=["Profit"])
    app.include_router(charts_router, prefix="/api/v1/charts", tags=["Charts"])
    app.include_router(cogs_router, prefix="/api/v1/cogs", tags=["COGS"])
    app.include_router(expenses_router, prefix="/api/v1/expenses", tags=["Expenses"])
    app.include_router(returns_router, prefix="/api/v1/returns", tags=["Returns"])
    app.include_router(kpis_router, prefix="/api/v1/kpis", tags=["KPIs"])

    return app
