"""
FastAPI Production Application

Main entry point for the Seller Profit Analytics API.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from seller_analytics.config import get_settings
from seller_analytics.config.logging import configure_logging
from seller_analytics.database.connection import close_database, init_database
from seller_analytics.serving.api import create_api_app
from seller_analytics.serving.cache import close_redis, init_redis

settings = get_settings()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()

    logger.info("Starting Seller Profit Analytics API", environment=settings.app_env)

    await init_database()
    logger.info("Database initialized")

    # Reports are served uncached without Redis
    try:
        await init_redis()
        logger.info("Redis initialized")
    except Exception as e:
        logger.warning("Redis init failed, caching disabled", error=str(e))

    yield

    logger.info("Shutting down...")
    await close_database()
    await close_redis()


app = create_api_app(lifespan=lifespan)


@app.get("/api/v1/info")
async def api_info():
    """API information endpoint."""
    return {
        "name": "Seller Profit Analytics API",
        "version": settings.version,
        "environment": settings.app_env,
        "documentation": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
