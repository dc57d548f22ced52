"""
Shared plumbing for report services: account authorization, snapshot
loading and result caching.
"""

from datetime import date
from typing import Any, Awaitable, Callable, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from seller_analytics.config import get_settings
from seller_analytics.database.models import UserAccount
from seller_analytics.database.repository import FactRepository
from seller_analytics.profit.cost_lots import CogsMethod
from seller_analytics.profit.facts import FactSnapshot
from seller_analytics.profit.filters import ReportFilters
from seller_analytics.serving.cache import CacheManager, reports_cache

logger = structlog.get_logger(__name__)
settings = get_settings()


class ReportService:
    """
    Base class for services that read an account's facts.

    Every public method authorizes the caller for the account before any
    report is computed.
    """

    def __init__(
        self,
        session: AsyncSession,
        cache: Optional[CacheManager] = None,
        today: Optional[date] = None,
    ):
        self.session = session
        self.repository = FactRepository(session)
        self.cache = cache or reports_cache
        self.today = today
        self.cogs_method = CogsMethod(settings.reporting.cogs_method)

    async def authorize(self, user_id: Optional[str], account_id: str) -> UserAccount:
        return await self.repository.verify_account_access(user_id, account_id)

    async def snapshot(self, user_id: Optional[str], filters: ReportFilters) -> FactSnapshot:
        await self.authorize(user_id, filters.account_id)
        return await self.repository.load_snapshot(filters)

    async def cached(self, name: str, filters: ReportFilters, factory: Callable[[], Awaitable[Any]]) -> Any:
        """Cache a JSON-ready report under the account's key prefix"""
        key = f"{filters.account_id}:{name}:{filters.cache_key()}"
        return await self.cache.get_or_set(key, factory)

    async def invalidate_account(self, account_id: str) -> None:
        removed = await self.cache.invalidate(f"{account_id}:")
        if removed:
            logger.debug("Report cache invalidated", account_id=account_id, keys=removed)
