"""
Caching Service for admin reports.

Reports are JSON blobs kept in Redis for a short TTL. The cache is an
optimisation only: Redis errors are logged and the report is computed
directly.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Optional

from parcelflow.app.core.config import settings

logger = logging.getLogger(__name__)

CACHE_PREFIX = "reports:"


class ReportCache:

    def __init__(self, redis, ttl_seconds: Optional[int] = None):
        self.redis = redis
        self.ttl_seconds = settings.report_cache_ttl_seconds if ttl_seconds is None else ttl_seconds

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self.redis.get(f"{CACHE_PREFIX}{key}")
        except Exception:
            logger.warning("Report cache read failed for %s", key, exc_info=True)
            return None
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, data: Any) -> None:
        try:
            await self.redis.set(f"{CACHE_PREFIX}{key}", json.dumps(data), ex=self.ttl_seconds)
        except Exception:
            logger.warning("Report cache write failed for %s", key, exc_info=True)

    async def get_or_compute(self, key: str, compute: Callable[[], Awaitable[Any]]) -> Any:
        """
        Return the cached report or compute and store it.

        ``compute`` must return JSON-serialisable data. A TTL of 0 disables
        caching.
        """
        if self.ttl_seconds <= 0:
            return await compute()

        cached = await self.get(key)
        if cached is not None:
            return cached

        data = await compute()
        await self.set(key, data)
        return data
