"""
Real Redis-backed price cache for production when REDIS_URL is set.
Implements the same interface as src.database.redis (in-memory stub).

Because every process shares the same keys, an invalidation after an admin
price update is visible to all workers immediately.
"""

from __future__ import annotations

from typing import Optional

import redis.asyncio as redis


class RedisCache:
    """
    Redis-backed price cache. Use when REDIS_URL is set in production.
    """

    KEY_PREFIX = "pricing"

    def __init__(self, url: str, ttl_seconds: int = 300) -> None:
        self._client = redis.from_url(url, decode_responses=True)
        self._ttl = ttl_seconds

    def _key(self, service_type: str, sub_service: str) -> str:
        return f"{self.KEY_PREFIX}:{service_type}:{sub_service}"

    async def get_price(self, service_type: str, sub_service: str) -> Optional[int]:
        raw = await self._client.get(self._key(service_type, sub_service))
        if not raw:
            return None
        try:
            return int(raw)
        except ValueError:
            return None

    async def set_price(self, service_type: str, sub_service: str, price: int) -> None:
        if self._ttl <= 0:
            return
        await self._client.setex(self._key(service_type, sub_service), self._ttl, str(int(price)))

    async def invalidate(self, service_type: str, sub_service: str) -> None:
        await self._client.delete(self._key(service_type, sub_service))

    async def clear(self) -> None:
        keys = [key async for key in self._client.scan_iter(match=f"{self.KEY_PREFIX}:*")]
        if keys:
            await self._client.delete(*keys)

    async def close(self) -> None:
        await self._client.aclose()
