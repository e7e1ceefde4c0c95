"""
Lightweight in-memory RedisCache replacement for local development.

Caches resolved prices per (service type, sub-service) with a TTL so the
pricing resolver does not hit the store on every request. Invalidation is
process-local: other processes see an update once their entry expires.
"""

from __future__ import annotations

import time
from typing import Callable, Dict, Optional, Tuple


class RedisCache:
    def __init__(self, ttl_seconds: int = 300, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        # (service_type, sub_service) -> (price, expires_at)
        self._prices: Dict[Tuple[str, str], Tuple[int, float]] = {}

    async def get_price(self, service_type: str, sub_service: str) -> Optional[int]:
        key = (service_type, sub_service)
        hit = self._prices.get(key)
        if hit is None:
            return None
        price, expires_at = hit
        if self._clock() >= expires_at:
            self._prices.pop(key, None)
            return None
        return price

    async def set_price(self, service_type: str, sub_service: str, price: int) -> None:
        if self._ttl <= 0:
            return
        self._prices[(service_type, sub_service)] = (int(price), self._clock() + self._ttl)

    async def invalidate(self, service_type: str, sub_service: str) -> None:
        self._prices.pop((service_type, sub_service), None)

    async def clear(self) -> None:
        self._prices.clear()

    async def close(self) -> None:
        return None
