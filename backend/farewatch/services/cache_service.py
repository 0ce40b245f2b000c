"""Redis cache for fare search results."""

import json
import logging
from typing import Any

import redis.asyncio as redis

logger = logging.getLogger(__name__)

TTL_FLIGHT_PRICES = 10 * 60  # 10 minutes


class SearchResultCache:
    """Redis-backed cache with a fixed TTL. Misses and errors both read as None."""

    def __init__(self, redis_url: str, ttl: int = TTL_FLIGHT_PRICES, client: redis.Redis | None = None):
        self.redis_url = redis_url
        self.ttl = ttl
        self._redis: redis.Redis | None = client
        self._disabled = not redis_url and client is None

    async def _get_redis(self) -> redis.Redis | None:
        if self._disabled:
            return None
        if self._redis is None:
            try:
                self._redis = redis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )
                await self._redis.ping()
            except Exception as e:
                logger.warning(f"Redis unavailable, search cache disabled: {e}")
                self._redis = None
                self._disabled = True
                return None
        return self._redis

    async def get(self, key: str) -> Any | None:
        try:
            r = await self._get_redis()
            if r is None:
                return None
            raw = await r.get(key)
            if raw is None:
                return None
            return json.loads(raw)
        except Exception as e:
            logger.debug(f"Cache read failed for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        try:
            r = await self._get_redis()
            if r is None:
                return False
            await r.set(key, json.dumps(value, default=str), ex=ttl or self.ttl)
            return True
        except Exception as e:
            logger.debug(f"Cache write failed for {key}: {e}")
            return False

    async def close(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None
