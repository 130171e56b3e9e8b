"""
Redis-backed edge cache.
"""

import hashlib
import json
from typing import Optional

import redis.asyncio as redis

from shared.logging import get_logger
from ..domain.responses import ProxyResponse
from .edge_cache import EdgeCache, freshness_seconds


class RedisEdgeCache(EdgeCache):
    """Stores proxy responses in Redis, expiring them per their max-age.

    Backend errors never reach the caller: a failed lookup is a miss and a
    failed store is dropped.
    """

    def __init__(self, redis_url: str, key_prefix: str = "edge_cache"):
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self.logger = get_logger("fetch_proxy.redis_cache")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    def _make_key(self, key: str) -> str:
        return f"{self.key_prefix}:{hashlib.sha256(key.encode('utf-8')).hexdigest()}"

    async def match(self, key: str) -> Optional[ProxyResponse]:
        try:
            redis_client = await self._get_redis()
            cached = await redis_client.get(self._make_key(key))
        except Exception as exc:
            self.logger.error("Cache get error", key=key, error=str(exc))
            return None

        if not cached:
            return None

        if isinstance(cached, bytes):
            cached = cached.decode("utf-8")
        try:
            return ProxyResponse.from_dict(json.loads(cached))
        except (TypeError, KeyError, ValueError):
            self.logger.warning("Failed to deserialize cached response", key=key)
            return None

    async def put(self, key: str, response: ProxyResponse) -> None:
        ttl = freshness_seconds(response)
        if ttl == 0:
            return

        payload = json.dumps(response.to_dict())
        try:
            redis_client = await self._get_redis()
            if ttl is None:
                await redis_client.set(self._make_key(key), payload)
            else:
                await redis_client.setex(self._make_key(key), ttl, payload)
            self.logger.debug("Cached response", key=key, ttl=ttl)
        except Exception as exc:
            self.logger.error("Cache set error", key=key, error=str(exc))

    async def ping(self) -> bool:
        try:
            redis_client = await self._get_redis()
            return bool(await redis_client.ping())
        except Exception as exc:
            self.logger.warning("Redis ping failed", error=str(exc))
            return False

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
