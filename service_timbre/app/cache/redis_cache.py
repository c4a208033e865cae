"""
Redis caching layer for Timbre Service.
"""

import json
from typing import Any, Optional

import redis.asyncio as redis
from shared.logging import get_logger
from shared.errors import AccessLayerException


DEFAULT_EXPIRE = 60 * 60 * 24
NOT_EXPIRE = -1


class RedisCache:
    """Key-value cache holding JSON-serialized timbre projections."""

    def __init__(self, redis_url: str, namespace: str = "timbre", default_ttl: int = DEFAULT_EXPIRE):
        self.redis_url = redis_url
        self.logger = get_logger("timbre.cache.redis")
        self.redis: Optional[redis.Redis] = None
        self.default_ttl = default_ttl

        # Cache key prefixes
        self.DETAILS_PREFIX = f"{namespace}:details:"
        self.NAME_PREFIX = f"{namespace}:name:"

    async def start(self):
        """Start the Redis cache."""
        try:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30
            )

            await self.redis.ping()

            self.logger.info("Redis cache started")

        except Exception as e:
            self.logger.error("Failed to start Redis cache", error=str(e))
            raise AccessLayerException("REDIS_START_FAILED", str(e))

    async def stop(self):
        """Stop the Redis cache."""
        if self.redis:
            await self.redis.aclose()
            self.logger.info("Redis cache stopped")

    def details_key(self, timbre_id: str) -> str:
        return f"{self.DETAILS_PREFIX}{timbre_id}"

    def name_key(self, voice_id: str) -> str:
        return f"{self.NAME_PREFIX}{voice_id}"

    async def get(self, key: str) -> Optional[Any]:
        """Get a cached value, or None when the key is absent."""
        raw = await self.redis.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None):
        """Cache a value.

        ``ttl`` defaults to the cache's default expiry; ``NOT_EXPIRE`` stores
        the value without an expiry.
        """
        if ttl is None:
            ttl = self.default_ttl

        payload = json.dumps(value, ensure_ascii=False)
        if ttl == NOT_EXPIRE:
            await self.redis.set(key, payload)
        else:
            await self.redis.set(key, payload, ex=ttl)

        self.logger.debug("Cached value", cache_key=key, ttl=ttl)

    async def delete(self, *keys: str) -> int:
        """Delete cache keys, returning how many existed."""
        if not keys:
            return 0
        removed = await self.redis.delete(*keys)
        self.logger.debug("Deleted cache keys", keys=list(keys), removed=removed)
        return removed

    async def health_check(self) -> bool:
        """Check Redis health."""
        try:
            await self.redis.ping()
            return True
        except Exception:
            return False
