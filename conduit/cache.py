import json
import logging

import redis.asyncio as redis

from conduit.config import settings

logger = logging.getLogger(__name__)

TAGS_KEY = "tags:list"


class CacheManager:
    """
    Redis-backed cache-aside helper.

    Only viewer-independent data goes through here (the global tag list);
    article and profile views carry per-viewer flags and are always read
    from the database.  Every method is safe to call without a Redis
    connection: reads miss and writes are skipped.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._hits: int = 0
        self._misses: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Ping Redis once at startup; on failure the cache stays disabled."""
        self._redis = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Tag cache enabled (%s)", settings.REDIS_URL)
        except Exception as exc:
            logger.warning("Redis ping failed, cache disabled: %s", exc)
            await self._redis.aclose()
            self._redis = None

    async def disconnect(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    # ------------------------------------------------------------------
    # Reads and writes
    # ------------------------------------------------------------------

    async def get(self, key: str) -> dict | list | None:
        if not self._redis:
            self._misses += 1
            return None
        try:
            data = await self._redis.get(key)
        except Exception as exc:
            logger.debug("cache get %s failed: %s", key, exc)
            self._misses += 1
            return None
        if data is None:
            self._misses += 1
            return None
        self._hits += 1
        return json.loads(data)

    async def set(self, key: str, value: dict | list, ttl: int | None = None) -> None:
        """A failed cache write is logged and never breaks the request."""
        if not self._redis:
            return
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
        except Exception as exc:
            logger.debug("cache set %s failed: %s", key, exc)

    async def delete_pattern(self, pattern: str) -> None:
        """Delete all keys matching *pattern* using SCAN (avoids blocking KEYS)."""
        if not self._redis:
            return
        try:
            keys = [key async for key in self._redis.scan_iter(match=pattern)]
            if keys:
                await self._redis.delete(*keys)
                logger.debug("cache dropped %s (%d keys)", pattern, len(keys))
        except Exception as exc:
            logger.debug("cache invalidation of %s failed: %s", pattern, exc)

    # ------------------------------------------------------------------
    # Domain-level invalidation
    # ------------------------------------------------------------------

    async def invalidate_tags(self) -> None:
        """Drop the tag list after any write that may have created a tag."""
        await self.delete_pattern(f"{TAGS_KEY}*")

    @property
    def stats(self) -> dict:
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


# Shared by the lifespan hook and the services.
cache = CacheManager()
