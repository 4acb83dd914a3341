import json
import logging

import redis.asyncio as redis

from app.config import settings

logger = logging.getLogger(__name__)

PLANET_LIST_PATTERN = "planets:list:*"
_SCAN_BATCH = 500


def planet_detail_key(planet_id: int) -> str:
    return f"planets:detail:{planet_id}"


def planet_list_key(page: int, page_size: int, sort_by: str, sort_order: str) -> str:
    return f"planets:list:{page}:{page_size}:{sort_by}:{sort_order}"


class CacheManager:
    """
    Cache-aside manager backed by Redis.

    Only planet reads are cached (detail + public listing).  Membership state
    is never cached: every authorization decision reads the store directly.

    All public methods are safe to call when Redis is unavailable: reads
    return None and writes are skipped, so the API keeps working without it.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._hits: int = 0
        self._misses: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection pool.  Called once at application startup."""
        self._redis = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", settings.REDIS_URL)
        except Exception as exc:  # pragma: no cover
            logger.warning("Redis ping failed, cache disabled: %s", exc)
            await self._redis.aclose()
            self._redis = None

    async def disconnect(self) -> None:
        """Close the connection pool.  Called once at application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    # ------------------------------------------------------------------
    # Core cache operations
    # ------------------------------------------------------------------

    def _count(self, hit: bool) -> None:
        if hit:
            self._hits += 1
        else:
            self._misses += 1

    async def get(self, key: str) -> dict | list | None:
        """Return the cached JSON value for *key*; None on a miss or any Redis error."""
        raw = None
        if self._redis:
            try:
                raw = await self._redis.get(key)
            except Exception as exc:
                logger.debug("Cache read failed for %s: %s", key, exc)
        self._count(raw is not None)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: dict | list, ttl: int | None = None) -> None:
        if not self._redis:
            return
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
        except Exception as exc:
            logger.debug("Cache write failed for %s: %s", key, exc)

    async def delete(self, *keys: str) -> None:
        if not self._redis or not keys:
            return
        try:
            await self._redis.unlink(*keys)
        except Exception as exc:
            logger.debug("Cache unlink failed for %s: %s", keys, exc)

    async def delete_pattern(self, pattern: str) -> None:
        """Unlink every key matching *pattern*, walking the keyspace with SCAN."""
        if not self._redis:
            return
        removed = 0
        batch: list[str] = []
        try:
            async for key in self._redis.scan_iter(match=pattern, count=_SCAN_BATCH):
                batch.append(key)
                if len(batch) >= _SCAN_BATCH:
                    removed += await self._redis.unlink(*batch)
                    batch.clear()
            if batch:
                removed += await self._redis.unlink(*batch)
        except Exception as exc:
            logger.debug("Cache pattern unlink failed for %s: %s", pattern, exc)
            return
        if removed:
            logger.debug("Cache dropped %d key(s) matching %s", removed, pattern)

    # ------------------------------------------------------------------
    # Domain-level invalidation
    # ------------------------------------------------------------------

    async def invalidate_planet(self, planet_id: int | None = None) -> None:
        """
        Purge the public listing and, when given, one planet's detail entry.

        Called after create / update / delete / ownership transfer.
        """
        await self.delete_pattern(PLANET_LIST_PATTERN)
        if planet_id is not None:
            await self.delete(planet_detail_key(planet_id))

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    @property
    def stats(self) -> dict:
        """Return a snapshot of hit/miss counters for the metrics endpoint."""
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


# Module-level singleton shared across all request handlers.
cache = CacheManager()
