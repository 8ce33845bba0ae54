import json
import logging
from typing import Any, Awaitable, Callable

import redis.asyncio as redis
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from articlefeed.config import settings

logger = logging.getLogger(__name__)

# Session.info key holding slugs whose cached detail must be dropped after commit.
_STALE_KEY = "articlefeed.stale_details"


def detail_key(slug: str) -> str:
    return f"articles:detail:{slug}"


class CacheManager:
    """
    Redis cache-aside for the single-article detail payload.

    Listings are never cached: their favorite flags depend on the viewer
    and their cursors must reflect the store as it is now.

    Redis is optional.  With no connection, or when a command fails,
    reads report a miss and writes are dropped, so callers fall through
    to the database.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._hits = 0
        self._misses = 0

    async def connect(self) -> None:
        client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as exc:  # pragma: no cover
            logger.warning("Redis unreachable at %s, serving without cache: %s", settings.REDIS_URL, exc)
            await client.aclose()
            return
        self._redis = client
        logger.info("Redis connected: %s", settings.REDIS_URL)

    async def disconnect(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def _call(self, op: str, command: Callable[[], Awaitable[Any]]) -> Any:
        """Run one Redis command; failures are logged and read as ``None``."""
        if self._redis is None:
            return None
        try:
            return await command()
        except (RedisError, OSError) as exc:
            logger.debug("Cache %s failed: %s", op, exc)
            return None

    # ------------------------------------------------------------------
    # Article detail
    # ------------------------------------------------------------------

    async def get_detail(self, slug: str) -> dict | None:
        raw = await self._call("GET", lambda: self._redis.get(detail_key(slug)))
        if raw is None:
            self._misses += 1
            return None
        self._hits += 1
        return json.loads(raw)

    async def set_detail(self, slug: str, payload: dict) -> None:
        body = json.dumps(payload, default=str)
        await self._call(
            "SET", lambda: self._redis.set(detail_key(slug), body, ex=settings.CACHE_TTL_DETAIL)
        )

    async def invalidate_article(self, *slugs: str) -> None:
        """Drop cached details after an article is updated or deleted."""
        if slugs:
            keys = [detail_key(slug) for slug in slugs]
            await self._call("DELETE", lambda: self._redis.delete(*keys))

    async def mark_stale(self, db: AsyncSession, *slugs: str) -> None:
        """
        Drop cached details now and remember them on *db*.

        ``transaction`` drops them once more after the commit: a ``show``
        running between this call and the commit still reads the old row
        and may cache it again.
        """
        db.info.setdefault(_STALE_KEY, set()).update(slugs)
        await self.invalidate_article(*slugs)

    async def flush_stale(self, db: AsyncSession) -> None:
        stale = db.info.pop(_STALE_KEY, None)
        if stale:
            await self.invalidate_article(*sorted(stale))

    @property
    def stats(self) -> dict:
        total = self._hits + self._misses
        return {
            "enabled": self._redis is not None,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total else 0.0,
        }


cache = CacheManager()
