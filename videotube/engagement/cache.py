"""Like-count memo backends."""

import logging
from abc import ABC, abstractmethod
from collections import OrderedDict

from redis.asyncio import Redis
from redis.exceptions import RedisError

from videotube.config import Settings

logger = logging.getLogger(__name__)


class LikeCountCache(ABC):
    """Memo of the last known like count per target."""

    @abstractmethod
    async def get(self, key: str) -> int | None:
        """Return the memoized count, or None on a miss."""
        pass

    @abstractmethod
    async def set(self, key: str, count: int) -> None:
        pass

    @abstractmethod
    async def invalidate(self, key: str) -> bool:
        """Drop the entry; False if the backend could not remove it."""
        pass

    async def close(self) -> None:
        """Release backend resources at shutdown."""
        return None


class MemoryLikeCountCache(LikeCountCache):
    """In-process LRU memo holding at most ``capacity`` entries."""

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._entries: OrderedDict[str, int] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> int | None:
        count = self._entries.get(key)
        if count is not None:
            self._entries.move_to_end(key)
        return count

    async def set(self, key: str, count: int) -> None:
        self._entries[key] = count
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            self._entries.popitem(last=False)

    async def invalidate(self, key: str) -> bool:
        self._entries.pop(key, None)
        return True


class RedisLikeCountCache(LikeCountCache):
    """Redis-backed memo shared between processes; entries expire after ``ttl``.

    Redis failures are logged and reported as misses, so callers fall back
    to counting in the database.
    """

    def __init__(self, redis: Redis, ttl: int):
        self.redis = redis
        self.ttl = ttl

    @staticmethod
    def _key(key: str) -> str:
        return f"vt:likes:{key}"

    async def get(self, key: str) -> int | None:
        try:
            cached = await self.redis.get(self._key(key))
        except RedisError:
            logger.warning(f"Like-count cache read failed for {key}", exc_info=True)
            return None
        return int(cached) if cached is not None else None

    async def set(self, key: str, count: int) -> None:
        try:
            await self.redis.setex(self._key(key), self.ttl, count)
        except RedisError:
            logger.warning(f"Like-count cache write failed for {key}", exc_info=True)

    async def invalidate(self, key: str) -> bool:
        try:
            await self.redis.delete(self._key(key))
        except RedisError:
            # The entry survives until its TTL runs out
            logger.error(f"Like-count cache invalidation failed for {key}", exc_info=True)
            return False
        return True

    async def close(self) -> None:
        await self.redis.aclose()


def build_like_cache(settings: Settings) -> LikeCountCache:
    """Create the configured like-count cache backend."""
    if settings.like_cache_backend == "memory":
        return MemoryLikeCountCache(settings.like_cache_capacity)
    elif settings.like_cache_backend == "redis":
        redis = Redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
        return RedisLikeCountCache(redis, settings.like_cache_ttl_seconds)
    else:
        raise ValueError(f"Unknown like cache backend: {settings.like_cache_backend}")
