"""
Rating bundle caches.

Bundles are recomputed transparently on a miss, so every cache here is an
optimization only: expiry is lazy and nothing is cached for users that could
not be computed.
"""

import asyncio
import json
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

from redis.exceptions import RedisError

from specimen.config import Config
from specimen.constants import CacheConstants
from specimen.data_models.ratings import RatingBundle
from specimen.utils.exceptions import CacheUnavailableError
from specimen.utils.logger import setup_logger
from specimen.utils.redis_utils import RedisUtils

logger = setup_logger(__name__)


class RatingCache(ABC):
    """Time-bounded store of computed rating bundles keyed by user id."""

    def __init__(self, ttl: Optional[int] = None):
        self.ttl = ttl if ttl is not None else Config.RATING_CACHE_TTL

    @abstractmethod
    async def get(self, user_id: int) -> Optional[RatingBundle]:
        """Return the cached bundle, or None on a miss or expired entry."""

    @abstractmethod
    async def set(self, user_id: int, bundle: RatingBundle) -> None:
        """Store a bundle; a later write for the same user wins."""

    @abstractmethod
    async def invalidate(self, user_id: int) -> None:
        """Drop one user's bundle."""

    @abstractmethod
    async def clear(self) -> None:
        """Drop every bundle."""


class InMemoryRatingCache(RatingCache):
    """Process-local TTL cache with a size bound."""

    def __init__(self, ttl: Optional[int] = None, max_size: Optional[int] = None):
        super().__init__(ttl)
        self._cache_max_size = max_size if max_size is not None else Config.RATING_CACHE_MAX_SIZE
        self._cache: Dict[int, Tuple[float, RatingBundle]] = {}  # user_id -> (timestamp, bundle)
        self._cache_lock = asyncio.Lock()

    async def get(self, user_id: int) -> Optional[RatingBundle]:
        async with self._cache_lock:
            cached = self._cache.get(user_id)
            if cached is None:
                logger.debug(f"Rating cache miss for user {user_id}")
                return None

            timestamp, bundle = cached
            if time.time() - timestamp >= self.ttl:
                logger.debug(f"Rating cache entry expired for user {user_id}")
                del self._cache[user_id]
                return None

            logger.debug(f"Rating cache hit for user {user_id}")
            return bundle

    async def set(self, user_id: int, bundle: RatingBundle) -> None:
        async with self._cache_lock:
            # Re-insert so a rewritten entry counts as the newest
            self._cache.pop(user_id, None)
            self._cache[user_id] = (time.time(), bundle)
            if len(self._cache) > self._cache_max_size:
                self._cleanup_cache()

    async def invalidate(self, user_id: int) -> None:
        async with self._cache_lock:
            if self._cache.pop(user_id, None) is not None:
                logger.debug(f"Invalidated rating cache for user {user_id}")

    async def clear(self) -> None:
        async with self._cache_lock:
            logger.info("Clearing entire rating cache")
            self._cache.clear()

    def __len__(self):
        return len(self._cache)

    def _cleanup_cache(self):
        """Remove oldest cache entries to stay within size limit. Caller holds the lock."""
        # Stable sort: entries written in the same tick keep insertion order
        sorted_items = sorted(self._cache.items(), key=lambda x: x[1][0])
        self._cache = dict(sorted_items[-self._cache_max_size:])
        logger.debug(f"Cleaned rating cache, kept {len(self._cache)} entries")


class RedisRatingCache(RatingCache):
    """Shared cache backed by redis; expiry is delegated to SETEX."""

    def __init__(self, client, ttl: Optional[int] = None, key_prefix: str = CacheConstants.REDIS_KEY_PREFIX):
        super().__init__(ttl)
        self.client = client
        self.key_prefix = key_prefix

    def _key(self, user_id: int) -> str:
        return f"{self.key_prefix}{user_id}"

    async def get(self, user_id: int) -> Optional[RatingBundle]:
        try:
            payload = await self.client.get(self._key(user_id))
        except RedisError as e:
            raise CacheUnavailableError("get", str(e)) from e

        if payload is None:
            logger.debug(f"Rating cache miss for user {user_id}")
            return None

        try:
            return RatingBundle.from_dict(json.loads(payload))
        except (ValueError, KeyError, TypeError) as e:
            # A malformed payload is treated as a miss and overwritten on the next set
            logger.warning(f"Discarding unreadable cached bundle for user {user_id}: {e}")
            return None

    async def set(self, user_id: int, bundle: RatingBundle) -> None:
        try:
            await self.client.setex(self._key(user_id), self.ttl, json.dumps(bundle.to_dict()))
        except RedisError as e:
            raise CacheUnavailableError("set", str(e)) from e

    async def invalidate(self, user_id: int) -> None:
        try:
            await self.client.delete(self._key(user_id))
        except RedisError as e:
            raise CacheUnavailableError("invalidate", str(e)) from e

    async def clear(self) -> None:
        try:
            keys = [key async for key in self.client.scan_iter(match=f"{self.key_prefix}*")]
            if keys:
                await self.client.delete(*keys)
        except RedisError as e:
            raise CacheUnavailableError("clear", str(e)) from e
        logger.info(f"Cleared {len(keys)} cached rating bundles from redis")


async def create_rating_cache(backend: Optional[str] = None) -> RatingCache:
    """
    Build the configured rating cache.

    Falls back to the in-memory cache when redis is selected but no secure
    redis URL is configured or the server does not answer a ping.
    """
    backend = (backend or Config.RATING_CACHE_BACKEND).lower()
    if backend == 'redis':
        client = await RedisUtils.create_redis_client()
        if client is not None:
            logger.info("Using redis rating cache")
            return RedisRatingCache(client)
        logger.warning("Redis rating cache unavailable, falling back to in-memory cache")
    return InMemoryRatingCache()
