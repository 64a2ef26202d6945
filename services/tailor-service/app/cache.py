import hashlib
import json
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from .config import REDIS_URL, SEARCH_CACHE_TTL_SECONDS

logger = logging.getLogger(__name__)

GENERATION_KEY = "tailor_search:generation"


def cache_key(params: dict, generation: int) -> str:
    """
    Stable key for a search: parameters are sorted and hashed, and the key is
    scoped to the current write generation.
    """
    canonical = json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"tailor_search:v{generation}:{digest}"


class SearchCache:
    """
    Best-effort cache of serialized search responses.

    Writes to tailors bump a generation counter instead of deleting keys, so
    pages cached before the write are never read again and simply expire.
    A Redis failure is a cache miss, never a failed search.
    """

    def __init__(self, url: str | None = REDIS_URL, ttl_seconds: int = SEARCH_CACHE_TTL_SECONDS):
        self.enabled = bool(url)
        self.ttl_seconds = ttl_seconds
        self._client = redis.from_url(url, decode_responses=True) if url else None

    async def _generation(self) -> int:
        value = await self._client.get(GENERATION_KEY)
        return int(value) if value else 0

    async def lookup(self, params: dict) -> tuple[str | None, dict | None]:
        """
        Returns (key, cached response). The key is fixed before the store is
        queried, so a response computed across a concurrent write lands under
        the old generation.
        """
        if not self.enabled:
            return None, None
        try:
            key = cache_key(params, await self._generation())
            cached = await self._client.get(key)
        except RedisError as e:
            logger.warning("search cache read failed: %s", e)
            return None, None
        return key, (json.loads(cached) if cached else None)

    async def store(self, key: str | None, value: dict) -> None:
        if not self.enabled or key is None:
            return
        try:
            await self._client.set(key, json.dumps(value, default=str), ex=self.ttl_seconds)
        except RedisError as e:
            logger.warning("search cache write failed: %s", e)

    async def invalidate(self) -> None:
        if not self.enabled:
            return
        try:
            await self._client.incr(GENERATION_KEY)
        except RedisError as e:
            logger.warning("search cache invalidation failed: %s", e)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()


search_cache = SearchCache()
