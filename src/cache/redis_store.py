# src/cache/redis_store.py - v2
"""Redis-based cache store (CACHE_BACKEND=redis).

Requires 'redis' package: pip install redis.
Suitable for multi-instance deployments sharing one cache. Relationships
are indexed by a set per (corrected fingerprint, version) so lookup does
not scan.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from guidelint.cache.base_cache_store import BaseCacheStore
from guidelint.cache.models import CacheEntry, RelationshipEntry

logger = logging.getLogger(__name__)

_KEY_PREFIX = "guidelint:cache:"
_REL_PREFIX = "guidelint:rel:"
_REL_INDEX_PREFIX = "guidelint:rel-by-corrected:"


class RedisCacheStore(BaseCacheStore):
    """Redis-backed cache store for distributed deployments."""

    def __init__(self, redis_url: str) -> None:
        try:
            import redis.asyncio as aioredis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._client = aioredis.Redis.from_url(redis_url, decode_responses=True)

    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve cache entry by key."""
        data = await self._client.get(f"{_KEY_PREFIX}{key}")
        if data is None:
            return None
        try:
            return CacheEntry.model_validate_json(data)
        except ValidationError as e:
            logger.warning("Failed to deserialize cache entry %s: %s", key, e)
            return None

    async def put(self, key: str, entry: CacheEntry) -> None:
        """Store a cache entry."""
        await self._client.set(f"{_KEY_PREFIX}{key}", entry.model_dump_json())

    async def find_relationship(
        self, corrected_fingerprint: str, guidelines_version: str
    ) -> RelationshipEntry | None:
        index_key = f"{_REL_INDEX_PREFIX}{corrected_fingerprint}:{guidelines_version}"
        for pair_key in sorted(await self._client.smembers(index_key)):
            data = await self._client.get(f"{_REL_PREFIX}{pair_key}")
            if data is None:
                continue
            try:
                entry = RelationshipEntry.model_validate_json(data)
            except ValidationError:
                continue
            # The pair may since have been rewritten under another version.
            if entry.guidelines_version == guidelines_version:
                return entry
        return None

    async def put_relationship(self, entry: RelationshipEntry) -> None:
        index_key = (
            f"{_REL_INDEX_PREFIX}{entry.corrected_fingerprint}:{entry.guidelines_version}"
        )
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.set(f"{_REL_PREFIX}{entry.pair_key}", entry.model_dump_json())
            pipe.sadd(index_key, entry.pair_key)
            await pipe.execute()

    async def aclose(self) -> None:
        """Close the Redis connection pool."""
        await self._client.aclose()
