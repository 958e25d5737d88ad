# src/cache/base_cache_store.py - v2
"""Abstract cache store interface.

Two logical tables: the analysis cache (key -> CacheEntry) and the
relationship table (fingerprint pair -> RelationshipEntry). All writes
are idempotent upserts; concurrent writers resolve last-writer-wins.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from guidelint.cache.models import CacheEntry, RelationshipEntry


class BaseCacheStore(ABC):
    """Unified interface for cache storage backends."""

    @abstractmethod
    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve cache entry by key."""

    @abstractmethod
    async def put(self, key: str, entry: CacheEntry) -> None:
        """Store cache entry (upsert)."""

    @abstractmethod
    async def find_relationship(
        self, corrected_fingerprint: str, guidelines_version: str
    ) -> RelationshipEntry | None:
        """Find a relationship whose corrected side matches, under a version."""

    @abstractmethod
    async def put_relationship(self, entry: RelationshipEntry) -> None:
        """Upsert a relationship keyed by its fingerprint pair."""

    def close(self) -> None:
        """Release backend resources (no-op by default)."""
