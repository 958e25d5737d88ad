# src/cache/json_store.py - v2
"""JSON file-based cache store (default CACHE_BACKEND=json).

Analysis entries live as one JSON file per key under CACHE_ROOT/analysis,
relationships as one file per fingerprint pair under CACHE_ROOT/relationships.
Relationship lookup scans; use sqlite or redis for large caches.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from guidelint.cache.base_cache_store import BaseCacheStore
from guidelint.cache.models import CacheEntry, RelationshipEntry

logger = logging.getLogger(__name__)


class JsonCacheStore(BaseCacheStore):
    """File-based cache store using JSON files."""

    def __init__(self, cache_root: Path | str) -> None:
        self._root = Path(cache_root).expanduser()
        self._analysis_dir = self._root / "analysis"
        self._relationship_dir = self._root / "relationships"
        self._analysis_dir.mkdir(parents=True, exist_ok=True)
        self._relationship_dir.mkdir(parents=True, exist_ok=True)

    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve cache entry by key."""
        path = self._entry_path(self._analysis_dir, key)
        if not path.exists():
            return None
        try:
            return CacheEntry.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning("Failed to read cache entry %s: %s", key, e)
            return None

    async def put(self, key: str, entry: CacheEntry) -> None:
        """Store a cache entry."""
        self._write(self._entry_path(self._analysis_dir, key), entry.model_dump_json())

    async def find_relationship(
        self, corrected_fingerprint: str, guidelines_version: str
    ) -> RelationshipEntry | None:
        """Scan relationship files whose name ends with the corrected fingerprint."""
        for path in sorted(self._relationship_dir.glob(f"*_{corrected_fingerprint}.json")):
            try:
                entry = RelationshipEntry.model_validate_json(
                    path.read_text(encoding="utf-8")
                )
            except (OSError, ValidationError, json.JSONDecodeError):
                continue
            if entry.guidelines_version == guidelines_version:
                return entry
        return None

    async def put_relationship(self, entry: RelationshipEntry) -> None:
        """Upsert a relationship file named by its fingerprint pair."""
        name = f"{entry.original_fingerprint}_{entry.corrected_fingerprint}"
        self._write(self._entry_path(self._relationship_dir, name), entry.model_dump_json())

    @staticmethod
    def _write(path: Path, data: str) -> None:
        # Write-then-rename so concurrent readers never see a partial file.
        tmp = path.with_suffix(".tmp")
        tmp.write_text(data, encoding="utf-8")
        tmp.replace(path)

    @staticmethod
    def _entry_path(directory: Path, key: str) -> Path:
        safe_key = key.replace("/", "_").replace("\\", "_").replace(":", "_")
        return directory / f"{safe_key}.json"
