# src/cache/sqlite_store.py - v2
"""SQLite-based cache store (CACHE_BACKEND=sqlite).

Uses stdlib sqlite3, no external dependency. Calls are offloaded to a
worker thread so the caller's timeout can fire while the disk is busy.
Relationship lookup is indexed on (corrected_fingerprint, guidelines_version).
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from pathlib import Path

from pydantic import ValidationError

from guidelint.cache.base_cache_store import BaseCacheStore
from guidelint.cache.models import CacheEntry, RelationshipEntry

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS analysis_cache (
    cache_key TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    guidelines_version TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE IF NOT EXISTS text_relationships (
    original_fingerprint TEXT NOT NULL,
    corrected_fingerprint TEXT NOT NULL,
    guidelines_version TEXT NOT NULL,
    data TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (original_fingerprint, corrected_fingerprint)
);
CREATE INDEX IF NOT EXISTS idx_rel_corrected
    ON text_relationships(corrected_fingerprint, guidelines_version);
"""


class SqliteCacheStore(BaseCacheStore):
    """SQLite-backed cache store for better performance at scale."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve cache entry by key."""
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT data FROM analysis_cache WHERE cache_key = ?",
            (key,),
        )
        if row is None:
            return None
        try:
            return CacheEntry.model_validate_json(row[0])
        except ValidationError as e:
            logger.warning("Failed to deserialize cache entry %s: %s", key, e)
            return None

    async def put(self, key: str, entry: CacheEntry) -> None:
        """Store a cache entry (upsert)."""
        await asyncio.to_thread(
            self._write,
            """INSERT OR REPLACE INTO analysis_cache
               (cache_key, data, guidelines_version) VALUES (?, ?, ?)""",
            (key, entry.model_dump_json(), entry.guidelines_version),
        )

    async def find_relationship(
        self, corrected_fingerprint: str, guidelines_version: str
    ) -> RelationshipEntry | None:
        row = await asyncio.to_thread(
            self._fetchone,
            """SELECT data FROM text_relationships
               WHERE corrected_fingerprint = ? AND guidelines_version = ?
               LIMIT 1""",
            (corrected_fingerprint, guidelines_version),
        )
        if row is None:
            return None
        try:
            return RelationshipEntry.model_validate_json(row[0])
        except ValidationError as e:
            logger.warning("Failed to deserialize relationship %s: %s", corrected_fingerprint, e)
            return None

    async def put_relationship(self, entry: RelationshipEntry) -> None:
        await asyncio.to_thread(
            self._write,
            """INSERT OR REPLACE INTO text_relationships
               (original_fingerprint, corrected_fingerprint, guidelines_version, data)
               VALUES (?, ?, ?, ?)""",
            (
                entry.original_fingerprint,
                entry.corrected_fingerprint,
                entry.guidelines_version,
                entry.model_dump_json(),
            ),
        )

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # --- Internal helpers (run in worker thread) ---

    def _fetchone(self, sql: str, params: tuple[str, ...]) -> tuple[str] | None:
        with self._lock:
            return self._conn.execute(sql, params).fetchone()

    def _write(self, sql: str, params: tuple[str, ...]) -> None:
        with self._lock:
            self._conn.execute(sql, params)
            self._conn.commit()
