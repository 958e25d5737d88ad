# src/guidelines/sqlite_guideline_store.py - v2
"""SQLite guideline store (GUIDELINES_BACKEND=sqlite).

Uses stdlib sqlite3 with calls offloaded to a worker thread so a slow
disk never stalls the event loop. ``rules`` and ``examples`` are stored
as JSON text.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any

from guidelint.core.models import GuidelineRecord
from guidelint.guidelines.base_guideline_store import (
    BaseGuidelineStore,
    GuidelinesUnavailableError,
    order_active,
    validate_records,
)

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS guidelines (
    id TEXT PRIMARY KEY,
    category TEXT NOT NULL DEFAULT 'general',
    title TEXT,
    description TEXT,
    rules TEXT,
    examples TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    version TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_guidelines_active ON guidelines(is_active, category);
"""

_COLUMNS = (
    "id", "category", "title", "description", "rules", "examples",
    "is_active", "version", "created_at", "updated_at",
)


class SqliteGuidelineStore(BaseGuidelineStore):
    """SQLite-backed guideline table."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    async def load_active(self) -> list[GuidelineRecord]:
        try:
            rows = await asyncio.to_thread(self._select_active)
        except sqlite3.Error as e:
            raise GuidelinesUnavailableError(f"Guideline table unreadable: {e}") from e

        records = validate_records((self._row_to_data(row) for row in rows), "sqlite")
        active = order_active(records)
        if not active:
            raise GuidelinesUnavailableError("No guidelines")
        return active

    async def upsert(self, record: GuidelineRecord) -> None:
        """Insert or replace a guideline row (seeding and admin tooling)."""
        row = (
            record.guideline_id,
            record.category_name,
            record.title,
            record.description,
            json.dumps(record.rules, ensure_ascii=False),
            json.dumps(record.examples, ensure_ascii=False),
            1 if record.is_active else 0,
            None if record.version is None else str(record.version),
            _as_text(record.created_at),
            _as_text(record.updated_at),
        )
        await asyncio.to_thread(self._execute_upsert, row)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # --- Internal helpers ---

    def _select_active(self) -> list[tuple[Any, ...]]:
        with self._lock:
            cursor = self._conn.execute(
                f"SELECT {', '.join(_COLUMNS)} FROM guidelines "
                "WHERE is_active = 1 ORDER BY category, id"
            )
            return cursor.fetchall()

    def _execute_upsert(self, row: tuple[Any, ...]) -> None:
        placeholders = ", ".join("?" for _ in _COLUMNS)
        with self._lock:
            self._conn.execute(
                f"INSERT OR REPLACE INTO guidelines ({', '.join(_COLUMNS)}) "
                f"VALUES ({placeholders})",
                row,
            )
            self._conn.commit()

    @staticmethod
    def _row_to_data(row: tuple[Any, ...]) -> dict[str, Any]:
        data = dict(zip(_COLUMNS, row))
        for field in ("rules", "examples"):
            raw = data.get(field)
            if raw is None:
                continue
            try:
                data[field] = json.loads(raw)
            except (TypeError, json.JSONDecodeError):
                logger.warning(
                    "Guideline %s has non-JSON %s, passing through as text",
                    data["id"], field,
                )
        data["is_active"] = bool(data["is_active"])
        return data


def _as_text(value: object) -> str | None:
    if value is None:
        return None
    if hasattr(value, "isoformat"):
        return value.isoformat()  # type: ignore[no-any-return]
    return str(value)
