# src/guidelines/base_guideline_store.py - v2
"""Abstract guideline record store."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError

from guidelint.core.models import GuidelineRecord

logger = logging.getLogger(__name__)


class GuidelinesUnavailableError(RuntimeError):
    """Raised when active guidelines cannot be loaded.

    Fatal for a request: rules cannot be evaluated without guidelines.
    """


class BaseGuidelineStore(ABC):
    """Unified interface for guideline record backends."""

    @abstractmethod
    async def load_active(self) -> list[GuidelineRecord]:
        """Return active guidelines ordered by category.

        Raises:
            GuidelinesUnavailableError: If the backend cannot be read or
                holds no active guideline.
        """

    def close(self) -> None:
        """Release backend resources (no-op by default)."""


def validate_records(rows: Iterable[Any], source: str) -> list[GuidelineRecord]:
    """Validate rows one at a time; a row that fails is logged and skipped."""
    records: list[GuidelineRecord] = []
    for position, row in enumerate(rows):
        try:
            records.append(GuidelineRecord.model_validate(row))
        except ValidationError as e:
            row_id = row.get("id") if isinstance(row, dict) else None
            logger.warning(
                "Skipping invalid guideline record #%d (id=%s) from %s: %s",
                position, row_id, source, e,
            )
    return records


def order_active(records: list[GuidelineRecord]) -> list[GuidelineRecord]:
    """Keep active records, stable-sorted by category."""
    active = [r for r in records if r.is_active]
    return sorted(active, key=lambda r: r.category_name)
