# src/guidelines/json_guideline_store.py - v2
"""JSON file guideline store (default GUIDELINES_BACKEND=json).

The file holds either a list of guideline objects or ``{"guidelines": [...]}``.
It is re-read on every load so edits take effect without a restart; the
version digest decides whether cached rules and results still apply.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from guidelint.core.models import GuidelineRecord
from guidelint.guidelines.base_guideline_store import (
    BaseGuidelineStore,
    GuidelinesUnavailableError,
    order_active,
    validate_records,
)

logger = logging.getLogger(__name__)


class JsonGuidelineStore(BaseGuidelineStore):
    """File-backed guideline store."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).expanduser()

    async def load_active(self) -> list[GuidelineRecord]:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise GuidelinesUnavailableError(
                f"Cannot read guidelines from {self._path}: {e}"
            ) from e

        if isinstance(data, dict):
            data = data.get("guidelines", [])
        if not isinstance(data, list):
            raise GuidelinesUnavailableError(
                f"Guidelines file {self._path} must hold a list"
            )

        active = order_active(validate_records(data, str(self._path)))
        if not active:
            raise GuidelinesUnavailableError("No guidelines")
        logger.debug("Loaded %d active guidelines from %s", len(active), self._path)
        return active
