# src/guidelines/store_factory.py - v1
"""Factory for guideline store instantiation."""

from __future__ import annotations

from guidelint.config.settings import Settings
from guidelint.guidelines.base_guideline_store import BaseGuidelineStore


def create_guideline_store(settings: Settings | None = None) -> BaseGuidelineStore:
    """Instantiate the configured guideline backend.

    Args:
        settings: Application settings. Defaults to ./guidelines.json.

    Returns:
        Configured BaseGuidelineStore implementation.
    """
    backend = "json" if settings is None else settings.guidelines_backend
    path = "guidelines.json" if settings is None else settings.guidelines_path

    if backend == "json":
        from guidelint.guidelines.json_guideline_store import JsonGuidelineStore
        return JsonGuidelineStore(path)

    if backend == "sqlite":
        from guidelint.guidelines.sqlite_guideline_store import SqliteGuidelineStore
        return SqliteGuidelineStore(path)

    raise ValueError(f"Unsupported guidelines backend: {backend!r}")
