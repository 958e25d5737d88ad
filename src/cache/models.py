# src/cache/models.py - v2
"""Cache domain models: CachedAnalysis, CacheEntry, RelationshipEntry.

Entries are namespaced by guideline version; they are never expired,
only superseded when the version digest changes.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from guidelint.core.models import Violation


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CachedAnalysis(BaseModel):
    """AnalysisResult without per-request fields (id, provenance)."""

    has_violations: bool
    violations: list[Violation] = Field(default_factory=list)
    corrected_text: str
    original_text: str
    confidence: float
    analyzed_at: datetime = Field(default_factory=_utcnow)
    marked_as_compliant: bool = False


class CacheEntry(BaseModel):
    """Analysis-cache row: ``<fingerprint>:<guidelines_version>`` -> analysis."""

    cache_key: str
    text_fingerprint: str
    guidelines_version: str
    analysis: CachedAnalysis
    created_at: datetime = Field(default_factory=_utcnow)


class RelationshipEntry(BaseModel):
    """Known-good correction: ``corrected_text`` fixes ``original_text``.

    Keyed by the fingerprint pair; the version is a scope attribute, so the
    last writer's version wins for a given pair.
    """

    original_fingerprint: str
    corrected_fingerprint: str
    original_text: str
    corrected_text: str
    guidelines_version: str
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def pair_key(self) -> str:
        return f"{self.original_fingerprint}:{self.corrected_fingerprint}"
