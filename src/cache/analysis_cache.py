# src/cache/analysis_cache.py - v1
"""Version-scoped analysis cache with a bidirectional relationship table.

Every call is bounded by a timeout and every backend failure is
swallowed as a miss (reads) or a logged no-op (writes): the cache never
fails a request. Hits are rebound to the requesting item's id.

When a fresh analysis yields a correction A -> B, three things are
recorded: A's analysis, B marked compliant, and the pair (A, B). A later
submission of B is recognized either through its own compliant entry or
through the relationship table, without inference.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable

from guidelint.cache.base_cache_store import BaseCacheStore
from guidelint.cache.models import CacheEntry, CachedAnalysis, RelationshipEntry
from guidelint.core.corrections import apply_violations
from guidelint.core.models import AnalysisResult, ItemId, Violation
from guidelint.core.normalizer import fingerprint

logger = logging.getLogger(__name__)

RELATIONSHIP_REASON = "recognized_as_corrected_version"


def cache_key(text: str, guidelines_version: str) -> str:
    """``<fingerprint(text)>:<guidelines_version>``."""
    return f"{fingerprint(text)}:{guidelines_version}"


class AnalysisCache:
    """Read-through/write-behind facade over a BaseCacheStore."""

    def __init__(
        self,
        store: BaseCacheStore,
        write_timeout_s: float = 8.0,
        relationship_timeout_s: float = 5.0,
        compliant_confidence: float = 0.95,
    ) -> None:
        self._store = store
        self._write_timeout_s = write_timeout_s
        self._relationship_timeout_s = relationship_timeout_s
        self._compliant_confidence = compliant_confidence

    # --- Reads ---

    async def lookup(
        self,
        text: str,
        guidelines_version: str,
        timeout_s: float,
        item_id: ItemId = "",
    ) -> AnalysisResult | None:
        """Direct lookup by ``cache_key(text, version)``; None on miss."""
        key = cache_key(text, guidelines_version)
        try:
            entry = await asyncio.wait_for(self._store.get(key), timeout=timeout_s)
        except asyncio.TimeoutError:
            logger.warning("Cache lookup timed out after %.2fs for %s", timeout_s, key)
            return None
        except Exception as e:
            logger.warning("Cache lookup failed for %s: %s", key, e)
            return None

        if entry is None or entry.guidelines_version != guidelines_version:
            return None
        return self._to_result(entry, item_id, text)

    async def lookup_via_relationship(
        self,
        text: str,
        guidelines_version: str,
        timeout_s: float,
        item_id: ItemId = "",
    ) -> AnalysisResult | None:
        """Recognize ``text`` as the corrected side of a known relationship."""
        corrected_fp = fingerprint(text)
        try:
            rel = await asyncio.wait_for(
                self._store.find_relationship(corrected_fp, guidelines_version),
                timeout=timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning("Relationship lookup timed out after %.2fs", timeout_s)
            return None
        except Exception as e:
            logger.warning("Relationship lookup failed for %s: %s", corrected_fp, e)
            return None

        if rel is None or rel.guidelines_version != guidelines_version:
            return None
        logger.debug("Relationship hit: %s recognized as corrected text", item_id)
        return AnalysisResult(
            id=item_id,
            has_violations=False,
            violations=[],
            corrected_text=text,
            original_text=text,
            confidence=self._compliant_confidence,
            guidelines_version=guidelines_version,
            source="relationship_hit",
            reason=RELATIONSHIP_REASON,
            recognized_from=rel.original_text,
        )

    async def lookup_with_relationships(
        self,
        text: str,
        guidelines_version: str,
        timeout_s: float,
        item_id: ItemId = "",
    ) -> AnalysisResult | None:
        """Direct lookup first, relationship table second."""
        loop = asyncio.get_running_loop()
        started = loop.time()
        hit = await self.lookup(text, guidelines_version, timeout_s, item_id)
        if hit is not None:
            return hit
        remaining = timeout_s - (loop.time() - started)
        if remaining <= 0:
            return None
        return await self.lookup_via_relationship(
            text, guidelines_version, remaining, item_id
        )

    # --- Writes ---

    async def store(self, result: AnalysisResult, guidelines_version: str) -> bool:
        """Persist ``result`` under its original text. Returns success."""
        key = cache_key(result.original_text, guidelines_version)
        entry = CacheEntry(
            cache_key=key,
            text_fingerprint=fingerprint(result.original_text),
            guidelines_version=guidelines_version,
            analysis=CachedAnalysis(
                has_violations=result.has_violations,
                violations=result.violations,
                corrected_text=result.corrected_text,
                original_text=result.original_text,
                confidence=result.confidence,
                marked_as_compliant=result.marked_as_compliant,
            ),
        )
        return await self._write(
            self._store.put(key, entry), self._write_timeout_s, f"store {key}"
        )

    async def mark_as_compliant(self, text: str, guidelines_version: str) -> bool:
        """Record ``text`` as a compliant analysis with no violations."""
        compliant = AnalysisResult(
            id="",
            has_violations=False,
            corrected_text=text,
            original_text=text,
            confidence=self._compliant_confidence,
            guidelines_version=guidelines_version,
            source="freshly_analyzed",
            marked_as_compliant=True,
        )
        return await self.store(compliant, guidelines_version)

    async def store_relationship(
        self, original_text: str, corrected_text: str, guidelines_version: str
    ) -> bool:
        entry = RelationshipEntry(
            original_fingerprint=fingerprint(original_text),
            corrected_fingerprint=fingerprint(corrected_text),
            original_text=original_text,
            corrected_text=corrected_text,
            guidelines_version=guidelines_version,
        )
        return await self._write(
            self._store.put_relationship(entry),
            self._relationship_timeout_s,
            f"relationship {entry.pair_key}",
        )

    async def record_fresh_result(
        self, result: AnalysisResult, guidelines_version: str
    ) -> None:
        """Write-behind for one freshly analyzed result.

        Corrections also mark the corrected text compliant and store the
        original/corrected pair.
        """
        await self.store(result, guidelines_version)
        if result.has_violations and result.corrected_text != result.original_text:
            await asyncio.gather(
                self.mark_as_compliant(result.corrected_text, guidelines_version),
                self.store_relationship(
                    result.original_text, result.corrected_text, guidelines_version
                ),
            )

    async def close(self) -> None:
        aclose = getattr(self._store, "aclose", None)
        if aclose is not None:
            await aclose()
        else:
            self._store.close()

    # --- Internal ---

    async def _write(self, coro: Awaitable[None], timeout_s: float, label: str) -> bool:
        try:
            await asyncio.wait_for(coro, timeout=timeout_s)
            return True
        except asyncio.TimeoutError:
            logger.warning("Cache write timed out after %.1fs: %s", timeout_s, label)
        except Exception as e:
            logger.warning("Cache write failed (%s): %s", label, e)
        return False

    @staticmethod
    def _to_result(entry: CacheEntry, item_id: ItemId, text: str) -> AnalysisResult | None:
        a = entry.analysis
        # Entries are keyed on normalized text, so the cached original may
        # differ from the submitted text in whitespace or punctuation.
        violations = [v for v in a.violations if v.original in text]
        if len(violations) != len(a.violations):
            logger.debug("Cached violations do not match submitted text, treating as miss")
            return None
        try:
            return AnalysisResult(
                id=item_id,
                has_violations=bool(violations),
                violations=violations,
                corrected_text=_rebind_correction(text, a, violations),
                original_text=text,
                confidence=a.confidence,
                guidelines_version=entry.guidelines_version,
                source="cache_hit",
                marked_as_compliant=a.marked_as_compliant,
            )
        except ValueError as e:
            logger.warning("Cached entry %s failed validation: %s", entry.cache_key, e)
            return None


def _rebind_correction(
    text: str, cached: CachedAnalysis, violations: list[Violation]
) -> str:
    if not violations:
        return text
    if text == cached.original_text:
        return cached.corrected_text
    return apply_violations(text, violations)
