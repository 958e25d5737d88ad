# src/analysis/orchestrator.py - v2
"""Batch orchestrator: resolve every submitted item within one deadline.

Stages, in order:
  1. pre-filter   empty items and client-flagged compliant items resolve
                  immediately as ``pre_filtered``
  2. cache probe  concurrent, per-item timeout carved from a fixed budget
  3. dedup        identical normalized texts are analyzed once
  4. inference    batches run concurrently; each batch retries on its own
                  and degrades to fallback results on failure
  5. assembly     results fill index slots, so output order always
                  matches input order

Cache writes for fresh results are detached tasks and never delay the
response; ``wait_for_pending_writes`` drains them (tests, shutdown).
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

from guidelint.analysis.deadline import Deadline
from guidelint.analysis.filters import build_filter_chain, false_positive_candidates
from guidelint.analysis.inference import GuidelineInferenceClient
from guidelint.analysis.reconciler import (
    compliant_result,
    fallback_result,
    fallback_results,
    rebind_result,
    reconcile_batch,
)
from guidelint.cache.analysis_cache import AnalysisCache
from guidelint.config.settings import Settings
from guidelint.core.models import AnalysisResult, TextItem
from guidelint.core.normalizer import normalize, quick_hash
from guidelint.guidelines.prompt_builder import PromptPayload
from guidelint.llm.retry import with_retry
from guidelint.logging.context import set_batch_context, set_stage

logger = logging.getLogger(__name__)

_MAX_REASON_LEN = 200


@dataclass
class OrchestrationStats:
    """Per-request counters, reported as ``stats`` in the response."""

    total: int = 0
    empty: int = 0
    pre_filtered: int = 0
    cache_hits: int = 0
    relationship_hits: int = 0
    freshly_analyzed: int = 0
    fallback: int = 0
    deduplicated: int = 0
    batches: int = 0
    failed_batches: int = 0
    inference_items: int = 0
    duration_ms: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class OrchestrationResult:
    """Ordered results plus the counters that produced them."""

    results: list[AnalysisResult]
    stats: OrchestrationStats
    guidelines_version: str
    diagnostics: list[dict[str, Any]] = field(default_factory=list)


class BatchOrchestrator:
    """Drive one request from submitted items to ordered results.

    Args:
        inference: Client used for uncached items.
        cache: Analysis cache, or None when caching is disabled.
        settings: Deadlines, batching and policy knobs.
    """

    def __init__(
        self,
        inference: GuidelineInferenceClient,
        cache: AnalysisCache | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._inference = inference
        self._cache = cache
        self._settings = settings or Settings(_env_file=None)
        self._filter_chain = build_filter_chain(self._settings.false_positive_filters_list)
        self._pending_writes: set[asyncio.Task[None]] = set()

    def new_deadline(self) -> Deadline:
        """Request-wide budget, already reduced by the response buffer."""
        s = self._settings
        return Deadline(s.request_deadline_s - s.response_buffer_s)

    async def run(
        self,
        items: Sequence[TextItem],
        prompt: PromptPayload,
        deadline: Deadline | None = None,
    ) -> OrchestrationResult:
        """Resolve every item in ``items``; never raises for per-item failures."""
        started = time.monotonic()
        deadline = deadline or self.new_deadline()
        version = prompt.guidelines_version
        stats = OrchestrationStats(total=len(items))
        slots: list[AnalysisResult | None] = [None] * len(items)

        set_stage("pre_filter")
        pending = self._pre_filter(items, slots, version, stats)

        if pending and self._cache is not None:
            set_stage("cache_probe")
            pending = await self._probe_cache(items, pending, slots, version, deadline, stats)

        if pending:
            set_stage("inference")
            await self._analyze(items, pending, slots, prompt, deadline, stats)

        set_stage("assemble")
        results: list[AnalysisResult] = []
        for index, slot in enumerate(slots):
            if slot is None:
                # Unreachable unless a stage above is broken; keep the contract.
                logger.error("Item %s left unresolved, using fallback", items[index].id)
                slot = fallback_result(
                    items[index], "unresolved", version, self._settings.fallback_confidence
                )
            results.append(slot)

        stats.fallback = sum(1 for r in results if r.source == "fallback")
        stats.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Resolved %d items: %d cached, %d via relationship, %d analyzed, "
            "%d pre-filtered, %d fallback in %dms",
            stats.total, stats.cache_hits, stats.relationship_hits,
            stats.freshly_analyzed, stats.pre_filtered + stats.empty,
            stats.fallback, stats.duration_ms,
        )

        diagnostics: list[dict[str, Any]] = []
        if self._settings.debug_analysis:
            diagnostics = self._diagnose(results)
        set_stage(None)
        return OrchestrationResult(results, stats, version, diagnostics)

    async def wait_for_pending_writes(self, timeout_s: float | None = None) -> None:
        """Wait for detached cache writes started by earlier runs."""
        if not self._pending_writes:
            return
        await asyncio.wait(set(self._pending_writes), timeout=timeout_s)

    @property
    def pending_write_count(self) -> int:
        return len(self._pending_writes)

    # --- Stages ---

    def _pre_filter(
        self,
        items: Sequence[TextItem],
        slots: list[AnalysisResult | None],
        version: str,
        stats: OrchestrationStats,
    ) -> list[int]:
        confidence = self._settings.compliant_confidence
        pending: list[int] = []
        for index, item in enumerate(items):
            if item.is_empty:
                stats.empty += 1
                slots[index] = compliant_result(
                    item.id, item.text or "", version, "pre_filtered", confidence, "empty_text"
                )
            elif item.likely_compliant:
                stats.pre_filtered += 1
                slots[index] = compliant_result(
                    item.id, item.text or "", version, "pre_filtered", confidence,
                    "client_heuristics",
                )
            else:
                pending.append(index)
        return pending

    async def _probe_cache(
        self,
        items: Sequence[TextItem],
        pending: list[int],
        slots: list[AnalysisResult | None],
        version: str,
        deadline: Deadline,
        stats: OrchestrationStats,
    ) -> list[int]:
        assert self._cache is not None
        s = self._settings
        budget = min(s.cache_probe_budget_s, deadline.remaining() - s.cache_probe_reserve_s)
        if budget <= 0:
            logger.warning("Skipping cache probe: %.2fs left in request", deadline.remaining())
            return pending

        per_item = budget / len(pending)
        hits = await asyncio.gather(
            *(
                self._cache.lookup_with_relationships(
                    items[i].text or "", version, per_item, items[i].id
                )
                for i in pending
            )
        )

        misses: list[int] = []
        for index, hit in zip(pending, hits):
            if hit is None:
                misses.append(index)
                continue
            slots[index] = hit
            if hit.source == "relationship_hit":
                stats.relationship_hits += 1
            else:
                stats.cache_hits += 1
        logger.debug("Cache probe: %d hits, %d misses", len(pending) - len(misses), len(misses))
        return misses

    async def _analyze(
        self,
        items: Sequence[TextItem],
        pending: list[int],
        slots: list[AnalysisResult | None],
        prompt: PromptPayload,
        deadline: Deadline,
        stats: OrchestrationStats,
    ) -> None:
        s = self._settings
        version = prompt.guidelines_version

        if deadline.remaining() <= s.min_inference_window_s:
            logger.warning(
                "Insufficient time for inference: %.2fs left, %d items fall back",
                deadline.remaining(), len(pending),
            )
            for index in pending:
                slots[index] = fallback_result(
                    items[index], "insufficient_time", version, s.fallback_confidence
                )
            return

        representatives, duplicates = _deduplicate(items, pending)
        stats.deduplicated = len(pending) - len(representatives)
        stats.inference_items = len(representatives)

        batches = [
            representatives[i : i + s.batch_size]
            for i in range(0, len(representatives), s.batch_size)
        ]
        stats.batches = len(batches)
        logger.info(
            "Analyzing %d unique items in %d batch(es) of <= %d",
            len(representatives), len(batches), s.batch_size,
        )

        tasks = {
            asyncio.create_task(
                self._run_batch(number, len(batches), [items[i] for i in batch], prompt, deadline, stats)
            ): batch
            for number, batch in enumerate(batches, start=1)
        }
        done, not_done = await asyncio.wait(set(tasks), timeout=deadline.remaining())

        for task in not_done:
            task.cancel()
        if not_done:
            logger.warning("Global deadline exceeded with %d batch(es) in flight", len(not_done))
            await asyncio.gather(*not_done, return_exceptions=True)

        fresh: list[AnalysisResult] = []
        for task, batch in tasks.items():
            if task in done and not task.cancelled() and task.exception() is None:
                batch_results = task.result()
            else:
                batch_results = fallback_results(
                    [items[i] for i in batch],
                    "global_deadline_exceeded",
                    version,
                    s.fallback_confidence,
                )
            for index, result in zip(batch, batch_results):
                slots[index] = result
                if result.source == "freshly_analyzed":
                    fresh.append(result)
                for dup in duplicates.get(index, ()):
                    slots[dup] = rebind_result(result, items[dup])

        stats.freshly_analyzed = sum(
            1 for i in pending if slots[i] is not None and slots[i].source == "freshly_analyzed"
        )
        if self._cache is not None:
            for result in fresh:
                self._spawn_write(result, version)

    async def _run_batch(
        self,
        number: int,
        total: int,
        batch: list[TextItem],
        prompt: PromptPayload,
        deadline: Deadline,
        stats: OrchestrationStats,
    ) -> list[AnalysisResult]:
        s = self._settings
        set_batch_context(f"{number}/{total}")
        logger.debug("Starting batch %d/%d: %d items", number, total, len(batch))
        try:
            raw = await with_retry(
                self._inference.analyze_batch,
                prompt,
                batch,
                agent=f"batch {number}",
                deadline=deadline,
                max_retries=s.max_retries,
                attempt_fraction=s.batch_timeout_fraction,
                max_attempt_timeout_s=s.inference_timeout_s,
                min_window_s=s.min_inference_window_s,
            )
            results = reconcile_batch(
                batch, raw, prompt.guidelines_version, self._filter_chain,
                s.fallback_confidence,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            stats.failed_batches += 1
            logger.error("Batch %d/%d failed: %s", number, total, e)
            reason = f"batch_{number}_failed: {e}"[:_MAX_REASON_LEN]
            return fallback_results(batch, reason, prompt.guidelines_version, s.fallback_confidence)

        flagged = sum(1 for r in results if r.has_violations)
        logger.debug("Batch %d/%d completed: %d/%d with violations", number, total, flagged, len(batch))
        return results

    # --- Write-behind ---

    def _spawn_write(self, result: AnalysisResult, version: str) -> None:
        assert self._cache is not None
        task = asyncio.create_task(self._cache.record_fresh_result(result, version))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    # --- Diagnostics ---

    def _diagnose(self, results: Sequence[AnalysisResult]) -> list[dict[str, Any]]:
        diagnostics: list[dict[str, Any]] = []
        for r in results:
            suspects = false_positive_candidates(
                r.original_text, r.violations, r.corrected_text
            )
            if suspects:
                diagnostics.append({"id": r.id, "original": r.original_text, "suspects": suspects})
        if diagnostics:
            logger.warning("Potential false positives in %d result(s)", len(diagnostics))
        return diagnostics


def _deduplicate(
    items: Sequence[TextItem], pending: Sequence[int]
) -> tuple[list[int], dict[int, list[int]]]:
    """Group ``pending`` indices by normalized text.

    Returns the representative indices (first occurrence, input order) and
    a map from representative to its later duplicates. ``quick_hash``
    buckets candidates; equality of the normalized text confirms.
    """
    buckets: dict[str, list[tuple[int, str]]] = {}
    representatives: list[int] = []
    duplicates: dict[int, list[int]] = {}
    for index in pending:
        norm = normalize(items[index].text or "")
        bucket = buckets.setdefault(quick_hash(norm), [])
        rep = next((r for r, r_norm in bucket if r_norm == norm), None)
        if rep is None:
            bucket.append((index, norm))
            representatives.append(index)
        else:
            duplicates.setdefault(rep, []).append(index)
    return representatives, duplicates
