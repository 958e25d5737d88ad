# src/api/facade.py - v2
"""Public API facade: single entry point for text-compliance analysis.

Usage:
    from guidelint.api.facade import analyze
    response = await analyze({"textLayers": [{"id": "a", "text": "..."}]})

Or, for a long-lived process that keeps the rule memo warm:
    service = AnalysisService(settings)
    response = await service.analyze(request)
    await service.aclose()

Every outcome, including configuration errors and timeouts, comes back
as an AnalyzeResponse; nothing is raised to the caller.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from guidelint.analysis.deadline import Deadline
from guidelint.analysis.inference import GuidelineInferenceClient
from guidelint.analysis.orchestrator import BatchOrchestrator, OrchestrationResult
from guidelint.api.models import (
    AnalyzeRequest,
    AnalyzeResponse,
    GuidelinesInfo,
    OptimizationInfo,
    ResponseStats,
)
from guidelint.cache.analysis_cache import AnalysisCache
from guidelint.cache.base_cache_store import BaseCacheStore
from guidelint.cache.cache_factory import create_cache_store
from guidelint.config.settings import ConfigurationError, Settings
from guidelint.core.models import GuidelineRecord, Rule
from guidelint.guidelines.base_guideline_store import (
    BaseGuidelineStore,
    GuidelinesUnavailableError,
)
from guidelint.guidelines.prompt_builder import PromptPayload, build_prompt
from guidelint.guidelines.rule_memo import RuleSetMemo
from guidelint.guidelines.store_factory import create_guideline_store
from guidelint.guidelines.versioning import compute_guidelines_version
from guidelint.llm.base_client import BaseLLMClient
from guidelint.llm.client_factory import (
    UnsupportedProviderError,
    create_llm_client_from_settings,
)
from guidelint.logging.context import clear_context, set_request_context, set_stage
from guidelint.version import __version__

logger = logging.getLogger(__name__)

_UNSET: Any = object()

FEATURES = [
    "dynamic_guidelines",
    "contextual_rules",
    "analysis_cache",
    "relationship_cache",
    "concurrent_batches",
    "deadline_fallback",
    "false_positive_filters",
    "in_request_dedup",
]


class AnalysisService:
    """Long-lived analysis entry point.

    Args:
        settings: Global settings. Loaded from .env if None.
        guideline_store: Guideline backend. Built from settings if None.
        cache_store: Cache backend. Built from settings if not given;
            pass None explicitly to disable caching.
        llm_client: Inference client. Built from settings on first use.
        rule_memo: Rule-set memo shared across requests.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        guideline_store: BaseGuidelineStore | None = None,
        cache_store: BaseCacheStore | None = _UNSET,
        llm_client: BaseLLMClient | None = None,
        rule_memo: RuleSetMemo | None = None,
    ) -> None:
        self._settings = settings or Settings()
        s = self._settings
        self._guideline_store = guideline_store or create_guideline_store(s)
        if cache_store is _UNSET:
            cache_store = create_cache_store(s)
        self._cache = (
            AnalysisCache(
                cache_store,
                write_timeout_s=s.cache_write_timeout_s,
                relationship_timeout_s=s.relationship_write_timeout_s,
                compliant_confidence=s.compliant_confidence,
            )
            if cache_store is not None
            else None
        )
        self._llm_client = llm_client
        self._memo = rule_memo or RuleSetMemo(max_depth=s.rule_max_depth)
        self._prompt: PromptPayload | None = None
        self._orchestrator: BatchOrchestrator | None = None
        self._inference: GuidelineInferenceClient | None = None

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def rule_memo(self) -> RuleSetMemo:
        return self._memo

    @property
    def inference_calls(self) -> int:
        return 0 if self._inference is None else self._inference.calls

    async def analyze(self, request: AnalyzeRequest | Mapping[str, Any]) -> AnalyzeResponse:
        """Analyze one request under the hard request deadline."""
        request_id = uuid.uuid4().hex[:12]
        set_request_context(request_id, stage="received")
        started = time.monotonic()
        hard_limit = self._settings.request_deadline_s
        try:
            return await asyncio.wait_for(self._analyze(request, started), timeout=hard_limit)
        except asyncio.TimeoutError:
            logger.error("Request %s exceeded the %.1fs hard deadline", request_id, hard_limit)
            return AnalyzeResponse(
                success=False,
                timeout=True,
                error="Analysis timeout",
                details=f"Request exceeded {hard_limit:g}s",
            )
        except Exception as e:
            logger.exception("Fatal error while analyzing request %s", request_id)
            return AnalyzeResponse(success=False, error="Internal Server Error", details=str(e))
        finally:
            clear_context()

    async def load_rules(self) -> tuple[list[GuidelineRecord], list[Rule], str]:
        """Load active guidelines, their version digest and extracted rules.

        Raises:
            GuidelinesUnavailableError: If the store fails or times out.
        """
        try:
            guidelines = await asyncio.wait_for(
                self._guideline_store.load_active(),
                timeout=self._settings.guidelines_load_timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise GuidelinesUnavailableError(
                f"Guideline store did not answer within "
                f"{self._settings.guidelines_load_timeout_s:g}s"
            ) from e
        version = compute_guidelines_version(guidelines)
        return guidelines, self._memo.get(guidelines, version), version

    def service_info(self) -> dict[str, Any]:
        return service_info(self._settings, cache_enabled=self._cache is not None)

    async def wait_for_pending_writes(self, timeout_s: float | None = None) -> None:
        if self._orchestrator is not None:
            await self._orchestrator.wait_for_pending_writes(timeout_s)

    async def aclose(self) -> None:
        """Drain background writes and release backends."""
        await self.wait_for_pending_writes(self._settings.cache_write_timeout_s)
        if self._cache is not None:
            await self._cache.close()
        self._guideline_store.close()

    # --- Internal ---

    async def _analyze(
        self, request: AnalyzeRequest | Mapping[str, Any], started: float
    ) -> AnalyzeResponse:
        s = self._settings
        deadline = Deadline(s.request_deadline_s - s.response_buffer_s)

        try:
            req = (
                request
                if isinstance(request, AnalyzeRequest)
                else AnalyzeRequest.model_validate(request)
            )
        except ValidationError as e:
            return AnalyzeResponse(
                success=False, error="Valid textLayers required", details=str(e)
            )

        items = req.text_layers
        if not items:
            return AnalyzeResponse(success=False, error="Valid textLayers required")

        limit = s.max_items_per_request
        if limit and len(items) > limit:
            logger.warning("Rejected request with %d items (limit %d)", len(items), limit)
            return AnalyzeResponse(
                success=False,
                error=f"Too many text layers: maximum {limit} per request",
                hint="Split the request into smaller batches",
                layers_received=len(items),
                max_allowed=limit,
                suggested_batches=math.ceil(len(items) / limit),
            )

        try:
            orchestrator = self._get_orchestrator()
            set_stage("load_guidelines")
            guidelines, rules, version = await self.load_rules()
        except (ConfigurationError, UnsupportedProviderError) as e:
            logger.error("Configuration error: %s", e)
            return AnalyzeResponse(success=False, error="Configuration error", details=str(e))
        except GuidelinesUnavailableError as e:
            logger.error("Guidelines unavailable: %s", e)
            return AnalyzeResponse(success=False, error="Guidelines unavailable", details=str(e))

        prompt = self._prompt_for(guidelines, rules, version)
        outcome = await orchestrator.run(items, prompt, deadline)
        return self._build_response(req, guidelines, rules, outcome, started)

    def _get_orchestrator(self) -> BatchOrchestrator:
        if self._orchestrator is None:
            s = self._settings
            llm = self._llm_client or create_llm_client_from_settings(s)
            self._inference = GuidelineInferenceClient(
                llm, temperature=s.llm_temperature, max_tokens=s.llm_max_tokens
            )
            self._orchestrator = BatchOrchestrator(self._inference, self._cache, s)
        return self._orchestrator

    def _prompt_for(
        self, guidelines: list[GuidelineRecord], rules: list[Rule], version: str
    ) -> PromptPayload:
        if self._prompt is None or self._prompt.guidelines_version != version:
            self._prompt = build_prompt(
                guidelines, rules, version, self._settings.prompt_examples_per_guideline
            )
        return self._prompt

    def _build_response(
        self,
        req: AnalyzeRequest,
        guidelines: list[GuidelineRecord],
        rules: list[Rule],
        outcome: OrchestrationResult,
        started: float,
    ) -> AnalyzeResponse:
        st = outcome.stats
        n = len(req.text_layers)
        hints = req.client_hints
        total_original = (hints.total_layers if hints and hints.total_layers else None) or n
        skipped = n - st.inference_items

        categories: list[str] = []
        for g in guidelines:
            if g.category_name not in categories:
                categories.append(g.category_name)

        return AnalyzeResponse(
            success=True,
            results=outcome.results,
            guidelines_info=GuidelinesInfo(
                total_guidelines=len(guidelines),
                categories_processed=categories,
                rules_extracted=len(rules),
                guidelines_version=outcome.guidelines_version,
            ),
            optimization=OptimizationInfo(
                total_original_layers=total_original,
                client_pre_filtered=max(total_original - n, 0),
                server_filtered=n - st.empty,
                pre_compliant_results=st.pre_filtered + st.empty,
                cache_hits=st.cache_hits,
                relationship_hits=st.relationship_hits,
                analyzed=st.inference_items,
                skipped_analysis=skipped,
                optimization_ratio=round(
                    (total_original - st.inference_items) / total_original * 100
                ),
                estimated_compliant=hints.estimated_compliant if hints else 0,
                optimization_hint=hints.optimization_hint if hints else None,
            ),
            stats=ResponseStats(
                total_layers=n,
                filtered_layers=n - st.empty,
                analyzed_layers=st.inference_items,
                cache_hits=st.cache_hits,
                relationship_hits=st.relationship_hits,
                freshly_analyzed=st.freshly_analyzed,
                fallback=st.fallback,
                deduplicated=st.deduplicated,
                batches=st.batches,
                failed_batches=st.failed_batches,
                execution_time_ms=int((time.monotonic() - started) * 1000),
            ),
            diagnostics=outcome.diagnostics or None,
        )


async def analyze(
    request: AnalyzeRequest | Mapping[str, Any],
    settings: Settings | None = None,
    **service_kwargs: Any,
) -> AnalyzeResponse:
    """One-shot analysis: build a service, analyze, drain writes, close."""
    service = AnalysisService(settings, **service_kwargs)
    try:
        return await service.analyze(request)
    finally:
        await service.aclose()


def service_info(
    settings: Settings | None = None, cache_enabled: bool | None = None
) -> dict[str, Any]:
    """Static description of the configured service."""
    s = settings or Settings()
    if cache_enabled is None:
        cache_enabled = s.cache_enabled
    return {
        "service": "guidelint",
        "version": __version__,
        "provider": s.llm_provider,
        "model": s.llm_model,
        "guidelinesBackend": s.guidelines_backend,
        "cacheBackend": s.cache_backend if cache_enabled else None,
        "maxItemsPerRequest": s.max_items_per_request,
        "batchSize": s.batch_size,
        "features": list(FEATURES),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
