# src/api/models.py - v2
"""API-level models: AnalyzeRequest, AnalyzeResponse and telemetry blocks.

All fields serialize in camelCase (``model_dump(by_alias=True)``) and
accept either spelling on input, matching the request/response contract
of the analysis endpoint.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from guidelint.core.models import AnalysisResult, ClientHints, TextItem, WireModel


class AnalyzeRequest(WireModel):
    """One analysis request: ordered text items plus optional hints."""

    text_layers: list[TextItem] = Field(default_factory=list)
    client_hints: ClientHints | None = None


class GuidelinesInfo(WireModel):
    """Guideline snapshot the results were computed against."""

    total_guidelines: int
    categories_processed: list[str]
    rules_extracted: int
    guidelines_version: str


class OptimizationInfo(WireModel):
    """How much of the request avoided inference, and why."""

    total_original_layers: int
    client_pre_filtered: int = 0
    server_filtered: int = 0
    pre_compliant_results: int = 0
    cache_hits: int = 0
    relationship_hits: int = 0
    analyzed: int = 0
    skipped_analysis: int = 0
    optimization_ratio: int = 0
    estimated_compliant: int = 0
    optimization_hint: str | None = None


class ResponseStats(WireModel):
    """Per-request counters and elapsed time."""

    total_layers: int
    filtered_layers: int
    analyzed_layers: int
    cache_hits: int
    relationship_hits: int
    freshly_analyzed: int
    fallback: int
    deduplicated: int = 0
    batches: int = 0
    failed_batches: int = 0
    execution_time_ms: int


class AnalyzeResponse(WireModel):
    """Return value of AnalysisService.analyze(). Never raised, always returned."""

    success: bool
    results: list[AnalysisResult] = Field(default_factory=list)
    guidelines_info: GuidelinesInfo | None = None
    optimization: OptimizationInfo | None = None
    stats: ResponseStats | None = None
    diagnostics: list[dict[str, Any]] | None = None

    # Failure fields
    error: str | None = None
    details: str | None = None
    timeout: bool | None = None
    hint: str | None = None
    layers_received: int | None = None
    max_allowed: int | None = None
    suggested_batches: int | None = None

    def to_wire(self) -> dict[str, Any]:
        """camelCase dict with unset failure fields omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
