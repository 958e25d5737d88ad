# src/analysis/reconciler.py - v2
"""Turn raw inference output into validated AnalysisResult objects.

Service output is untrusted: violations that do not occur verbatim in the
source text, no-op suggestions and malformed entries are dropped; the
false-positive chain runs next; the corrected text is (re)built so every
kept violation is applied; ``has_violations`` is recomputed last.
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from guidelint.analysis.filters import FalsePositiveFilter, apply_filters
from guidelint.core.corrections import (
    apply_violations,
    missing_corrections,
    preserves_untouched_text,
)
from guidelint.core.models import (
    AnalysisResult,
    ItemId,
    Provenance,
    TextItem,
    Violation,
    clamp_confidence,
)

logger = logging.getLogger(__name__)

FilterChain = Sequence[tuple[str, FalsePositiveFilter]]


def validate_violations(text: str, raw_violations: Any) -> list[Violation]:
    """Keep well-formed, non-trivial violations that occur in ``text``."""
    if not isinstance(raw_violations, list):
        return []

    kept: list[Violation] = []
    seen: set[tuple[str, str]] = set()
    for raw in raw_violations:
        if not isinstance(raw, Mapping):
            continue
        original, suggested = raw.get("original"), raw.get("suggested")
        if not isinstance(original, str) or not isinstance(suggested, str):
            continue
        original, suggested = original.strip(), suggested.strip()
        if not original or original == suggested or original not in text:
            continue
        if (original, suggested) in seen:
            continue
        try:
            violation = Violation(
                original=original,
                suggested=suggested,
                confidence=raw.get("confidence"),
                rule_category=_text_or(raw.get("ruleCategory", raw.get("rule_category")), "General"),
                rule_description=_text_or(
                    raw.get("ruleDescription", raw.get("rule_description")),
                    "Guideline violation",
                ),
            )
        except ValidationError as e:
            logger.debug("Discarding violation %r: %s", original, e)
            continue
        seen.add((original, suggested))
        kept.append(violation)
    return kept


def reconcile_item(
    item: TextItem,
    raw: Mapping[str, Any],
    guidelines_version: str,
    chain: FilterChain = (),
) -> AnalysisResult:
    """Build the result for one freshly analyzed item."""
    text = item.text or ""
    violations = apply_filters(text, validate_violations(text, raw.get("violations")), chain)

    corrected = text
    if violations:
        proposed = raw.get("correctedText")
        if not isinstance(proposed, str) or not proposed or proposed == text:
            corrected = apply_violations(text, violations)
        elif preserves_untouched_text(text, proposed, violations):
            corrected = proposed
        else:
            logger.warning(
                "Discarding correctedText for item %s: it does not match the item's text",
                item.id,
            )
            corrected = apply_violations(text, violations)
        # Apply any kept violation the service forgot in its own correction.
        for v in missing_corrections(corrected, violations):
            corrected = corrected.replace(v.original, v.suggested)

    return AnalysisResult(
        id=item.id,
        has_violations=bool(violations),
        violations=violations,
        corrected_text=corrected,
        original_text=text,
        confidence=clamp_confidence(raw.get("confidence")),
        guidelines_version=guidelines_version,
        source="freshly_analyzed",
    )


def reconcile_batch(
    items: Sequence[TextItem],
    raw_results: Sequence[Mapping[str, Any]],
    guidelines_version: str,
    chain: FilterChain = (),
    fallback_confidence: float = 0.5,
) -> list[AnalysisResult]:
    """Match raw results to ``items`` by id, in item order.

    Items sharing an id consume that id's results in response order, one
    each. Items the service left out come back as fallbacks; results for
    ids not in the batch are ignored.
    """
    by_id: dict[str, deque[Mapping[str, Any]]] = defaultdict(deque)
    for raw in raw_results:
        rid = raw.get("id")
        if rid is not None:
            by_id[str(rid)].append(raw)

    results: list[AnalysisResult] = []
    for item in items:
        queue = by_id.get(str(item.id))
        raw = queue.popleft() if queue else None
        if raw is None:
            logger.warning("Item %s missing from inference response", item.id)
            results.append(
                fallback_result(item, "missing_from_response", guidelines_version, fallback_confidence)
            )
            continue
        results.append(reconcile_item(item, raw, guidelines_version, chain))
    return results


def compliant_result(
    item_id: ItemId,
    text: str,
    guidelines_version: str,
    source: Provenance,
    confidence: float,
    reason: str | None = None,
) -> AnalysisResult:
    """A result with no violations (pre-filtered, empty, ...)."""
    return AnalysisResult(
        id=item_id,
        has_violations=False,
        corrected_text=text,
        original_text=text,
        confidence=confidence,
        guidelines_version=guidelines_version,
        source=source,
        reason=reason,
    )


def fallback_result(
    item: TextItem, reason: str, guidelines_version: str, confidence: float = 0.5
) -> AnalysisResult:
    """Unanalyzed passthrough: no violations, reduced confidence."""
    text = item.text or ""
    return AnalysisResult(
        id=item.id,
        has_violations=False,
        corrected_text=text,
        original_text=text,
        confidence=confidence,
        guidelines_version=guidelines_version,
        source="fallback",
        fallback=True,
        reason=reason,
    )


def fallback_results(
    items: Sequence[TextItem], reason: str, guidelines_version: str, confidence: float = 0.5
) -> list[AnalysisResult]:
    return [fallback_result(i, reason, guidelines_version, confidence) for i in items]


def rebind_result(
    result: AnalysisResult, item: TextItem, source: Provenance | None = None
) -> AnalysisResult:
    """Copy ``result`` onto another item whose text normalizes the same.

    When the texts differ literally, violations are re-validated against
    the new text and the correction is rebuilt; ones that no longer match
    are dropped.
    """
    text = item.text or ""
    update: dict[str, Any] = {"id": item.id}
    if source is not None:
        update["source"] = source
    if text == result.original_text:
        return result.model_copy(update=update)

    violations = [v for v in result.violations if v.original in text]
    return AnalysisResult(
        **{
            **result.model_dump(exclude={"violations"}),
            **update,
            "has_violations": bool(violations),
            "violations": violations,
            "original_text": text,
            "corrected_text": apply_violations(text, violations) if violations else text,
        }
    )


def _text_or(value: Any, default: str) -> str:
    return value if isinstance(value, str) and value.strip() else default
