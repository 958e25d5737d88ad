# src/guidelines/extractor.py - v1
"""Flatten author-supplied guideline payloads into a uniform rule list.

Payloads are arbitrarily nested JSON-like structures. Traversal uses an
explicit worklist instead of recursion so nesting depth is bounded by
``max_depth`` rather than the interpreter stack.

Per guideline the output is ``[CategoryRule, *detailed rules]``. A
guideline that fails to process yields a single FallbackRule and never
aborts extraction of the others.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from guidelint.core.models import (
    CONTEXTUAL_FIELDS,
    CategoryRule,
    ContextualRule,
    EnforcementContext,
    FallbackRule,
    GuidelineRecord,
    Rule,
    TextRule,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 32

PathPart = str | int


class RuleDepthExceeded(ValueError):
    """Raised when a guideline payload nests deeper than allowed."""


def extract_rules(
    guidelines: Sequence[GuidelineRecord],
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[Rule]:
    """Extract rules from every guideline, in guideline order.

    Args:
        guidelines: Active guideline records.
        max_depth: Maximum nesting depth accepted within one payload.

    Returns:
        Ordered rule list; deterministic for a given input.
    """
    all_rules: list[Rule] = []
    for guideline in guidelines:
        try:
            all_rules.extend(_extract_guideline(guideline, max_depth))
        except Exception as e:
            logger.warning(
                "Rule extraction failed for guideline %s, using fallback rule: %s",
                guideline.guideline_id, e,
            )
            all_rules.append(
                FallbackRule(
                    id=f"{guideline.guideline_id}-fallback",
                    guideline_id=guideline.guideline_id,
                    category=guideline.category_name,
                    description=guideline.title or "General compliance rule",
                    error=str(e),
                )
            )

    logger.info(
        "Extracted %d rules from %d guidelines", len(all_rules), len(guidelines)
    )
    return all_rules


def coerce_rules_payload(guideline: GuidelineRecord) -> Any:
    """Return the guideline's rules payload in structured form.

    A JSON string is parsed; any other string becomes a description;
    a missing payload falls back to the guideline's title/description.
    """
    payload = guideline.rules
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError:
            payload = {"description": payload}
    if not payload:
        payload = {
            "title": guideline.title or "General Rule",
            "description": guideline.description or "General guideline",
        }
    return payload


def _extract_guideline(guideline: GuidelineRecord, max_depth: int) -> list[Rule]:
    gid = guideline.guideline_id
    category = guideline.category_name

    detailed = _walk(coerce_rules_payload(guideline), gid, category, gid, (), max_depth)
    if guideline.examples:
        detailed.extend(
            _walk(guideline.examples, gid, category, gid, ("examples",), max_depth)
        )

    summary = CategoryRule(
        id=f"{gid}-main",
        guideline_id=gid,
        category=category,
        description=guideline.title or "General guideline",
        detailed_rule_ids=[r.id for r in detailed],
    )
    return [summary, *detailed]


def _walk(
    payload: Any,
    guideline_id: str,
    category: str,
    id_prefix: str,
    base_path: tuple[PathPart, ...],
    max_depth: int,
) -> list[Rule]:
    """Depth-first, document-order traversal of one payload."""
    rules: list[Rule] = []
    # (path, key, node, depth); the root has no key and is never contextual.
    stack: list[tuple[tuple[PathPart, ...], PathPart | None, Any, int]] = [
        (base_path, None, payload, 0)
    ]

    while stack:
        path, key, node, depth = stack.pop()
        if depth > max_depth:
            raise RuleDepthExceeded(
                f"payload nesting exceeds {max_depth} levels at {_dotted(path)!r}"
            )

        if isinstance(node, str):
            if key is None:
                continue
            rules.append(
                TextRule(
                    id=_rule_id(id_prefix, path),
                    guideline_id=guideline_id,
                    category=category,
                    path=_dotted(path),
                    key=_leaf_key(path),
                    description=node,
                )
            )
            continue

        if isinstance(node, Mapping):
            if key is not None and _is_contextual(node):
                rules.append(
                    _contextual_rule(node, guideline_id, category, id_prefix, path)
                )
                continue
            children = list(node.items())
        elif isinstance(node, Sequence) and not isinstance(node, (bytes, bytearray)):
            children = list(enumerate(node))
        else:
            # Numbers, booleans and nulls carry no rule text.
            continue

        # Reverse so the stack pops children in document order.
        for child_key, child in reversed(children):
            stack.append((path + (child_key,), child_key, child, depth + 1))

    return rules


def _is_contextual(node: Mapping[str, Any]) -> bool:
    if isinstance(node.get("enforcement_context"), Mapping):
        return True
    return any(field in node for field in CONTEXTUAL_FIELDS)


def _contextual_rule(
    node: Mapping[str, Any],
    guideline_id: str,
    category: str,
    id_prefix: str,
    path: tuple[PathPart, ...],
) -> ContextualRule:
    if isinstance(node.get("enforcement_context"), Mapping):
        raw_context = dict(node["enforcement_context"])
    else:
        raw_context = {k: v for k, v in node.items() if k != "description"}
    context = EnforcementContext.model_validate(raw_context)

    key = _leaf_key(path)
    base = node.get("description")
    description = base if isinstance(base, str) and base else f"{key} rule"

    return ContextualRule(
        id=_rule_id(id_prefix, path),
        guideline_id=guideline_id,
        category=category,
        path=_dotted(path),
        key=key,
        description=describe_context(description, context),
        enforcement_context=context,
    )


def describe_context(description: str, context: EnforcementContext) -> str:
    """Plain-text summary of a contextual rule, used in rule listings."""
    parts = [description]
    if context.ideal:
        parts.append(f'Prefer "{context.ideal}" when space allows')
    if context.abbreviation:
        parts.append(f'Use "{context.abbreviation}" only under space constraints')
    if context.required_triggers:
        parts.append(f"Only applies when: {', '.join(context.required_triggers)}")
    if context.exclude_patterns:
        parts.append(f"EXCEPT: {', '.join(context.exclude_patterns)}")
    if context.when_space_constrained is not None:
        parts.append(
            "Use abbreviated forms when space is constrained"
            if context.when_space_constrained
            else "Full forms preferred regardless of space"
        )
    if context.avoid:
        parts.append(f"Avoid: {context.avoid}")
    return ". ".join(parts)


def _dotted(path: tuple[PathPart, ...]) -> str:
    return ".".join(str(p) for p in path)


def _rule_id(prefix: str, path: tuple[PathPart, ...]) -> str:
    return f"{prefix}-{'-'.join(str(p) for p in path)}"


def _leaf_key(path: tuple[PathPart, ...]) -> str:
    """Nearest named segment of the path (list indexes are skipped)."""
    for part in reversed(path):
        if isinstance(part, str):
            return part
    return ""
