# src/guidelines/prompt_builder.py - v1
"""Synthesize the analysis instructions sent to the inference service.

Rules are grouped by guideline category. Contextual rules are rendered as
conditional instructions (PREFER / ABBREVIATE / ONLY WHEN / EXCEPT), not
flattened text. The guideline version is embedded so a response can be
traced to the rule snapshot that produced it, and the output contract is
spelled out so the reconciler can validate responses mechanically.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel

from guidelint.core.models import (
    ContextualRule,
    GuidelineRecord,
    Rule,
    TextItem,
    TextRule,
)
from guidelint.guidelines.extractor import coerce_rules_payload

# Extra guidance attached to well-known top-level rule keys.
RULE_KEY_HINTS: dict[str, str] = {
    "date_format": (
        'DD/MM/YYYY for compact display. "15 October, 2023" is VALID when space '
        "permits. Only flag: MM/DD/YYYY, ordinals (15th), or YYYY/MM/DD."
    ),
    "time_format": '"11:00 am to 12:00 pm" is VALID. Avoid unnecessary complexity.',
}

_PREAMBLE = """You are a PRECISE compliance analyzer for UI content. Version: {version}

CRITICAL CONTEXT:
- Client already fixed mechanical issues (currency symbols, basic commas, obvious errors)
- Focus on SEMANTIC, CONTEXTUAL, and TONE violations that regex cannot catch
- Be confident: Only flag clear violations with >=85% certainty
- RESPECT SPACE CONSTRAINTS: Use abbreviations only when necessary, prefer full forms when space allows
"""

_METHOD = """
ANALYSIS METHOD:
1. Check tone appropriateness (error/success/info context)
2. Validate number and currency formatting
3. Detect passive voice patterns
4. Check spelling variants required by the guidelines
5. Verify punctuation context (heading vs body)
6. Assess politeness overuse (multiple please/sorry)
7. Honor contextual constraints (space, formality, brevity)
"""

_OUTPUT_CONTRACT = """
RESPONSE FORMAT - STRICT JSON, one object per input item, same ids:
[{{
  "id": "item id exactly as given",
  "hasViolations": true/false,
  "violations": [{{
    "original": "exact substring of the input text",
    "suggested": "replacement text",
    "confidence": 0.85-0.99,
    "ruleCategory": "category of the violated guideline",
    "ruleDescription": "specific rule violated"
  }}],
  "correctedText": "full corrected version",
  "confidence": 0.85-0.99,
  "guidelinesVersion": "{version}"
}}]

IMPORTANT:
- Return ONLY the JSON array, no prose and no code fences
- "original" must be copied verbatim from the input text
- RESPECT CONTEXT: If space allows, use preferred full forms over abbreviations
- ALLOW VALID VARIATIONS: "15 October, 2023" and "11:00 am to 12:00 pm" are both acceptable
- SINGLE "PLEASE" IS OK: Allow one instance of politeness without over-flagging
- If the client already fixed it, do not re-flag
- Only suggest changes you are confident about (>=85%)
- correctedText must apply ALL fixes from the violations array
- When there are no violations, correctedText equals the input text"""


class PromptPayload(BaseModel):
    """Instruction payload for one guideline snapshot."""

    system: str
    guidelines_version: str
    rule_count: int
    categories: list[str]


def build_prompt(
    guidelines: Sequence[GuidelineRecord],
    rules: Sequence[Rule],
    guidelines_version: str,
    examples_per_guideline: int = 2,
) -> PromptPayload:
    """Build the system instructions for ``guidelines_version``.

    Args:
        guidelines: Active guideline records, in store order.
        rules: Rules extracted from ``guidelines``.
        guidelines_version: Version digest embedded in the instructions.
        examples_per_guideline: Max correct and incorrect examples shown each.

    Returns:
        PromptPayload carrying the rendered system text.
    """
    by_category: dict[str, list[GuidelineRecord]] = {}
    for g in guidelines:
        by_category.setdefault(g.category_name, []).append(g)

    rules_by_guideline: dict[str, list[Rule]] = {}
    for rule in rules:
        rules_by_guideline.setdefault(rule.guideline_id, []).append(rule)

    lines = ["", "GUIDELINES TO ENFORCE:"]
    for category, members in by_category.items():
        lines.append("")
        lines.append(f"## {category.upper()}:")
        for index, guideline in enumerate(members, start=1):
            lines.extend(
                _render_guideline(
                    index,
                    guideline,
                    rules_by_guideline.get(guideline.guideline_id, []),
                    examples_per_guideline,
                )
            )

    system = "\n".join(
        [
            _PREAMBLE.format(version=guidelines_version),
            "\n".join(lines),
            _METHOD,
            _OUTPUT_CONTRACT.format(version=guidelines_version),
        ]
    )
    return PromptPayload(
        system=system,
        guidelines_version=guidelines_version,
        rule_count=len(rules),
        categories=list(by_category),
    )


def render_items(items: Sequence[TextItem]) -> str:
    """User message listing the items to analyze as JSON."""
    payload = [{"id": item.id, "text": item.text} for item in items]
    return (
        "ANALYZE THESE TEXT ITEMS AGAINST ALL GUIDELINES:\n\n"
        + json.dumps(payload, ensure_ascii=False)
    )


def _render_guideline(
    index: int,
    guideline: GuidelineRecord,
    rules: Sequence[Rule],
    examples_per_guideline: int,
) -> list[str]:
    lines = ["", f"{index}. {guideline.title or 'General guideline'}:"]

    payload = coerce_rules_payload(guideline)
    if isinstance(payload, Mapping):
        detect = payload.get("detect_patterns")
        if isinstance(detect, list) and detect:
            lines.append(f"   DETECT: {' | '.join(map(str, detect))}")
        exclude = payload.get("exclude_patterns")
        if isinstance(exclude, list) and exclude:
            lines.append(f"   EXCLUDE: {' | '.join(map(str, exclude))}")

    contextual = [r for r in rules if isinstance(r, ContextualRule)]
    for rule in contextual:
        lines.extend(_render_contextual(rule))

    contextual_paths = [r.path for r in contextual]
    for rule in rules:
        if not isinstance(rule, TextRule):
            continue
        if rule.path.startswith("examples") or rule.path.split(".")[0] in (
            "detect_patterns",
            "exclude_patterns",
        ):
            continue
        if any(rule.path.startswith(f"{p}.") for p in contextual_paths):
            continue
        lines.append(f"   - {rule.path}: {rule.description}")
        hint = RULE_KEY_HINTS.get(rule.key)
        if hint and "." not in rule.path:
            lines.append(f"     {hint}")

    lines.extend(_render_examples(guideline.examples, examples_per_guideline))
    return lines


def _render_contextual(rule: ContextualRule) -> list[str]:
    ctx = rule.enforcement_context
    lines = [f"   - {rule.key}: {rule.description}"]
    if ctx.ideal:
        lines.append(f'     -> PREFER: "{ctx.ideal}" when space allows')
    if ctx.abbreviation:
        lines.append(f'     -> ABBREVIATE: "{ctx.abbreviation}" only when space is constrained')
    if ctx.avoid:
        lines.append(f"     -> AVOID: {ctx.avoid}")
    if ctx.required_triggers:
        lines.append(f"     -> ONLY WHEN: {' OR '.join(ctx.required_triggers)}")
    if ctx.exclude_patterns:
        lines.append(f"     -> EXCEPT: {' | '.join(ctx.exclude_patterns)}")
    if ctx.when_space_constrained is not None:
        lines.append(
            "     -> Use abbreviated forms when space is constrained"
            if ctx.when_space_constrained
            else "     -> Full forms preferred regardless of space constraints"
        )
    return lines


def _render_examples(examples: Any, limit: int) -> list[str]:
    if not isinstance(examples, Mapping) or limit <= 0:
        return []
    lines: list[str] = []
    correct = examples.get("correct")
    if isinstance(correct, list) and correct:
        lines.append(f"   CORRECT: {' | '.join(map(str, correct[:limit]))}")
    incorrect = examples.get("incorrect")
    if isinstance(incorrect, list) and incorrect:
        lines.append(f"   INCORRECT: {' | '.join(map(str, incorrect[:limit]))}")
    return lines
