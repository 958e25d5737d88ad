# src/core/corrections.py - v2
"""Apply violation replacements to a source text."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from guidelint.core.models import Violation


def apply_violations(text: str, violations: Iterable[Violation]) -> str:
    """Replace every occurrence of each ``original`` with its ``suggested``.

    Longer originals are applied first so a short match cannot split a
    longer one.
    """
    corrected = text
    for v in sorted(violations, key=lambda v: len(v.original), reverse=True):
        corrected = corrected.replace(v.original, v.suggested)
    return corrected


def missing_corrections(corrected_text: str, violations: Iterable[Violation]) -> list[Violation]:
    """Violations whose original is still present and suggestion absent."""
    return [
        v for v in violations
        if v.original in corrected_text and v.suggested not in corrected_text
    ]


def preserves_untouched_text(
    text: str, corrected_text: str, violations: Sequence[Violation]
) -> bool:
    """True when ``corrected_text`` keeps every span of ``text`` no violation covers.

    Each violated span may be rewritten freely (or left as is); everything
    between them must survive verbatim and in order. A correction that
    belongs to some other text fails this check.
    """
    if not violations:
        return corrected_text == text
    originals = sorted({v.original for v in violations}, key=len, reverse=True)
    splitter = re.compile("|".join(re.escape(o) for o in originals))
    untouched = splitter.split(text)
    shape = re.compile(".*?".join(re.escape(part) for part in untouched), re.DOTALL)
    return shape.fullmatch(corrected_text) is not None
