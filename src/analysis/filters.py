# src/analysis/filters.py - v2
"""Replaceable false-positive policy applied after violation validation.

Each filter is a predicate ``(original_text, violation) -> bool`` that
returns True when the violation should be DROPPED. The chain is selected
by name through FALSE_POSITIVE_FILTERS; unknown names are rejected at
build time. These encode one house style (date and time formats,
politeness tolerance) and are expected to change independently of the
reconciler.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Sequence

from guidelint.core.models import Violation

logger = logging.getLogger(__name__)

FalsePositiveFilter = Callable[[str, Violation], bool]

_LONG_DATE_RE = re.compile(r"\b\d{1,2}\s+[A-Za-z]+\s*,?\s+\d{4}\b")
_TIME_RANGE_RE = re.compile(
    r"\b\d{1,2}:\d{2}\s+[ap]m\s+to\s+\d{1,2}:\d{2}\s+[ap]m\b", re.IGNORECASE
)
_PLEASE_RE = re.compile(r"\bplease\b", re.IGNORECASE)
_CALENDAR_ABBREV_RE = re.compile(
    r"\b(Mon|Tue|Wed|Thu|Fri|Sat|Sun|Jan|Feb|Mar|Apr|Jun|Jul|Aug|Sep|Oct|Nov|Dec)\b"
)


def _mentions(violation: Violation, word: str) -> bool:
    return word in violation.rule_description.lower()


def long_date(text: str, violation: Violation) -> bool:
    """'15 October, 2023' is an accepted long form, not a date violation."""
    return _mentions(violation, "date") and bool(_LONG_DATE_RE.search(text))


def time_range(text: str, violation: Violation) -> bool:
    """'11:00 am to 12:00 pm' is an accepted time range."""
    return _mentions(violation, "time") and bool(_TIME_RANGE_RE.search(text))


def single_politeness(text: str, violation: Violation) -> bool:
    """A lone 'please' is tolerated; only repeated politeness is flagged."""
    return (
        violation.original.strip().lower() == "please"
        and len(_PLEASE_RE.findall(text)) == 1
    )


def unconstrained_abbreviation(text: str, violation: Violation) -> bool:
    """Shortening a day/month name is only valid under a space constraint."""
    return (
        len(violation.suggested) < len(violation.original)
        and bool(_CALENDAR_ABBREV_RE.search(violation.original))
        and not _mentions(violation, "space")
    )


FILTER_REGISTRY: dict[str, FalsePositiveFilter] = {
    "long_date": long_date,
    "time_range": time_range,
    "single_politeness": single_politeness,
    "unconstrained_abbreviation": unconstrained_abbreviation,
}


def build_filter_chain(names: Iterable[str]) -> list[tuple[str, FalsePositiveFilter]]:
    """Resolve filter names in order.

    Raises:
        ValueError: If a name is not registered.
    """
    chain: list[tuple[str, FalsePositiveFilter]] = []
    for name in names:
        if name not in FILTER_REGISTRY:
            raise ValueError(
                f"Unknown false-positive filter: {name!r}. "
                f"Available: {', '.join(sorted(FILTER_REGISTRY))}"
            )
        chain.append((name, FILTER_REGISTRY[name]))
    return chain


def apply_filters(
    text: str,
    violations: Sequence[Violation],
    chain: Sequence[tuple[str, FalsePositiveFilter]],
) -> list[Violation]:
    """Drop every violation that any filter in ``chain`` rejects."""
    kept: list[Violation] = []
    for v in violations:
        rejected_by = next((name for name, f in chain if f(text, v)), None)
        if rejected_by is None:
            kept.append(v)
        else:
            logger.debug("Filtered %r -> %r (%s)", v.original, v.suggested, rejected_by)
    return kept


def false_positive_candidates(
    text: str, violations: Sequence[Violation], corrected_text: str
) -> list[dict[str, str]]:
    """Diagnostics for DEBUG_ANALYSIS: suspect violations whose fix never landed.

    Only violations whose suggestion is absent from ``corrected_text`` are
    considered; those are then classified by what they touch.
    """
    suspects: list[dict[str, str]] = []
    for v in violations:
        if v.suggested in corrected_text:
            continue
        desc = v.rule_description.lower()
        if "date" in desc and _LONG_DATE_RE.search(text):
            kind = "date_format"
        elif "time" in desc and _TIME_RANGE_RE.search(text):
            kind = "time_format"
        elif "please" in v.original.lower():
            kind = "politeness"
        elif _CALENDAR_ABBREV_RE.search(v.original):
            kind = "calendar_abbreviation"
        else:
            continue
        suspects.append({"kind": kind, "original": v.original, "suggested": v.suggested})
    return suspects
