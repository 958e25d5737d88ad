# tests/unit/analysis/test_unit_filters.py - v2
"""Tests for analysis/filters.py - false-positive policy."""

from __future__ import annotations

import pytest

from guidelint.analysis.filters import (
    FILTER_REGISTRY,
    apply_filters,
    build_filter_chain,
    false_positive_candidates,
    long_date,
    single_politeness,
    time_range,
    unconstrained_abbreviation,
)
from guidelint.core.models import Violation


def _v(original, suggested, description="Guideline violation"):
    return Violation(original=original, suggested=suggested, rule_description=description)


class TestPredicates:
    def test_long_date_dropped(self):
        v = _v("15 October, 2023", "15/10/2023", "Use DD/MM/YYYY date format")
        assert long_date("Due 15 October, 2023", v)

    def test_long_date_requires_date_rule(self):
        v = _v("15 October, 2023", "15/10/2023", "Tone")
        assert not long_date("Due 15 October, 2023", v)

    def test_numeric_date_kept(self):
        v = _v("10/15/2023", "15/10/2023", "Date format")
        assert not long_date("Due 10/15/2023", v)

    def test_time_range(self):
        v = _v("to", "-", "Time format")
        assert time_range("Open 11:00 am to 12:00 PM", v)
        assert not time_range("Open 11:00 until noon", v)

    def test_single_politeness(self):
        assert single_politeness("Please sign in", _v("Please", "Kindly"))
        assert not single_politeness("Please, please sign in", _v("please", "kindly"))
        assert not single_politeness("Please sign in", _v("sign in", "log in"))

    def test_unconstrained_abbreviation(self):
        v = _v("Mon, 15 Jan", "15/01", "Use numeric dates")
        assert unconstrained_abbreviation("Mon, 15 Jan", v)

    def test_abbreviation_kept_under_space_rule(self):
        v = _v("Mon, 15 Jan", "15/01", "Abbreviate when Space is tight")
        assert not unconstrained_abbreviation("Mon, 15 Jan", v)

    def test_abbreviation_only_when_shorter(self):
        v = _v("Mon", "Monday", "Use full weekday")
        assert not unconstrained_abbreviation("Mon", v)


class TestFilterChain:
    def test_build_in_order(self):
        chain = build_filter_chain(["time_range", "long_date"])
        assert [name for name, _ in chain] == ["time_range", "long_date"]

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown false-positive filter"):
            build_filter_chain(["long_date", "nope"])

    def test_registry_names(self):
        assert set(FILTER_REGISTRY) == {
            "long_date", "time_range", "single_politeness", "unconstrained_abbreviation",
        }

    def test_apply(self):
        text = "Please review the 15 October, 2023 report"
        violations = [
            _v("Please", "Kindly"),
            _v("15 October, 2023", "15/10/2023", "date format"),
            _v("report", "summary", "Terminology"),
        ]
        kept = apply_filters(text, violations, build_filter_chain(FILTER_REGISTRY))
        assert [v.original for v in kept] == ["report"]

    def test_empty_chain_keeps_all(self):
        violations = [_v("Please", "Kindly")]
        assert apply_filters("Please", violations, []) == violations


class TestFalsePositiveCandidates:
    def test_kinds(self):
        text = "Please come 15 October, 2023, 11:00 am to 12:00 pm, Mon"
        suspects = false_positive_candidates(
            text,
            [
                _v("15 October, 2023", "15/10/2023", "Date format"),
                _v("to", "-", "Time format"),
                _v("Please", "Kindly"),
                _v("Mon", "Monday"),
                _v("come", "arrive"),
            ],
            text,
        )
        assert [s["kind"] for s in suspects] == [
            "date_format", "time_format", "politeness", "calendar_abbreviation",
        ]

    def test_visible_suggestions_are_not_suspect(self):
        text = "Please sign in on Mon"
        suspects = false_positive_candidates(
            text,
            [_v("Please", "Kindly"), _v("Mon", "Monday")],
            "Kindly sign in on Mon",
        )
        assert suspects == [{"kind": "calendar_abbreviation", "original": "Mon", "suggested": "Monday"}]
