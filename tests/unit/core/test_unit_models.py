# tests/unit/core/test_unit_models.py - v2
"""Tests for core/models.py - wire models, invariants, rule union."""

from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError

from guidelint.core.models import (
    AnalysisResult,
    CategoryRule,
    ContextualRule,
    EnforcementContext,
    GuidelineRecord,
    Rule,
    TextItem,
    Violation,
    clamp_confidence,
)


def _result(**overrides):
    data = dict(
        id="a",
        has_violations=False,
        violations=[],
        corrected_text="hello",
        original_text="hello",
        confidence=0.95,
        guidelines_version="v1",
        source="cache_hit",
    )
    data.update(overrides)
    return AnalysisResult(**data)


class TestClampConfidence:
    @pytest.mark.parametrize(
        "raw,expected",
        [(0.5, 0.85), (0.9, 0.9), (1.7, 1.0), ("0.95", 0.95), (None, 0.9), ("x", 0.9)],
    )
    def test_clamps(self, raw, expected):
        assert clamp_confidence(raw) == pytest.approx(expected)

    def test_nan_uses_default(self):
        assert clamp_confidence(float("nan")) == 0.9


class TestTextItem:
    def test_camel_case_input(self):
        item = TextItem.model_validate({"id": 7, "text": "Hi", "likelyCompliant": True})
        assert item.id == 7
        assert item.likely_compliant is True

    @pytest.mark.parametrize("text", [None, 42, {"a": 1}, ["x"]])
    def test_non_text_becomes_none(self, text):
        item = TextItem.model_validate({"id": "x", "text": text})
        assert item.text is None
        assert item.is_empty

    def test_whitespace_is_empty(self):
        assert TextItem(id="x", text="   ").is_empty

    def test_serializes_camel_case(self):
        dumped = TextItem(id="x", text="t").model_dump(by_alias=True)
        assert "likelyCompliant" in dumped


class TestViolation:
    def test_confidence_clamped_on_construction(self):
        assert Violation(original="a", suggested="b", confidence=0.2).confidence == 0.85

    def test_defaults(self):
        v = Violation(original="a", suggested="b")
        assert v.rule_category == "General"
        assert v.rule_description == "Guideline violation"

    def test_noop_rejected(self):
        with pytest.raises(ValidationError, match="differ"):
            Violation(original="same", suggested="same")

    def test_empty_original_rejected(self):
        with pytest.raises(ValidationError):
            Violation(original="", suggested="x")


class TestAnalysisResultInvariants:
    def test_valid_compliant(self):
        r = _result()
        assert r.has_violations is False

    def test_flag_must_match_violations(self):
        with pytest.raises(ValidationError, match="has_violations"):
            _result(has_violations=True)

    def test_corrected_must_equal_original_without_violations(self):
        with pytest.raises(ValidationError, match="corrected_text"):
            _result(corrected_text="changed")

    def test_violation_must_be_substring(self):
        with pytest.raises(ValidationError, match="not found"):
            _result(
                has_violations=True,
                violations=[Violation(original="absent", suggested="x")],
                corrected_text="x",
            )

    def test_valid_with_violation(self):
        r = _result(
            has_violations=True,
            violations=[Violation(original="hello", suggested="hi")],
            corrected_text="hi",
        )
        dumped = r.model_dump(by_alias=True)
        assert dumped["hasViolations"] is True
        assert dumped["correctedText"] == "hi"
        assert dumped["violations"][0]["ruleCategory"] == "General"

    def test_confidence_bounds(self):
        with pytest.raises(ValidationError):
            _result(confidence=1.5)


class TestGuidelineRecord:
    def test_extra_fields_kept(self):
        g = GuidelineRecord.model_validate({"id": 1, "owner": "brand team"})
        assert g.model_extra == {"owner": "brand team"}

    def test_missing_id_and_category(self):
        g = GuidelineRecord(category=None)
        assert g.guideline_id == "unknown"
        assert g.category_name == "general"

    def test_lenient_identity_fields(self):
        g = GuidelineRecord.model_validate(
            {"id": 9.5, "version": 1.1, "title": 42, "category": 7, "updated_at": 1700000000}
        )
        assert g.version == 1.1
        assert g.title == "42"
        assert g.category_name == "7"
        assert g.guideline_id == "9.5"
        assert g.updated_at == "1700000000"


class TestEnforcementContext:
    def test_listifies_string_fields(self):
        ctx = EnforcementContext(required_triggers="footer", exclude_patterns=("a", 1))
        assert ctx.required_triggers == ["footer"]
        assert ctx.exclude_patterns == ["a", "1"]

    def test_unknown_fields_survive(self):
        ctx = EnforcementContext.model_validate({"ideal": "Monday", "tone": "formal"})
        assert ctx.model_extra == {"tone": "formal"}


class TestRuleUnion:
    def test_discriminated_parse(self):
        adapter = TypeAdapter(list[Rule])
        rules = adapter.validate_python(
            [
                {"rule_type": "category_rule", "id": "1-main", "guideline_id": "1",
                 "category": "c", "description": "d"},
                {"rule_type": "contextual_rule", "id": "1-x", "guideline_id": "1",
                 "category": "c", "description": "d",
                 "enforcement_context": {"ideal": "Monday"}},
            ]
        )
        assert isinstance(rules[0], CategoryRule)
        assert rules[0].severity == "high"
        assert isinstance(rules[1], ContextualRule)
        assert rules[1].enforcement_context.ideal == "Monday"
