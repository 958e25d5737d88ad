# tests/unit/guidelines/test_unit_extractor.py - v1
"""Tests for guidelines/extractor.py - flattening nested guideline payloads."""

from __future__ import annotations

import json

from guidelint.core.models import (
    CategoryRule,
    ContextualRule,
    FallbackRule,
    GuidelineRecord,
    TextRule,
)
from guidelint.guidelines.extractor import (
    coerce_rules_payload,
    describe_context,
    extract_rules,
)


def _by_id(rules):
    return {r.id: r for r in rules}


class TestExtractRules:
    def test_category_rule_first_per_guideline(self, sample_guidelines):
        rules = extract_rules(sample_guidelines)
        assert isinstance(rules[0], CategoryRule)
        assert rules[0].id == "1-main"
        assert rules[0].description == "Approved contact details"
        second = next(i for i, r in enumerate(rules) if r.id == "2-main")
        assert all(r.guideline_id == "1" for r in rules[:second])

    def test_text_leaves(self, sample_guidelines):
        rules = _by_id(extract_rules(sample_guidelines))
        email = rules["1-email"]
        assert isinstance(email, TextRule)
        assert email.path == "email"
        assert email.key == "email"
        assert email.category == "terminology"
        listed = rules["1-product_names-1"]
        assert listed.path == "product_names.1"
        assert listed.key == "product_names"
        assert listed.description == "Never abbreviate 'Workspace'"

    def test_document_order(self, sample_guidelines):
        ids = [r.id for r in extract_rules(sample_guidelines) if r.guideline_id == "1"]
        assert ids == [
            "1-main",
            "1-email",
            "1-product_names-0",
            "1-product_names-1",
            "1-examples-correct-0",
            "1-examples-incorrect-0",
        ]

    def test_category_rule_back_references(self, sample_guidelines):
        rules = extract_rules(sample_guidelines)
        main = _by_id(rules)["2-main"]
        detailed = [r.id for r in rules if r.guideline_id == "2" and r.id != "2-main"]
        assert main.detailed_rule_ids == detailed

    def test_contextual_rule_keeps_context_verbatim(self, sample_guidelines):
        weekday = _by_id(extract_rules(sample_guidelines))["2-weekday"]
        assert isinstance(weekday, ContextualRule)
        ctx = weekday.enforcement_context
        assert ctx.ideal == "Monday"
        assert ctx.abbreviation == "Mon"
        assert ctx.when_space_constrained is True
        assert weekday.description.startswith("Weekday names")
        assert 'Prefer "Monday"' in weekday.description

    def test_contextual_children_not_flattened(self, sample_guidelines):
        ids = {r.id for r in extract_rules(sample_guidelines)}
        assert "2-weekday-ideal" not in ids

    def test_explicit_enforcement_context(self):
        g = GuidelineRecord(
            id="g",
            rules={
                "tone": {
                    "description": "Keep errors calm",
                    "enforcement_context": {
                        "required_triggers": ["error", "failed"],
                        "exclude_patterns": "legal notice",
                        "avoid": "exclamation marks",
                    },
                }
            },
        )
        rule = _by_id(extract_rules([g]))["g-tone"]
        assert isinstance(rule, ContextualRule)
        assert rule.enforcement_context.required_triggers == ["error", "failed"]
        assert rule.enforcement_context.exclude_patterns == ["legal notice"]
        assert rule.enforcement_context.avoid == "exclamation marks"

    def test_root_mapping_is_never_contextual(self):
        g = GuidelineRecord(id="g", rules={"ideal": "Monday", "abbreviation": "Mon"})
        rules = extract_rules([g])
        assert [r.id for r in rules] == ["g-main", "g-ideal", "g-abbreviation"]

    def test_scalars_are_skipped(self):
        g = GuidelineRecord(id="g", rules={"max_len": 40, "strict": True, "note": None, "x": "y"})
        assert [r.id for r in extract_rules([g])] == ["g-main", "g-x"]

    def test_deterministic(self, sample_guidelines):
        first = [r.model_dump() for r in extract_rules(sample_guidelines)]
        second = [r.model_dump() for r in extract_rules(sample_guidelines)]
        assert first == second

    def test_failure_isolated_to_one_guideline(self, sample_guidelines):
        deep: dict = {}
        node = deep
        for _ in range(10):
            node["next"] = {}
            node = node["next"]
        node["leaf"] = "too deep"
        bad = GuidelineRecord(id="bad", title="Broken", rules=deep)

        rules = extract_rules([bad, *sample_guidelines], max_depth=5)

        fallback = rules[0]
        assert isinstance(fallback, FallbackRule)
        assert fallback.id == "bad-fallback"
        assert fallback.description == "Broken"
        assert "nesting exceeds 5" in (fallback.error or "")
        assert any(r.id == "1-email" for r in rules)
        assert any(r.id == "2-weekday" for r in rules)

    def test_deep_nesting_within_limit(self):
        deep: dict = {}
        node = deep
        for _ in range(200):
            node["n"] = {}
            node = node["n"]
        node["leaf"] = "deep rule"
        rules = extract_rules([GuidelineRecord(id="d", rules=deep)], max_depth=500)
        assert rules[-1].description == "deep rule"
        assert rules[-1].path.count(".") == 200


class TestCoerceRulesPayload:
    def test_json_string_parsed(self):
        g = GuidelineRecord(id=1, rules=json.dumps({"a": "b"}))
        assert coerce_rules_payload(g) == {"a": "b"}

    def test_plain_string_becomes_description(self):
        g = GuidelineRecord(id=1, rules="Be concise")
        assert coerce_rules_payload(g) == {"description": "Be concise"}

    def test_missing_payload_uses_title(self):
        g = GuidelineRecord(id=1, title="Tone", description="Friendly")
        assert coerce_rules_payload(g) == {"title": "Tone", "description": "Friendly"}

    def test_json_string_rules_extracted(self):
        g = GuidelineRecord(id=5, rules=json.dumps({"currency": "Use ₹ before amounts"}))
        assert "5-currency" in {r.id for r in extract_rules([g])}


class TestDescribeContext:
    def test_all_parts(self):
        from guidelint.core.models import EnforcementContext

        text = describe_context(
            "Dates",
            EnforcementContext(
                required_triggers=["deadline"],
                exclude_patterns=["ISO timestamps"],
                when_space_constrained=False,
            ),
        )
        assert text == (
            "Dates. Only applies when: deadline. EXCEPT: ISO timestamps. "
            "Full forms preferred regardless of space"
        )
