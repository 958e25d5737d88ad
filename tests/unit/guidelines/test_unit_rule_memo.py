# tests/unit/guidelines/test_unit_rule_memo.py - v1
"""Tests for guidelines/rule_memo.py - version-keyed rule memo."""

from __future__ import annotations

from unittest.mock import MagicMock

from guidelint.guidelines.extractor import extract_rules
from guidelint.guidelines.rule_memo import RuleSetMemo


class TestRuleSetMemo:
    def test_extracts_once_per_version(self, sample_guidelines):
        extractor = MagicMock(side_effect=extract_rules)
        memo = RuleSetMemo(extractor=extractor)

        first = memo.get(sample_guidelines, "v1")
        second = memo.get(sample_guidelines, "v1")

        assert first is second
        assert extractor.call_count == 1
        assert (memo.hits, memo.misses) == (1, 1)
        assert memo.version == "v1"

    def test_new_version_supersedes(self, sample_guidelines):
        extractor = MagicMock(side_effect=extract_rules)
        memo = RuleSetMemo(extractor=extractor)

        memo.get(sample_guidelines, "v1")
        memo.get(sample_guidelines[:1], "v2")
        memo.get(sample_guidelines, "v1")

        assert extractor.call_count == 3
        assert memo.version == "v1"

    def test_passes_max_depth(self, sample_guidelines):
        extractor = MagicMock(return_value=[])
        RuleSetMemo(extractor=extractor, max_depth=7).get(sample_guidelines, "v")
        extractor.assert_called_once_with(sample_guidelines, 7)
