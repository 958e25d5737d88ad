# src/guidelines/rule_memo.py - v1
"""Read-through memo of the extracted rule set, keyed by guideline version.

Holds exactly one version; a new version supersedes the old entry. Passed
explicitly to whoever needs it (no module-level singleton). Concurrent
callers may race and extract twice, which is harmless because extraction
is pure.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from guidelint.core.models import GuidelineRecord, Rule
from guidelint.guidelines.extractor import DEFAULT_MAX_DEPTH, extract_rules

logger = logging.getLogger(__name__)

Extractor = Callable[[Sequence[GuidelineRecord], int], list[Rule]]


class RuleSetMemo:
    """Memoize ``extract_rules`` output for the current guideline version."""

    def __init__(
        self,
        extractor: Extractor = extract_rules,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._extractor = extractor
        self._max_depth = max_depth
        self._version: str | None = None
        self._rules: list[Rule] | None = None
        self.hits = 0
        self.misses = 0

    @property
    def version(self) -> str | None:
        return self._version

    def get(
        self, guidelines: Sequence[GuidelineRecord], guidelines_version: str
    ) -> list[Rule]:
        """Return rules for ``guidelines_version``, extracting on first use."""
        if self._version == guidelines_version and self._rules is not None:
            self.hits += 1
            logger.debug("Using memoized rules for version %s", guidelines_version)
            return self._rules

        rules = self._extractor(guidelines, self._max_depth)
        self.misses += 1
        if self._version is not None:
            logger.info(
                "Guideline version changed %s -> %s, rules re-extracted",
                self._version, guidelines_version,
            )
        self._version, self._rules = guidelines_version, rules
        return rules
