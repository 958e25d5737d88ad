# src/core/models.py - v3
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
Wire-facing models serialize with camelCase aliases (``by_alias=True``)
and accept either spelling on input.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

ItemId = Union[str, int]

Provenance = Literal[
    "freshly_analyzed", "cache_hit", "relationship_hit", "pre_filtered", "fallback"
]

VIOLATION_CONFIDENCE_FLOOR = 0.85
VIOLATION_CONFIDENCE_CEILING = 1.0


class WireModel(BaseModel):
    """Base for models exchanged with callers (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def clamp_confidence(
    value: Any,
    default: float = 0.90,
    floor: float = VIOLATION_CONFIDENCE_FLOOR,
    ceiling: float = VIOLATION_CONFIDENCE_CEILING,
) -> float:
    """Coerce a service-reported confidence into [floor, ceiling]."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = default
    if number != number:  # NaN
        number = default
    return min(ceiling, max(floor, number))


# === REQUEST ITEMS ===


class TextItem(WireModel):
    """One text snippet submitted for analysis.

    ``text`` is None when the caller sent something that is not a string;
    such items are passed through by the orchestrator.
    """

    id: ItemId
    text: str | None = None
    likely_compliant: bool = False

    @field_validator("text", mode="before")
    @classmethod
    def _non_text_to_none(cls, v: Any) -> str | None:  # noqa: N805
        return v if isinstance(v, str) else None

    @property
    def is_empty(self) -> bool:
        return self.text is None or not self.text.strip()


class ClientHints(WireModel):
    """Optional caller-side hints, echoed into telemetry."""

    total_layers: int | None = None
    estimated_compliant: int = 0
    optimization_hint: str | None = None


# === ANALYSIS RESULTS ===


class Violation(WireModel):
    """A single guideline violation located in the source text."""

    original: str
    suggested: str
    confidence: float = 0.90
    rule_category: str = "General"
    rule_description: str = "Guideline violation"

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> float:  # noqa: N805
        return clamp_confidence(v)

    @model_validator(mode="after")
    def _not_a_noop(self) -> Violation:
        if not self.original:
            raise ValueError("violation.original must be non-empty")
        if self.original == self.suggested:
            raise ValueError("violation.original must differ from violation.suggested")
        return self


class AnalysisResult(WireModel):
    """Validated outcome for one text item.

    Invariants (checked on construction):
      - has_violations == bool(violations)
      - corrected_text == original_text when there are no violations
      - every violation.original is a literal substring of original_text
    """

    id: ItemId
    has_violations: bool
    violations: list[Violation] = Field(default_factory=list)
    corrected_text: str
    original_text: str
    confidence: float = Field(ge=0.0, le=1.0)
    guidelines_version: str
    source: Provenance
    fallback: bool = False
    reason: str | None = None
    recognized_from: str | None = None
    marked_as_compliant: bool = False

    @model_validator(mode="after")
    def _check_invariants(self) -> AnalysisResult:
        if self.has_violations != bool(self.violations):
            raise ValueError("has_violations must equal bool(violations)")
        if not self.has_violations and self.corrected_text != self.original_text:
            raise ValueError("corrected_text must equal original_text without violations")
        for v in self.violations:
            if v.original not in self.original_text:
                raise ValueError(f"violation {v.original!r} not found in original_text")
        return self


# === GUIDELINES ===


class GuidelineRecord(BaseModel):
    """Author-supplied guideline row. ``rules`` and ``examples`` are free-form.

    Identity fields accept any scalar an author may write (``version: 1.1``,
    numeric titles); text fields are coerced to ``str``.
    """

    model_config = ConfigDict(extra="allow")

    id: Any = None
    category: str | None = "general"
    title: str | None = None
    description: str | None = None
    rules: Any = None
    examples: Any = None
    is_active: bool = True
    version: Any = None
    created_at: datetime | str | None = None
    updated_at: datetime | str | None = None

    @field_validator("category", "title", "description", mode="before")
    @classmethod
    def _text_fields(cls, v: Any) -> str | None:  # noqa: N805
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _timestamps(cls, v: Any) -> Any:  # noqa: N805
        if v is None or isinstance(v, (str, datetime)):
            return v
        return str(v)

    @property
    def category_name(self) -> str:
        return self.category or "general"

    @property
    def guideline_id(self) -> str:
        return "unknown" if self.id is None else str(self.id)


class EnforcementContext(BaseModel):
    """Conditional enforcement fields of a contextual rule.

    Unknown author fields are retained as extras so the context survives
    extraction verbatim.
    """

    model_config = ConfigDict(extra="allow")

    ideal: str | None = None
    abbreviation: str | None = None
    required_triggers: list[str] | None = None
    exclude_patterns: list[str] | None = None
    when_space_constrained: bool | None = None
    avoid: str | None = None

    @field_validator("required_triggers", "exclude_patterns", mode="before")
    @classmethod
    def _listify(cls, v: Any) -> Any:  # noqa: N805
        if isinstance(v, str):
            return [v]
        if isinstance(v, (list, tuple)):
            return [str(x) for x in v]
        return v


CONTEXTUAL_FIELDS = frozenset(
    {
        "ideal",
        "abbreviation",
        "required_triggers",
        "exclude_patterns",
        "when_space_constrained",
    }
)


# === RULES (tagged variant on rule_type) ===


class _RuleBase(BaseModel):
    id: str
    guideline_id: str
    category: str
    path: str = ""
    key: str = ""
    description: str
    severity: Literal["low", "medium", "high"] = "medium"


class TextRule(_RuleBase):
    """A plain string leaf of a guideline payload."""

    rule_type: Literal["text_rule"] = "text_rule"


class ContextualRule(_RuleBase):
    """A rule whose enforcement depends on conditions (space, triggers...)."""

    rule_type: Literal["contextual_rule"] = "contextual_rule"
    enforcement_context: EnforcementContext


class CategoryRule(_RuleBase):
    """One summary rule per guideline, pointing at its detailed rules."""

    rule_type: Literal["category_rule"] = "category_rule"
    severity: Literal["low", "medium", "high"] = "high"
    detailed_rule_ids: list[str] = Field(default_factory=list)


class FallbackRule(_RuleBase):
    """Stand-in for a guideline whose payload could not be processed."""

    rule_type: Literal["fallback_rule"] = "fallback_rule"
    error: str | None = None


Rule = Annotated[
    Union[TextRule, ContextualRule, CategoryRule, FallbackRule],
    Field(discriminator="rule_type"),
]
