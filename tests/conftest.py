# tests/conftest.py - v2
"""Shared test fixtures for all unit and integration tests.

Provides deterministic settings, sample guidelines, and a scripted LLM
client that answers analysis prompts from a term -> replacement table.
No network access: every inference call is served in-process.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from guidelint.config.settings import Settings
from guidelint.core.models import GuidelineRecord, TextItem
from guidelint.llm.base_client import BaseLLMClient
from guidelint.llm.models import LLMResponse, Message

ITEMS_HEADER = "ANALYZE THESE TEXT ITEMS AGAINST ALL GUIDELINES:"

Responder = Callable[[list[dict[str, Any]]], list[dict[str, Any]]]


# === SCRIPTED LLM CLIENT ===


def items_from_messages(messages: list[Message]) -> list[dict[str, Any]]:
    """Recover the ``[{id, text}]`` payload from the user message."""
    content = messages[-1].content
    return json.loads(content.split(ITEMS_HEADER, 1)[1])


def replacement_responder(
    replacements: dict[str, str],
    category: str = "terminology",
    description: str = "Use approved terminology",
) -> Responder:
    """Flag every occurrence of a table term and propose its replacement."""

    def respond(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        out = []
        for item in items:
            text = item["text"]
            violations = [
                {
                    "original": term,
                    "suggested": repl,
                    "confidence": 0.95,
                    "ruleCategory": category,
                    "ruleDescription": description,
                }
                for term, repl in replacements.items()
                if term in text
            ]
            corrected = text
            for v in violations:
                corrected = corrected.replace(v["original"], v["suggested"])
            out.append(
                {
                    "id": item["id"],
                    "hasViolations": bool(violations),
                    "violations": violations,
                    "correctedText": corrected,
                    "confidence": 0.95,
                }
            )
        return out

    return respond


class ScriptedLLMClient(BaseLLMClient):
    """BaseLLMClient whose answers come from a responder function.

    ``delay_s`` simulates latency; ``fail_times`` makes the first N calls
    raise ``error`` before answering normally.
    """

    def __init__(
        self,
        responder: Responder | None = None,
        delay_s: float = 0.0,
        fail_times: int = 0,
        error: Exception | None = None,
    ) -> None:
        self._responder = responder or replacement_responder({})
        self._delay_s = delay_s
        self._fail_times = fail_times
        self._error = error or RuntimeError("503 service unavailable")
        self._model = "scripted"
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.05,
        json_output: bool = False,
    ) -> LLMResponse:
        items = items_from_messages(messages)
        self.calls.append({"system": system, "items": items, "json_output": json_output})
        if self._delay_s:
            await asyncio.sleep(self._delay_s)
        if len(self.calls) <= self._fail_times:
            raise self._error
        return LLMResponse(
            content=json.dumps(self._responder(items)),
            model=self._model,
            provider="scripted",
            latency_ms=int(self._delay_s * 1000),
        )

    @property
    def provider_name(self) -> str:
        return "scripted"


# === FIXTURES: Settings ===


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Deterministic settings: no .env, stores under tmp_path, short deadlines."""
    return Settings(
        _env_file=None,
        google_api_key="test-key",
        cache_root=tmp_path / "cache",
        guidelines_path=tmp_path / "guidelines.json",
        request_deadline_s=5.0,
        response_buffer_s=0.2,
        min_inference_window_s=0.3,
        inference_timeout_s=2.0,
        cache_probe_budget_s=1.0,
        cache_probe_reserve_s=0.5,
    )


# === FIXTURES: Guidelines ===


@pytest.fixture
def sample_guidelines() -> list[GuidelineRecord]:
    """Two categories: terminology (plain rules) and formatting (contextual)."""
    return [
        GuidelineRecord(
            id=1,
            category="terminology",
            title="Approved contact details",
            rules={
                "email": "Use help@company.com instead of support@company.com",
                "product_names": ["Use 'Workspace' not 'workspace'", "Never abbreviate 'Workspace'"],
            },
            examples={
                "correct": ["Contact us at help@company.com"],
                "incorrect": ["Contact us at support@company.com"],
            },
            version=3,
            updated_at="2025-01-01T00:00:00Z",
        ),
        GuidelineRecord(
            id=2,
            category="formatting",
            title="Dates and times",
            rules={
                "date_format": "Use DD/MM/YYYY",
                "weekday": {
                    "description": "Weekday names",
                    "ideal": "Monday",
                    "abbreviation": "Mon",
                    "when_space_constrained": True,
                },
                "detect_patterns": ["\\d{1,2}(st|nd|rd|th)"],
            },
            version=1,
            updated_at="2025-01-02T00:00:00Z",
        ),
    ]


@pytest.fixture
def guidelines_file(settings: Settings, sample_guidelines: list[GuidelineRecord]) -> Path:
    """Write ``sample_guidelines`` where ``settings.guidelines_path`` points."""
    path = Path(settings.guidelines_path)
    path.write_text(
        json.dumps([g.model_dump(mode="json") for g in sample_guidelines]),
        encoding="utf-8",
    )
    return path


# === FIXTURES: Items and LLM ===


@pytest.fixture
def contact_item() -> TextItem:
    return TextItem(id="a", text="Contact us at support@company.com")


@pytest.fixture
def contact_llm() -> ScriptedLLMClient:
    return ScriptedLLMClient(replacement_responder({"support@company.com": "help@company.com"}))


@pytest.fixture
def make_llm() -> Callable[..., ScriptedLLMClient]:
    """Factory: ``make_llm({"term": "replacement"}, delay_s=..., fail_times=...)``.

    Pass ``responder=`` to script arbitrary raw results instead of a table.
    """

    def factory(
        replacements: dict[str, str] | None = None,
        responder: Responder | None = None,
        **kwargs: Any,
    ) -> ScriptedLLMClient:
        return ScriptedLLMClient(
            responder or replacement_responder(replacements or {}), **kwargs
        )

    return factory
