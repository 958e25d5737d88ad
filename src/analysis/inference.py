# src/analysis/inference.py - v1
"""Inference client: one prompt + one batch of items -> raw per-item dicts.

The provider's text is parsed leniently (code fences and surrounding prose
are stripped) and must yield a JSON array, or an object with a
``results`` array. Anything else raises MalformedResponseError so the
retry layer classifies it as a parse error.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from typing import Any

from guidelint.core.models import TextItem
from guidelint.guidelines.prompt_builder import PromptPayload, render_items
from guidelint.llm.base_client import BaseLLMClient
from guidelint.llm.models import Message

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


class InferenceError(Exception):
    """Inference call failed or returned an unusable payload."""


class MalformedResponseError(InferenceError):
    """Response text could not be parsed into per-item results."""


def parse_response_content(content: str) -> list[dict[str, Any]]:
    """Extract the per-item result list from raw model output.

    Raises:
        MalformedResponseError: Empty text, invalid JSON, or wrong shape.
    """
    text = _FENCE_RE.sub("", content or "").strip()
    starts = [i for i in (text.find("["), text.find("{")) if i >= 0]
    end = max(text.rfind("]"), text.rfind("}"))
    if not starts or end < 0:
        raise MalformedResponseError("Empty response: nothing to parse")
    text = text[min(starts) : end + 1]

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Failed to parse response JSON: {e}") from e

    if isinstance(parsed, dict) and isinstance(parsed.get("results"), list):
        parsed = parsed["results"]
    if not isinstance(parsed, list):
        raise MalformedResponseError("Invalid response format: expected a JSON array (parse)")
    return [entry for entry in parsed if isinstance(entry, dict)]


class GuidelineInferenceClient:
    """Send one batch to the LLM and return its parsed result dicts."""

    def __init__(
        self,
        llm_client: BaseLLMClient,
        temperature: float = 0.05,
        max_tokens: int = 4096,
    ) -> None:
        self._llm = llm_client
        self._temperature = temperature
        self._max_tokens = max_tokens
        self.calls = 0

    @property
    def llm_client(self) -> BaseLLMClient:
        return self._llm

    async def analyze_batch(
        self, prompt: PromptPayload, items: Sequence[TextItem]
    ) -> list[dict[str, Any]]:
        self.calls += 1
        response = await self._llm.complete(
            messages=[Message(role="user", content=render_items(items))],
            system=prompt.system,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
            json_output=True,
        )
        logger.debug(
            "Inference returned %d chars in %dms (%d in / %d out tokens)",
            len(response.content), response.latency_ms,
            response.input_tokens, response.output_tokens,
        )
        if response.truncated:
            logger.warning("Inference output hit the token limit for %d items", len(items))
        return parse_response_content(response.content)
