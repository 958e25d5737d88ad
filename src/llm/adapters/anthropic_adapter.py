# src/llm/adapters/anthropic_adapter.py - v3
"""Anthropic Claude adapter implementing BaseLLMClient.

Uses the official anthropic SDK. There is no JSON response mode, so
JSON output is requested by prefilling the assistant turn with "[".
"""

from __future__ import annotations

import logging
import time
from typing import Any

from guidelint.llm.base_client import BaseLLMClient
from guidelint.llm.models import LLMResponse, Message

logger = logging.getLogger(__name__)

_JSON_PREFILL = "["


class AnthropicAdapter(BaseLLMClient):
    """Adapter for Anthropic Claude models."""

    def __init__(
        self,
        model: str = "claude-3-5-haiku-latest",
        api_key: str | None = None,
        **kwargs: Any,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self.__client = None  # Lazy initialization

    @property
    def _client(self):
        """Lazy-init Anthropic client (only on first API call)."""
        if self.__client is None:
            try:
                import anthropic
            except ImportError as e:
                raise ImportError(
                    "anthropic package required: pip install anthropic"
                ) from e
            self.__client = anthropic.AsyncAnthropic(api_key=self._api_key or "")
        return self.__client

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.05,
        json_output: bool = False,
    ) -> LLMResponse:
        """Text completion via Anthropic Messages API."""
        api_messages = [
            {"role": m.role, "content": m.content} for m in messages if m.role != "system"
        ]
        if json_output:
            api_messages.append({"role": "assistant", "content": _JSON_PREFILL})

        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": api_messages,
        }
        if system:
            kwargs["system"] = system

        start = time.monotonic()
        response = await self._client.messages.create(**kwargs)
        latency_ms = int((time.monotonic() - start) * 1000)

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        if json_output:
            text = _JSON_PREFILL + text

        return LLMResponse(
            content=text,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=response.model,
            provider="anthropic",
            latency_ms=latency_ms,
            finish_reason=response.stop_reason,
            raw_response=response,
        )

    @property
    def provider_name(self) -> str:
        return "anthropic"
