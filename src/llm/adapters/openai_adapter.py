# src/llm/adapters/openai_adapter.py - v2
"""OpenAI GPT adapter implementing BaseLLMClient.

JSON mode (``json_object``) only admits an object at the top level, so
with ``json_output`` the model is asked to wrap the item array in
``{"results": [...]}``; the response parser accepts both shapes.
"""

from __future__ import annotations

import time
from typing import Any

from guidelint.llm.base_client import BaseLLMClient
from guidelint.llm.models import LLMResponse, Message

_JSON_OBJECT_NOTE = (
    'Wrap the JSON array in an object: {"results": [ ...one object per item... ]}'
)


class OpenAIAdapter(BaseLLMClient):
    """OpenAI GPT adapter."""

    def __init__(self, model: str = "gpt-4o-mini", api_key: str = "", **kwargs: Any):
        self._model = model
        self._api_key = api_key
        self._client = None

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.05,
        json_output: bool = False,
    ) -> LLMResponse:
        if self._client is None:
            try:
                import openai
            except ImportError as e:
                raise ImportError("openai package required: pip install openai") from e
            self._client = openai.AsyncOpenAI(api_key=self._api_key)

        oai_messages: list[dict[str, Any]] = []
        if system or json_output:
            parts = [p for p in (system, _JSON_OBJECT_NOTE if json_output else None) if p]
            oai_messages.append({"role": "system", "content": "\n\n".join(parts)})
        oai_messages.extend({"role": m.role, "content": m.content} for m in messages)

        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": oai_messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if json_output:
            kwargs["response_format"] = {"type": "json_object"}

        t0 = time.monotonic()
        resp = await self._client.chat.completions.create(**kwargs)
        latency = int((time.monotonic() - t0) * 1000)

        choice = resp.choices[0]
        usage = resp.usage
        return LLMResponse(
            content=choice.message.content or "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=self._model,
            provider="openai",
            latency_ms=latency,
            finish_reason=choice.finish_reason,
            raw_response=resp,
        )

    @property
    def provider_name(self) -> str:
        return "openai"
