# tests/unit/llm/test_unit_adapters.py - v1
"""Tests for the provider adapters with the SDK clients mocked out."""

from __future__ import annotations

import sys
import types
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from guidelint.llm.adapters.anthropic_adapter import AnthropicAdapter
from guidelint.llm.adapters.google_adapter import GoogleAdapter
from guidelint.llm.adapters.ollama_adapter import OllamaAdapter
from guidelint.llm.adapters.openai_adapter import OpenAIAdapter
from guidelint.llm.base_client import BaseLLMClient
from guidelint.llm.models import LLMResponse, Message

USER = [Message(role="user", content="analyze")]


class TestBaseLLMClient:
    def test_cannot_instantiate(self):
        with pytest.raises(TypeError):
            BaseLLMClient()  # type: ignore[abstract]


class TestLLMResponse:
    @pytest.mark.parametrize(
        "reason,truncated",
        [("max_tokens", True), ("length", True), ("MAX_TOKENS", True), ("stop", False), (None, False)],
    )
    def test_truncated(self, reason, truncated):
        resp = LLMResponse(content="", model="m", provider="p", latency_ms=1, finish_reason=reason)
        assert resp.truncated is truncated


class TestAnthropicAdapter:
    @pytest.mark.asyncio
    async def test_json_prefill(self):
        sdk = MagicMock()
        sdk.messages.create = AsyncMock(
            return_value=SimpleNamespace(
                content=[SimpleNamespace(type="text", text='{"id": "a"}]')],
                usage=SimpleNamespace(input_tokens=12, output_tokens=5),
                model="claude-test",
                stop_reason="end_turn",
            )
        )
        adapter = AnthropicAdapter(model="claude-test", api_key="k")
        adapter._AnthropicAdapter__client = sdk

        resp = await adapter.complete(USER, system="rules", json_output=True)

        assert resp.content == '[{"id": "a"}]'
        assert resp.input_tokens == 12
        assert resp.finish_reason == "end_turn"
        kwargs = sdk.messages.create.call_args.kwargs
        assert kwargs["system"] == "rules"
        assert kwargs["messages"][-1] == {"role": "assistant", "content": "["}

    @pytest.mark.asyncio
    async def test_plain_text(self):
        sdk = MagicMock()
        sdk.messages.create = AsyncMock(
            return_value=SimpleNamespace(
                content=[SimpleNamespace(type="text", text="hello")],
                usage=SimpleNamespace(input_tokens=1, output_tokens=1),
                model="claude-test",
                stop_reason="max_tokens",
            )
        )
        adapter = AnthropicAdapter(model="claude-test")
        adapter._AnthropicAdapter__client = sdk

        resp = await adapter.complete(USER)

        assert resp.content == "hello"
        assert resp.truncated
        assert "system" not in sdk.messages.create.call_args.kwargs


class TestOpenAIAdapter:
    @pytest.mark.asyncio
    async def test_json_mode(self):
        sdk = MagicMock()
        sdk.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(
                choices=[
                    SimpleNamespace(
                        message=SimpleNamespace(content='{"results": []}'),
                        finish_reason="stop",
                    )
                ],
                usage=SimpleNamespace(prompt_tokens=7, completion_tokens=3),
            )
        )
        adapter = OpenAIAdapter(model="gpt-test", api_key="k")
        adapter._client = sdk

        resp = await adapter.complete(USER, system="rules", json_output=True)

        assert resp.content == '{"results": []}'
        assert resp.output_tokens == 3
        kwargs = sdk.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        system = kwargs["messages"][0]
        assert system["role"] == "system"
        assert system["content"].startswith("rules")
        assert '"results"' in system["content"]


class TestGoogleAdapter:
    @pytest.mark.asyncio
    async def test_generate(self):
        model = MagicMock()
        model.generate_content_async = AsyncMock(
            return_value=SimpleNamespace(
                candidates=[
                    SimpleNamespace(
                        content=SimpleNamespace(parts=[SimpleNamespace(text="[]")]),
                        finish_reason=SimpleNamespace(name="STOP"),
                    )
                ],
                usage_metadata=SimpleNamespace(prompt_token_count=9, candidates_token_count=2),
            )
        )
        genai = types.ModuleType("google.generativeai")
        genai.configure = MagicMock()
        genai.GenerativeModel = MagicMock(return_value=model)
        google = types.ModuleType("google")
        google.generativeai = genai

        adapter = GoogleAdapter(model="gemini-test", api_key="k")
        with patch.dict(sys.modules, {"google": google, "google.generativeai": genai}):
            resp = await adapter.complete(USER, system="rules", json_output=True)
            await adapter.complete(USER, system="rules")

        assert resp.content == "[]"
        assert resp.finish_reason == "STOP"
        assert resp.input_tokens == 9
        genai.configure.assert_called_once_with(api_key="k")
        genai.GenerativeModel.assert_called_with("gemini-test", system_instruction="rules")
        first_call = model.generate_content_async.call_args_list[0]
        assert first_call.kwargs["generation_config"]["response_mime_type"] == "application/json"
        assert len(first_call.kwargs["safety_settings"]) == 4

    def test_blocked_candidate_is_empty(self):
        assert GoogleAdapter._first_text(SimpleNamespace(candidates=[])) == ""
        assert GoogleAdapter._finish_reason(SimpleNamespace(candidates=None)) is None


class TestOllamaAdapter:
    @pytest.mark.asyncio
    async def test_chat(self):
        client = MagicMock()
        client.chat = AsyncMock(
            return_value={
                "message": {"content": "[]"},
                "prompt_eval_count": 4,
                "eval_count": 2,
                "done_reason": "stop",
            }
        )
        ollama = types.ModuleType("ollama")
        ollama.AsyncClient = MagicMock(return_value=client)

        adapter = OllamaAdapter(model="llama-test", base_url="http://gpu:11434")
        with patch.dict(sys.modules, {"ollama": ollama}):
            resp = await adapter.complete(USER, system="rules", json_output=True)

        assert resp.content == "[]"
        assert resp.output_tokens == 2
        ollama.AsyncClient.assert_called_once_with(host="http://gpu:11434")
        kwargs = client.chat.call_args.kwargs
        assert kwargs["format"] == "json"
        assert kwargs["messages"][0] == {"role": "system", "content": "rules"}
