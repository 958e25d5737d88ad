# src/llm/adapters/google_adapter.py - v2
"""Google Gemini adapter implementing BaseLLMClient (default provider).

Uses google-generativeai SDK, imported lazily. Safety thresholds are
pinned at BLOCK_MEDIUM_AND_ABOVE; a blocked or empty candidate comes
back as empty content and is rejected by the response parser.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from guidelint.llm.base_client import BaseLLMClient
from guidelint.llm.models import LLMResponse, Message

logger = logging.getLogger(__name__)

_SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


class GoogleAdapter(BaseLLMClient):
    """Google Gemini adapter."""

    def __init__(
        self,
        model: str = "gemini-2.5-flash-lite",
        api_key: str = "",
        top_k: int = 40,
        top_p: float = 0.9,
        **kwargs: Any,
    ):
        self._model = model
        self._api_key = api_key
        self._top_k = top_k
        self._top_p = top_p
        self._configured = False

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.05,
        json_output: bool = False,
    ) -> LLMResponse:
        try:
            import google.generativeai as genai
        except ImportError as e:
            raise ImportError(
                "google-generativeai package required: pip install google-generativeai"
            ) from e

        if not self._configured:
            genai.configure(api_key=self._api_key)
            self._configured = True
        model = genai.GenerativeModel(self._model, system_instruction=system)

        gen_config: dict[str, Any] = {
            "max_output_tokens": max_tokens,
            "temperature": temperature,
            "top_k": self._top_k,
            "top_p": self._top_p,
        }
        if json_output:
            gen_config["response_mime_type"] = "application/json"

        contents = [
            {"role": "model" if m.role == "assistant" else "user", "parts": [{"text": m.content}]}
            for m in messages
        ]
        safety = [
            {"category": c, "threshold": "BLOCK_MEDIUM_AND_ABOVE"} for c in _SAFETY_CATEGORIES
        ]

        t0 = time.monotonic()
        resp = await model.generate_content_async(
            contents, generation_config=gen_config, safety_settings=safety,
        )
        latency = int((time.monotonic() - t0) * 1000)

        usage = getattr(resp, "usage_metadata", None)
        return LLMResponse(
            content=self._first_text(resp),
            input_tokens=getattr(usage, "prompt_token_count", 0) if usage else 0,
            output_tokens=getattr(usage, "candidates_token_count", 0) if usage else 0,
            model=self._model,
            provider="google",
            latency_ms=latency,
            finish_reason=self._finish_reason(resp),
            raw_response=resp,
        )

    @property
    def provider_name(self) -> str:
        return "google"

    @staticmethod
    def _first_text(resp: Any) -> str:
        # resp.text raises when the candidate was blocked or has no parts.
        candidates = getattr(resp, "candidates", None) or []
        if not candidates:
            return ""
        parts = getattr(getattr(candidates[0], "content", None), "parts", None) or []
        return "".join(getattr(p, "text", "") for p in parts)

    @staticmethod
    def _finish_reason(resp: Any) -> str | None:
        candidates = getattr(resp, "candidates", None) or []
        if not candidates:
            return None
        reason = getattr(candidates[0], "finish_reason", None)
        return getattr(reason, "name", None) or (str(reason) if reason is not None else None)
