# src/llm/base_client.py - v2
"""Abstract LLM client interface.

Adapters return the raw text of the first candidate; parsing and
validation of the analysis payload happen in analysis.inference.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from guidelint.llm.models import LLMResponse, Message


class BaseLLMClient(ABC):
    """Unified interface for all LLM providers."""

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.05,
        json_output: bool = False,
    ) -> LLMResponse:
        """Text completion.

        Args:
            messages: Conversation turns, usually a single user message.
            system: System instructions.
            max_tokens: Output token ceiling.
            temperature: Sampling temperature.
            json_output: Ask the provider for a bare JSON body when it
                supports a JSON mode.
        """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (google, anthropic, openai, ollama)."""

    @property
    def model_name(self) -> str:
        return getattr(self, "_model", "unknown")
