# src/llm/client_factory.py - v3
"""Factory: instantiate LLM client from provider name.

Adapters are registered by dotted path and imported lazily so an
unused provider SDK never has to be installed.
"""

from __future__ import annotations

import importlib
import logging

from guidelint.config.settings import Settings
from guidelint.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)

# Registry of provider name -> adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "google": "guidelint.llm.adapters.google_adapter.GoogleAdapter",
    "anthropic": "guidelint.llm.adapters.anthropic_adapter.AnthropicAdapter",
    "openai": "guidelint.llm.adapters.openai_adapter.OpenAIAdapter",
    "ollama": "guidelint.llm.adapters.ollama_adapter.OllamaAdapter",
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def create_llm_client(
    provider: str,
    model: str,
    settings: Settings | None = None,
    **kwargs: object,
) -> BaseLLMClient:
    """Instantiate the correct adapter from provider name.

    Args:
        provider: Provider identifier (google, anthropic, openai, ollama).
        model: Model name (e.g. gemini-2.5-flash-lite).
        settings: Application settings (for credentials).
        **kwargs: Additional provider-specific arguments.

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    adapter_cls = _import_class(_PROVIDER_REGISTRY[provider])

    init_kwargs = dict(kwargs)
    init_kwargs["model"] = model
    if settings is not None:
        if provider == "ollama":
            init_kwargs.setdefault("base_url", settings.ollama_base_url)
        else:
            init_kwargs.setdefault("api_key", getattr(settings, f"{provider}_api_key", ""))

    logger.debug("Creating LLM client: provider=%s, model=%s", provider, model)
    return adapter_cls(**init_kwargs)


def create_llm_client_from_settings(settings: Settings) -> BaseLLMClient:
    """Build the configured client after checking its credentials.

    Raises:
        ConfigurationError: If the provider's API key is missing.
    """
    settings.require_credentials()
    return create_llm_client(settings.llm_provider, settings.llm_model, settings)


def register_provider(name: str, class_path: str) -> None:
    """Register a custom provider adapter by fully qualified class path."""
    _PROVIDER_REGISTRY[name] = class_path
    logger.info("Registered LLM provider: %s -> %s", name, class_path)


def _import_class(class_path: str) -> type:
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
