# src/config/settings.py - v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for deployment-specific settings: inference
provider, request deadlines, batching, cache and guideline backends,
false-positive policy and logging. All durations are in seconds.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is missing or internally inconsistent."""


# Provider -> settings attribute holding its credential.
_PROVIDER_KEY_ATTR: dict[str, str] = {
    "google": "google_api_key",
    "anthropic": "anthropic_api_key",
    "openai": "openai_api_key",
}


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === INFERENCE ===
    llm_provider: str = "google"
    llm_model: str = "gemini-2.5-flash-lite"
    llm_temperature: float = 0.05
    llm_max_tokens: int = 4096

    # Provider API keys
    google_api_key: str = ""
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    ollama_base_url: str = "http://localhost:11434"

    # === Deadlines ===
    request_deadline_s: float = 28.0
    response_buffer_s: float = 1.0
    min_inference_window_s: float = 2.0
    inference_timeout_s: float = 15.0
    batch_timeout_fraction: float = 0.8
    max_retries: int = 2

    # === Batching ===
    batch_size: int = 12
    max_items_per_request: int = 25
    fallback_confidence: float = 0.5
    compliant_confidence: float = 0.95

    # === Cache ===
    cache_enabled: bool = True
    cache_backend: Literal["json", "sqlite", "redis"] = "json"
    cache_root: Path = Path("~/.guidelint/cache")
    cache_redis_url: str = ""
    cache_probe_budget_s: float = 3.0
    cache_probe_reserve_s: float = 5.0
    cache_write_timeout_s: float = 8.0
    relationship_write_timeout_s: float = 5.0

    # === Guidelines ===
    guidelines_backend: Literal["json", "sqlite"] = "json"
    guidelines_path: Path = Path("guidelines.json")
    guidelines_load_timeout_s: float = 3.0
    prompt_examples_per_guideline: int = 2
    rule_max_depth: int = 32

    # === False-positive policy ===
    false_positive_filters: str = (
        "long_date,time_range,single_politeness,unconstrained_abbreviation"
    )

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30
    debug_analysis: bool = False

    # --- Validators ---

    @field_validator("batch_size")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("batch_size must be >= 1")
        return v

    @field_validator("max_retries", "max_items_per_request")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:  # noqa: N805
        if v < 0:
            raise ValueError("value must be >= 0")
        return v

    @field_validator("batch_timeout_fraction")
    @classmethod
    def validate_fraction(cls, v: float) -> float:  # noqa: N805
        if not 0.0 < v <= 1.0:
            raise ValueError("batch_timeout_fraction must be in (0, 1]")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.response_buffer_s >= self.request_deadline_s:
            errors.append("RESPONSE_BUFFER_S must be < REQUEST_DEADLINE_S")

        if self.min_inference_window_s >= self.request_deadline_s:
            errors.append("MIN_INFERENCE_WINDOW_S must be < REQUEST_DEADLINE_S")

        if self.cache_enabled and self.cache_backend == "redis" and not self.cache_redis_url:
            errors.append("CACHE_BACKEND=redis requires CACHE_REDIS_URL")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def false_positive_filters_list(self) -> list[str]:
        """Parse comma-separated false-positive filter names."""
        return [
            f.strip() for f in self.false_positive_filters.split(",") if f.strip()
        ]

    def require_credentials(self) -> None:
        """Fail fast when the configured provider has no credential.

        Raises:
            ConfigurationError: If the provider's API key is empty.
        """
        attr = _PROVIDER_KEY_ATTR.get(self.llm_provider)
        if attr is not None and not getattr(self, attr):
            raise ConfigurationError(
                f"{attr.upper()} must be set when LLM_PROVIDER={self.llm_provider}"
            )


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-request config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
