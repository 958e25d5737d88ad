# src/llm/retry.py - v2
"""Deadline-aware retry policy for inference calls.

Each attempt gets a timeout of ``min(max_attempt_timeout_s, remaining *
attempt_fraction)``. A retry is only scheduled when, after its backoff
delay, at least ``min_window_s`` of the deadline would remain.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol

logger = logging.getLogger(__name__)


class _Remaining(Protocol):
    def remaining(self) -> float: ...


class LLMRetryExhausted(Exception):
    """All attempts failed, or the deadline left no room for another."""

    def __init__(self, agent: str, error_type: str, attempts: int, last_error: Exception):
        self.agent = agent
        self.error_type = error_type
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{agent} failed after {attempts} attempt(s) ({error_type}): {last_error}"
        )


@dataclass(frozen=True)
class RetryConfig:
    """Backoff shape for a specific error type."""

    base_delay_s: float
    backoff_factor: float = 2.0
    jitter: bool = True
    retryable: bool = True


DEFAULT_RETRY_CONFIGS: dict[str, RetryConfig] = {
    "rate_limit": RetryConfig(base_delay_s=1.0),
    "timeout": RetryConfig(base_delay_s=0.0, backoff_factor=1.0, jitter=False),
    "server_error": RetryConfig(base_delay_s=0.5),
    "parse_error": RetryConfig(base_delay_s=0.0, backoff_factor=1.0, jitter=False),
    "unknown": RetryConfig(base_delay_s=0.25),
    "auth_error": RetryConfig(base_delay_s=0.0, retryable=False),
    "token_limit": RetryConfig(base_delay_s=0.0, retryable=False),
}


def classify_error(error: Exception) -> str:
    """Classify an exception into a retry error type."""
    msg = str(error).lower()
    name = type(error).__name__.lower()

    if isinstance(error, asyncio.TimeoutError) or "timeout" in name or "timed out" in msg:
        return "timeout"
    if "429" in msg or "rate limit" in msg or "ratelimit" in name or "quota" in msg:
        return "rate_limit"
    if "401" in msg or "403" in msg or "permission" in name or "authentication" in name:
        return "auth_error"
    if any(c in msg for c in ("500", "502", "503", "504", "server error", "unavailable")):
        return "server_error"
    if "json" in msg or "parse" in msg or "decode" in msg or "malformed" in name:
        return "parse_error"
    if "token" in msg and ("limit" in msg or "exceed" in msg):
        return "token_limit"
    return "unknown"


def _compute_delay(config: RetryConfig, attempt: int) -> float:
    """Compute delay for a given attempt (0-based)."""
    delay = config.base_delay_s * (config.backoff_factor ** attempt)
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    agent: str = "inference",
    deadline: _Remaining | None = None,
    max_retries: int = 2,
    attempt_fraction: float = 0.8,
    max_attempt_timeout_s: float = 15.0,
    min_window_s: float = 2.0,
    retry_configs: dict[str, RetryConfig] | None = None,
    **kwargs: Any,
) -> Any:
    """Execute an async function with bounded, deadline-aware retries.

    Args:
        fn: Coroutine function to call.
        agent: Label used in logs and in the raised error.
        deadline: Object exposing ``remaining()`` seconds; None means the
            per-attempt timeout alone bounds each call.
        max_retries: Retries after the first attempt.
        attempt_fraction: Share of the remaining time one attempt may use.
        max_attempt_timeout_s: Hard cap on a single attempt.
        min_window_s: Minimum remaining time required to start an attempt.

    Raises:
        LLMRetryExhausted: If every attempt failed or time ran out.
    """
    configs = retry_configs or DEFAULT_RETRY_CONFIGS
    attempts = 0

    while True:
        timeout = max_attempt_timeout_s
        if deadline is not None:
            timeout = min(timeout, deadline.remaining() * attempt_fraction)
        try:
            attempts += 1
            return await asyncio.wait_for(fn(*args, **kwargs), timeout=max(timeout, 0.0))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error_type = classify_error(e)
            config = configs.get(error_type) or configs.get("unknown") or RetryConfig(0.0)

            if not config.retryable or attempts > max_retries:
                raise LLMRetryExhausted(agent, error_type, attempts, e) from e

            delay = _compute_delay(config, attempts - 1)
            if deadline is not None and deadline.remaining() - delay < min_window_s:
                logger.warning(
                    "%s: %s, no time left for retry (%.2fs remaining)",
                    agent, error_type, deadline.remaining(),
                )
                raise LLMRetryExhausted(agent, error_type, attempts, e) from e

            logger.warning(
                "%s: %s (attempt %d/%d), retrying in %.2fs",
                agent, error_type, attempts, max_retries + 1, delay,
            )
            if delay > 0:
                await asyncio.sleep(delay)
