# src/logging/context.py - v2
"""Contextual logging support: attach request_id, batch and stage to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per analysis request.
_request_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)
_batch: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "batch", default=None
)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "stage", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    request_id: str | None = None
    batch: str | None = None
    stage: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        request_id=_request_id.get(),
        batch=_batch.get(),
        stage=_stage.get(),
    )


def set_request_context(request_id: str, stage: str | None = None) -> None:
    """Set request-level context (called once per analysis request)."""
    _request_id.set(request_id)
    _stage.set(stage)


def set_stage(stage: str | None) -> None:
    """Record the orchestrator stage currently executing."""
    _stage.set(stage)


def set_batch_context(batch: str | None) -> None:
    """Set batch-level context. Each batch runs in its own task, so this
    does not leak into sibling batches."""
    _batch.set(batch)


def clear_context() -> None:
    """Reset all context variables."""
    _request_id.set(None)
    _batch.set(None)
    _stage.set(None)
