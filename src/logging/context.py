# src/logging/context.py — v2
"""Contextual logging support — attach run_id, phase and node label to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Set once per CLI run; node is updated by the evaluation engine per visit.
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_phase: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "phase", default=None
)
_node: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "node", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    run_id: str | None = None
    phase: str | None = None
    node: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        run_id=_run_id.get(),
        phase=_phase.get(),
        node=_node.get(),
    )


def set_run_context(run_id: str, phase: str) -> None:
    """Set run-level context (`phase` is "load" or "query")."""
    _run_id.set(run_id)
    _phase.set(phase)


def set_node_context(label: str | None) -> None:
    """Set the query-node label currently being evaluated."""
    _node.set(label)


def clear_context() -> None:
    """Reset all context variables."""
    _run_id.set(None)
    _phase.set(None)
    _node.set(None)
