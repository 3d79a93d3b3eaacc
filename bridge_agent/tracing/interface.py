"""Trace event vocabulary and the TraceCollector ABC."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Literal, get_args

TraceEvent = Literal[
    "parse",           # intent parser outcome for the inbound message
    "resume",          # pending action answered by the caller
    "llm_call",        # one model invocation, with stop reason and token usage
    "tool_exec",       # one registry execution, with result kind and latency
    "pending_action",  # loop suspended on a confirmation / signature / input request
    "error",           # collaborator failure caught at the loop boundary
    "run_done",        # final outcome of a run / resume call
]

TRACE_EVENTS: frozenset[str] = frozenset(get_args(TraceEvent))


class UnknownTraceEventError(ValueError):
    """Raised when a component emits an event outside ``TraceEvent``."""


class TraceCollector(ABC):
    """Collects structured trace events for one ``run``/``resume`` call.

    A trace is keyed by the ``trace_id`` the engine mints per call. ``parse``,
    ``resume``, ``tool_exec`` and ``error`` events also carry the session id.
    """

    @abstractmethod
    async def emit(self, trace_id: str, event_type: TraceEvent, data: dict[str, Any]) -> None: ...

    @abstractmethod
    async def flush(self, trace_id: str) -> None: ...

    @abstractmethod
    def load(self, trace_id: str) -> list[dict[str, Any]]:
        """Return the flushed events of one trace, oldest first."""
