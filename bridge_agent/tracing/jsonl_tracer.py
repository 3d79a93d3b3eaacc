"""JSONL file-based trace collector."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any

from bridge_agent.tracing.interface import TRACE_EVENTS, TraceCollector, TraceEvent, UnknownTraceEventError

logger = logging.getLogger(__name__)


class JSONLTraceCollector(TraceCollector):
    """Writes trace events to ``<trace_dir>/<trace_id>.jsonl``.

    Events are buffered in memory and flushed when the engine finishes a
    ``run`` or ``resume`` call, whatever its outcome. Each line carries a
    per-trace ``seq`` so interleaved tool executions keep their order.
    """

    def __init__(self, trace_dir: str = "./traces") -> None:
        self._dir = Path(trace_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._buffers: dict[str, list[dict[str, Any]]] = {}

    @property
    def trace_dir(self) -> Path:
        return self._dir

    def path_for(self, trace_id: str) -> Path:
        return self._dir / f"{trace_id}.jsonl"

    async def emit(self, trace_id: str, event_type: TraceEvent, data: dict[str, Any]) -> None:
        if event_type not in TRACE_EVENTS:
            raise UnknownTraceEventError(f"Unknown trace event {event_type!r}")
        buffer = self._buffers.setdefault(trace_id, [])
        buffer.append({
            "ts": time.time(),
            "trace_id": trace_id,
            "seq": len(buffer),
            "event": event_type,
            **data,
        })

    async def flush(self, trace_id: str) -> None:
        entries = self._buffers.pop(trace_id, [])
        if not entries:
            return
        with open(self.path_for(trace_id), "a") as f:
            for entry in entries:
                f.write(json.dumps(entry, default=str) + "\n")
        logger.debug("Flushed %d trace events to %s", len(entries), self.path_for(trace_id))

    def load(self, trace_id: str) -> list[dict[str, Any]]:
        path = self.path_for(trace_id)
        if not path.exists():
            return []
        with open(path) as f:
            return [json.loads(line) for line in f if line.strip()]
