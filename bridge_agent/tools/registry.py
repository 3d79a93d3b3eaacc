"""Tool registry with Pydantic v2 schemas, timeout, result validation, and audit."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, TypeAdapter, ValidationError

from bridge_agent.engine.models import Session, ToolError, ToolResult, UserContext
from bridge_agent.engine.session import SessionStore
from bridge_agent.tracing.interface import TraceCollector

logger = logging.getLogger(__name__)

_RESULT_ADAPTER: TypeAdapter[ToolResult] = TypeAdapter(ToolResult)


class ToolCategory(str, Enum):
    READ = "read"
    WRITE = "write"
    UTILITY = "utility"


@dataclass
class ToolContext:
    """What a handler may see. Session changes go through ``session_store``."""

    user: UserContext
    session: Session
    session_store: SessionStore


@dataclass
class ToolDef:
    """Registration record for a single tool.

    ``handler`` is called as ``await handler(validated_input, context, call_id)``
    and returns a ToolSuccess, ToolError or ToolPendingAction.
    """

    name: str
    description: str
    input_model: type[BaseModel]
    handler: Callable[[Any, ToolContext, str], Awaitable[Any]]
    category: ToolCategory = ToolCategory.READ
    requires_confirmation: bool = False
    requires_signature: bool = False
    timeout: float = 30.0


class ToolRegistry:
    """Central tool store with schema export, timeout, and tracing hooks."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDef] = {}

    # -- registration -------------------------------------------------------

    def register(self, tool_def: ToolDef) -> None:
        if tool_def.name in self._tools:
            logger.warning("Replacing tool %s", tool_def.name)
        self._tools[tool_def.name] = tool_def
        logger.info("Registered tool %s (category=%s)", tool_def.name, tool_def.category.value)

    def get(self, name: str) -> ToolDef | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def list_by_category(self, category: ToolCategory) -> list[ToolDef]:
        return [t for t in self._tools.values() if t.category is category]

    # -- OpenAI function-calling schemas ------------------------------------

    def openai_schemas(self) -> list[dict[str, Any]]:
        """Return OpenAI-compatible function schemas for the whole catalog."""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.input_model.model_json_schema(),
                },
            }
            for tool in self._tools.values()
        ]

    # -- execution ----------------------------------------------------------

    async def execute(
        self,
        name: str,
        input_data: dict[str, Any],
        context: ToolContext,
        call_id: str,
        trace_collector: TraceCollector | None = None,
        trace_id: str | None = None,
    ) -> ToolResult:
        """Validate input, run the handler, validate its result.

        Unknown tools, invalid input and timeouts come back as ``ToolError`` so
        the model can recover. Any other handler exception propagates.
        """
        tool = self._tools.get(name)
        if tool is None:
            return ToolError(code="TOOL_NOT_FOUND", message=f'Tool "{name}" not found in registry.')

        try:
            validated_input = tool.input_model.model_validate(input_data)
        except ValidationError as exc:
            return ToolError(
                code="INVALID_INPUT",
                message=f"Invalid input for tool {name}.",
                details={"errors": [
                    {"loc": list(err["loc"]), "msg": err["msg"]} for err in exc.errors()
                ]},
            )

        t0 = time.time()
        try:
            raw = await asyncio.wait_for(
                tool.handler(validated_input, context, call_id),
                timeout=tool.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("tool=%s timed out after %.1fs", name, tool.timeout)
            await self._trace(trace_collector, trace_id, context, call_id, name, "timeout", time.time() - t0)
            return ToolError(code="TOOL_TIMEOUT", message=f"Tool {name} timed out.")
        except Exception as exc:
            logger.warning("tool=%s error=%s", name, exc)
            await self._trace(trace_collector, trace_id, context, call_id, name, "exception", time.time() - t0)
            raise

        latency = time.time() - t0
        result = _RESULT_ADAPTER.validate_python(raw)
        logger.info("tool=%s latency=%.3fs result=%s", name, latency, result.kind)
        await self._trace(trace_collector, trace_id, context, call_id, name, result.kind, latency)
        return result

    @staticmethod
    async def _trace(
        collector: TraceCollector | None,
        trace_id: str | None,
        context: ToolContext,
        call_id: str,
        name: str,
        status: str,
        latency: float,
    ) -> None:
        if collector and trace_id:
            await collector.emit(trace_id, "tool_exec", {
                "session_id": context.session.session_id,
                "call_id": call_id,
                "tool": name,
                "latency_ms": round(latency * 1000, 2),
                "status": status,
            })
