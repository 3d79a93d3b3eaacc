"""LLM client — ABC, OpenAI implementation, and mocks."""

from __future__ import annotations

import json
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any

from bridge_agent.engine.models import LLMResult, StopReason, TokenUsage, ToolCallRequest

logger = logging.getLogger(__name__)


class LLMClient(ABC):
    """Abstract LLM interface. Returns a complete (non-streaming) response.

    ``messages`` are OpenAI chat-format dicts; ``tools`` are function schemas
    as produced by ``ToolRegistry.openai_schemas()``.
    """

    @abstractmethod
    async def generate(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> LLMResult: ...


# ---------------------------------------------------------------------------
# OpenAI implementation
# ---------------------------------------------------------------------------

_FINISH_REASONS = {
    "stop": StopReason.END_TURN,
    "tool_calls": StopReason.TOOL_USE,
    "function_call": StopReason.TOOL_USE,
    "length": StopReason.MAX_TOKENS,
}


class OpenAILLMClient(LLMClient):
    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        max_tokens: int = 4096,
    ) -> None:
        # Late import so the rest of the package works without openai installed
        from openai import AsyncOpenAI

        self._client = AsyncOpenAI(api_key=api_key)
        self._model = model
        self._max_tokens = max_tokens

    async def generate(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> LLMResult:
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "max_tokens": self._max_tokens,
        }
        if tools:
            kwargs["tools"] = tools

        response = await self._client.chat.completions.create(**kwargs)
        choice = response.choices[0]

        usage = TokenUsage()
        if response.usage is not None:
            usage = TokenUsage(
                input_tokens=response.usage.prompt_tokens,
                output_tokens=response.usage.completion_tokens,
            )

        tool_calls = None
        if choice.message.tool_calls:
            tool_calls = [
                ToolCallRequest(
                    id=tc.id,
                    name=tc.function.name,
                    arguments=json.loads(tc.function.arguments or "{}"),
                )
                for tc in choice.message.tool_calls
            ]

        return LLMResult(
            content=choice.message.content,
            tool_calls=tool_calls,
            stop_reason=_FINISH_REASONS.get(choice.finish_reason, StopReason.OTHER),
            usage=usage,
        )


# ---------------------------------------------------------------------------
# Test mock: deterministic, pre-loaded responses
# ---------------------------------------------------------------------------

class MockLLMClient(LLMClient):
    """Returns pre-configured responses in order. Used in unit tests.

    Every call's messages are kept in ``calls`` for assertions.
    """

    def __init__(self, responses: list[LLMResult]) -> None:
        self._responses = list(responses)
        self._call_index = 0
        self.calls: list[list[dict[str, Any]]] = []

    async def generate(self, messages: list[dict], tools: list[dict] | None = None) -> LLMResult:
        self.calls.append(list(messages))
        if self._call_index >= len(self._responses):
            return LLMResult(content="[mock responses exhausted]")
        result = self._responses[self._call_index]
        self._call_index += 1
        return result

    @property
    def call_count(self) -> int:
        return len(self.calls)


# ---------------------------------------------------------------------------
# Demo mock: context-aware, for running without an API key
# ---------------------------------------------------------------------------

class DemoMockLLMClient(LLMClient):
    """Demonstrates the tool-calling loop without a real LLM.

    Behaviour:
    1. After a tool result → summarize it.
    2. After a signature → report the transfer as initiated.
    3. A balance question with tools available → call ``check_balance``.
    4. Otherwise → a generic text response.
    """

    async def generate(self, messages: list[dict], tools: list[dict] | None = None) -> LLMResult:
        last = messages[-1] if messages else {}
        content = last.get("content") or ""

        if last.get("role") == "tool":
            return LLMResult(content=f"Here is what I found: {content[:200]}")

        if content.startswith("Signed:"):
            return LLMResult(content="Bridge initiated! Your tokens are on their way. Anything else?")
        if content in ("Cancelled", "Signature rejected"):
            return LLMResult(content="No problem, nothing was sent. Anything else?")

        tool_names = {t["function"]["name"] for t in tools or []}
        if "check_balance" in tool_names and "balance" in content.lower():
            return LLMResult(
                tool_calls=[ToolCallRequest(id=f"demo-{uuid.uuid4().hex[:8]}", name="check_balance")],
                stop_reason=StopReason.TOOL_USE,
            )

        return LLMResult(content="This is a demo response. Set OPENAI_API_KEY for real LLM output.")
