"""AgentEngine — the core runtime loop."""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any

from bridge_agent.engine.config import AgentConfig
from bridge_agent.engine.llm import LLMClient
from bridge_agent.engine.models import (
    AgentErrorCode,
    AgentRunResult,
    MessageRole,
    PendingAction,
    PendingActionType,
    Session,
    SessionMessage,
    StopReason,
    ToolError,
    ToolPendingAction,
    UserContext,
)
from bridge_agent.engine.session import SessionStore
from bridge_agent.parsing.models import (
    Intent,
    ParsedBalanceRequest,
    ParsedBridgeRequest,
    ParsedSwapBridgeRequest,
    ParsedUnknownRequest,
    ParseFailure,
    ParseSuccess,
)
from bridge_agent.parsing.parser import IntentParser
from bridge_agent.tools.registry import ToolContext, ToolRegistry
from bridge_agent.tracing.interface import TraceCollector

logger = logging.getLogger(__name__)

CANCEL_ACK = "Cancelled. Anything else?"
MAX_TURNS_MESSAGE = "Maximum conversation turns reached. Please start a new conversation."
TOOL_CALLS_PLACEHOLDER = "[Tool calls]"
GENERIC_ERROR = "Something went wrong. Please try again."


def enrich_message(message: str, parsed: ParseSuccess) -> str:
    """Append a bracketed parser hint the model can use to ask focused questions."""
    request = parsed.parsed
    if isinstance(request, ParsedUnknownRequest):
        intents = ", ".join(i.value for i in request.possible_intents)
        hint = f"User intent is unclear. Possible intents: {intents}. Consider asking for clarification."
    elif isinstance(request, ParsedBridgeRequest):
        if request.missing_fields:
            hint = f"Bridge request detected. Missing: {', '.join(request.missing_fields)}. Ask user to clarify."
        else:
            hint = (
                f"Bridge request detected: {request.amount.raw} {request.token.symbol.value} "
                f"from {request.from_chain.name} to {request.to_chain.name}."
            )
    elif isinstance(request, ParsedSwapBridgeRequest):
        if request.missing_fields:
            hint = f"Swap+bridge request detected. Missing: {', '.join(request.missing_fields)}. Ask user to clarify."
        else:
            hint = (
                f"Swap+bridge request detected: {request.amount.raw} {request.input_token.symbol.value} "
                f"on {request.from_chain.name} for {request.output_token.symbol.value} "
                f"on {request.to_chain.name}."
            )
    elif isinstance(request, ParsedBalanceRequest):
        token = request.token.symbol.value if request.token else "all"
        chain = request.chain.name if request.chain else "all"
        hint = f"Balance check for token: {token}, chain: {chain}"
    else:
        return message
    return f"{message}\n\n[Context: {hint}]"


def summarize_response(action: PendingAction, confirmed: bool, user_response: str, response_data: dict | None) -> str:
    if action.type is PendingActionType.CONFIRMATION:
        return "Confirmed" if confirmed else "Cancelled"
    if action.type is PendingActionType.SIGNATURE:
        return f"Signed: {json.dumps(response_data or {})}" if confirmed else "Signature rejected"
    return user_response


def to_llm_messages(system_prompt: str, messages: list[SessionMessage]) -> list[dict[str, Any]]:
    """Translate the stored transcript into OpenAI chat format.

    Tool calls that never got a result (cut off by a pending action) are
    dropped so every replayed call is paired with its tool message.
    """
    answered = {m.tool_call_id for m in messages if m.role is MessageRole.TOOL}
    out: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
    for msg in messages:
        if msg.role is MessageRole.USER:
            out.append({"role": "user", "content": msg.content})
        elif msg.role is MessageRole.ASSISTANT:
            calls = [tc for tc in msg.tool_calls or [] if tc.id in answered]
            entry: dict[str, Any] = {"role": "assistant", "content": msg.content}
            if calls:
                entry["tool_calls"] = [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)},
                    }
                    for tc in calls
                ]
            out.append(entry)
        elif msg.role is MessageRole.TOOL:
            out.append({"role": "tool", "tool_call_id": msg.tool_call_id, "content": msg.content})
    return out


class AgentEngine:
    """Public API: ``await engine.run(...)``, ``await engine.resume(...)``, ``await engine.cancel(...)``."""

    def __init__(
        self,
        session_store: SessionStore,
        tool_registry: ToolRegistry,
        llm_client: LLMClient,
        trace_collector: TraceCollector,
        config: AgentConfig | None = None,
        parser: IntentParser | None = None,
    ) -> None:
        self._sessions = session_store
        self._tools = tool_registry
        self._llm = llm_client
        self._trace = trace_collector
        self._config = config or AgentConfig()
        self._parser = parser or IntentParser()

    @property
    def config(self) -> AgentConfig:
        return self._config

    # ------------------------------------------------------------------
    # run
    # ------------------------------------------------------------------

    async def run(
        self,
        message: str,
        session_id: str,
        user: UserContext,
        thread_id: str,
        max_turns: int | None = None,
        restart: bool = False,
    ) -> AgentRunResult:
        trace_id = str(uuid.uuid4())
        t_start = time.time()
        try:
            result = await self._run(message, session_id, user, thread_id, max_turns, restart, trace_id)
        except Exception as exc:
            result = await self._fail(session_id, exc, trace_id)
        return await self._finish_trace(result, trace_id, t_start)

    async def _run(
        self,
        message: str,
        session_id: str,
        user: UserContext,
        thread_id: str,
        max_turns: int | None,
        restart: bool,
        trace_id: str,
    ) -> AgentRunResult:
        # 1. Pre-process ---------------------------------------------------
        parsed = self._parser.parse(message)
        if isinstance(parsed, ParseFailure):
            return AgentRunResult(
                success=False,
                session=await self._sessions.get(session_id),
                error=parsed.error_message,
                error_code=AgentErrorCode.INVALID_MESSAGE,
            )

        # 2. Session -----------------------------------------------------
        metadata = {"wallet_address": user.wallet_address} if user.wallet_address else None
        session = await self._sessions.create_or_get(session_id, user.user_id, thread_id, metadata)
        if session.is_terminal and restart:
            await self._sessions.delete(session_id)
            session = await self._sessions.create(session_id, user.user_id, thread_id, metadata)

        # 3. State checks -----------------------------------------------
        if session.is_terminal:
            return AgentRunResult(
                success=False,
                session=session,
                error=f"Session is in terminal state: {session.status.value}",
                error_code=AgentErrorCode.SESSION_TERMINAL,
            )
        if session.is_awaiting:
            return AgentRunResult(
                success=False,
                session=session,
                error="Session is awaiting user action. Use resume() instead.",
                error_code=AgentErrorCode.AWAITING_ACTION,
                awaiting_action=True,
            )

        # 4. Cancel short-circuit ---------------------------------------
        await self._trace.emit(trace_id, "parse", {
            "session_id": session_id,
            "intent": parsed.parsed.intent.value,
            "confidence": parsed.parsed.confidence.value,
            "needs_clarification": parsed.needs_clarification,
        })

        if parsed.parsed.intent is Intent.CANCEL:
            await self._sessions.add_message(session_id, MessageRole.USER, message)
            await self._sessions.add_message(session_id, MessageRole.ASSISTANT, CANCEL_ACK)
            session = await self._sessions.mark_completed(session_id)
            return AgentRunResult(success=True, session=session, response_text=CANCEL_ACK)

        # 5. Enrich + append ----------------------------------------------
        await self._sessions.add_message(session_id, MessageRole.USER, enrich_message(message, parsed))
        await self._sessions.mark_processing(session_id)

        # 6. Loop ---------------------------------------------------------
        return await self._loop(session_id, user, max_turns or self._config.max_turns, trace_id)

    # ------------------------------------------------------------------
    # resume
    # ------------------------------------------------------------------

    async def resume(
        self,
        session_id: str,
        user_response: str,
        action_id: str,
        confirmed: bool,
        response_data: dict[str, Any] | None = None,
    ) -> AgentRunResult:
        trace_id = str(uuid.uuid4())
        t_start = time.time()
        try:
            result = await self._resume(session_id, user_response, action_id, confirmed, response_data, trace_id)
        except Exception as exc:
            result = await self._fail(session_id, exc, trace_id)
        return await self._finish_trace(result, trace_id, t_start)

    async def _resume(
        self,
        session_id: str,
        user_response: str,
        action_id: str,
        confirmed: bool,
        response_data: dict[str, Any] | None,
        trace_id: str,
    ) -> AgentRunResult:
        session = await self._sessions.get(session_id)
        if session is None:
            return AgentRunResult(
                success=False,
                error="Session not found",
                error_code=AgentErrorCode.SESSION_NOT_FOUND,
            )
        action = session.pending_action
        if action is None:
            return AgentRunResult(
                success=False,
                session=session,
                error="Session is not awaiting user action",
                error_code=AgentErrorCode.NOT_AWAITING_ACTION,
            )
        if action.action_id != action_id:
            return AgentRunResult(
                success=False,
                session=session,
                error=f"Action ID mismatch. Expected: {action.action_id}, Got: {action_id}",
                error_code=AgentErrorCode.ACTION_ID_MISMATCH,
                awaiting_action=True,
            )

        await self._trace.emit(trace_id, "resume", {
            "session_id": session_id,
            "action_id": action_id,
            "action_type": action.type.value,
            "confirmed": confirmed,
        })

        # Budget is measured before the response message counts as a turn
        remaining = self._config.max_turns - session.turn_count
        summary = summarize_response(action, confirmed, user_response, response_data)
        await self._sessions.clear_pending_action(session_id)
        await self._sessions.add_message(session_id, MessageRole.USER, summary)

        user = UserContext(user_id=session.user_id, wallet_address=session.metadata.get("wallet_address"))
        return await self._loop(session_id, user, remaining, trace_id)

    # ------------------------------------------------------------------
    # cancel
    # ------------------------------------------------------------------

    async def cancel(self, session_id: str, purge: bool = False) -> AgentRunResult:
        """Caller-driven cancellation. ``purge`` also deletes the stored record."""
        session = await self._sessions.get(session_id)
        if session is None:
            return AgentRunResult(
                success=False,
                error="Session not found",
                error_code=AgentErrorCode.SESSION_NOT_FOUND,
            )
        session = await self._sessions.mark_cancelled(session_id)
        if purge:
            await self._sessions.delete(session_id)
        logger.info("Cancelled session %s (purge=%s)", session_id, purge)
        return AgentRunResult(success=True, session=session, response_text=CANCEL_ACK)

    # ------------------------------------------------------------------
    # Turn loop
    # ------------------------------------------------------------------

    async def _loop(self, session_id: str, user: UserContext, max_turns: int, trace_id: str) -> AgentRunResult:
        session = await self._sessions.get_required(session_id)
        schemas = self._tools.openai_schemas()
        last_text = ""
        turns = 0

        while True:
            turns += 1
            if turns >= max_turns:
                await self._sessions.add_message(session_id, MessageRole.ASSISTANT, MAX_TURNS_MESSAGE)
                session = await self._sessions.mark_completed(session_id)
                logger.warning("Session %s hit the turn limit (%d)", session_id, max_turns)
                return AgentRunResult(success=True, session=session, response_text=MAX_TURNS_MESSAGE)

            # -- model call ---------------------------------------------
            t_llm = time.time()
            result = await self._llm.generate(
                to_llm_messages(self._config.system_prompt, session.messages),
                tools=schemas or None,
            )
            await self._trace.emit(trace_id, "llm_call", {
                "turn": turns,
                "latency_ms": round((time.time() - t_llm) * 1000, 2),
                "stop_reason": result.stop_reason.value,
                "tool_calls": len(result.tool_calls or []),
                "input_tokens": result.usage.input_tokens,
                "output_tokens": result.usage.output_tokens,
            })
            session = await self._sessions.record_usage(
                session_id, result.usage.input_tokens, result.usage.output_tokens,
            )

            text = result.content or ""
            calls = result.tool_calls or []
            if text or calls:
                session = await self._sessions.add_message(
                    session_id,
                    MessageRole.ASSISTANT,
                    text or TOOL_CALLS_PLACEHOLDER,
                    tool_calls=calls or None,
                )
            if text:
                last_text = text

            # -- no tools: finished or go around again ------------------
            if not calls:
                if result.stop_reason is StopReason.END_TURN:
                    session = await self._sessions.mark_completed(session_id)
                    return AgentRunResult(success=True, session=session, response_text=last_text)
                session = await self._sessions.get_required(session_id)
                continue

            # -- tools, strictly in order -------------------------------
            for call in calls:
                session = await self._sessions.get_required(session_id)
                context = ToolContext(user=user, session=session, session_store=self._sessions)
                outcome = await self._tools.execute(
                    call.name,
                    call.arguments,
                    context,
                    call.id,
                    trace_collector=self._trace,
                    trace_id=trace_id,
                )

                if isinstance(outcome, ToolPendingAction):
                    action = PendingAction(
                        type=outcome.action_type,
                        action_id=outcome.action_id or call.id,
                        tool_name=call.name,
                        data=outcome.data,
                        message=outcome.message,
                        expires_at=outcome.expires_at,
                    )
                    await self._sessions.set_pending_action(session_id, action)
                    session = await self._sessions.add_message(
                        session_id,
                        MessageRole.TOOL,
                        json.dumps({
                            "status": "pending_action",
                            "actionType": action.type.value,
                            "message": action.message,
                        }),
                        tool_call_id=call.id,
                        tool_name=call.name,
                    )
                    await self._trace.emit(trace_id, "pending_action", {
                        "tool": call.name,
                        "action_id": action.action_id,
                        "action_type": action.type.value,
                    })
                    return AgentRunResult(
                        success=True,
                        session=session,
                        response_text=last_text or action.message,
                        awaiting_action=True,
                    )

                if isinstance(outcome, ToolError):
                    content = json.dumps({
                        "error": outcome.code,
                        "message": outcome.message,
                        "details": outcome.details,
                    }, default=str)
                else:
                    content = json.dumps(outcome.data, default=str)
                await self._sessions.add_message(
                    session_id,
                    MessageRole.TOOL,
                    content,
                    tool_call_id=call.id,
                    tool_name=call.name,
                )

            session = await self._sessions.get_required(session_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fail(self, session_id: str, exc: Exception, trace_id: str) -> AgentRunResult:
        logger.exception("Agent call failed for session %s", session_id)
        await self._trace.emit(trace_id, "error", {"session_id": session_id, "error": type(exc).__name__})
        session: Session | None = None
        try:
            if await self._sessions.get(session_id) is not None:
                session = await self._sessions.mark_error(session_id, f"{type(exc).__name__}: {exc}")
        except Exception:
            logger.exception("Could not mark session %s as errored", session_id)
        return AgentRunResult(
            success=False,
            session=session,
            error=GENERIC_ERROR,
            error_code=AgentErrorCode.INTERNAL_ERROR,
        )

    async def _finish_trace(self, result: AgentRunResult, trace_id: str, t_start: float) -> AgentRunResult:
        await self._trace.emit(trace_id, "run_done", {
            "success": result.success,
            "awaiting_action": result.awaiting_action,
            "total_latency_ms": round((time.time() - t_start) * 1000, 2),
        })
        await self._trace.flush(trace_id)
        return result.model_copy(update={"trace_id": trace_id})
