"""Core data models — no internal dependencies, only Pydantic + stdlib."""

from __future__ import annotations

import time
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, model_validator


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class SessionStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    AWAITING_USER_ACTION = "awaiting_user_action"
    AWAITING_SIGNATURE = "awaiting_signature"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERROR = "error"


AWAITING_STATUSES = frozenset({SessionStatus.AWAITING_USER_ACTION, SessionStatus.AWAITING_SIGNATURE})
TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.CANCELLED, SessionStatus.ERROR})


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class PendingActionType(str, Enum):
    CONFIRMATION = "confirmation"
    SIGNATURE = "signature"
    INPUT = "input"


class ToolCallRequest(BaseModel):
    """A single tool/function call requested by the LLM."""
    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class SessionMessage(BaseModel):
    role: MessageRole
    content: str
    timestamp: float = Field(default_factory=time.time)
    tool_call_id: str | None = None
    tool_name: str | None = None
    # Set on assistant messages that requested tools
    tool_calls: list[ToolCallRequest] | None = None


class PendingAction(BaseModel):
    """An operation suspended until the user confirms, signs or answers."""
    type: PendingActionType
    action_id: str
    tool_name: str
    data: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    created_at: float = Field(default_factory=time.time)
    expires_at: float | None = None

    @property
    def session_status(self) -> SessionStatus:
        if self.type is PendingActionType.SIGNATURE:
            return SessionStatus.AWAITING_SIGNATURE
        return SessionStatus.AWAITING_USER_ACTION

    def is_expired(self, now: float | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (time.time() if now is None else now) > self.expires_at


class SessionCost(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    total_cost_usd: float = 0.0


class Session(BaseModel):
    session_id: str
    user_id: str
    thread_id: str
    status: SessionStatus = SessionStatus.IDLE
    messages: list[SessionMessage] = Field(default_factory=list)
    pending_action: PendingAction | None = None
    turn_count: int = 0
    cost: SessionCost = Field(default_factory=SessionCost)
    metadata: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None
    created_at: float = Field(default_factory=time.time)
    updated_at: float = Field(default_factory=time.time)

    @model_validator(mode="after")
    def _pending_action_matches_status(self) -> Session:
        awaiting = self.status in AWAITING_STATUSES
        if awaiting and self.pending_action is None:
            raise ValueError(f"status {self.status.value} requires a pending action")
        if not awaiting and self.pending_action is not None:
            raise ValueError(f"status {self.status.value} cannot carry a pending action")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_awaiting(self) -> bool:
        return self.status in AWAITING_STATUSES


# ---------------------------------------------------------------------------
# LLM helpers
# ---------------------------------------------------------------------------

class StopReason(str, Enum):
    END_TURN = "end_turn"
    TOOL_USE = "tool_use"
    MAX_TOKENS = "max_tokens"
    OTHER = "other"


class TokenUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0


class LLMResult(BaseModel):
    """Complete (non-streaming) LLM response."""
    content: str | None = None
    tool_calls: list[ToolCallRequest] | None = None
    stop_reason: StopReason = StopReason.END_TURN
    usage: TokenUsage = Field(default_factory=TokenUsage)


# ---------------------------------------------------------------------------
# Tool results (tagged by ``kind``)
# ---------------------------------------------------------------------------

class ToolSuccess(BaseModel):
    kind: Literal["success"] = "success"
    data: Any = None
    message: str | None = None


class ToolError(BaseModel):
    kind: Literal["error"] = "error"
    code: str
    message: str
    details: dict[str, Any] | None = None


class ToolPendingAction(BaseModel):
    kind: Literal["pending_action"] = "pending_action"
    action_type: PendingActionType
    message: str
    data: dict[str, Any] = Field(default_factory=dict)
    expires_at: float | None = None
    # Falls back to the tool call id when omitted
    action_id: str | None = None


ToolResult = Annotated[Union[ToolSuccess, ToolError, ToolPendingAction], Field(discriminator="kind")]


# ---------------------------------------------------------------------------
# Caller-facing shapes
# ---------------------------------------------------------------------------

class UserContext(BaseModel):
    """Who the agent is acting for."""
    user_id: str
    wallet_address: str | None = None
    display_name: str | None = None


class AgentErrorCode(str, Enum):
    INVALID_MESSAGE = "INVALID_MESSAGE"
    SESSION_TERMINAL = "SESSION_TERMINAL"
    AWAITING_ACTION = "AWAITING_ACTION"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    NOT_AWAITING_ACTION = "NOT_AWAITING_ACTION"
    ACTION_ID_MISMATCH = "ACTION_ID_MISMATCH"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AgentRunResult(BaseModel):
    success: bool
    session: Session | None = None
    response_text: str | None = None
    error: str | None = None
    error_code: AgentErrorCode | None = None
    awaiting_action: bool = False
    trace_id: str | None = None
