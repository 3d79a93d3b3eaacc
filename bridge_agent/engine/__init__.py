from bridge_agent.engine.models import (
    AgentErrorCode,
    AgentRunResult,
    LLMResult,
    MessageRole,
    PendingAction,
    PendingActionType,
    Session,
    SessionStatus,
    StopReason,
    TokenUsage,
    ToolCallRequest,
    ToolError,
    ToolPendingAction,
    ToolSuccess,
    UserContext,
)
from bridge_agent.engine.errors import AgentError, InvalidSessionStateError, SessionNotFoundError
from bridge_agent.engine.session import InMemoryKVBackend, KVBackend, SessionStore
from bridge_agent.engine.llm import DemoMockLLMClient, LLMClient, MockLLMClient, OpenAILLMClient
from bridge_agent.engine.config import AgentConfig
from bridge_agent.engine.agent import AgentEngine

__all__ = [
    "AgentConfig",
    "AgentEngine",
    "AgentError",
    "AgentErrorCode",
    "AgentRunResult",
    "DemoMockLLMClient",
    "InMemoryKVBackend",
    "InvalidSessionStateError",
    "KVBackend",
    "LLMClient",
    "LLMResult",
    "MessageRole",
    "MockLLMClient",
    "OpenAILLMClient",
    "PendingAction",
    "PendingActionType",
    "Session",
    "SessionNotFoundError",
    "SessionStatus",
    "SessionStore",
    "StopReason",
    "TokenUsage",
    "ToolCallRequest",
    "ToolError",
    "ToolPendingAction",
    "ToolSuccess",
    "UserContext",
]
