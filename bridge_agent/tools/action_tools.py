"""Conversation-control tools: ask the user, or push a message to the transport."""

from __future__ import annotations

import time
from typing import Any, Literal

from pydantic import BaseModel, Field

from bridge_agent.engine.models import PendingActionType, ToolPendingAction, ToolSuccess
from bridge_agent.tools.registry import ToolCategory, ToolContext, ToolDef

DEFAULT_CONFIRMATION_SECONDS = 120


# ---------------------------------------------------------------------------
# request_confirmation
# ---------------------------------------------------------------------------

class RequestConfirmationInput(BaseModel):
    action_type: str = Field(description='What is being confirmed, e.g. "bridge" or "swap_bridge".')
    action_name: str = Field(description="Short title shown to the user.")
    message: str = Field(description="Full text of the confirmation prompt, including fees.")
    action_data: dict[str, Any] = Field(default_factory=dict)
    expires_in_seconds: int = Field(DEFAULT_CONFIRMATION_SECONDS, ge=30, le=600)


async def _request_confirmation(inp: RequestConfirmationInput, context: ToolContext, call_id: str):
    return ToolPendingAction(
        action_type=PendingActionType.CONFIRMATION,
        message=inp.message,
        data={
            "action_type": inp.action_type,
            "action_name": inp.action_name,
            **inp.action_data,
        },
        expires_at=time.time() + inp.expires_in_seconds,
    )


REQUEST_CONFIRMATION_TOOL = ToolDef(
    name="request_confirmation",
    description=(
        "Ask the user to confirm or cancel an action. The conversation pauses until "
        "they answer. Do not write any text alongside this call."
    ),
    input_model=RequestConfirmationInput,
    handler=_request_confirmation,
    category=ToolCategory.UTILITY,
    requires_confirmation=True,
)


# ---------------------------------------------------------------------------
# request_input
# ---------------------------------------------------------------------------

class RequestInputInput(BaseModel):
    prompt: str = Field(description="Question to show the user.")
    field: str | None = Field(None, description="Name of the value being collected, e.g. recipient.")


async def _request_input(inp: RequestInputInput, context: ToolContext, call_id: str):
    return ToolPendingAction(
        action_type=PendingActionType.INPUT,
        message=inp.prompt,
        data={"field": inp.field},
    )


REQUEST_INPUT_TOOL = ToolDef(
    name="request_input",
    description="Pause and ask the user for a free-text value the task cannot continue without.",
    input_model=RequestInputInput,
    handler=_request_input,
    category=ToolCategory.UTILITY,
)


# ---------------------------------------------------------------------------
# send_message
# ---------------------------------------------------------------------------

class SendMessageInput(BaseModel):
    message: str
    message_type: Literal["info", "success", "warning", "error"] = "info"


async def _send_message(inp: SendMessageInput, context: ToolContext, call_id: str):
    # Queued on the session; the transport drains ``metadata["outbox"]``
    entry = {"id": call_id, "type": inp.message_type, "text": inp.message, "ts": time.time()}
    outbox = [*context.session.metadata.get("outbox", []), entry]
    await context.session_store.update_metadata(context.session.session_id, {"outbox": outbox})
    return ToolSuccess(data={"message_id": call_id, "queued": True})


SEND_MESSAGE_TOOL = ToolDef(
    name="send_message",
    description="Send an interim status message to the user without ending the turn.",
    input_model=SendMessageInput,
    handler=_send_message,
    category=ToolCategory.UTILITY,
)
