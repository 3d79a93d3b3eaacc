"""FastAPI adapter — thin translation layer, no business logic."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from bridge_agent import create_engine
from bridge_agent.engine.agent import AgentEngine
from bridge_agent.engine.models import AgentErrorCode, AgentRunResult, UserContext

logger = logging.getLogger(__name__)

_STATUS_CODES = {
    AgentErrorCode.INVALID_MESSAGE: 400,
    AgentErrorCode.SESSION_NOT_FOUND: 404,
    AgentErrorCode.SESSION_TERMINAL: 409,
    AgentErrorCode.AWAITING_ACTION: 409,
    AgentErrorCode.NOT_AWAITING_ACTION: 409,
    AgentErrorCode.ACTION_ID_MISMATCH: 409,
    AgentErrorCode.INTERNAL_ERROR: 500,
}


class MessageRequest(BaseModel):
    text: str
    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    thread_id: str | None = None
    user_id: str = "anonymous"
    wallet_address: str | None = None
    # A finished conversation starts over on the next message
    restart: bool = True


class ResumeRequest(BaseModel):
    session_id: str
    action_id: str
    confirmed: bool
    user_response: str = ""
    response_data: dict[str, Any] | None = None


def result_payload(result: AgentRunResult) -> dict[str, Any]:
    session = result.session
    pending = session.pending_action if session else None
    return {
        "success": result.success,
        "response_text": result.response_text,
        "error": result.error,
        "error_code": result.error_code.value if result.error_code else None,
        "awaiting_action": result.awaiting_action,
        "trace_id": result.trace_id,
        "session_id": session.session_id if session else None,
        "status": session.status.value if session else None,
        "pending_action": pending.model_dump(mode="json") if pending else None,
    }


def _respond(result: AgentRunResult) -> JSONResponse:
    status = 200 if result.success else _STATUS_CODES.get(result.error_code, 500)
    return JSONResponse(result_payload(result), status_code=status)


def create_app(engine: AgentEngine | None = None) -> FastAPI:
    engine = engine or create_engine()
    app = FastAPI(title="Bridge Agent API", version="0.1.0")

    @app.post("/messages")
    async def post_message(body: MessageRequest) -> JSONResponse:
        result = await engine.run(
            body.text,
            session_id=body.session_id,
            user=UserContext(user_id=body.user_id, wallet_address=body.wallet_address),
            thread_id=body.thread_id or body.session_id,
            restart=body.restart,
        )
        return _respond(result)

    @app.post("/resume")
    async def resume(body: ResumeRequest) -> JSONResponse:
        result = await engine.resume(
            body.session_id,
            user_response=body.user_response,
            action_id=body.action_id,
            confirmed=body.confirmed,
            response_data=body.response_data,
        )
        return _respond(result)

    @app.post("/sessions/{session_id}/cancel")
    async def cancel(session_id: str, purge: bool = False) -> JSONResponse:
        return _respond(await engine.cancel(session_id, purge=purge))

    @app.get("/health")
    async def health() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    return app


# Module-level instance for ``uvicorn bridge_agent.adapters.web_fastapi.app:app``
app = create_app()


def serve() -> None:
    """Entry-point for ``bridge-agent-web`` console script."""
    import uvicorn

    uvicorn.run(
        "bridge_agent.adapters.web_fastapi.app:app",
        host="0.0.0.0",
        port=8000,
        log_level="info",
    )
