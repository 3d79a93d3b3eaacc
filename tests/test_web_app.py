"""Tests for the FastAPI adapter — request mapping and status codes."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from bridge_agent.adapters.web_fastapi.app import create_app
from bridge_agent.engine.models import LLMResult, StopReason, ToolCallRequest

WALLET = "0x" + "ab" * 20


@pytest.fixture
def client(make_engine):
    engine, _ = make_engine([
        LLMResult(
            tool_calls=[ToolCallRequest(
                id="tc-1",
                name="prepare_bridge",
                arguments={"from_chain_id": 8453, "to_chain_id": 1, "token": "ETH", "amount": "0.1"},
            )],
            stop_reason=StopReason.TOOL_USE,
        ),
        LLMResult(content="Bridge initiated!"),
    ])
    return TestClient(create_app(engine))


def _message(text: str, session_id: str = "web-1") -> dict:
    return {"text": text, "session_id": session_id, "user_id": "u-1", "wallet_address": WALLET}


class TestMessages:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_cancel_message(self, client):
        resp = client.post("/messages", json=_message("cancel"))

        assert resp.status_code == 200
        body = resp.json()
        assert body["response_text"] == "Cancelled. Anything else?"
        assert body["status"] == "completed"
        assert body["trace_id"]

    def test_blank_message_is_bad_request(self, client):
        resp = client.post("/messages", json=_message("   "))
        assert resp.status_code == 400
        assert resp.json()["error_code"] == "INVALID_MESSAGE"


class TestResumeFlow:
    def test_sign_and_finish(self, client):
        first = client.post("/messages", json=_message("bridge 0.1 ETH from Base to Ethereum")).json()
        assert first["awaiting_action"] is True
        assert first["status"] == "awaiting_signature"
        assert first["pending_action"]["action_id"] == "tc-1"

        wrong = client.post("/resume", json={"session_id": "web-1", "action_id": "nope", "confirmed": True})
        assert wrong.status_code == 409
        assert wrong.json()["error_code"] == "ACTION_ID_MISMATCH"

        done = client.post("/resume", json={
            "session_id": "web-1",
            "action_id": "tc-1",
            "confirmed": True,
            "response_data": {"txHash": "0xabc"},
        })
        assert done.status_code == 200
        assert done.json()["response_text"] == "Bridge initiated!"
        assert done.json()["status"] == "completed"

    def test_resume_unknown_session(self, client):
        resp = client.post("/resume", json={"session_id": "ghost", "action_id": "a", "confirmed": True})
        assert resp.status_code == 404


class TestCancelEndpoint:
    def test_cancel_pending_session(self, client):
        client.post("/messages", json=_message("bridge 0.1 ETH from Base to Ethereum", "web-2"))

        resp = client.post("/sessions/web-2/cancel")
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"
        assert resp.json()["pending_action"] is None

    def test_cancel_unknown(self, client):
        assert client.post("/sessions/ghost/cancel").status_code == 404
