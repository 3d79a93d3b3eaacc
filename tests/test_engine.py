"""Tests for AgentEngine — tool-call roundtrip, suspend/resume, turn limit, failures."""

from __future__ import annotations

import json

from bridge_agent.engine.agent import CANCEL_ACK, MAX_TURNS_MESSAGE, to_llm_messages
from bridge_agent.engine.llm import LLMClient
from bridge_agent.engine.models import (
    AgentErrorCode,
    LLMResult,
    MessageRole,
    SessionMessage,
    SessionStatus,
    StopReason,
    TokenUsage,
    ToolCallRequest,
)


def _call(call_id: str, name: str, **arguments) -> ToolCallRequest:
    return ToolCallRequest(id=call_id, name=name, arguments=arguments)


def _tool_turn(*calls: ToolCallRequest) -> LLMResult:
    return LLMResult(tool_calls=list(calls), stop_reason=StopReason.TOOL_USE)


PREPARE_BRIDGE = dict(from_chain_id=8453, to_chain_id=1, token="ETH", amount="0.1")


class TestEngineToolCallRoundtrip:
    async def test_tool_call_then_final(self, make_engine, user):
        engine, llm = make_engine([
            _tool_turn(_call("tc-1", "check_balance", chain_id=8453)),
            LLMResult(content="You have 0.5 ETH on Base."),
        ])

        result = await engine.run("what's my balance on base?", "s-1", user, "t-1")

        assert result.success is True
        assert result.response_text == "You have 0.5 ETH on Base."
        assert result.session.status is SessionStatus.COMPLETED
        assert llm.call_count == 2

        roles = [m.role for m in result.session.messages]
        assert roles == [MessageRole.USER, MessageRole.ASSISTANT, MessageRole.TOOL, MessageRole.ASSISTANT]

        tool_msg = result.session.messages[2]
        assert tool_msg.tool_call_id == "tc-1"
        assert json.loads(tool_msg.content)["balances"][0]["amount"] == "0.5"

        # The second model call sees the paired call and result
        second = llm.calls[1]
        assert second[0]["role"] == "system"
        assert second[2]["tool_calls"][0]["id"] == "tc-1"
        assert second[3] == {"role": "tool", "tool_call_id": "tc-1", "content": tool_msg.content}

    async def test_user_message_is_enriched(self, make_engine, user):
        engine, llm = make_engine([LLMResult(content="Which chain?")])
        await engine.run("move my USDC to Optimism", "s-1", user, "t-1")

        sent = llm.calls[0][1]["content"]
        assert sent.startswith("move my USDC to Optimism\n\n[Context: Bridge request detected. Missing: from_chain.")

    async def test_usage_is_costed(self, make_engine, user):
        engine, _ = make_engine([
            LLMResult(content="hi", usage=TokenUsage(input_tokens=1000, output_tokens=100)),
        ])
        result = await engine.run("hello", "s-1", user, "t-1")

        assert result.session.cost.input_tokens == 1000
        assert result.session.cost.output_tokens == 100
        assert result.session.cost.total_cost_usd > 0

    async def test_trace_file_written(self, make_engine, user, trace_collector):
        engine, _ = make_engine([LLMResult(content="hi")])
        result = await engine.run("hello", "s-1", user, "t-1")

        events = trace_collector.load(result.trace_id)
        assert [e["event"] for e in events] == ["parse", "llm_call", "run_done"]
        assert [e["seq"] for e in events] == [0, 1, 2]


class TestCancelShortCircuit:
    async def test_cancel_on_new_session_skips_model(self, make_engine, user):
        engine, llm = make_engine([LLMResult(content="should not be used")])

        result = await engine.run("cancel", "fresh", user, "t-1")

        assert result.success is True
        assert result.response_text == CANCEL_ACK
        assert result.session.status is SessionStatus.COMPLETED
        assert llm.call_count == 0
        assert [m.content for m in result.session.messages] == ["cancel", CANCEL_ACK]

    async def test_caller_cancel_clears_pending_action(self, make_engine, user, session_store):
        engine, _ = make_engine([_tool_turn(_call("tc-1", "prepare_bridge", **PREPARE_BRIDGE))])
        await engine.run("bridge 0.1 ETH from Base to Ethereum", "s-1", user, "t-1")

        result = await engine.cancel("s-1")
        assert result.session.status is SessionStatus.CANCELLED
        assert result.session.pending_action is None

        await engine.cancel("s-1", purge=True)
        assert await session_store.get("s-1") is None

    async def test_cancel_unknown_session(self, make_engine):
        engine, _ = make_engine([])
        result = await engine.cancel("missing")
        assert result.error_code is AgentErrorCode.SESSION_NOT_FOUND


class TestSuspendAndResume:
    async def test_signature_roundtrip(self, make_engine, user):
        engine, llm = make_engine([
            _tool_turn(_call("tc-1", "prepare_bridge", **PREPARE_BRIDGE)),
            LLMResult(content="Bridge initiated!"),
        ])

        first = await engine.run("bridge 0.1 ETH from Base to Ethereum", "s-1", user, "t-1")

        assert first.success is True
        assert first.awaiting_action is True
        assert first.session.status is SessionStatus.AWAITING_SIGNATURE
        action = first.session.pending_action
        assert action.action_id == "tc-1"
        assert action.tool_name == "prepare_bridge"
        assert action.data["transactions"][0]["value"] == 10**17
        assert llm.call_count == 1

        second = await engine.resume("s-1", "signed", "tc-1", confirmed=True, response_data={"txHash": "0xabc"})

        assert second.success is True
        assert second.awaiting_action is False
        assert second.response_text == "Bridge initiated!"
        assert second.session.status is SessionStatus.COMPLETED
        assert second.session.pending_action is None
        assert second.session.turn_count == 2
        assert llm.calls[1][-1] == {"role": "user", "content": 'Signed: {"txHash": "0xabc"}'}

    async def test_action_id_mismatch_leaves_action(self, make_engine, user, session_store):
        engine, llm = make_engine([_tool_turn(_call("X", "prepare_bridge", **PREPARE_BRIDGE))])
        await engine.run("bridge 0.1 ETH from Base to Ethereum", "s-1", user, "t-1")

        result = await engine.resume("s-1", "signed", "Y", confirmed=True)

        assert result.success is False
        assert result.error_code is AgentErrorCode.ACTION_ID_MISMATCH
        stored = await session_store.get("s-1")
        assert stored.pending_action.action_id == "X"
        assert stored.status is SessionStatus.AWAITING_SIGNATURE
        assert llm.call_count == 1

    async def test_rejected_confirmation(self, make_engine, user):
        engine, llm = make_engine([
            _tool_turn(_call(
                "tc-1", "request_confirmation",
                action_type="bridge", action_name="Bridge ETH", message="Bridge 0.1 ETH? Fee 0.0001 ETH.",
            )),
            LLMResult(content="No problem."),
        ])
        first = await engine.run("bridge 0.1 ETH from Base to Ethereum", "s-1", user, "t-1")
        assert first.session.status is SessionStatus.AWAITING_USER_ACTION
        assert first.response_text == "Bridge 0.1 ETH? Fee 0.0001 ETH."

        second = await engine.resume("s-1", "no", "tc-1", confirmed=False)
        assert second.session.status is SessionStatus.COMPLETED
        assert llm.calls[1][-1]["content"] == "Cancelled"

    async def test_pending_action_stops_remaining_calls(self, make_engine, user):
        engine, llm = make_engine([
            _tool_turn(
                _call("tc-1", "request_input", prompt="Which address should receive it?"),
                _call("tc-2", "get_chain_info"),
            ),
            LLMResult(content="Thanks."),
        ])
        first = await engine.run("send my usdc somewhere", "s-1", user, "t-1")

        tool_msgs = [m for m in first.session.messages if m.role is MessageRole.TOOL]
        assert [m.tool_call_id for m in tool_msgs] == ["tc-1"]

        await engine.resume("s-1", "0x" + "cd" * 20, "tc-1", confirmed=True)
        replayed = llm.calls[1]
        assistant = next(m for m in replayed if m["role"] == "assistant")
        assert [tc["id"] for tc in assistant["tool_calls"]] == ["tc-1"]
        assert replayed[-1]["content"] == "0x" + "cd" * 20

    async def test_resume_requires_pending_action(self, make_engine, user):
        engine, _ = make_engine([LLMResult(content="hi")])
        await engine.run("hello", "s-1", user, "t-1")

        result = await engine.resume("s-1", "yes", "tc-1", confirmed=True)
        assert result.error_code is AgentErrorCode.NOT_AWAITING_ACTION

    async def test_resume_unknown_session(self, make_engine):
        engine, _ = make_engine([])
        result = await engine.resume("missing", "yes", "tc-1", confirmed=True)
        assert result.error_code is AgentErrorCode.SESSION_NOT_FOUND
        assert result.session is None


class TestRunStateChecks:
    async def test_run_while_awaiting(self, make_engine, user):
        engine, llm = make_engine([_tool_turn(_call("tc-1", "prepare_bridge", **PREPARE_BRIDGE))])
        await engine.run("bridge 0.1 ETH from Base to Ethereum", "s-1", user, "t-1")

        result = await engine.run("hello?", "s-1", user, "t-1")
        assert result.success is False
        assert result.error_code is AgentErrorCode.AWAITING_ACTION
        assert result.awaiting_action is True
        assert llm.call_count == 1

    async def test_terminal_session_needs_restart(self, make_engine, user):
        engine, _ = make_engine([LLMResult(content="one"), LLMResult(content="two")])
        await engine.run("hello", "s-1", user, "t-1")

        blocked = await engine.run("again", "s-1", user, "t-1")
        assert blocked.error_code is AgentErrorCode.SESSION_TERMINAL

        restarted = await engine.run("again", "s-1", user, "t-1", restart=True)
        assert restarted.success is True
        assert restarted.response_text == "two"
        assert restarted.session.turn_count == 1

    async def test_blank_message_rejected(self, make_engine, user, session_store):
        engine, llm = make_engine([LLMResult(content="hi")])
        result = await engine.run("   ", "s-1", user, "t-1")

        assert result.error_code is AgentErrorCode.INVALID_MESSAGE
        assert llm.call_count == 0
        assert result.session is None
        assert await session_store.get("s-1") is None


class TestTurnLimit:
    async def test_max_turns_stops_loop(self, make_engine, user):
        responses = [_tool_turn(_call(f"tc-{i}", "get_chain_info")) for i in range(40)]
        engine, llm = make_engine(responses)

        result = await engine.run("tell me about chains", "s-1", user, "t-1")

        assert result.success is True
        assert result.response_text == MAX_TURNS_MESSAGE
        assert result.session.status is SessionStatus.COMPLETED
        assert llm.call_count == 24
        assert result.session.messages[-1].content == MAX_TURNS_MESSAGE

    async def test_non_final_stop_reason_keeps_going(self, make_engine, user):
        engine, llm = make_engine([
            LLMResult(content="partial", stop_reason=StopReason.MAX_TOKENS),
            LLMResult(content="done"),
        ])
        result = await engine.run("hello", "s-1", user, "t-1")

        assert result.response_text == "done"
        assert llm.call_count == 2


class TestFailures:
    async def test_tool_error_is_fed_back(self, make_engine, user):
        engine, llm = make_engine([
            _tool_turn(_call("tc-1", "prepare_bridge", from_chain_id=8453, to_chain_id=8453, token="ETH", amount="0.1")),
            LLMResult(content="Pick two different chains."),
        ])
        result = await engine.run("bridge 0.1 ETH from Base to Base", "s-1", user, "t-1")

        assert result.session.status is SessionStatus.COMPLETED
        tool_msg = next(m for m in result.session.messages if m.role is MessageRole.TOOL)
        assert json.loads(tool_msg.content)["error"] == "SAME_CHAIN"

    async def test_unknown_tool_is_fed_back(self, make_engine, user):
        engine, _ = make_engine([
            _tool_turn(_call("tc-1", "launch_rocket")),
            LLMResult(content="Sorry."),
        ])
        result = await engine.run("hello", "s-1", user, "t-1")

        tool_msg = next(m for m in result.session.messages if m.role is MessageRole.TOOL)
        assert json.loads(tool_msg.content)["error"] == "TOOL_NOT_FOUND"

    async def test_llm_exception_marks_session_error(self, session_store, tool_registry, trace_collector, user):
        from bridge_agent.engine.agent import AgentEngine

        class BrokenLLM(LLMClient):
            async def generate(self, messages, tools=None):
                raise RuntimeError("upstream down")

        engine = AgentEngine(session_store, tool_registry, BrokenLLM(), trace_collector)
        result = await engine.run("hello", "s-1", user, "t-1")

        assert result.success is False
        assert result.error_code is AgentErrorCode.INTERNAL_ERROR
        assert result.session.status is SessionStatus.ERROR
        assert "upstream down" in result.session.error
        assert result.trace_id is not None


class TestToLLMMessages:
    def test_unanswered_calls_are_dropped(self):
        messages = [
            SessionMessage(role=MessageRole.USER, content="go"),
            SessionMessage(
                role=MessageRole.ASSISTANT,
                content="[Tool calls]",
                tool_calls=[_call("a", "get_chain_info"), _call("b", "get_chain_info")],
            ),
            SessionMessage(role=MessageRole.TOOL, content="{}", tool_call_id="a", tool_name="get_chain_info"),
        ]
        out = to_llm_messages("sys", messages)

        assert out[0] == {"role": "system", "content": "sys"}
        assert [tc["id"] for tc in out[2]["tool_calls"]] == ["a"]
        assert out[3]["tool_call_id"] == "a"


class TestCreateEngine:
    async def test_demo_mock_wiring(self, tmp_path, user, monkeypatch):
        from bridge_agent import create_engine

        monkeypatch.delenv("REDIS_URL", raising=False)

        engine = create_engine(trace_dir=str(tmp_path / "traces"), use_mock_llm=True)
        result = await engine.run("what's my balance?", "demo-1", user, "demo-1")

        assert result.success is True
        assert result.session.status is SessionStatus.COMPLETED
        assert result.response_text.startswith("Here is what I found:")
        assert any(m.tool_name == "check_balance" for m in result.session.messages)

    async def test_redis_url_selects_redis_backend(self, tmp_path, user, monkeypatch, redis_client):
        from bridge_agent import create_engine
        from bridge_agent.engine.session import KEY_PREFIX, RedisKVBackend

        await redis_client.flushall()
        urls = []

        def _from_url(url):
            urls.append(url)
            return RedisKVBackend(redis_client)

        monkeypatch.setenv("REDIS_URL", "redis://cache:6379/0")
        monkeypatch.setattr(RedisKVBackend, "from_url", staticmethod(_from_url))

        engine = create_engine(trace_dir=str(tmp_path / "traces"), use_mock_llm=True)
        await engine.run("what's my balance?", "demo-redis", user, "demo-redis")

        assert urls == ["redis://cache:6379/0"]
        assert await redis_client.exists(f"{KEY_PREFIX}demo-redis") == 1
