"""Tests for SessionStore — lifecycle, status/pending-action invariant, TTL, cost."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from bridge_agent.engine.errors import InvalidSessionStateError, SessionNotFoundError
from bridge_agent.engine.models import (
    MessageRole,
    PendingAction,
    PendingActionType,
    Session,
    SessionStatus,
)
from bridge_agent.engine.session import KEY_PREFIX, SESSION_TTL_SECONDS, RedisKVBackend, SessionStore


def _signature_action(action_id: str = "act-1", expires_at: float | None = None) -> PendingAction:
    return PendingAction(
        type=PendingActionType.SIGNATURE,
        action_id=action_id,
        tool_name="prepare_bridge",
        message="Bridge 0.1 ETH from Base to Ethereum",
        expires_at=expires_at,
    )


class TestLifecycle:
    async def test_create_or_get_is_idempotent(self, session_store):
        first = await session_store.create_or_get("s-1", "u-1", "t-1", {"wallet_address": "0xabc"})
        await session_store.add_message("s-1", MessageRole.USER, "hi")
        second = await session_store.create_or_get("s-1", "someone-else", "t-2")

        assert first.status is SessionStatus.IDLE
        assert second.user_id == "u-1"
        assert second.thread_id == "t-1"
        assert len(second.messages) == 1
        assert second.metadata == {"wallet_address": "0xabc"}

    async def test_get_missing_returns_none(self, session_store):
        assert await session_store.get("nope") is None

    async def test_update_missing_raises(self, session_store):
        with pytest.raises(SessionNotFoundError):
            await session_store.update("nope", status=SessionStatus.PROCESSING)

    async def test_delete(self, session_store):
        await session_store.create("s-1", "u-1", "t-1")
        assert await session_store.delete("s-1") is True
        assert await session_store.get("s-1") is None
        assert await session_store.delete("s-1") is False

    async def test_update_cannot_change_identity(self, session_store):
        created = await session_store.create("s-1", "u-1", "t-1")
        updated = await session_store.update("s-1", session_id="other", created_at=0.0)
        assert updated.session_id == "s-1"
        assert updated.created_at == created.created_at


class TestPendingActionInvariant:
    def test_model_rejects_awaiting_without_action(self):
        with pytest.raises(ValidationError):
            Session(session_id="s", user_id="u", thread_id="t", status=SessionStatus.AWAITING_SIGNATURE)

    def test_model_rejects_action_without_awaiting(self):
        with pytest.raises(ValidationError):
            Session(
                session_id="s",
                user_id="u",
                thread_id="t",
                status=SessionStatus.PROCESSING,
                pending_action=_signature_action(),
            )

    async def test_status_follows_action_type(self, session_store):
        await session_store.create("s-1", "u-1", "t-1")
        session = await session_store.set_pending_action("s-1", _signature_action())
        assert session.status is SessionStatus.AWAITING_SIGNATURE

        await session_store.clear_pending_action("s-1")
        confirmation = PendingAction(type=PendingActionType.CONFIRMATION, action_id="a-2", tool_name="request_confirmation")
        session = await session_store.set_pending_action("s-1", confirmation)
        assert session.status is SessionStatus.AWAITING_USER_ACTION

    async def test_clear_pending_action(self, session_store):
        await session_store.create("s-1", "u-1", "t-1")
        await session_store.set_pending_action("s-1", _signature_action())
        session = await session_store.clear_pending_action("s-1")

        assert session.pending_action is None
        assert session.status is SessionStatus.PROCESSING

    async def test_invalid_update_raises_and_keeps_record(self, session_store):
        await session_store.create("s-1", "u-1", "t-1")
        with pytest.raises(InvalidSessionStateError):
            await session_store.update("s-1", status=SessionStatus.AWAITING_USER_ACTION)

        stored = await session_store.get("s-1")
        assert stored.status is SessionStatus.IDLE

    async def test_terminal_marks_clear_action(self, session_store):
        await session_store.create("s-1", "u-1", "t-1")
        await session_store.set_pending_action("s-1", _signature_action())
        session = await session_store.mark_error("s-1", "boom")

        assert session.status is SessionStatus.ERROR
        assert session.pending_action is None
        assert session.error == "boom"

    async def test_pending_action_expiry_is_reported(self, session_store):
        await session_store.create("s-1", "u-1", "t-1")
        await session_store.set_pending_action("s-1", _signature_action(expires_at=500.0))

        assert await session_store.is_pending_action_expired("s-1", now=400.0) is False
        assert await session_store.is_pending_action_expired("s-1", now=600.0) is True
        # Expiry is advisory; the action stays until resumed or cancelled
        assert (await session_store.get("s-1")).pending_action is not None


class TestTurnsAndCost:
    async def test_only_user_messages_count_as_turns(self, session_store):
        await session_store.create("s-1", "u-1", "t-1")
        await session_store.add_message("s-1", MessageRole.USER, "bridge 1 ETH")
        await session_store.add_message("s-1", MessageRole.ASSISTANT, "Sure")
        await session_store.add_message("s-1", MessageRole.TOOL, "{}", tool_call_id="tc-1", tool_name="x")
        session = await session_store.add_message("s-1", MessageRole.USER, "yes")

        assert session.turn_count == 2
        assert [m.role for m in session.messages] == [
            MessageRole.USER, MessageRole.ASSISTANT, MessageRole.TOOL, MessageRole.USER,
        ]

    async def test_turn_count_never_decreases(self, session_store):
        await session_store.create("s-1", "u-1", "t-1")
        await session_store.add_message("s-1", MessageRole.USER, "hi")
        with pytest.raises(InvalidSessionStateError):
            await session_store.update("s-1", turn_count=0)

    async def test_record_usage_accumulates(self, session_store):
        await session_store.create("s-1", "u-1", "t-1")
        await session_store.record_usage("s-1", 1000, 1000)
        session = await session_store.record_usage("s-1", 1000, 0)

        assert session.cost.input_tokens == 2000
        assert session.cost.output_tokens == 1000
        assert session.cost.total_cost_usd == pytest.approx(0.003 * 2 + 0.015)


class TestExpiry:
    async def test_session_expires_after_ttl(self, session_store, clock):
        await session_store.create("s-1", "u-1", "t-1")
        clock.advance(SESSION_TTL_SECONDS - 1)
        assert await session_store.get("s-1") is not None

        clock.advance(2)
        assert await session_store.get("s-1") is None

    async def test_writes_reset_expiry(self, session_store, clock):
        await session_store.create("s-1", "u-1", "t-1")
        clock.advance(SESSION_TTL_SECONDS - 10)
        await session_store.add_message("s-1", MessageRole.USER, "still here")
        clock.advance(SESSION_TTL_SECONDS - 10)

        assert await session_store.get("s-1") is not None
        assert await session_store.ttl("s-1") == 10

    async def test_refresh_ttl(self, session_store, clock):
        await session_store.create("s-1", "u-1", "t-1")
        clock.advance(100)
        assert await session_store.refresh_ttl("s-1") is True
        assert await session_store.ttl("s-1") == SESSION_TTL_SECONDS
        assert await session_store.refresh_ttl("missing") is False


class TestCorruptRecord:
    async def test_corrupt_json_reads_as_missing(self, session_store, backend):
        await backend.set_with_expiry(f"{KEY_PREFIX}s-1", "{not json", 60)
        assert await session_store.get("s-1") is None

    async def test_metadata_merge(self, session_store):
        await session_store.create("s-1", "u-1", "t-1", {"wallet_address": "0xabc"})
        session = await session_store.update_metadata("s-1", {"outbox": []})
        assert session.metadata == {"wallet_address": "0xabc", "outbox": []}


class TestRedisBackend:
    async def test_set_get_delete(self, redis_backend):
        await redis_backend.set_with_expiry("k", "v", 60)

        assert await redis_backend.get("k") == "v"
        assert 0 < await redis_backend.ttl("k") <= 60
        assert await redis_backend.delete("k") is True
        assert await redis_backend.delete("k") is False
        assert await redis_backend.get("k") is None
        assert await redis_backend.ttl("k") is None

    async def test_refresh_expiry(self, redis_backend):
        await redis_backend.set_with_expiry("k", "v", 10)

        assert await redis_backend.refresh_expiry("k", 600) is True
        assert await redis_backend.ttl("k") > 10
        assert await redis_backend.refresh_expiry("missing", 600) is False

    async def test_sessions_survive_a_new_store(self, redis_client, redis_backend):
        store = SessionStore(redis_backend)
        await store.create("s-1", "u-1", "t-1", {"wallet_address": "0xabc"})
        await store.add_message("s-1", MessageRole.USER, "bridge 0.1 ETH")
        await store.set_pending_action("s-1", _signature_action())

        reopened = SessionStore(RedisKVBackend(redis_client))
        session = await reopened.get("s-1")

        assert session.status is SessionStatus.AWAITING_SIGNATURE
        assert session.pending_action.action_id == "act-1"
        assert session.turn_count == 1
        assert session.metadata == {"wallet_address": "0xabc"}
        assert 0 < await reopened.ttl("s-1") <= SESSION_TTL_SECONDS

    async def test_records_are_stored_under_the_session_prefix(self, redis_client, redis_backend):
        await SessionStore(redis_backend).create("s-1", "u-1", "t-1")
        assert await redis_client.exists(f"{KEY_PREFIX}s-1") == 1
