"""Session store — key-value backend ABC, in-memory and Redis TTL backends, and SessionStore."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

from pydantic import ValidationError

from bridge_agent.engine.errors import InvalidSessionStateError, SessionNotFoundError
from bridge_agent.engine.models import (
    MessageRole,
    PendingAction,
    Session,
    SessionCost,
    SessionMessage,
    SessionStatus,
    ToolCallRequest,
)

logger = logging.getLogger(__name__)

SESSION_TTL_SECONDS = 1800
KEY_PREFIX = "bridge-agent:session:"

# USD per 1K tokens
INPUT_COST_PER_1K = 0.003
OUTPUT_COST_PER_1K = 0.015


# ---------------------------------------------------------------------------
# Backend
# ---------------------------------------------------------------------------

class KVBackend(ABC):
    """Async key-value storage with per-key expiry.

    ``InMemoryKVBackend`` for single-process use, ``RedisKVBackend`` when
    sessions must outlive the process.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None: ...

    @abstractmethod
    async def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None: ...

    @abstractmethod
    async def delete(self, key: str) -> bool: ...

    @abstractmethod
    async def refresh_expiry(self, key: str, ttl_seconds: int) -> bool: ...

    @abstractmethod
    async def ttl(self, key: str) -> int | None: ...


class InMemoryKVBackend(KVBackend):
    """Dict-backed backend — suitable for single-process dev/test."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, float]] = {}

    def _live(self, key: str) -> tuple[str, float] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry[1] <= self._clock():
            del self._data[key]
            return None
        return entry

    async def get(self, key: str) -> str | None:
        entry = self._live(key)
        return entry[0] if entry else None

    async def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None:
        self._data[key] = (value, self._clock() + ttl_seconds)

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def refresh_expiry(self, key: str, ttl_seconds: int) -> bool:
        entry = self._live(key)
        if entry is None:
            return False
        self._data[key] = (entry[0], self._clock() + ttl_seconds)
        return True

    async def ttl(self, key: str) -> int | None:
        entry = self._live(key)
        if entry is None:
            return None
        return int(entry[1] - self._clock())


class RedisKVBackend(KVBackend):
    """Redis-backed backend; sessions survive process restarts.

    ``set_with_expiry`` / ``get`` / ``delete`` / ``refresh_expiry`` / ``ttl``
    issue ``SETEX`` / ``GET`` / ``DEL`` / ``EXPIRE`` / ``TTL``.
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> RedisKVBackend:
        from redis.asyncio import Redis

        logger.info("Session backend: redis at %s", url)
        return cls(Redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> str | None:
        value = await self._client.get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._client.setex(key, ttl_seconds, value)

    async def delete(self, key: str) -> bool:
        return await self._client.delete(key) > 0

    async def refresh_expiry(self, key: str, ttl_seconds: int) -> bool:
        return bool(await self._client.expire(key, ttl_seconds))

    async def ttl(self, key: str) -> int | None:
        remaining = await self._client.ttl(key)
        # -2: missing key, -1: no expiry set
        return remaining if remaining >= 0 else None

    async def close(self) -> None:
        await self._client.aclose()


# ---------------------------------------------------------------------------
# Session store
# ---------------------------------------------------------------------------

class SessionStore:
    """Typed session operations over a ``KVBackend``.

    Every write re-serializes the whole record and resets its expiry, so an
    active conversation never times out mid-flow. Expired and corrupt records
    both read as ``None``.
    """

    def __init__(
        self,
        backend: KVBackend,
        ttl_seconds: int = SESSION_TTL_SECONDS,
        key_prefix: str = KEY_PREFIX,
        input_cost_per_1k: float = INPUT_COST_PER_1K,
        output_cost_per_1k: float = OUTPUT_COST_PER_1K,
    ) -> None:
        self._backend = backend
        self._ttl = ttl_seconds
        self._prefix = key_prefix
        self._input_cost = input_cost_per_1k
        self._output_cost = output_cost_per_1k

    def _key(self, session_id: str) -> str:
        return f"{self._prefix}{session_id}"

    async def _write(self, session: Session) -> Session:
        await self._backend.set_with_expiry(self._key(session.session_id), session.model_dump_json(), self._ttl)
        return session

    # -- reads ----------------------------------------------------------------

    async def get(self, session_id: str) -> Session | None:
        raw = await self._backend.get(self._key(session_id))
        if raw is None:
            return None
        try:
            return Session.model_validate_json(raw)
        except ValidationError:
            logger.error("Corrupt session record for %s, treating as missing", session_id)
            return None

    async def get_required(self, session_id: str) -> Session:
        session = await self.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def ttl(self, session_id: str) -> int | None:
        return await self._backend.ttl(self._key(session_id))

    async def is_pending_action_expired(self, session_id: str, now: float | None = None) -> bool:
        session = await self.get(session_id)
        if session is None or session.pending_action is None:
            return False
        return session.pending_action.is_expired(now)

    # -- lifecycle ------------------------------------------------------------

    async def create(
        self,
        session_id: str,
        user_id: str,
        thread_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> Session:
        session = Session(
            session_id=session_id,
            user_id=user_id,
            thread_id=thread_id,
            metadata=dict(metadata or {}),
        )
        logger.info("Created session %s for user %s", session_id, user_id)
        return await self._write(session)

    async def create_or_get(
        self,
        session_id: str,
        user_id: str,
        thread_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> Session:
        existing = await self.get(session_id)
        if existing is not None:
            return existing
        return await self.create(session_id, user_id, thread_id, metadata)

    async def delete(self, session_id: str) -> bool:
        return await self._backend.delete(self._key(session_id))

    async def refresh_ttl(self, session_id: str) -> bool:
        return await self._backend.refresh_expiry(self._key(session_id), self._ttl)

    # -- writes ---------------------------------------------------------------

    async def _apply(self, current: Session, changes: dict[str, Any]) -> Session:
        changes.pop("session_id", None)
        changes.pop("created_at", None)
        if changes.get("turn_count", current.turn_count) < current.turn_count:
            raise InvalidSessionStateError("turn_count cannot decrease")

        data = current.model_dump()
        data.update(changes)
        data["updated_at"] = time.time()
        try:
            updated = Session.model_validate(data)
        except ValidationError as exc:
            raise InvalidSessionStateError(str(exc)) from exc
        return await self._write(updated)

    async def update(self, session_id: str, /, **changes: Any) -> Session:
        """Merge ``changes`` into the stored session. Raises ``SessionNotFoundError``."""
        return await self._apply(await self.get_required(session_id), changes)

    async def add_message(
        self,
        session_id: str,
        role: MessageRole,
        content: str,
        *,
        tool_call_id: str | None = None,
        tool_name: str | None = None,
        tool_calls: list[ToolCallRequest] | None = None,
    ) -> Session:
        session = await self.get_required(session_id)
        message = SessionMessage(
            role=role,
            content=content,
            tool_call_id=tool_call_id,
            tool_name=tool_name,
            tool_calls=tool_calls,
        )
        turn_count = session.turn_count + 1 if role is MessageRole.USER else session.turn_count
        return await self._apply(session, {
            "messages": [*session.messages, message],
            "turn_count": turn_count,
        })

    async def set_status(self, session_id: str, status: SessionStatus) -> Session:
        return await self.update(session_id, status=status)

    async def mark_processing(self, session_id: str) -> Session:
        return await self.set_status(session_id, SessionStatus.PROCESSING)

    async def mark_completed(self, session_id: str) -> Session:
        return await self.update(session_id, status=SessionStatus.COMPLETED, pending_action=None)

    async def mark_cancelled(self, session_id: str) -> Session:
        return await self.update(session_id, status=SessionStatus.CANCELLED, pending_action=None)

    async def mark_error(self, session_id: str, error: str | None = None) -> Session:
        return await self.update(session_id, status=SessionStatus.ERROR, pending_action=None, error=error)

    async def set_pending_action(self, session_id: str, action: PendingAction) -> Session:
        return await self.update(session_id, pending_action=action, status=action.session_status)

    async def clear_pending_action(
        self,
        session_id: str,
        next_status: SessionStatus = SessionStatus.PROCESSING,
    ) -> Session:
        return await self.update(session_id, pending_action=None, status=next_status)

    async def record_usage(self, session_id: str, input_tokens: int, output_tokens: int) -> Session:
        session = await self.get_required(session_id)
        cost = session.cost
        added = input_tokens / 1000 * self._input_cost + output_tokens / 1000 * self._output_cost
        return await self._apply(session, {"cost": SessionCost(
            input_tokens=cost.input_tokens + input_tokens,
            output_tokens=cost.output_tokens + output_tokens,
            total_cost_usd=cost.total_cost_usd + added,
        )})

    async def update_metadata(self, session_id: str, metadata: dict[str, Any]) -> Session:
        session = await self.get_required(session_id)
        return await self._apply(session, {"metadata": {**session.metadata, **metadata}})
