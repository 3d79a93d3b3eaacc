"""Exceptions raised inside the engine. None of these reach end users verbatim."""

from __future__ import annotations


class AgentError(Exception):
    """Base class for bridge_agent errors."""


class SessionNotFoundError(AgentError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class InvalidSessionStateError(AgentError):
    """A write would leave the session in an inconsistent state."""
