"""Agent configuration — explicit, injected into the engine."""

from __future__ import annotations

import os
from dataclasses import dataclass

from bridge_agent.engine.prompts import SYSTEM_PROMPT
from bridge_agent.engine.session import SESSION_TTL_SECONDS


@dataclass(frozen=True)
class AgentConfig:
    model: str = "gpt-4o-mini"
    max_tokens: int = 4096
    max_turns: int = 25
    session_ttl_seconds: int = SESSION_TTL_SECONDS
    system_prompt: str = SYSTEM_PROMPT

    @classmethod
    def from_env(cls) -> AgentConfig:
        """Build a config from environment variables, falling back to defaults.

        OPENAI_MODEL              — model name
        BRIDGE_AGENT_MAX_TURNS    — turn ceiling per run
        BRIDGE_AGENT_SESSION_TTL  — session inactivity expiry in seconds
        """
        return cls(
            model=os.environ.get("OPENAI_MODEL", cls.model),
            max_turns=int(os.environ.get("BRIDGE_AGENT_MAX_TURNS", cls.max_turns)),
            session_ttl_seconds=int(os.environ.get("BRIDGE_AGENT_SESSION_TTL", cls.session_ttl_seconds)),
        )
