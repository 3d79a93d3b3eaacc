"""Shared fixtures for bridge_agent tests."""

from __future__ import annotations

import pytest
from fakeredis.aioredis import FakeRedis

from bridge_agent.engine.agent import AgentEngine
from bridge_agent.engine.config import AgentConfig
from bridge_agent.engine.llm import MockLLMClient
from bridge_agent.engine.models import LLMResult, UserContext
from bridge_agent.engine.session import InMemoryKVBackend, RedisKVBackend, SessionStore
from bridge_agent.tools.builtins import register_builtin_tools
from bridge_agent.tools.demo_services import DemoBridgeQuoteClient, DemoChainClient, StaticPriceFeed
from bridge_agent.tools.registry import ToolContext, ToolRegistry
from bridge_agent.tracing.jsonl_tracer import JSONLTraceCollector

WALLET = "0x" + "ab" * 20


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend(clock):
    return InMemoryKVBackend(clock=clock)


@pytest.fixture
def redis_client():
    return FakeRedis(decode_responses=True)


@pytest.fixture
async def redis_backend(redis_client):
    await redis_client.flushall()
    backend = RedisKVBackend(redis_client)
    yield backend
    await backend.close()


@pytest.fixture
def session_store(backend):
    return SessionStore(backend)


@pytest.fixture
def chain_client():
    return DemoChainClient()


@pytest.fixture
def quote_client():
    return DemoBridgeQuoteClient()


@pytest.fixture
def tool_registry(chain_client, quote_client):
    return register_builtin_tools(
        ToolRegistry(),
        chain_client=chain_client,
        quote_client=quote_client,
        price_feed=StaticPriceFeed(),
    )


@pytest.fixture
def trace_collector(tmp_path):
    return JSONLTraceCollector(trace_dir=str(tmp_path / "traces"))


@pytest.fixture
def user():
    return UserContext(user_id="user-1", wallet_address=WALLET)


@pytest.fixture
async def tool_context(session_store, user):
    session = await session_store.create("tool-session", user.user_id, "thread-1")
    return ToolContext(user=user, session=session, session_store=session_store)


@pytest.fixture
def make_engine(session_store, tool_registry, trace_collector):
    """Build an engine around a scripted ``MockLLMClient``; returns ``(engine, llm)``."""

    def _make(responses: list[LLMResult], **config) -> tuple[AgentEngine, MockLLMClient]:
        llm = MockLLMClient(responses)
        engine = AgentEngine(
            session_store=session_store,
            tool_registry=tool_registry,
            llm_client=llm,
            trace_collector=trace_collector,
            config=AgentConfig(**config),
        )
        return engine, llm

    return _make
