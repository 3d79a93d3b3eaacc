"""bridge_agent — conversational cross-chain bridge agent with resumable sessions.

Usage::

    from bridge_agent import create_engine
    from bridge_agent.engine.models import UserContext

    engine = create_engine()
    result = await engine.run(
        "bridge 0.1 ETH from Base to Ethereum",
        session_id="s-1",
        user=UserContext(user_id="u-1", wallet_address="0x..."),
        thread_id="t-1",
    )
    if result.awaiting_action:
        action = result.session.pending_action
        result = await engine.resume("s-1", "signed", action.action_id, confirmed=True)
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()  # reads .env into os.environ (no-op if file missing)

from bridge_agent.engine.agent import AgentEngine
from bridge_agent.engine.config import AgentConfig
from bridge_agent.engine.llm import DemoMockLLMClient, OpenAILLMClient
from bridge_agent.engine.models import AgentRunResult, UserContext
from bridge_agent.engine.session import InMemoryKVBackend, KVBackend, RedisKVBackend, SessionStore
from bridge_agent.tools.builtins import register_builtin_tools
from bridge_agent.tools.demo_services import DemoBridgeQuoteClient, DemoChainClient, StaticPriceFeed
from bridge_agent.tools.registry import ToolRegistry
from bridge_agent.tools.services import BridgeQuoteClient, ChainClient, PriceFeed
from bridge_agent.tracing.jsonl_tracer import JSONLTraceCollector

__all__ = [
    "AgentConfig",
    "AgentEngine",
    "AgentRunResult",
    "UserContext",
    "create_engine",
]


def create_engine(
    *,
    openai_api_key: str | None = None,
    config: AgentConfig | None = None,
    trace_dir: str | None = None,
    use_mock_llm: bool | None = None,
    backend: KVBackend | None = None,
    chain_client: ChainClient | None = None,
    quote_client: BridgeQuoteClient | None = None,
    price_feed: PriceFeed | None = None,
) -> AgentEngine:
    """Wire all components and return a ready-to-use AgentEngine.

    Environment variables (all optional):
      OPENAI_API_KEY   — required for real LLM calls
      OPENAI_MODEL     — default ``gpt-4o-mini``
      USE_MOCK_LLM     — set to ``1`` to use the demo mock
      TRACE_DIR        — default ``./traces``
      REDIS_URL        — persist sessions in Redis (default: in-process store)

    Collaborators left as ``None`` fall back to the in-process demo services.
    """
    api_key = openai_api_key or os.environ.get("OPENAI_API_KEY")
    mock = use_mock_llm if use_mock_llm is not None else os.environ.get("USE_MOCK_LLM") == "1"
    config = config or AgentConfig.from_env()

    # -- components --
    if backend is None:
        redis_url = os.environ.get("REDIS_URL")
        backend = RedisKVBackend.from_url(redis_url) if redis_url else InMemoryKVBackend()
    session_store = SessionStore(backend, ttl_seconds=config.session_ttl_seconds)
    trace_collector = JSONLTraceCollector(trace_dir or os.environ.get("TRACE_DIR", "./traces"))

    tool_registry = register_builtin_tools(
        ToolRegistry(),
        chain_client=chain_client or DemoChainClient(),
        quote_client=quote_client or DemoBridgeQuoteClient(),
        price_feed=price_feed or StaticPriceFeed(),
    )

    if mock or not api_key:
        llm_client = DemoMockLLMClient()
    else:
        llm_client = OpenAILLMClient(api_key=api_key, model=config.model, max_tokens=config.max_tokens)

    return AgentEngine(
        session_store=session_store,
        tool_registry=tool_registry,
        llm_client=llm_client,
        trace_collector=trace_collector,
        config=config,
    )
