"""Built-in bridge tool catalog."""

from __future__ import annotations

from bridge_agent.tools.action_tools import (
    REQUEST_CONFIRMATION_TOOL,
    REQUEST_INPUT_TOOL,
    SEND_MESSAGE_TOOL,
)
from bridge_agent.tools.read_tools import (
    CHAIN_INFO_TOOL,
    SUPPORTED_ROUTES_TOOL,
    make_bridge_quote_tool,
    make_check_balance_tool,
    make_token_price_tool,
    make_transaction_status_tool,
)
from bridge_agent.tools.registry import ToolRegistry
from bridge_agent.tools.services import BridgeQuoteClient, ChainClient, PriceFeed
from bridge_agent.tools.write_tools import make_prepare_bridge_tool, make_prepare_swap_bridge_tool


def register_builtin_tools(
    registry: ToolRegistry,
    *,
    chain_client: ChainClient,
    quote_client: BridgeQuoteClient,
    price_feed: PriceFeed,
) -> ToolRegistry:
    """Register every read, write and action tool, bound to the given collaborators."""
    for tool in (
        make_check_balance_tool(chain_client, price_feed),
        make_bridge_quote_tool(quote_client),
        SUPPORTED_ROUTES_TOOL,
        CHAIN_INFO_TOOL,
        make_token_price_tool(price_feed),
        make_transaction_status_tool(quote_client),
        make_prepare_bridge_tool(chain_client, quote_client),
        make_prepare_swap_bridge_tool(chain_client, quote_client),
        REQUEST_CONFIRMATION_TOOL,
        REQUEST_INPUT_TOOL,
        SEND_MESSAGE_TOOL,
    ):
        registry.register(tool)
    return registry
