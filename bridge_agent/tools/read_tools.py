"""Read-only tools: balances, quotes, routes, chain info, prices, deposit status."""

from __future__ import annotations

import asyncio
import logging
import re
from decimal import Decimal

from pydantic import BaseModel, Field

from bridge_agent.chains import (
    CHAIN_NAMES,
    EXPLORER_URLS,
    NATIVE_TOKENS,
    RPC_URLS,
    TOKEN_DECIMALS,
    ChainId,
    TokenSymbol,
    explorer_tx_url,
    from_raw_units,
    is_token_available,
    to_raw_units,
    tokens_on_chain,
)
from bridge_agent.engine.models import ToolError, ToolSuccess
from bridge_agent.tools.registry import ToolContext, ToolDef
from bridge_agent.tools.services import (
    BridgeQuoteClient,
    BridgeServiceError,
    ChainClient,
    PriceFeed,
    QuoteRequest,
)

logger = logging.getLogger(__name__)

EOA_ADDRESS = re.compile(r"^0x[0-9a-fA-F]{40}$")
TX_HASH = re.compile(r"^0x[0-9a-fA-F]{64}$")


def wallet_of(context: ToolContext, override: str | None = None) -> str | None:
    address = override or context.user.wallet_address
    if address and EOA_ADDRESS.match(address):
        return address
    return None


def no_wallet_error() -> ToolError:
    return ToolError(code="NO_WALLET", message="No wallet address is linked to this conversation.")


def service_error(code: str, message: str, exc: BridgeServiceError) -> ToolError:
    logger.warning("%s: %s", code, exc)
    return ToolError(code=code, message=message, details={"originalError": str(exc)})


def check_route(
    from_chain: ChainId,
    to_chain: ChainId,
    input_token: TokenSymbol,
    output_token: TokenSymbol,
    amount: Decimal,
) -> ToolError | None:
    """Shared validation for quote and prepare tools."""
    if from_chain == to_chain:
        return ToolError(code="SAME_CHAIN", message="Source and destination chains must be different.")
    if not is_token_available(input_token, from_chain):
        return ToolError(
            code="TOKEN_NOT_AVAILABLE",
            message=f"{input_token.value} is not available on {CHAIN_NAMES[from_chain]}.",
        )
    if not is_token_available(output_token, to_chain):
        return ToolError(
            code="TOKEN_NOT_AVAILABLE",
            message=f"{output_token.value} is not available on {CHAIN_NAMES[to_chain]}.",
        )
    if not amount.is_finite() or amount <= 0:
        return ToolError(code="INVALID_AMOUNT", message="Amount must be greater than zero.")
    return None


# ---------------------------------------------------------------------------
# check_balance
# ---------------------------------------------------------------------------

class CheckBalanceInput(BaseModel):
    token: TokenSymbol | None = Field(None, description="Token to check. Defaults to each chain's native token.")
    chain_id: ChainId | None = Field(None, description="Chain to check. Defaults to all supported chains.")
    address: str | None = Field(None, description="Wallet address. Defaults to the user's wallet.")


def make_check_balance_tool(chain_client: ChainClient, price_feed: PriceFeed) -> ToolDef:
    """Factory — binds chain and price collaborators into the tool handler."""

    async def _handler(inp: CheckBalanceInput, context: ToolContext, call_id: str):
        address = wallet_of(context, inp.address)
        if address is None:
            return no_wallet_error()

        chains = [inp.chain_id] if inp.chain_id is not None else list(ChainId)
        pairs = [
            (inp.token or NATIVE_TOKENS[chain], chain)
            for chain in chains
            if is_token_available(inp.token or NATIVE_TOKENS[chain], chain)
        ]
        if not pairs:
            return ToolError(
                code="TOKEN_NOT_AVAILABLE",
                message=f"{inp.token.value} is not available on the requested chain.",
            )

        try:
            raws = await asyncio.gather(*(
                chain_client.get_balance(address, token, chain) for token, chain in pairs
            ))
            prices = await price_feed.get_prices(sorted({token for token, _ in pairs}, key=lambda t: t.value))
        except BridgeServiceError as exc:
            return service_error("BALANCE_CHECK_FAILED", "Could not fetch balances. Please try again.", exc)

        balances = []
        total_usd = 0.0
        for (token, chain), raw in zip(pairs, raws):
            amount = from_raw_units(raw, TOKEN_DECIMALS[token])
            usd = round(float(amount) * prices[token], 2) if token in prices else None
            total_usd += usd or 0.0
            balances.append({
                "chain_id": int(chain),
                "chain": CHAIN_NAMES[chain],
                "token": token.value,
                "amount": amount,
                "raw": str(raw),
                "usd_value": usd,
            })

        summary = ", ".join(f"{b['amount']} {b['token']} on {b['chain']}" for b in balances)
        return ToolSuccess(
            data={"address": address, "balances": balances, "total_usd": round(total_usd, 2)},
            message=summary,
        )

    return ToolDef(
        name="check_balance",
        description="Check wallet token balances on one or all supported chains, with USD values.",
        input_model=CheckBalanceInput,
        handler=_handler,
    )


# ---------------------------------------------------------------------------
# get_bridge_quote
# ---------------------------------------------------------------------------

class BridgeQuoteInput(BaseModel):
    from_chain_id: ChainId
    to_chain_id: ChainId
    token: TokenSymbol = Field(description="Token sent on the source chain.")
    output_token: TokenSymbol | None = Field(None, description="Token received. Defaults to the same token.")
    amount: Decimal = Field(description="Human-readable amount, e.g. 0.1")


def make_bridge_quote_tool(quote_client: BridgeQuoteClient) -> ToolDef:
    async def _handler(inp: BridgeQuoteInput, context: ToolContext, call_id: str):
        output_token = inp.output_token or inp.token
        error = check_route(inp.from_chain_id, inp.to_chain_id, inp.token, output_token, inp.amount)
        if error is not None:
            return error

        in_decimals = TOKEN_DECIMALS[inp.token]
        out_decimals = TOKEN_DECIMALS[output_token]
        wallet = wallet_of(context)
        try:
            quote = await quote_client.get_quote(QuoteRequest(
                origin_chain_id=inp.from_chain_id,
                destination_chain_id=inp.to_chain_id,
                input_token=inp.token,
                output_token=output_token,
                amount=to_raw_units(inp.amount, in_decimals),
                depositor=wallet,
                recipient=wallet,
            ))
        except BridgeServiceError as exc:
            return service_error("QUOTE_FAILED", "Could not get a bridge quote. Please try again.", exc)

        data = {
            "from_chain": CHAIN_NAMES[inp.from_chain_id],
            "to_chain": CHAIN_NAMES[inp.to_chain_id],
            "input_token": inp.token.value,
            "output_token": output_token.value,
            "input_amount": format(inp.amount, "f"),
            "output_amount": from_raw_units(quote.output_amount, out_decimals),
            "fee": from_raw_units(quote.total_fee, in_decimals),
            "estimated_time_seconds": quote.estimated_fill_seconds,
        }
        return ToolSuccess(
            data=data,
            message=(
                f"Receive ~{data['output_amount']} {data['output_token']} on {data['to_chain']} "
                f"in ~{quote.estimated_fill_seconds // 60 or 1} min (fee {data['fee']} {data['input_token']})."
            ),
        )

    return ToolDef(
        name="get_bridge_quote",
        description="Get a bridge quote: output amount, fee and estimated time for a route.",
        input_model=BridgeQuoteInput,
        handler=_handler,
    )


# ---------------------------------------------------------------------------
# get_supported_routes / get_chain_info
# ---------------------------------------------------------------------------

class SupportedRoutesInput(BaseModel):
    token: TokenSymbol | None = Field(None, description="Token sent. Omit for every token.")
    output_token: TokenSymbol | None = Field(None, description="Token received. Defaults to the same token.")


async def _supported_routes(inp: SupportedRoutesInput, context: ToolContext, call_id: str):
    tokens = [inp.token] if inp.token else list(TokenSymbol)
    routes = []
    for token in tokens:
        output = inp.output_token or token
        for source in ChainId:
            for destination in ChainId:
                if source == destination:
                    continue
                if is_token_available(token, source) and is_token_available(output, destination):
                    routes.append({
                        "from_chain_id": int(source),
                        "to_chain_id": int(destination),
                        "input_token": token.value,
                        "output_token": output.value,
                    })
    return ToolSuccess(data={"routes": routes}, message=f"{len(routes)} supported routes.")


SUPPORTED_ROUTES_TOOL = ToolDef(
    name="get_supported_routes",
    description="List the chain pairs a token can be bridged between.",
    input_model=SupportedRoutesInput,
    handler=_supported_routes,
)


class ChainInfoInput(BaseModel):
    chain_id: ChainId | None = Field(None, description="Omit to list every supported chain.")


async def _chain_info(inp: ChainInfoInput, context: ToolContext, call_id: str):
    chains = [inp.chain_id] if inp.chain_id is not None else list(ChainId)
    info = [
        {
            "chain_id": int(chain),
            "name": CHAIN_NAMES[chain],
            "native_token": NATIVE_TOKENS[chain].value,
            "explorer_url": EXPLORER_URLS[chain],
            "rpc_url": RPC_URLS[chain],
            "tokens": [t.value for t in tokens_on_chain(chain)],
        }
        for chain in chains
    ]
    return ToolSuccess(data={"chains": info})


CHAIN_INFO_TOOL = ToolDef(
    name="get_chain_info",
    description="Describe supported chains: native token, explorer and available tokens.",
    input_model=ChainInfoInput,
    handler=_chain_info,
)


# ---------------------------------------------------------------------------
# get_token_price
# ---------------------------------------------------------------------------

class TokenPriceInput(BaseModel):
    token: TokenSymbol | None = Field(None, description="Omit for every supported token.")


def make_token_price_tool(price_feed: PriceFeed) -> ToolDef:
    async def _handler(inp: TokenPriceInput, context: ToolContext, call_id: str):
        tokens = [inp.token] if inp.token else list(TokenSymbol)
        try:
            prices = await price_feed.get_prices(tokens)
        except BridgeServiceError as exc:
            return service_error("PRICE_FETCH_FAILED", "Could not fetch token prices. Please try again.", exc)
        return ToolSuccess(data={"prices_usd": {t.value: p for t, p in prices.items()}})

    return ToolDef(
        name="get_token_price",
        description="Get current USD prices for supported tokens.",
        input_model=TokenPriceInput,
        handler=_handler,
    )


# ---------------------------------------------------------------------------
# get_transaction_status
# ---------------------------------------------------------------------------

class TransactionStatusInput(BaseModel):
    tx_hash: str = Field(description="Deposit transaction hash on the source chain.")
    origin_chain_id: ChainId


def make_transaction_status_tool(quote_client: BridgeQuoteClient) -> ToolDef:
    async def _handler(inp: TransactionStatusInput, context: ToolContext, call_id: str):
        if not TX_HASH.match(inp.tx_hash):
            return ToolError(code="INVALID_TX_HASH", message="That does not look like a transaction hash.")
        try:
            status = await quote_client.get_deposit_status(inp.tx_hash, inp.origin_chain_id)
        except BridgeServiceError as exc:
            return service_error("STATUS_CHECK_FAILED", "Could not check the transaction. Please try again.", exc)

        data = status.model_dump(mode="json")
        data["explorer_url"] = explorer_tx_url(inp.origin_chain_id, inp.tx_hash)
        if status.fill_tx_hash and status.destination_chain_id is not None:
            data["fill_explorer_url"] = explorer_tx_url(status.destination_chain_id, status.fill_tx_hash)
        return ToolSuccess(data=data, message=f"Bridge status: {status.status}.")

    return ToolDef(
        name="get_transaction_status",
        description="Check the status of a bridge deposit by its source-chain transaction hash.",
        input_model=TransactionStatusInput,
        handler=_handler,
    )
