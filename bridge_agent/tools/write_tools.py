"""Transaction-preparing tools. Each one suspends the turn for a wallet signature."""

from __future__ import annotations

import time
from decimal import Decimal

from pydantic import BaseModel, Field

from bridge_agent.chains import (
    CHAIN_NAMES,
    TOKEN_DECIMALS,
    ChainId,
    TokenSymbol,
    from_raw_units,
    is_native,
    to_raw_units,
)
from bridge_agent.engine.models import PendingActionType, ToolError, ToolPendingAction
from bridge_agent.tools.read_tools import check_route, no_wallet_error, service_error, wallet_of
from bridge_agent.tools.registry import ToolCategory, ToolContext, ToolDef
from bridge_agent.tools.services import BridgeQuoteClient, BridgeServiceError, ChainClient, QuoteRequest

SIGNATURE_TTL_SECONDS = 300
# Native token kept back for source-chain gas
GAS_BUFFER = Decimal("0.005")


class PrepareBridgeInput(BaseModel):
    from_chain_id: ChainId
    to_chain_id: ChainId
    token: TokenSymbol
    amount: Decimal = Field(description="Human-readable amount, e.g. 0.1")
    recipient: str | None = Field(None, description="Destination address. Defaults to the user's wallet.")


class PrepareSwapBridgeInput(BaseModel):
    from_chain_id: ChainId
    to_chain_id: ChainId
    input_token: TokenSymbol
    output_token: TokenSymbol
    amount: Decimal = Field(description="Amount of input_token, human-readable")
    recipient: str | None = None


async def _prepare_transfer(
    chain_client: ChainClient,
    quote_client: BridgeQuoteClient,
    context: ToolContext,
    *,
    from_chain: ChainId,
    to_chain: ChainId,
    input_token: TokenSymbol,
    output_token: TokenSymbol,
    amount: Decimal,
    recipient: str | None,
    description: str,
) -> ToolPendingAction | ToolError:
    depositor = wallet_of(context)
    if depositor is None:
        return no_wallet_error()
    error = check_route(from_chain, to_chain, input_token, output_token, amount)
    if error is not None:
        return error

    decimals = TOKEN_DECIMALS[input_token]
    raw_amount = to_raw_units(amount, decimals)
    if raw_amount <= 0:
        return ToolError(code="INVALID_AMOUNT", message="Amount is below the token's smallest unit.")

    try:
        balance = await chain_client.get_balance(depositor, input_token, from_chain)
    except BridgeServiceError as exc:
        return service_error("BALANCE_CHECK_FAILED", "Could not verify your balance. Please try again.", exc)

    have = from_raw_units(balance, decimals)
    chain_name = CHAIN_NAMES[from_chain]
    if balance < raw_amount:
        return ToolError(
            code="INSUFFICIENT_BALANCE",
            message=f"Insufficient {input_token.value} on {chain_name}: you have {have}, need {format(amount, 'f')}.",
            details={"balance": have, "required": format(amount, "f")},
        )
    if is_native(input_token, from_chain) and balance < raw_amount + to_raw_units(GAS_BUFFER, decimals):
        required = format(amount + GAS_BUFFER, "f")
        return ToolError(
            code="INSUFFICIENT_BALANCE_WITH_GAS",
            message=(
                f"Not enough {input_token.value} on {chain_name} to cover gas: "
                f"you have {have}, need about {required} including gas."
            ),
            details={"balance": have, "required": required},
        )

    try:
        quote = await quote_client.get_quote(QuoteRequest(
            origin_chain_id=from_chain,
            destination_chain_id=to_chain,
            input_token=input_token,
            output_token=output_token,
            amount=raw_amount,
            depositor=depositor,
            recipient=recipient or depositor,
        ))
        transactions = await quote_client.build_transactions(quote, depositor, recipient or depositor)
    except BridgeServiceError as exc:
        return service_error("QUOTE_FAILED", "Could not prepare the transaction. Please try again.", exc)

    return ToolPendingAction(
        action_type=PendingActionType.SIGNATURE,
        message=description,
        data={
            "description": description,
            "transactions": [tx.model_dump(mode="json") for tx in transactions],
            "quote": {
                "output_amount": from_raw_units(quote.output_amount, TOKEN_DECIMALS[output_token]),
                "output_token": output_token.value,
                "fee": from_raw_units(quote.total_fee, decimals),
                "estimated_time_seconds": quote.estimated_fill_seconds,
            },
        },
        expires_at=time.time() + SIGNATURE_TTL_SECONDS,
    )


def make_prepare_bridge_tool(chain_client: ChainClient, quote_client: BridgeQuoteClient) -> ToolDef:
    async def _handler(inp: PrepareBridgeInput, context: ToolContext, call_id: str):
        return await _prepare_transfer(
            chain_client,
            quote_client,
            context,
            from_chain=inp.from_chain_id,
            to_chain=inp.to_chain_id,
            input_token=inp.token,
            output_token=inp.token,
            amount=inp.amount,
            recipient=inp.recipient,
            description=(
                f"Bridge {format(inp.amount, 'f')} {inp.token.value} from "
                f"{CHAIN_NAMES[inp.from_chain_id]} to {CHAIN_NAMES[inp.to_chain_id]}"
            ),
        )

    return ToolDef(
        name="prepare_bridge",
        description=(
            "Prepare a bridge transaction for the user to sign. Call only after the user "
            "has confirmed the quote."
        ),
        input_model=PrepareBridgeInput,
        handler=_handler,
        category=ToolCategory.WRITE,
        requires_signature=True,
    )


def make_prepare_swap_bridge_tool(chain_client: ChainClient, quote_client: BridgeQuoteClient) -> ToolDef:
    async def _handler(inp: PrepareSwapBridgeInput, context: ToolContext, call_id: str):
        if inp.input_token is inp.output_token:
            return ToolError(
                code="SAME_TOKEN",
                message="Input and output tokens are the same. Use prepare_bridge instead.",
            )
        return await _prepare_transfer(
            chain_client,
            quote_client,
            context,
            from_chain=inp.from_chain_id,
            to_chain=inp.to_chain_id,
            input_token=inp.input_token,
            output_token=inp.output_token,
            amount=inp.amount,
            recipient=inp.recipient,
            description=(
                f"Swap {format(inp.amount, 'f')} {inp.input_token.value} on {CHAIN_NAMES[inp.from_chain_id]} "
                f"for {inp.output_token.value} on {CHAIN_NAMES[inp.to_chain_id]}"
            ),
        )

    return ToolDef(
        name="prepare_swap_bridge",
        description="Prepare a combined swap and bridge transaction (different token on arrival) for signing.",
        input_model=PrepareSwapBridgeInput,
        handler=_handler,
        category=ToolCategory.WRITE,
        requires_signature=True,
    )
