"""Deterministic in-process collaborators for demos and tests."""

from __future__ import annotations

from decimal import Decimal

from bridge_agent.chains import (
    TOKEN_DECIMALS,
    ChainId,
    TokenSymbol,
    is_native,
    to_raw_units,
    token_address,
)
from bridge_agent.tools.services import (
    BridgeQuote,
    BridgeQuoteClient,
    BridgeServiceError,
    ChainClient,
    DepositStatus,
    PriceFeed,
    QuoteRequest,
    TransactionRequest,
)

DEMO_SPOKE_POOL = "0x5c7BCd6E7De5423a257D81B442095A1a6ced35C5"

_DEFAULT_PRICES: dict[TokenSymbol, float] = {
    TokenSymbol.ETH: 3000.0,
    TokenSymbol.WETH: 3000.0,
    TokenSymbol.USDC: 1.0,
    TokenSymbol.USDT: 1.0,
    TokenSymbol.MATIC: 0.5,
}


class StaticPriceFeed(PriceFeed):
    def __init__(self, prices: dict[TokenSymbol, float] | None = None) -> None:
        self._prices = dict(_DEFAULT_PRICES if prices is None else prices)

    async def get_prices(self, tokens: list[TokenSymbol]) -> dict[TokenSymbol, float]:
        return {t: self._prices[t] for t in tokens if t in self._prices}


class DemoChainClient(ChainClient):
    """Balances keyed by ``(token, chain)``, shared by every address."""

    def __init__(self, balances: dict[tuple[TokenSymbol, ChainId], int] | None = None) -> None:
        if balances is None:
            balances = {
                (TokenSymbol.ETH, ChainId.BASE): to_raw_units("0.5", 18),
                (TokenSymbol.ETH, ChainId.ETHEREUM): to_raw_units("0.1", 18),
                (TokenSymbol.USDC, ChainId.BASE): to_raw_units("250", 6),
                (TokenSymbol.MATIC, ChainId.POLYGON): to_raw_units("40", 18),
            }
        self._balances = balances

    def set_balance(self, token: TokenSymbol, chain_id: ChainId, raw: int) -> None:
        self._balances[(token, chain_id)] = raw

    async def get_balance(self, address: str, token: TokenSymbol, chain_id: ChainId) -> int:
        return self._balances.get((token, chain_id), 0)


class DemoBridgeQuoteClient(BridgeQuoteClient):
    """Flat-fee quotes, cross-token conversion at static prices."""

    def __init__(
        self,
        fee_bps: int = 10,
        fill_seconds: int = 120,
        prices: dict[TokenSymbol, float] | None = None,
    ) -> None:
        self._fee_bps = fee_bps
        self._fill_seconds = fill_seconds
        self._prices = dict(_DEFAULT_PRICES if prices is None else prices)
        self._deposits: dict[str, DepositStatus] = {}

    def record_deposit(self, status: DepositStatus) -> None:
        self._deposits[status.deposit_tx_hash.lower()] = status

    async def get_quote(self, request: QuoteRequest) -> BridgeQuote:
        if request.origin_chain_id == request.destination_chain_id:
            raise BridgeServiceError("origin and destination chain are the same")
        fee = request.amount * self._fee_bps // 10_000
        net = request.amount - fee
        if request.input_token is request.output_token:
            output = net
        else:
            value = (
                Decimal(net).scaleb(-TOKEN_DECIMALS[request.input_token])
                * Decimal(str(self._prices[request.input_token]))
                / Decimal(str(self._prices[request.output_token]))
            )
            output = int(value.scaleb(TOKEN_DECIMALS[request.output_token]))
        return BridgeQuote(
            request=request,
            output_amount=output,
            total_fee=fee,
            estimated_fill_seconds=self._fill_seconds,
            spender=DEMO_SPOKE_POOL,
        )

    async def build_transactions(
        self,
        quote: BridgeQuote,
        depositor: str,
        recipient: str,
    ) -> list[TransactionRequest]:
        req = quote.request
        native = is_native(req.input_token, req.origin_chain_id)
        transactions: list[TransactionRequest] = []
        if not native:
            transactions.append(TransactionRequest(
                chain_id=req.origin_chain_id,
                to=token_address(req.input_token, req.origin_chain_id) or "",
                data="0x095ea7b3" + DEMO_SPOKE_POOL[2:].lower().rjust(64, "0") + f"{req.amount:064x}",
                description=f"Approve {req.input_token.value}",
            ))
        transactions.append(TransactionRequest(
            chain_id=req.origin_chain_id,
            to=DEMO_SPOKE_POOL,
            value=req.amount if native else 0,
            description=f"Deposit to {recipient}",
        ))
        return transactions

    async def get_deposit_status(self, deposit_tx_hash: str, origin_chain_id: ChainId) -> DepositStatus:
        status = self._deposits.get(deposit_tx_hash.lower())
        if status is None:
            return DepositStatus(
                status="not_found",
                origin_chain_id=origin_chain_id,
                deposit_tx_hash=deposit_tx_hash,
            )
        return status
