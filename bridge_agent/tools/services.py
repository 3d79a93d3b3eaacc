"""External collaborators the bridge tools depend on.

Implementations talk to RPC nodes, a bridge aggregator and a price source.
They raise ``BridgeServiceError`` for expected upstream failures; tools turn
that into a ToolError the model can explain.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Literal

from pydantic import BaseModel, Field

from bridge_agent.chains import ChainId, TokenSymbol


class BridgeServiceError(Exception):
    """An upstream service (RPC, quote API, price API) failed."""


# ---------------------------------------------------------------------------
# Data shapes
# ---------------------------------------------------------------------------

class QuoteRequest(BaseModel):
    origin_chain_id: ChainId
    destination_chain_id: ChainId
    input_token: TokenSymbol
    output_token: TokenSymbol
    # Base units of ``input_token``
    amount: int
    depositor: str | None = None
    recipient: str | None = None


class BridgeQuote(BaseModel):
    request: QuoteRequest
    output_amount: int
    total_fee: int
    estimated_fill_seconds: int
    spender: str | None = None
    quoted_at: float = Field(default_factory=time.time)


class TransactionRequest(BaseModel):
    chain_id: ChainId
    to: str
    data: str = "0x"
    value: int = 0
    description: str = ""


class DepositStatus(BaseModel):
    status: Literal["pending", "filled", "expired", "not_found"]
    origin_chain_id: ChainId
    destination_chain_id: ChainId | None = None
    deposit_tx_hash: str
    fill_tx_hash: str | None = None


# ---------------------------------------------------------------------------
# Interfaces
# ---------------------------------------------------------------------------

class ChainClient(ABC):
    """Read-only chain access."""

    @abstractmethod
    async def get_balance(self, address: str, token: TokenSymbol, chain_id: ChainId) -> int:
        """Balance in base units."""


class BridgeQuoteClient(ABC):
    """Bridge aggregator: quotes, transaction construction, deposit tracking."""

    @abstractmethod
    async def get_quote(self, request: QuoteRequest) -> BridgeQuote: ...

    @abstractmethod
    async def build_transactions(
        self,
        quote: BridgeQuote,
        depositor: str,
        recipient: str,
    ) -> list[TransactionRequest]:
        """Transactions to sign in order (approval first when one is needed)."""

    @abstractmethod
    async def get_deposit_status(self, deposit_tx_hash: str, origin_chain_id: ChainId) -> DepositStatus: ...


class PriceFeed(ABC):
    @abstractmethod
    async def get_prices(self, tokens: list[TokenSymbol]) -> dict[TokenSymbol, float]:
        """USD prices; tokens without a price are omitted."""
