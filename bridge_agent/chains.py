"""Chain and token registry — supported networks, token metadata, unit math."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from enum import Enum, IntEnum

NATIVE_TOKEN_ADDRESS = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"


class ChainId(IntEnum):
    ETHEREUM = 1
    OPTIMISM = 10
    POLYGON = 137
    BASE = 8453
    ARBITRUM = 42161


class TokenSymbol(str, Enum):
    ETH = "ETH"
    USDC = "USDC"
    USDT = "USDT"
    WETH = "WETH"
    MATIC = "MATIC"


# ---------------------------------------------------------------------------
# Chains
# ---------------------------------------------------------------------------

CHAIN_NAMES: dict[ChainId, str] = {
    ChainId.ETHEREUM: "Ethereum",
    ChainId.BASE: "Base",
    ChainId.OPTIMISM: "Optimism",
    ChainId.POLYGON: "Polygon",
    ChainId.ARBITRUM: "Arbitrum",
}

NATIVE_TOKENS: dict[ChainId, TokenSymbol] = {
    ChainId.ETHEREUM: TokenSymbol.ETH,
    ChainId.BASE: TokenSymbol.ETH,
    ChainId.OPTIMISM: TokenSymbol.ETH,
    ChainId.POLYGON: TokenSymbol.MATIC,
    ChainId.ARBITRUM: TokenSymbol.ETH,
}

RPC_URLS: dict[ChainId, str] = {
    ChainId.ETHEREUM: "https://eth.llamarpc.com",
    ChainId.BASE: "https://mainnet.base.org",
    ChainId.OPTIMISM: "https://mainnet.optimism.io",
    ChainId.POLYGON: "https://polygon-rpc.com",
    ChainId.ARBITRUM: "https://arb1.arbitrum.io/rpc",
}

EXPLORER_URLS: dict[ChainId, str] = {
    ChainId.ETHEREUM: "https://etherscan.io",
    ChainId.BASE: "https://basescan.org",
    ChainId.OPTIMISM: "https://optimistic.etherscan.io",
    ChainId.POLYGON: "https://polygonscan.com",
    ChainId.ARBITRUM: "https://arbiscan.io",
}


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

TOKEN_DECIMALS: dict[TokenSymbol, int] = {
    TokenSymbol.ETH: 18,
    TokenSymbol.USDC: 6,
    TokenSymbol.USDT: 6,
    TokenSymbol.WETH: 18,
    TokenSymbol.MATIC: 18,
}

TOKEN_ADDRESSES: dict[TokenSymbol, dict[ChainId, str]] = {
    # ETH is not native on Polygon
    TokenSymbol.ETH: {
        ChainId.ETHEREUM: NATIVE_TOKEN_ADDRESS,
        ChainId.BASE: NATIVE_TOKEN_ADDRESS,
        ChainId.OPTIMISM: NATIVE_TOKEN_ADDRESS,
        ChainId.ARBITRUM: NATIVE_TOKEN_ADDRESS,
    },
    TokenSymbol.USDC: {
        ChainId.ETHEREUM: "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        ChainId.BASE: "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        ChainId.OPTIMISM: "0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85",
        ChainId.POLYGON: "0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359",
        ChainId.ARBITRUM: "0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
    },
    TokenSymbol.USDT: {
        ChainId.ETHEREUM: "0xdAC17F958D2ee523a2206206994597C13D831ec7",
        ChainId.BASE: "0xfde4C96c8593536E31F229EA8f37b2ADa2699bb2",
        ChainId.OPTIMISM: "0x94b008aA00579c1307B0EF2c499aD98a8ce58e58",
        ChainId.POLYGON: "0xc2132D05D31c914a87C6611C10748AEb04B58e8F",
        ChainId.ARBITRUM: "0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9",
    },
    TokenSymbol.WETH: {
        ChainId.ETHEREUM: "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        ChainId.BASE: "0x4200000000000000000000000000000000000006",
        ChainId.OPTIMISM: "0x4200000000000000000000000000000000000006",
        ChainId.POLYGON: "0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619",
        ChainId.ARBITRUM: "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",
    },
    TokenSymbol.MATIC: {
        ChainId.ETHEREUM: "0x7D1AfA7B718fb893dB30A3aBc0Cfc608AaCfeBB0",
        ChainId.POLYGON: NATIVE_TOKEN_ADDRESS,
    },
}


def token_address(symbol: TokenSymbol, chain_id: ChainId) -> str | None:
    return TOKEN_ADDRESSES[symbol].get(chain_id)


def is_token_available(symbol: TokenSymbol, chain_id: ChainId) -> bool:
    return token_address(symbol, chain_id) is not None


def is_native(symbol: TokenSymbol, chain_id: ChainId) -> bool:
    return token_address(symbol, chain_id) == NATIVE_TOKEN_ADDRESS


def tokens_on_chain(chain_id: ChainId) -> list[TokenSymbol]:
    return [symbol for symbol in TokenSymbol if is_token_available(symbol, chain_id)]


def explorer_tx_url(chain_id: ChainId, tx_hash: str) -> str:
    return f"{EXPLORER_URLS[chain_id]}/tx/{tx_hash}"


# ---------------------------------------------------------------------------
# Unit conversion
# ---------------------------------------------------------------------------

def to_raw_units(amount: str | float | Decimal, decimals: int) -> int:
    """Convert a human-readable amount into integer base units.

    Fractions beyond ``decimals`` places are truncated. Raises ``ValueError``
    for anything that is not a finite number.
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {amount!r}") from exc
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    return int(value.scaleb(decimals))


def from_raw_units(raw: int, decimals: int) -> str:
    return format(Decimal(raw).scaleb(-decimals).normalize(), "f")
