"""Normalization of free-text chain, token and amount mentions.

Every function here is pure: alias tables are module constants by default and
can be replaced per call, which is how the parser and tests inject their own.
"""

from __future__ import annotations

import re

from bridge_agent.chains import CHAIN_NAMES, ChainId, TokenSymbol
from bridge_agent.parsing.models import Confidence, ParsedAmount, ParsedChain, ParsedToken

CHAIN_ALIASES: dict[str, ChainId] = {
    "ethereum": ChainId.ETHEREUM,
    "eth": ChainId.ETHEREUM,
    "mainnet": ChainId.ETHEREUM,
    "ethereum mainnet": ChainId.ETHEREUM,
    "eth mainnet": ChainId.ETHEREUM,
    "l1": ChainId.ETHEREUM,
    "base": ChainId.BASE,
    "base mainnet": ChainId.BASE,
    "coinbase base": ChainId.BASE,
    "optimism": ChainId.OPTIMISM,
    "op": ChainId.OPTIMISM,
    "op mainnet": ChainId.OPTIMISM,
    "optimism mainnet": ChainId.OPTIMISM,
    "polygon": ChainId.POLYGON,
    "matic": ChainId.POLYGON,
    "polygon mainnet": ChainId.POLYGON,
    "polygon pos": ChainId.POLYGON,
    "arbitrum": ChainId.ARBITRUM,
    "arb": ChainId.ARBITRUM,
    "arbitrum one": ChainId.ARBITRUM,
    "arbitrum mainnet": ChainId.ARBITRUM,
}

TOKEN_ALIASES: dict[str, TokenSymbol] = {
    "eth": TokenSymbol.ETH,
    "ether": TokenSymbol.ETH,
    "ethereum": TokenSymbol.ETH,
    "usdc": TokenSymbol.USDC,
    "usd coin": TokenSymbol.USDC,
    "usd-c": TokenSymbol.USDC,
    "usdt": TokenSymbol.USDT,
    "tether": TokenSymbol.USDT,
    "usd-t": TokenSymbol.USDT,
    "weth": TokenSymbol.WETH,
    "wrapped eth": TokenSymbol.WETH,
    "wrapped ether": TokenSymbol.WETH,
    "wrapped ethereum": TokenSymbol.WETH,
    "matic": TokenSymbol.MATIC,
    "pol": TokenSymbol.MATIC,
    "polygon": TokenSymbol.MATIC,
}

# Shortest input considered for fuzzy matching
MIN_FUZZY_LENGTH = 4
MAX_CHAIN_DISTANCE = 2
SHORT_CHAIN_DISTANCE = 1

# Connective words that sit next to chain names but never name one
CHAIN_STOP_WORDS = frozenset({"a", "an", "to", "on", "my", "the", "for", "from", "and", "all", "into"})

_ALL_AMOUNT = re.compile(r"^(?:all|max|everything|entire|full)(?:\s+my)?$")
_NUMERIC_AMOUNT = re.compile(r"^(\d+\.?\d*|\.\d+)$")


def levenshtein(a: str, b: str) -> int:
    """Edit distance (insert / delete / substitute, unit cost)."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


def _contains_word(haystack: str, needle: str) -> bool:
    return re.search(rf"\b{re.escape(needle)}\b", haystack) is not None


# ---------------------------------------------------------------------------
# Chains
# ---------------------------------------------------------------------------

def _chain(raw: str, chain_id: ChainId, confidence: Confidence) -> ParsedChain:
    return ParsedChain(raw=raw, chain_id=chain_id, name=CHAIN_NAMES[chain_id], confidence=confidence)


def normalize_chain(
    text: str | None,
    aliases: dict[str, ChainId] | None = None,
) -> ParsedChain | None:
    """Resolve a chain mention: numeric id, exact alias, then fuzzy match."""
    if not text:
        return None
    aliases = CHAIN_ALIASES if aliases is None else aliases
    key = text.strip().lower()
    if not key:
        return None

    if key.isdigit():
        try:
            return _chain(text, ChainId(int(key)), Confidence.HIGH)
        except ValueError:
            return None

    if key in aliases:
        return _chain(text, aliases[key], Confidence.HIGH)

    return _fuzzy_chain(text, key, aliases)


def _fuzzy_chain(raw: str, key: str, aliases: dict[str, ChainId]) -> ParsedChain | None:
    for alias, chain_id in aliases.items():
        if _contains_word(key, alias):
            return _chain(raw, chain_id, Confidence.MEDIUM)
    if key in CHAIN_STOP_WORDS:
        return None
    if len(key) < MIN_FUZZY_LENGTH:
        # three-letter typos like "bse" get a single edit
        for alias, chain_id in aliases.items():
            distance = levenshtein(key, alias)
            if distance <= SHORT_CHAIN_DISTANCE and distance < len(key) / 2:
                return _chain(raw, chain_id, Confidence.MEDIUM)
        return None
    for alias, chain_id in aliases.items():
        if key in alias:
            return _chain(raw, chain_id, Confidence.MEDIUM)
    for alias, chain_id in aliases.items():
        if levenshtein(key, alias) <= MAX_CHAIN_DISTANCE:
            return _chain(raw, chain_id, Confidence.MEDIUM)
    return None


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

def normalize_token(
    text: str | None,
    aliases: dict[str, TokenSymbol] | None = None,
) -> ParsedToken | None:
    """Resolve a token mention: exact alias, symbol, then guarded fuzzy match.

    Fuzzy matching is skipped for inputs shorter than four characters so that
    unrelated tickers such as ``btc`` never resolve to a supported token.
    """
    if not text:
        return None
    aliases = TOKEN_ALIASES if aliases is None else aliases
    key = text.strip().lower()
    if not key:
        return None

    if key in aliases:
        return ParsedToken(raw=text, symbol=aliases[key], confidence=Confidence.HIGH)
    try:
        return ParsedToken(raw=text, symbol=TokenSymbol(key.upper()), confidence=Confidence.HIGH)
    except ValueError:
        pass

    if len(key) < MIN_FUZZY_LENGTH:
        return None

    for alias, symbol in aliases.items():
        if len(alias) >= MIN_FUZZY_LENGTH and (key in alias or alias in key):
            return ParsedToken(raw=text, symbol=symbol, confidence=Confidence.MEDIUM)

    for alias, symbol in aliases.items():
        max_distance = 1 if len(alias) <= 4 else 2
        distance = levenshtein(key, alias)
        if distance <= max_distance and distance < len(key) / 2:
            return ParsedToken(raw=text, symbol=symbol, confidence=Confidence.MEDIUM)
    return None


# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------

def normalize_amount(text: str | None) -> ParsedAmount | None:
    """Parse ``0.5`` / ``.5`` / ``all`` style amounts. Non-positive values are rejected."""
    if not text:
        return None
    key = text.strip().lower()
    if _ALL_AMOUNT.match(key):
        return ParsedAmount(raw=text, value=None, is_all=True)
    if not _NUMERIC_AMOUNT.match(key):
        return None
    value = float(key)
    if value <= 0:
        return None
    return ParsedAmount(raw=text, value=value)
