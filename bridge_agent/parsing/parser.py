"""Intent parser — ordered regex rules, entity extraction, clarification prompts.

Intent detection walks ``INTENT_RULES`` top to bottom and stops at the first
rule that matches, so control words (cancel / confirm / reject) always win over
domain intents. Chain extraction walks ``ROUTE_MATCHERS`` the same way, each
strategy filling in what earlier ones left empty. A matcher flagged
``replaces`` (the arrow form, which only fires when both sides resolve)
overwrites the whole route instead.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

from bridge_agent.chains import ChainId, TokenSymbol
from bridge_agent.parsing.models import (
    Confidence,
    Intent,
    ParsedAmount,
    ParsedBalanceRequest,
    ParsedBridgeRequest,
    ParsedCancelRequest,
    ParsedChain,
    ParsedConfirmRequest,
    ParsedHelpRequest,
    ParsedRejectRequest,
    ParsedToken,
    ParsedSwapBridgeRequest,
    ParsedUnknownRequest,
    ParseErrorCode,
    ParseFailure,
    ParseResult,
    ParseSuccess,
)
from bridge_agent.parsing.normalizer import normalize_amount, normalize_chain, normalize_token


def _compile(*patterns: str, flags: int = re.IGNORECASE) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, flags) for p in patterns)


_CHAIN_NAMES = "ethereum|base|optimism|polygon|arbitrum|mainnet|op|arb"
_CHAIN_WORDS = rf"(?:{_CHAIN_NAMES})"

# ---------------------------------------------------------------------------
# Intent patterns
# ---------------------------------------------------------------------------

BRIDGE_PATTERNS = _compile(
    r"\b(?:bridge|move|send|transfer)\b",
    rf"\bto\s+{_CHAIN_WORDS}\b",
    rf"\bfrom\s+{_CHAIN_WORDS}\b",
    r"\b(?:ethereum|base|optimism|polygon|arbitrum)\s*(?:->|to|→)\s*(?:ethereum|base|optimism|polygon|arbitrum)\b",
)

SWAP_BRIDGE_PATTERNS = _compile(
    r"\bswap\b.*\bfor\b",
    r"\bconvert\b.*\bto\b",
    r"\bexchange\b.*\bfor\b",
    r"\b(?:eth|usdc|usdt|weth|matic)\b.*\bfor\b.*\b(?:eth|usdc|usdt|weth|matic)\b",
)

BALANCE_PATTERNS = _compile(
    r"\b(?:balance|balances)\b",
    r"\bhow\s+much\b",
    r"\bwhat(?:'s|\s+is)\s+my\b",
    r"\bcheck\s+(?:my\s+)?(?:balance|wallet)\b",
    r"\bdo\s+i\s+have\b",
    r"\bshow\s+(?:me\s+)?(?:my\s+)?balance\b",
)

HELP_PATTERNS = _compile(
    r"\bhelp\b",
    r"\bhow\s+do\s+(?:i|you)\b",
    r"\bwhat\s+can\s+(?:i|you)\b",
    r"\bcommands?\b",
    r"\binstructions?\b",
    r"\bguide\b",
)

CANCEL_PATTERNS = _compile(
    r"\bcancel\b",
    r"\bstop\b",
    r"\bnevermind\b",
    r"\bnever\s*mind\b",
    r"\bforget\s+it\b",
    r"\babort\b",
    r"\bdon'?t\b.*\bdo\s+(?:it|that|this)\b",
)

CONFIRM_PATTERNS = (
    *_compile(
        r"^(?:yes|yep|yeah|yup|y|ok|okay|sure|confirm|approved?|go\s*ahead|do\s*it|proceed)$",
        r"\b(?:confirm|approve|accept)\b",
    ),
    *_compile(r"^(?:✓|✔|👍|👌)$", flags=0),
)

REJECT_PATTERNS = (
    *_compile(
        r"^(?:no|nope|nah|n|reject|decline|deny)$",
        r"\b(?:reject|decline|deny|refuse)\b",
    ),
    *_compile(r"^(?:✗|✘|👎|❌)$", flags=0),
)

_DIRECT_HELP = _compile(r"\bhow\s+do\s+(?:i|you)\b", r"\bwhat\s+can\s+(?:i|you)\b")
_HELP_WORD = re.compile(r"\bhelp\b", re.IGNORECASE)

# ---------------------------------------------------------------------------
# Entity patterns
# ---------------------------------------------------------------------------

AMOUNT_PATTERN = re.compile(r"(?<![\w.])(-?\d+\.?\d*|-?\.\d+|(?:all|max|everything)\b)", re.IGNORECASE)
TOKEN_PATTERN = re.compile(r"\b(eth|ether|ethereum|usdc|usdt|tether|weth|matic|polygon)\b", re.IGNORECASE)
FROM_TO_PATTERN = re.compile(r"from\s+(\w+(?:\s+\w+)?)\s+to\s+(\w+(?:\s+\w+)?)", re.IGNORECASE)
TO_CHAIN_PATTERN = re.compile(rf"to\s+({_CHAIN_NAMES})", re.IGNORECASE)
ON_CHAIN_PATTERN = re.compile(rf"on\s+({_CHAIN_NAMES})", re.IGNORECASE)
ON_ANY_PATTERN = re.compile(r"on\s+(\w+)", re.IGNORECASE)
ARROW_PATTERN = re.compile(r"(\w+)\s*(?:->|→|to)\s*(\w+)", re.IGNORECASE)
FOR_TOKEN_PATTERN = re.compile(r"for\s+(\w+)", re.IGNORECASE)
_CHAIN_PREPOSITION = re.compile(r"(?:\b(?:on|from|to|onto|into)|->|→)\s*$", re.IGNORECASE)
_TOKEN_SYMBOLS = frozenset(symbol.value for symbol in TokenSymbol)
_MY_WORD = re.compile(r"\bmy\b", re.IGNORECASE)

_UNKNOWN_TOKEN_HINT = re.compile(r"\b(?:eth|usdc|usdt|matic|token)\b", re.IGNORECASE)
_UNKNOWN_CHAIN_HINT = re.compile(r"\b(?:chain|network|ethereum|base|optimism|polygon|arbitrum)\b", re.IGNORECASE)
_UNKNOWN_NUMBER_HINT = re.compile(r"\b\d+\.?\d*\b")

HELP_TOPICS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"bridge", re.IGNORECASE), "bridge"),
    (re.compile(r"swap", re.IGNORECASE), "swap"),
    (re.compile(r"balance", re.IGNORECASE), "balance"),
    (re.compile(r"fee|cost", re.IGNORECASE), "fees"),
    (re.compile(r"chain|network", re.IGNORECASE), "chains"),
    (re.compile(r"token", re.IGNORECASE), "tokens"),
)

BRIDGE_FIELDS = ("amount", "token", "from_chain", "to_chain")
SWAP_BRIDGE_FIELDS = ("amount", "input_token", "output_token", "from_chain", "to_chain")


def _any_match(patterns: tuple[re.Pattern[str], ...], text: str) -> bool:
    return any(p.search(text) for p in patterns)


# ---------------------------------------------------------------------------
# Strategy types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IntentRule:
    """Patterns for one intent, plus an optional extra acceptance check."""

    intent: Intent
    patterns: tuple[re.Pattern[str], ...]
    accept: Callable[[str], bool] | None = None

    def matches(self, text: str) -> bool:
        if not _any_match(self.patterns, text):
            return False
        return self.accept is None or self.accept(text)


Route = tuple[ParsedChain | None, ParsedChain | None]


@dataclass(frozen=True)
class RouteMatcher:
    """A chain-extraction strategy: one pattern and how to read its groups."""

    name: str
    pattern: re.Pattern[str]
    extract: Callable[[re.Match[str], Callable[[str], ParsedChain | None]], Route | None]
    replaces: bool = False

    def apply(self, text: str, resolve: Callable[[str], ParsedChain | None]) -> Route | None:
        match = self.pattern.search(text)
        if match is None:
            return None
        return self.extract(match, resolve)


def _is_help(text: str) -> bool:
    # "how do I bridge" is a question about bridging, not a bridge request
    if _any_match(_DIRECT_HELP, text):
        return True
    return not _any_match(BRIDGE_PATTERNS, text) or _HELP_WORD.search(text) is not None


def _from_to(match: re.Match[str], resolve: Callable[[str], ParsedChain | None]) -> Route:
    return resolve(match.group(1)), resolve(match.group(2))


def _arrow(match: re.Match[str], resolve: Callable[[str], ParsedChain | None]) -> Route | None:
    source, destination = resolve(match.group(1)), resolve(match.group(2))
    if source is None or destination is None:
        return None
    return source, destination


def _destination_only(match: re.Match[str], resolve: Callable[[str], ParsedChain | None]) -> Route:
    return None, resolve(match.group(1))


INTENT_RULES: tuple[IntentRule, ...] = (
    IntentRule(Intent.CANCEL, CANCEL_PATTERNS),
    IntentRule(Intent.CONFIRM, CONFIRM_PATTERNS),
    IntentRule(Intent.REJECT, REJECT_PATTERNS),
    IntentRule(Intent.HELP, HELP_PATTERNS, accept=_is_help),
    IntentRule(Intent.BALANCE, BALANCE_PATTERNS),
    IntentRule(Intent.SWAP_BRIDGE, SWAP_BRIDGE_PATTERNS),
    IntentRule(Intent.BRIDGE, BRIDGE_PATTERNS),
)

ROUTE_MATCHERS: tuple[RouteMatcher, ...] = (
    RouteMatcher("from_to", FROM_TO_PATTERN, _from_to),
    RouteMatcher("arrow", ARROW_PATTERN, _arrow, replaces=True),
    RouteMatcher("destination", TO_CHAIN_PATTERN, _destination_only),
)


def confidence_for(total_fields: int, missing: int) -> Confidence:
    ratio = (total_fields - missing) / total_fields
    if ratio >= 0.75:
        return Confidence.HIGH
    if ratio >= 0.5:
        return Confidence.MEDIUM
    return Confidence.LOW


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

class IntentParser:
    """Turns a raw chat message into a ``ParseResult``.

    Alias tables are injectable; the defaults come from ``normalizer``.
    """

    def __init__(
        self,
        chain_aliases: dict[str, ChainId] | None = None,
        token_aliases: dict[str, TokenSymbol] | None = None,
        intent_rules: tuple[IntentRule, ...] = INTENT_RULES,
        route_matchers: tuple[RouteMatcher, ...] = ROUTE_MATCHERS,
    ) -> None:
        self._chain_aliases = chain_aliases
        self._token_aliases = token_aliases
        self._intent_rules = intent_rules
        self._route_matchers = route_matchers

    # -- public ---------------------------------------------------------------

    def parse(self, message: object) -> ParseResult:
        if not isinstance(message, str) or not message:
            return ParseFailure(
                error_code=ParseErrorCode.INVALID_INPUT,
                error_message="Message must be a non-empty string.",
            )
        text = message.strip()
        if not text:
            return ParseFailure(
                error_code=ParseErrorCode.EMPTY_MESSAGE,
                error_message="Message is empty.",
            )

        intent = self.detect_intent(text)
        if intent is Intent.BRIDGE:
            return self._parse_bridge(text)
        if intent is Intent.SWAP_BRIDGE:
            return self._parse_swap_bridge(text)
        if intent is Intent.BALANCE:
            return self._parse_balance(text)
        if intent is Intent.HELP:
            return ParseSuccess(parsed=ParsedHelpRequest(topic=self._help_topic(text)))
        if intent is Intent.CANCEL:
            return ParseSuccess(parsed=ParsedCancelRequest())
        if intent is Intent.CONFIRM:
            return ParseSuccess(parsed=ParsedConfirmRequest())
        if intent is Intent.REJECT:
            return ParseSuccess(parsed=ParsedRejectRequest())
        return self._parse_unknown(text)

    def detect_intent(self, text: str) -> Intent:
        for rule in self._intent_rules:
            if rule.matches(text):
                return rule.intent
        return Intent.UNKNOWN

    # -- entity helpers -------------------------------------------------------

    def _chain(self, text: str) -> ParsedChain | None:
        return normalize_chain(text, self._chain_aliases)

    def _token(self, text: str) -> ParsedToken | None:
        return normalize_token(text, self._token_aliases)

    def _first_amount(self, text: str) -> ParsedAmount | None:
        match = AMOUNT_PATTERN.search(text)
        return normalize_amount(match.group(1)) if match else None

    def _route(self, text: str) -> Route:
        from_chain: ParsedChain | None = None
        to_chain: ParsedChain | None = None
        for matcher in self._route_matchers:
            if from_chain is not None and to_chain is not None:
                break
            found = matcher.apply(text, self._chain)
            if found is None:
                continue
            if matcher.replaces:
                from_chain, to_chain = found
                continue
            from_chain = from_chain or found[0]
            to_chain = to_chain or found[1]
        return from_chain, to_chain

    def _bridge_entities(self, text: str) -> dict:
        amount = self._first_amount(text)
        token_match = TOKEN_PATTERN.search(text)
        token = self._token(token_match.group(1)) if token_match else None
        from_chain, to_chain = self._route(text)

        # "move my USDC to Optimism" means the whole balance
        if amount is None and from_chain is None and to_chain is not None and _MY_WORD.search(text):
            amount = ParsedAmount(raw="all", value=None, is_all=True)

        return {"amount": amount, "token": token, "from_chain": from_chain, "to_chain": to_chain}

    # -- intent parsers -------------------------------------------------------

    def _parse_bridge(self, text: str) -> ParseSuccess:
        entities = self._bridge_entities(text)
        missing = [name for name in BRIDGE_FIELDS if entities[name] is None]
        parsed = ParsedBridgeRequest(
            **entities,
            missing_fields=missing,
            confidence=confidence_for(len(BRIDGE_FIELDS), len(missing)),
        )
        return ParseSuccess(
            parsed=parsed,
            needs_clarification=bool(missing),
            clarification_question=bridge_clarification(parsed) if missing else None,
        )

    def _names_chain(self, text: str, match: re.Match[str]) -> bool:
        # "on Ethereum" / "to polygon" name a network, "to ETH" still names a token
        if match.group(1).upper() in _TOKEN_SYMBOLS:
            return False
        return _CHAIN_PREPOSITION.search(text[:match.start()]) is not None

    def _swap_tokens(self, text: str) -> tuple[ParsedToken | None, ParsedToken | None]:
        input_token: ParsedToken | None = None
        output_token: ParsedToken | None = None
        for match in TOKEN_PATTERN.finditer(text):
            if self._names_chain(text, match):
                continue
            token = self._token(match.group(1))
            if token is None:
                continue
            if input_token is None:
                input_token = token
            elif token.symbol is not input_token.symbol:
                output_token = token
                break

        if output_token is None:
            for_match = FOR_TOKEN_PATTERN.search(text)
            candidate = self._token(for_match.group(1)) if for_match else None
            if candidate is not None and (input_token is None or candidate.symbol is not input_token.symbol):
                output_token = candidate
        return input_token, output_token

    def _parse_swap_bridge(self, text: str) -> ParseSuccess:
        base = self._bridge_entities(text)
        input_token, output_token = self._swap_tokens(text)

        from_chain, to_chain = base["from_chain"], base["to_chain"]
        on_chains = [m.group(1) for m in ON_CHAIN_PATTERN.finditer(text)]
        if len(on_chains) >= 2 and from_chain is None and to_chain is None:
            from_chain, to_chain = self._chain(on_chains[0]), self._chain(on_chains[1])

        entities = {
            "amount": base["amount"],
            "input_token": input_token,
            "output_token": output_token,
            "from_chain": from_chain,
            "to_chain": to_chain,
        }
        missing = [name for name in SWAP_BRIDGE_FIELDS if entities[name] is None]
        parsed = ParsedSwapBridgeRequest(
            **entities,
            missing_fields=missing,
            confidence=confidence_for(len(SWAP_BRIDGE_FIELDS), len(missing)),
        )
        return ParseSuccess(
            parsed=parsed,
            needs_clarification=bool(missing),
            clarification_question=swap_bridge_clarification(parsed) if missing else None,
        )

    def _parse_balance(self, text: str) -> ParseSuccess:
        token_match = TOKEN_PATTERN.search(text)
        chain_match = ON_CHAIN_PATTERN.search(text) or ON_ANY_PATTERN.search(text)
        return ParseSuccess(parsed=ParsedBalanceRequest(
            token=self._token(token_match.group(1)) if token_match else None,
            chain=self._chain(chain_match.group(1)) if chain_match else None,
        ))

    @staticmethod
    def _help_topic(text: str) -> str | None:
        for pattern, topic in HELP_TOPICS:
            if pattern.search(text):
                return topic
        return None

    @staticmethod
    def _parse_unknown(text: str) -> ParseSuccess:
        hinted: list[Intent] = []
        if _UNKNOWN_TOKEN_HINT.search(text):
            hinted += [Intent.BRIDGE, Intent.BALANCE]
        if _UNKNOWN_CHAIN_HINT.search(text):
            hinted.append(Intent.BRIDGE)
        if _UNKNOWN_NUMBER_HINT.search(text):
            hinted.append(Intent.BRIDGE)
        hinted = list(dict.fromkeys(hinted))

        question = unknown_clarification(hinted)
        possible = hinted or [Intent.BRIDGE, Intent.BALANCE, Intent.HELP]
        return ParseSuccess(
            parsed=ParsedUnknownRequest(raw_message=text, possible_intents=possible),
            needs_clarification=True,
            clarification_question=question,
        )


# ---------------------------------------------------------------------------
# Clarification questions
# ---------------------------------------------------------------------------

def bridge_clarification(parsed: ParsedBridgeRequest) -> str:
    missing = set(parsed.missing_fields)
    parts: list[str] = []

    if {"amount", "token"} <= missing:
        parts.append("How much of which token would you like to bridge?")
    elif "amount" in missing:
        symbol = parsed.token.symbol.value if parsed.token else "tokens"
        parts.append(f"How much {symbol} would you like to bridge?")
    elif "token" in missing:
        parts.append("Which token would you like to bridge?")

    if {"from_chain", "to_chain"} <= missing:
        parts.append("Which chains should I bridge from and to?")
    elif "from_chain" in missing:
        destination = parsed.to_chain.name if parsed.to_chain else "the destination"
        parts.append(f"Which chain are you bridging from to {destination}?")
    elif "to_chain" in missing:
        source = parsed.from_chain.name if parsed.from_chain else "the source"
        parts.append(f"Which chain would you like to bridge to from {source}?")

    return " ".join(parts) or "Could you provide more details about your bridge request?"


def swap_bridge_clarification(parsed: ParsedSwapBridgeRequest) -> str:
    missing = set(parsed.missing_fields)
    parts: list[str] = []

    if "amount" in missing:
        symbol = parsed.input_token.symbol.value if parsed.input_token else "tokens"
        parts.append(f"How much {symbol} would you like to swap?")

    if {"input_token", "output_token"} <= missing:
        parts.append("Which token would you like to swap from and to?")
    elif "output_token" in missing:
        parts.append(f"Which token would you like to receive for your {parsed.input_token.symbol.value}?")
    elif "input_token" in missing:
        parts.append("Which token would you like to swap?")

    if {"from_chain", "to_chain"} <= missing:
        parts.append("Which chains should I use for this swap?")
    elif "to_chain" in missing:
        parts.append("Which chain should receive the swapped tokens?")
    elif "from_chain" in missing:
        parts.append("Which chain are you swapping from?")

    return " ".join(parts) or "Could you provide more details about your swap request?"


def unknown_clarification(possible_intents: list[Intent]) -> str:
    if not possible_intents:
        return (
            "I'm not sure what you'd like to do. "
            "Would you like to bridge tokens, check your balance, or get help?"
        )
    if Intent.BRIDGE in possible_intents and Intent.BALANCE in possible_intents:
        return "Would you like to bridge tokens or check your balance?"
    if Intent.BRIDGE in possible_intents:
        return (
            "It looks like you want to bridge tokens. Could you specify the amount, token, "
            'and chains? For example: "bridge 0.1 ETH from Base to Ethereum"'
        )
    return (
        "I'm not sure what you'd like to do. Try something like:\n"
        '• "bridge 0.1 ETH from Base to Ethereum"\n'
        "• \"what's my balance?\"\n"
        '• "help"'
    )


_default_parser = IntentParser()


def parse_user_message(message: object) -> ParseResult:
    """Parse with the default alias tables."""
    return _default_parser.parse(message)
