from bridge_agent.parsing.models import (
    Confidence,
    Intent,
    ParseFailure,
    ParseResult,
    ParseSuccess,
    ParsedRequest,
)
from bridge_agent.parsing.normalizer import normalize_amount, normalize_chain, normalize_token
from bridge_agent.parsing.parser import IntentParser, parse_user_message

__all__ = [
    "Confidence",
    "Intent",
    "IntentParser",
    "ParseFailure",
    "ParseResult",
    "ParseSuccess",
    "ParsedRequest",
    "normalize_amount",
    "normalize_chain",
    "normalize_token",
    "parse_user_message",
]
