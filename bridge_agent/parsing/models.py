"""Parsed request shapes produced by the intent parser."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from bridge_agent.chains import ChainId, TokenSymbol


class Intent(str, Enum):
    BRIDGE = "bridge"
    SWAP_BRIDGE = "swap_bridge"
    BALANCE = "balance"
    HELP = "help"
    CANCEL = "cancel"
    CONFIRM = "confirm"
    REJECT = "reject"
    UNKNOWN = "unknown"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ParseErrorCode(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    EMPTY_MESSAGE = "EMPTY_MESSAGE"


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

class ParsedAmount(BaseModel):
    raw: str
    value: float | None = None
    is_all: bool = False


class ParsedChain(BaseModel):
    raw: str
    chain_id: ChainId
    name: str
    confidence: Confidence


class ParsedToken(BaseModel):
    raw: str
    symbol: TokenSymbol
    confidence: Confidence


# ---------------------------------------------------------------------------
# Requests (tagged by ``intent``)
# ---------------------------------------------------------------------------

class ParsedBridgeRequest(BaseModel):
    intent: Literal[Intent.BRIDGE] = Intent.BRIDGE
    amount: ParsedAmount | None = None
    token: ParsedToken | None = None
    from_chain: ParsedChain | None = None
    to_chain: ParsedChain | None = None
    missing_fields: list[str] = Field(default_factory=list)
    confidence: Confidence = Confidence.LOW


class ParsedSwapBridgeRequest(BaseModel):
    intent: Literal[Intent.SWAP_BRIDGE] = Intent.SWAP_BRIDGE
    amount: ParsedAmount | None = None
    input_token: ParsedToken | None = None
    output_token: ParsedToken | None = None
    from_chain: ParsedChain | None = None
    to_chain: ParsedChain | None = None
    missing_fields: list[str] = Field(default_factory=list)
    confidence: Confidence = Confidence.LOW


class ParsedBalanceRequest(BaseModel):
    intent: Literal[Intent.BALANCE] = Intent.BALANCE
    token: ParsedToken | None = None
    chain: ParsedChain | None = None
    confidence: Confidence = Confidence.HIGH


class ParsedHelpRequest(BaseModel):
    intent: Literal[Intent.HELP] = Intent.HELP
    topic: str | None = None
    confidence: Confidence = Confidence.HIGH


class ParsedCancelRequest(BaseModel):
    intent: Literal[Intent.CANCEL] = Intent.CANCEL
    confidence: Confidence = Confidence.HIGH


class ParsedConfirmRequest(BaseModel):
    intent: Literal[Intent.CONFIRM] = Intent.CONFIRM
    confidence: Confidence = Confidence.HIGH


class ParsedRejectRequest(BaseModel):
    intent: Literal[Intent.REJECT] = Intent.REJECT
    confidence: Confidence = Confidence.HIGH


class ParsedUnknownRequest(BaseModel):
    intent: Literal[Intent.UNKNOWN] = Intent.UNKNOWN
    raw_message: str
    possible_intents: list[Intent] = Field(default_factory=list)
    confidence: Confidence = Confidence.LOW


ParsedRequest = Annotated[
    Union[
        ParsedBridgeRequest,
        ParsedSwapBridgeRequest,
        ParsedBalanceRequest,
        ParsedHelpRequest,
        ParsedCancelRequest,
        ParsedConfirmRequest,
        ParsedRejectRequest,
        ParsedUnknownRequest,
    ],
    Field(discriminator="intent"),
]


# ---------------------------------------------------------------------------
# Parse outcome
# ---------------------------------------------------------------------------

class ParseSuccess(BaseModel):
    success: Literal[True] = True
    parsed: ParsedRequest
    needs_clarification: bool = False
    clarification_question: str | None = None


class ParseFailure(BaseModel):
    success: Literal[False] = False
    error_code: ParseErrorCode
    error_message: str


ParseResult = Union[ParseSuccess, ParseFailure]
