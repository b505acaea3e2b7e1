from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from payoutor.domain.allocation import TokenAllocation
from payoutor.domain.request import FxConversion, ProxyEnvelope
from payoutor.types import CallKind, Network, PayoutShape, Token


@dataclass(slots=True, frozen=True)
class PriceQuote:
    network: Network
    token: Token
    block: int
    price: float

    def as_dict(self) -> dict[str, Any]:
        return {
            "network": self.network.value,
            "token": self.token.value,
            "block": self.block,
            "price": self.price,
        }


@dataclass(slots=True, frozen=True)
class ChainCounters:
    """Next free proposal and spend indices, as read just before encoding.

    Both are predictions: any proposal or spend submitted by someone else
    before ours lands shifts the real index.
    """

    network: Network
    proposal_index: int
    spend_index: int

    def as_dict(self) -> dict[str, Any]:
        return {
            "network": self.network.value,
            "proposal_index": self.proposal_index,
            "spend_index": self.spend_index,
        }


@dataclass(slots=True, frozen=True)
class EncodedCall:
    payload_hex: str
    payload_hash: str | None = None

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"payload_hex": self.payload_hex}
        if self.payload_hash is not None:
            data["payload_hash"] = self.payload_hash
        return data


@dataclass(slots=True, frozen=True)
class NetworkCalls:
    network: Network
    spend: EncodedCall
    propose: EncodedCall
    vote: EncodedCall
    close: EncodedCall
    payout: EncodedCall
    proxy_propose: EncodedCall | None = None

    def as_dict(self) -> dict[str, Any]:
        calls = {
            CallKind.SPEND.value: self.spend.as_dict(),
            CallKind.PROPOSE.value: self.propose.as_dict(),
            CallKind.VOTE.value: self.vote.as_dict(),
            CallKind.CLOSE.value: self.close.as_dict(),
            CallKind.PAYOUT.value: self.payout.as_dict(),
        }
        if self.proxy_propose is not None:
            calls[CallKind.PROXY_PROPOSE.value] = self.proxy_propose.as_dict()
        return calls


@dataclass(slots=True, frozen=True)
class TokenPayout:
    """Everything produced for one token on its network."""

    allocation: TokenAllocation
    smallest_unit_amount: int
    quote: PriceQuote
    counters: ChainCounters
    calls: NetworkCalls

    @property
    def token(self) -> Token:
        return self.allocation.token

    @property
    def network(self) -> Network:
        return self.quote.network

    def as_dict(self) -> dict[str, Any]:
        return {
            **self.allocation.as_dict(),
            "smallest_unit_amount": str(self.smallest_unit_amount),
            "network": self.network.value,
            "quote": self.quote.as_dict(),
            "counters": self.counters.as_dict(),
            "calls": self.calls.as_dict(),
        }


@dataclass(slots=True, frozen=True)
class _PayoutBase:
    usd_amount: float
    recipient: str
    summary: str
    forum_reply: str
    warnings: tuple[str, ...] = ()
    proxy: ProxyEnvelope | None = None
    fx: FxConversion | None = None

    def _common_dict(self, shape: PayoutShape, legs: tuple[TokenPayout, ...]) -> dict[str, Any]:
        return {
            "kind": shape.value,
            "usd_amount": self.usd_amount,
            "recipient": self.recipient,
            "tokens": {leg.token.value: leg.as_dict() for leg in legs},
            "summary": self.summary,
            "forum_reply": self.forum_reply,
            "warnings": list(self.warnings),
            "proxy": self.proxy.as_dict() if self.proxy is not None else None,
            "fx": self.fx.as_dict() if self.fx is not None else None,
        }


@dataclass(slots=True, frozen=True)
class NativeDualTokenPayout(_PayoutBase):
    glmr: TokenPayout = field(kw_only=True)
    movr: TokenPayout = field(kw_only=True)

    @property
    def legs(self) -> tuple[TokenPayout, ...]:
        return (self.glmr, self.movr)

    def as_dict(self) -> dict[str, Any]:
        return self._common_dict(PayoutShape.NATIVE_DUAL_TOKEN, self.legs)


@dataclass(slots=True, frozen=True)
class StableSingleTokenPayout(_PayoutBase):
    usdc: TokenPayout = field(kw_only=True)

    @property
    def legs(self) -> tuple[TokenPayout, ...]:
        return (self.usdc,)

    def as_dict(self) -> dict[str, Any]:
        return self._common_dict(PayoutShape.STABLE_SINGLE_TOKEN, self.legs)


PayoutResult = NativeDualTokenPayout | StableSingleTokenPayout
