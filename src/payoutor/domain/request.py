from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from payoutor.chain.addresses import normalize_address
from payoutor.errors import ValidationError
from payoutor.types import Network, PayoutShape, Token

RATIO_SUM_TOLERANCE = 0.01

NATIVE_TOKENS: tuple[Token, ...] = (Token.GLMR, Token.MOVR)
STABLE_TOKENS: tuple[Token, ...] = (Token.USDC,)


@dataclass(slots=True, frozen=True)
class CouncilConfig:
    threshold: int
    length_bound: int

    def ensure_valid(self) -> None:
        if isinstance(self.threshold, bool) or self.threshold < 1:
            raise ValidationError("council threshold must be a positive integer")
        if isinstance(self.length_bound, bool) or self.length_bound < 1:
            raise ValidationError("council length bound must be a positive integer")


@dataclass(slots=True, frozen=True)
class ProxyEnvelope:
    """Routes the council proposal through ``proxy.proxy`` on behalf of ``real``."""

    real: str
    force_proxy_type: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {"real": self.real, "force_proxy_type": self.force_proxy_type}


@dataclass(slots=True, frozen=True)
class FxConversion:
    input_amount: float
    input_currency: str
    rate: float
    as_of: str | None = None
    source: str | None = None

    @property
    def usd_amount(self) -> float:
        return self.input_amount * self.rate

    def as_dict(self) -> dict[str, Any]:
        return {
            "input_amount": self.input_amount,
            "input_currency": self.input_currency,
            "rate": self.rate,
            "as_of": self.as_of,
            "source": self.source,
        }


@dataclass(slots=True, frozen=True)
class PayoutRequest:
    usd_amount: float
    recipient: str
    ratios: Mapping[Token, float]
    council: CouncilConfig
    endpoints: Mapping[Network, str] = field(default_factory=dict)
    proxy: ProxyEnvelope | None = None
    fx: FxConversion | None = None

    @property
    def shape(self) -> PayoutShape:
        if set(self.ratios) <= set(STABLE_TOKENS):
            return PayoutShape.STABLE_SINGLE_TOKEN
        return PayoutShape.NATIVE_DUAL_TOKEN

    @property
    def tokens(self) -> tuple[Token, ...]:
        order = STABLE_TOKENS if self.shape == PayoutShape.STABLE_SINGLE_TOKEN else NATIVE_TOKENS
        return tuple(token for token in order if token in self.ratios)

    def networks(self, network_of: Mapping[Token, Network]) -> tuple[Network, ...]:
        seen: list[Network] = []
        for token in self.tokens:
            network = network_of[token]
            if network not in seen:
                seen.append(network)
        return tuple(seen)


def _validate_ratios(ratios: Mapping[Token, float]) -> None:
    if not ratios:
        raise ValidationError("at least one token ratio is required")

    tokens = set(ratios)
    if tokens == set(STABLE_TOKENS):
        if not math.isclose(float(ratios[Token.USDC]), 1.0):
            raise ValidationError("USDC payouts use a fixed ratio of 1")
        return

    if tokens != set(NATIVE_TOKENS):
        raise ValidationError("ratios must cover exactly GLMR and MOVR, or USDC alone")

    for token, ratio in ratios.items():
        if isinstance(ratio, bool) or not math.isfinite(ratio) or not 0 <= ratio <= 1:
            raise ValidationError(f"{token.value} ratio must be between 0 and 1")

    if abs(sum(ratios.values()) - 1.0) > RATIO_SUM_TOLERANCE:
        raise ValidationError("GLMR and MOVR ratios must sum to 100%")


def build_payout_request(
    *,
    usd_amount: Any,
    recipient: Any,
    ratios: Mapping[Token, float],
    council: CouncilConfig,
    endpoints: Mapping[Network, str],
    proxy_address: str | None = None,
    fx: FxConversion | None = None,
) -> PayoutRequest:
    """Validate raw request fields and return a normalized ``PayoutRequest``.

    Raises ``ValidationError`` on the first offending field. Nothing here
    touches the network.
    """
    if usd_amount is None or recipient is None or not str(recipient).strip():
        raise ValidationError("Missing required fields")

    if isinstance(usd_amount, bool):
        raise ValidationError("usd_amount must be a number")
    try:
        amount = float(usd_amount)
    except (TypeError, ValueError) as exc:
        raise ValidationError("usd_amount must be a number") from exc
    if not math.isfinite(amount) or amount <= 0:
        raise ValidationError("usd_amount must be greater than zero")

    try:
        normalized_recipient = normalize_address(str(recipient), field_name="recipient")
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    _validate_ratios(ratios)
    council.ensure_valid()

    for network, endpoint in endpoints.items():
        if not endpoint.strip():
            raise ValidationError(f"{network.value} endpoint is required")

    proxy: ProxyEnvelope | None = None
    if proxy_address is not None and proxy_address.strip():
        try:
            proxy = ProxyEnvelope(real=normalize_address(proxy_address, field_name="proxy_address"))
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

    if fx is not None and (not math.isfinite(fx.rate) or fx.rate <= 0):
        raise ValidationError("fx rate must be greater than zero")

    return PayoutRequest(
        usd_amount=amount,
        recipient=normalized_recipient,
        ratios=dict(ratios),
        council=council,
        endpoints=dict(endpoints),
        proxy=proxy,
        fx=fx,
    )
