from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal
from typing import Any

from payoutor.types import Token


@dataclass(slots=True, frozen=True)
class TokenAllocation:
    token: Token
    ratio: float
    usd_share: float
    unit_amount: float

    def as_dict(self) -> dict[str, Any]:
        return {
            "token": self.token.value,
            "ratio": self.ratio,
            "usd_share": self.usd_share,
            "unit_amount": self.unit_amount,
        }


def to_smallest_unit(unit_amount: float, decimals: int) -> int:
    """Scale a token amount to its integer base unit, dropping any remainder."""
    if unit_amount < 0:
        raise ValueError("unit_amount must be non-negative")
    scaled = Decimal(repr(float(unit_amount))).scaleb(decimals)
    return int(scaled.to_integral_value(rounding=ROUND_FLOOR))


def allocate(
    usd_amount: float,
    ratios: Mapping[Token, float],
    prices: Mapping[Token, float],
) -> dict[Token, TokenAllocation]:
    """Split ``usd_amount`` by ``ratios`` and convert each share at its price.

    The ratio sum is not checked here; request validation owns that rule.
    """
    allocations: dict[Token, TokenAllocation] = {}
    for token, ratio in ratios.items():
        price = prices[token]
        if price <= 0:
            raise ValueError(f"price for {token.value} must be positive")
        usd_share = usd_amount * ratio
        allocations[token] = TokenAllocation(
            token=token,
            ratio=ratio,
            usd_share=usd_share,
            unit_amount=usd_share / price,
        )
    return allocations
