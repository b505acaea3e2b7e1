"""Domain models for treasury council payout calculations."""

from payoutor.domain.allocation import TokenAllocation, allocate, to_smallest_unit
from payoutor.domain.request import (
    CouncilConfig,
    FxConversion,
    PayoutRequest,
    ProxyEnvelope,
    build_payout_request,
)
from payoutor.domain.result import (
    NativeDualTokenPayout,
    PayoutResult,
    StableSingleTokenPayout,
    TokenPayout,
)

__all__ = [
    "CouncilConfig",
    "FxConversion",
    "NativeDualTokenPayout",
    "PayoutRequest",
    "PayoutResult",
    "ProxyEnvelope",
    "StableSingleTokenPayout",
    "TokenAllocation",
    "TokenPayout",
    "allocate",
    "build_payout_request",
    "to_smallest_unit",
]
