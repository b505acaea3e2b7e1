"""Error taxonomy for payout requests.

Every error aborts the whole request. Messages name the failing network and
operation so they can be shown to an operator verbatim.
"""
from __future__ import annotations


class PayoutError(Exception):
    """Base class for every failure surfaced by the payout engine."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(PayoutError):
    """Malformed or missing request fields. Raised before any I/O."""


class PriceUnavailable(PayoutError):
    def __init__(self, network: str, token: str, reason: str) -> None:
        self.network = network
        self.token = token
        self.reason = reason
        super().__init__(f"price unavailable for {token} on {network}: {reason}")


class ChainUnavailable(PayoutError):
    def __init__(self, network: str, operation: str, reason: str) -> None:
        self.network = network
        self.operation = operation
        self.reason = reason
        super().__init__(f"chain unavailable on {network} ({operation}): {reason}")


class EncodingFailed(PayoutError):
    def __init__(self, call_kind: str, network: str, reason: str) -> None:
        self.call_kind = call_kind
        self.network = network
        self.reason = reason
        super().__init__(f"failed to encode {call_kind} call on {network}: {reason}")


class FxUnavailable(PayoutError):
    """No exchange-rate provider returned a usable EUR/USD rate."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__(f"Failed to fetch EUR -> USD rate. {' | '.join(errors)}")
