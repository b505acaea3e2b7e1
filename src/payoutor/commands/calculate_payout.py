from __future__ import annotations

import asyncio
from argparse import Namespace

from payoutor.config import AppSettings
from payoutor.domain.networks import default_endpoints
from payoutor.domain.request import CouncilConfig, FxConversion, build_payout_request
from payoutor.errors import PayoutError, ValidationError
from payoutor.orchestration.payout import calculate_payout
from payoutor.types import CommandResult, CommandStatus, Network, Token


def _optional(args: Namespace, name: str, default: object) -> object:
    value = getattr(args, name, None)
    return default if value is None else value


def _fx_conversion(args: Namespace) -> FxConversion | None:
    input_amount = getattr(args, "input_amount", None)
    fx_rate = getattr(args, "fx_rate", None)
    if input_amount is None or fx_rate is None:
        return None
    return FxConversion(
        input_amount=float(input_amount),
        input_currency=str(_optional(args, "input_currency", "EUR")).strip().upper(),
        rate=float(fx_rate),
        as_of=getattr(args, "fx_date", None),
        source=getattr(args, "fx_source", None),
    )


def _usd_amount(args: Namespace, fx: FxConversion | None) -> object:
    if fx is not None:
        return fx.usd_amount
    return getattr(args, "usd_amount", None)


def run_calculate_payout(args: Namespace, settings: AppSettings) -> CommandResult:
    try:
        fx = _fx_conversion(args)
        endpoints = default_endpoints(settings)
        endpoints[Network.MOONBEAM] = str(
            _optional(args, "moonbeam_ws", endpoints[Network.MOONBEAM])
        )
        endpoints[Network.MOONRIVER] = str(
            _optional(args, "moonriver_ws", endpoints[Network.MOONRIVER])
        )
        request = build_payout_request(
            usd_amount=_usd_amount(args, fx),
            recipient=getattr(args, "recipient", None),
            ratios={
                Token.GLMR: float(_optional(args, "glmr_ratio", settings.glmr_ratio)),
                Token.MOVR: float(_optional(args, "movr_ratio", settings.movr_ratio)),
            },
            council=CouncilConfig(
                threshold=int(_optional(args, "council_threshold", settings.council_threshold)),
                length_bound=int(
                    _optional(args, "council_length_bound", settings.council_length_bound)
                ),
            ),
            endpoints=endpoints,
            proxy_address=getattr(args, "proxy_address", None),
            fx=fx,
        )
    except (TypeError, ValueError) as exc:
        return CommandResult(
            command="calculate-payout",
            status=CommandStatus.FAILED,
            details={"error": str(exc), "kind": ValidationError.__name__},
        )
    except ValidationError as exc:
        return CommandResult(
            command="calculate-payout",
            status=CommandStatus.FAILED,
            details={"error": exc.message, "kind": type(exc).__name__},
        )

    try:
        result = asyncio.run(calculate_payout(request, settings))
    except PayoutError as exc:
        return CommandResult(
            command="calculate-payout",
            status=CommandStatus.FAILED,
            details={"error": exc.message, "kind": type(exc).__name__},
        )

    return CommandResult(
        command="calculate-payout",
        status=CommandStatus.SUCCEEDED,
        details=result.as_dict(),
    )
