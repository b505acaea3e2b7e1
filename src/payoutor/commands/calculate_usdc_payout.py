from __future__ import annotations

import asyncio
from argparse import Namespace

from payoutor.config import AppSettings
from payoutor.domain.request import CouncilConfig, build_payout_request
from payoutor.errors import PayoutError, ValidationError
from payoutor.orchestration.payout import calculate_payout
from payoutor.types import CommandResult, CommandStatus, Network, Token


def _failed(error: str, kind: str) -> CommandResult:
    return CommandResult(
        command="calculate-usdc-payout",
        status=CommandStatus.FAILED,
        details={"error": error, "kind": kind},
    )


def run_calculate_usdc_payout(args: Namespace, settings: AppSettings) -> CommandResult:
    moonbeam_ws = getattr(args, "moonbeam_ws", None) or settings.moonbeam_ws
    threshold = getattr(args, "council_threshold", None)
    length_bound = getattr(args, "council_length_bound", None)

    try:
        request = build_payout_request(
            usd_amount=getattr(args, "usd_amount", None),
            recipient=getattr(args, "recipient", None),
            ratios={Token.USDC: 1.0},
            council=CouncilConfig(
                threshold=int(settings.council_threshold if threshold is None else threshold),
                length_bound=int(
                    settings.council_length_bound if length_bound is None else length_bound
                ),
            ),
            endpoints={Network.MOONBEAM: str(moonbeam_ws)},
            proxy_address=getattr(args, "proxy_address", None),
        )
    except (TypeError, ValueError) as exc:
        return _failed(str(exc), ValidationError.__name__)
    except ValidationError as exc:
        return _failed(exc.message, type(exc).__name__)

    try:
        result = asyncio.run(calculate_payout(request, settings))
    except PayoutError as exc:
        return _failed(exc.message, type(exc).__name__)

    return CommandResult(
        command="calculate-usdc-payout",
        status=CommandStatus.SUCCEEDED,
        details=result.as_dict(),
    )
