from __future__ import annotations

import json
from argparse import ArgumentParser, Namespace
from collections.abc import Callable, Sequence

import uvicorn

from payoutor.commands import (
    run_calculate_payout,
    run_calculate_usdc_payout,
    run_fx_rate,
    run_treasury_balances,
)
from payoutor.config import AppSettings, get_settings
from payoutor.observability.logging import configure_logging
from payoutor.runtime.api import build_app
from payoutor.types import CommandResult, CommandStatus

CommandHandler = Callable[[Namespace, AppSettings], CommandResult]

COMMAND_HANDLERS: dict[str, CommandHandler] = {
    "calculate-payout": run_calculate_payout,
    "calculate-usdc-payout": run_calculate_usdc_payout,
    "fx-rate": run_fx_rate,
    "treasury-balances": run_treasury_balances,
}


def _add_council_arguments(parser: ArgumentParser) -> None:
    parser.add_argument("--council-threshold", type=int, default=None)
    parser.add_argument("--council-length-bound", type=int, default=None)
    parser.add_argument("--proxy-address", default=None)


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(prog="payoutor", description="Treasury council payout calculator")
    parser.add_argument("--json", action="store_true", help="emit machine-readable JSON output")

    subparsers = parser.add_subparsers(dest="command", required=True)

    native = subparsers.add_parser("calculate-payout", help="split a USD amount into GLMR and MOVR")
    native.add_argument("--usd-amount", type=float, default=None)
    native.add_argument("--recipient", required=True)
    native.add_argument("--glmr-ratio", type=float, default=None)
    native.add_argument("--movr-ratio", type=float, default=None)
    native.add_argument("--moonbeam-ws", default=None)
    native.add_argument("--moonriver-ws", default=None)
    _add_council_arguments(native)
    native.add_argument("--input-amount", type=float, default=None)
    native.add_argument("--input-currency", default=None)
    native.add_argument("--fx-rate", type=float, default=None)
    native.add_argument("--fx-date", default=None)
    native.add_argument("--fx-source", default=None)

    stable = subparsers.add_parser("calculate-usdc-payout", help="pay a USD amount in USDC")
    stable.add_argument("--usd-amount", type=float, default=None)
    stable.add_argument("--recipient", required=True)
    stable.add_argument("--moonbeam-ws", default=None)
    _add_council_arguments(stable)

    subparsers.add_parser("fx-rate", help="fetch the current EUR/USD rate")
    subparsers.add_parser("treasury-balances", help="show treasury GLMR, MOVR and USDC balances")

    serve = subparsers.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    return parser


def _emit_result(result: CommandResult, *, as_json: bool) -> None:
    if as_json:
        print(result.to_json())
        return

    print(f"{result.command}: {result.status.value}")
    summary = result.details.get("summary") if result.details else None
    if isinstance(summary, str):
        print(summary)
        return
    if result.details:
        print(json.dumps(result.details, indent=2, sort_keys=True))


def _serve(args: Namespace, settings: AppSettings) -> int:
    uvicorn.run(
        build_app(settings),
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        log_config=None,
    )
    return 0


def entrypoint(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    settings = get_settings()
    configure_logging(settings.log_level)

    if args.command == "serve":
        return _serve(args, settings)

    handler = COMMAND_HANDLERS[str(args.command)]
    result = handler(args, settings)
    _emit_result(result, as_json=bool(args.json))
    return 1 if result.status == CommandStatus.FAILED else 0


if __name__ == "__main__":
    raise SystemExit(entrypoint())
