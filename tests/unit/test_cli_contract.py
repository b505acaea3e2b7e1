from payoutor.cli import COMMAND_HANDLERS, build_parser


def test_required_command_surface_is_present() -> None:
    required = {
        "calculate-payout",
        "calculate-usdc-payout",
        "fx-rate",
        "treasury-balances",
    }

    assert required.issubset(COMMAND_HANDLERS.keys())


def test_calculate_payout_arguments_default_to_settings() -> None:
    args = build_parser().parse_args(
        ["calculate-payout", "--usd-amount", "1000", "--recipient", "0xabc"]
    )

    assert args.usd_amount == 1000.0
    assert args.glmr_ratio is None
    assert args.movr_ratio is None
    assert args.council_threshold is None
    assert args.proxy_address is None
    assert args.json is False


def test_serve_accepts_host_and_port() -> None:
    args = build_parser().parse_args(["serve", "--host", "0.0.0.0", "--port", "8080"])

    assert args.command == "serve"
    assert args.port == 8080
