"""Command handlers for the payoutor CLI."""

from payoutor.commands.calculate_payout import run_calculate_payout
from payoutor.commands.calculate_usdc_payout import run_calculate_usdc_payout
from payoutor.commands.fx_rate import run_fx_rate
from payoutor.commands.treasury_balances import run_treasury_balances

__all__ = [
    "run_calculate_payout",
    "run_calculate_usdc_payout",
    "run_fx_rate",
    "run_treasury_balances",
]
