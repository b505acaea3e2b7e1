from __future__ import annotations

import asyncio
from argparse import Namespace

import httpx

from payoutor.config import AppSettings
from payoutor.market.balances import TreasuryBalances, fetch_treasury_balances
from payoutor.types import CommandResult, CommandStatus


async def _fetch(settings: AppSettings) -> TreasuryBalances:
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        return await fetch_treasury_balances(client, settings)


def run_treasury_balances(_: Namespace, settings: AppSettings) -> CommandResult:
    try:
        balances = asyncio.run(_fetch(settings))
    except (httpx.HTTPError, ValueError) as exc:
        return CommandResult(
            command="treasury-balances",
            status=CommandStatus.FAILED,
            details={"error": f"Failed to fetch treasury balances: {exc}"},
        )

    return CommandResult(
        command="treasury-balances",
        status=CommandStatus.SUCCEEDED,
        details=balances.as_dict(),
    )
