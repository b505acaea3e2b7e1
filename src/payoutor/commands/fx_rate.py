from __future__ import annotations

import asyncio
from argparse import Namespace

import httpx

from payoutor.config import AppSettings
from payoutor.errors import FxUnavailable
from payoutor.market.fx import FxRate, fetch_eur_usd_rate
from payoutor.types import CommandResult, CommandStatus


async def _fetch(settings: AppSettings) -> FxRate:
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        return await fetch_eur_usd_rate(client)


def run_fx_rate(_: Namespace, settings: AppSettings) -> CommandResult:
    try:
        rate = asyncio.run(_fetch(settings))
    except FxUnavailable as exc:
        return CommandResult(
            command="fx-rate",
            status=CommandStatus.FAILED,
            details={"error": exc.message},
        )

    return CommandResult(command="fx-rate", status=CommandStatus.SUCCEEDED, details=rate.as_dict())
