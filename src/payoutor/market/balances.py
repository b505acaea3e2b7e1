from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from payoutor.config import AppSettings
from payoutor.domain.networks import subscan_url
from payoutor.market.subscan import subscan_headers
from payoutor.observability.logging import get_logger
from payoutor.types import Network

# Pallet account of the treasury ("modlpy/trsry"), identical on both networks.
TREASURY_ACCOUNT = "0x6d6f646c70792f74727372790000000000000000"
USDC_CONTRACT = "0xffffffff7d2b0b761af01ca8e25242976ac0ad7d"
UNAVAILABLE = "N/A"


@dataclass(slots=True, frozen=True)
class TreasuryBalances:
    glmr: str
    movr: str
    usdc: str

    def as_dict(self) -> dict[str, str]:
        return {"glmr": self.glmr, "movr": self.movr, "usdc": self.usdc}


def _format_balance(raw: Any) -> str:
    try:
        return f"{float(raw):,.2f}"
    except (TypeError, ValueError):
        return UNAVAILABLE


async def _post(
    client: httpx.AsyncClient,
    settings: AppSettings,
    network: Network,
    path: str,
) -> Any:
    response = await client.post(
        f"{subscan_url(settings, network)}{path}",
        json={"address": TREASURY_ACCOUNT},
        headers=subscan_headers(settings),
    )
    response.raise_for_status()
    return response.json()


def _token_entries(payload: Any) -> list[dict[str, Any]]:
    if not isinstance(payload, dict):
        raise ValueError("token list response is not an object")
    entries = payload.get("data") or []
    if not isinstance(entries, list) or not all(isinstance(entry, dict) for entry in entries):
        raise ValueError("token list data is not a list of tokens")
    return entries


def _account_balance(payload: Any) -> Any:
    account = payload.get("data") if isinstance(payload, dict) else None
    if account is not None and not isinstance(account, dict):
        raise ValueError("account data is not an object")
    return (account or {}).get("balance")


async def fetch_treasury_balances(
    client: httpx.AsyncClient,
    settings: AppSettings,
) -> TreasuryBalances:
    """GLMR and USDC from the Moonbeam token list, MOVR from the Moonriver account.

    The Moonbeam lookup must succeed; a failed Moonriver lookup degrades to "N/A".
    """
    logger = get_logger("treasury_balances")

    payload = await _post(client, settings, Network.MOONBEAM, "/api/scan/account/token_list")
    glmr = usdc = UNAVAILABLE
    for entry in _token_entries(payload):
        symbol = entry.get("symbol")
        if symbol == "GLMR":
            glmr = _format_balance(entry.get("balance"))
        contract = str(entry.get("contract", "")).lower()
        if contract == USDC_CONTRACT or symbol in {"USDC", "xcUSDC"}:
            usdc = _format_balance(entry.get("balance"))

    movr = UNAVAILABLE
    try:
        account = await _post(client, settings, Network.MOONRIVER, "/api/scan/account")
        balance = _account_balance(account)
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning(
            "treasury_balance_unavailable",
            network=Network.MOONRIVER.value,
            error=str(exc),
        )
    else:
        if balance:
            movr = _format_balance(balance)

    return TreasuryBalances(glmr=glmr, movr=movr, usdc=usdc)
