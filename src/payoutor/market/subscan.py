from __future__ import annotations

import math
import re

import httpx

from payoutor.config import AppSettings
from payoutor.domain.networks import price_converter_url, subscan_url
from payoutor.domain.result import PriceQuote
from payoutor.errors import PriceUnavailable
from payoutor.observability.logging import get_logger
from payoutor.types import Network, Token

BLOCK_LINK_PATTERN = re.compile(r"block/(\d+)")


def subscan_headers(settings: AppSettings) -> dict[str, str]:
    headers = {"Accept": "application/json, text/html"}
    if settings.subscan_api_key:
        headers["X-API-Key"] = settings.subscan_api_key
    return headers


class SubscanPriceFeed:
    """Recent block and EMA price lookups against the Subscan explorer.

    A single attempt is made per lookup. Any failure raises
    ``PriceUnavailable`` and no fallback price is ever substituted.
    """

    def __init__(self, settings: AppSettings, client: httpx.AsyncClient) -> None:
        self._settings = settings
        self._client = client
        self._ema_pattern = re.compile(
            rf'"ema{settings.price_ema_window}_average"\s*:\s*"?([0-9]+(?:\.[0-9]+)?)"?'
        )

    async def _get_text(self, url: str, network: Network, label: str) -> str:
        try:
            response = await self._client.get(url, headers=subscan_headers(self._settings))
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise PriceUnavailable(
                network.value,
                label,
                f"status {exc.response.status_code}",
            ) from exc
        except httpx.HTTPError as exc:
            raise PriceUnavailable(network.value, label, str(exc) or type(exc).__name__) from exc
        return response.text

    async def get_recent_block(self, network: Network, *, token: Token | None = None) -> int:
        """Return the head block minus the configured lag."""
        label = token.value if token is not None else "block"
        text = await self._get_text(f"{subscan_url(self._settings, network)}/block", network, label)
        match = BLOCK_LINK_PATTERN.search(text)
        if match is None:
            raise PriceUnavailable(network.value, label, "could not parse block number")

        block = int(match.group(1)) - self._settings.price_block_lag
        if block < 0:
            raise PriceUnavailable(network.value, label, "block number below price lag")
        return block

    async def get_time_weighted_price(self, network: Network, token: Token, block: int) -> float:
        url = price_converter_url(self._settings, network, token, block)
        text = await self._get_text(url, network, token.value)
        match = self._ema_pattern.search(text)
        if match is None:
            raise PriceUnavailable(
                network.value,
                token.value,
                f"could not parse EMA{self._settings.price_ema_window} price at block {block}",
            )

        price = float(match.group(1))
        if not math.isfinite(price) or price <= 0:
            raise PriceUnavailable(network.value, token.value, f"non-positive price {price}")
        return price

    async def quote(self, network: Network, token: Token) -> PriceQuote:
        block = await self.get_recent_block(network, token=token)
        price = await self.get_time_weighted_price(network, token, block)
        get_logger("price_feed").info(
            "price_quoted",
            network=network.value,
            token=token.value,
            block=block,
            price=price,
        )
        return PriceQuote(network=network, token=token, block=block, price=price)
