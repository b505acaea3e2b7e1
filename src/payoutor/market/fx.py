from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from payoutor.errors import FxUnavailable
from payoutor.observability.logging import get_logger


@dataclass(slots=True, frozen=True)
class FxRate:
    rate: float
    as_of: str | None
    source: str

    def as_dict(self) -> dict[str, Any]:
        return {"rate": self.rate, "as_of": self.as_of, "source": self.source}


@dataclass(slots=True, frozen=True)
class RateProvider:
    name: str
    url: str
    parse: Callable[[Any], tuple[float, str | None] | None]


def _parse_usd_rates(payload: Any) -> tuple[float, str | None] | None:
    if not isinstance(payload, dict):
        return None
    rates = payload.get("rates")
    if not isinstance(rates, dict):
        return None
    rate = rates.get("USD")
    if isinstance(rate, bool) or not isinstance(rate, (int, float)) or rate <= 0:
        return None
    as_of = payload.get("date")
    return float(rate), as_of if isinstance(as_of, str) else None


PROVIDERS: tuple[RateProvider, ...] = (
    RateProvider(
        name="ExchangerateHost",
        url="https://api.exchangerate.host/latest?base=EUR&symbols=USD",
        parse=_parse_usd_rates,
    ),
    RateProvider(
        name="Frankfurter",
        url="https://api.frankfurter.app/latest?from=EUR&to=USD",
        parse=_parse_usd_rates,
    ),
)


async def fetch_eur_usd_rate(
    client: httpx.AsyncClient,
    providers: Sequence[RateProvider] = PROVIDERS,
) -> FxRate:
    """Return the first EUR/USD rate any provider yields, trying them in order."""
    logger = get_logger("fx_rate")
    errors: list[str] = []
    for provider in providers:
        try:
            response = await client.get(provider.url)
            if response.status_code >= 400:
                raise ValueError(f"status {response.status_code}")
            parsed = provider.parse(response.json())
            if parsed is None:
                raise ValueError("unexpected payload")
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("fx_provider_failed", provider=provider.name, error=str(exc))
            errors.append(f"{provider.name}: {exc}")
            continue

        rate, as_of = parsed
        return FxRate(rate=rate, as_of=as_of, source=provider.name)

    raise FxUnavailable(errors)
