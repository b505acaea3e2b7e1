from __future__ import annotations

import asyncio

import httpx
import pytest

from payoutor.config import AppSettings
from payoutor.errors import PriceUnavailable
from payoutor.market.subscan import SubscanPriceFeed
from payoutor.types import Network, Token

BLOCK_PAGE = '<tr><td><a href="/block/5000200">5,000,200</a></td></tr>'


def _feed(handler, settings: AppSettings | None = None) -> SubscanPriceFeed:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SubscanPriceFeed(settings or AppSettings(subscan_api_key=""), client)


def test_recent_block_subtracts_lag() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.host == "moonbeam.subscan.io"
        assert request.url.path == "/block"
        return httpx.Response(200, text=BLOCK_PAGE)

    feed = _feed(handler)

    assert asyncio.run(feed.get_recent_block(Network.MOONBEAM)) == 5_000_000


def test_block_lag_is_configurable() -> None:
    feed = _feed(
        lambda _: httpx.Response(200, text=BLOCK_PAGE),
        AppSettings(price_block_lag=0, subscan_api_key=""),
    )

    assert asyncio.run(feed.get_recent_block(Network.MOONRIVER)) == 5_000_200


def test_quote_reads_ema_price_at_lagged_block() -> None:
    seen: list[httpx.URL] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url)
        if request.url.path == "/block":
            return httpx.Response(200, text=BLOCK_PAGE)
        body = '{"price":"0.21","ema30_average":"0.2034","ema7_average":"1"}'
        return httpx.Response(200, text=body)

    feed = _feed(handler)
    quote = asyncio.run(feed.quote(Network.MOONRIVER, Token.MOVR))

    assert quote.price == 0.2034
    assert quote.block == 5_000_000
    assert quote.token == Token.MOVR
    converter = seen[-1]
    assert converter.host == "moonriver.subscan.io"
    assert converter.path == "/tools/price_converter"
    assert converter.params["from"] == "MOVR"
    assert converter.params["time"] == "5000000"


def test_api_key_header_is_sent_when_configured() -> None:
    headers: list[str | None] = []

    def handler(request: httpx.Request) -> httpx.Response:
        headers.append(request.headers.get("X-API-Key"))
        return httpx.Response(200, text=BLOCK_PAGE)

    feed = _feed(handler, AppSettings(subscan_api_key="subscan-key"))
    asyncio.run(feed.get_recent_block(Network.MOONBEAM))

    assert headers == ["subscan-key"]


def test_unparseable_block_page_fails() -> None:
    feed = _feed(lambda _: httpx.Response(200, text="<html>maintenance</html>"))

    with pytest.raises(PriceUnavailable, match="could not parse block number"):
        asyncio.run(feed.get_recent_block(Network.MOONBEAM))


def test_unparseable_price_names_the_token() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/block":
            return httpx.Response(200, text=BLOCK_PAGE)
        return httpx.Response(200, text="<html>no price here</html>")

    feed = _feed(handler)

    with pytest.raises(PriceUnavailable) as excinfo:
        asyncio.run(feed.quote(Network.MOONRIVER, Token.MOVR))

    assert excinfo.value.token == "MOVR"
    assert "MOVR" in excinfo.value.message


def test_zero_price_is_rejected() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/block":
            return httpx.Response(200, text=BLOCK_PAGE)
        return httpx.Response(200, text='"ema30_average":"0"')

    feed = _feed(handler)

    with pytest.raises(PriceUnavailable, match="non-positive price"):
        asyncio.run(feed.quote(Network.MOONBEAM, Token.GLMR))


def test_http_errors_are_not_retried() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(503, text="unavailable")

    feed = _feed(handler)

    with pytest.raises(PriceUnavailable, match="status 503"):
        asyncio.run(feed.quote(Network.MOONBEAM, Token.GLMR))
    assert calls == ["/block"]


def test_transport_errors_become_price_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("dns failure", request=request)

    feed = _feed(handler)

    with pytest.raises(PriceUnavailable, match="dns failure"):
        asyncio.run(feed.get_recent_block(Network.MOONBEAM, token=Token.GLMR))


def test_read_timeouts_become_price_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    feed = _feed(handler)

    with pytest.raises(PriceUnavailable, match="timed out") as excinfo:
        asyncio.run(feed.quote(Network.MOONRIVER, Token.MOVR))

    assert excinfo.value.token == "MOVR"
