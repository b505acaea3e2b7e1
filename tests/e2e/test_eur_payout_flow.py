from __future__ import annotations

import json
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi.testclient import TestClient

from payoutor.chain.client import ComposedCall
from payoutor.config import AppSettings
from payoutor.runtime.api import build_app
from payoutor.types import Network

RECIPIENT = "0x1234567890abcdef1234567890abcdef12345678"


class EchoSession:
    def __init__(self, network: Network) -> None:
        self.network = network

    async def query_counter(self, module: str, storage_function: str) -> int:
        return 100 if self.network == Network.MOONBEAM else 200

    async def compose_call(
        self,
        module: str,
        function: str,
        params: Mapping[str, Any],
    ) -> ComposedCall:
        plain = {
            key: value.to_hex() if isinstance(value, ComposedCall) else value
            for key, value in params.items()
        }
        data = json.dumps({"call": f"{module}.{function}", "params": plain}, sort_keys=True)
        return ComposedCall(module=module, function=function, data=data.encode())


class EchoProvider:
    @asynccontextmanager
    async def session(self, network: Network, endpoint: str) -> AsyncIterator[EchoSession]:
        yield EchoSession(network)


def upstream(request: httpx.Request) -> httpx.Response:
    if request.url.host == "api.exchangerate.host":
        return httpx.Response(200, json={"rates": {"USD": 1.25}, "date": "2026-10-16"})
    if request.url.path == "/block":
        return httpx.Response(200, text='<a href="/block/8000200">8000200</a>')
    price = {"GLMR": "0.125", "MOVR": "6.25"}[request.url.params["from"]]
    return httpx.Response(200, text=f'"ema30_average":"{price}"')


def test_eur_invoice_to_council_proposals() -> None:
    client = TestClient(
        build_app(
            AppSettings(subscan_api_key=""),
            clients=EchoProvider(),
            transport=httpx.MockTransport(upstream),
        )
    )

    rate = client.get("/api/fx-rate").json()
    response = client.post(
        "/api/calculate",
        json={
            "recipient": RECIPIENT,
            "inputAmount": 800,
            "inputCurrency": "EUR",
            "fxRate": rate["rate"],
            "fxDate": rate["as_of"],
            "fxSource": rate["source"],
        },
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["usd_amount"] == 1000.0
    glmr = payload["tokens"]["GLMR"]
    movr = payload["tokens"]["MOVR"]
    assert glmr["unit_amount"] == 4000.0
    assert movr["unit_amount"] == 80.0
    assert glmr["smallest_unit_amount"] == str(4000 * 10**18)
    assert glmr["quote"]["block"] == 8_000_000
    assert movr["counters"] == {"network": "moonriver", "proposal_index": 200, "spend_index": 200}

    propose = json.loads(bytes.fromhex(movr["calls"]["propose"]["payload_hex"][2:]))
    assert propose["params"]["proposal"] == movr["calls"]["spend"]["payload_hex"]
    assert "exchange rate of 1.2500 EUR/USD (source: ExchangerateHost - 2026-10-16)" in (
        payload["forum_reply"]
    )
