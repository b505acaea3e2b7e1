from __future__ import annotations

from typing import Any

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from payoutor.chain.client import ChainClientFactory, ChainSessionProvider
from payoutor.config import AppSettings
from payoutor.domain.networks import default_endpoints
from payoutor.domain.request import (
    CouncilConfig,
    FxConversion,
    PayoutRequest,
    build_payout_request,
)
from payoutor.errors import FxUnavailable, PayoutError, ValidationError
from payoutor.market.balances import fetch_treasury_balances
from payoutor.market.fx import fetch_eur_usd_rate
from payoutor.observability.logging import get_logger
from payoutor.orchestration.payout import calculate_payout
from payoutor.types import Network, Token


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class NativePayoutBody(_CamelModel):
    usd_amount: float | None = Field(default=None, alias="usdAmount")
    recipient: str | None = None
    glmr_ratio: float | None = Field(default=None, alias="glmrRatio")
    movr_ratio: float | None = Field(default=None, alias="movrRatio")
    council_threshold: int | None = Field(default=None, alias="councilThreshold")
    council_length_bound: int | None = Field(default=None, alias="councilLengthBound")
    moonbeam_ws: str | None = Field(default=None, alias="moonbeamWs")
    moonriver_ws: str | None = Field(default=None, alias="moonriverWs")
    proxy: bool = False
    proxy_address: str | None = Field(default=None, alias="proxyAddress")
    input_amount: float | None = Field(default=None, alias="inputAmount")
    input_currency: str | None = Field(default=None, alias="inputCurrency")
    fx_rate: float | None = Field(default=None, alias="fxRate")
    fx_date: str | None = Field(default=None, alias="fxDate")
    fx_source: str | None = Field(default=None, alias="fxSource")


class StablePayoutBody(_CamelModel):
    usd_amount: float | None = Field(default=None, alias="usdAmount")
    recipient: str | None = None
    council_threshold: int | None = Field(default=None, alias="councilThreshold")
    council_length_bound: int | None = Field(default=None, alias="councilLengthBound")
    moonbeam_ws: str | None = Field(default=None, alias="moonbeamWs")
    proxy: bool = False
    proxy_address: str | None = Field(default=None, alias="proxyAddress")


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _council(
    settings: AppSettings,
    threshold: int | None,
    length_bound: int | None,
) -> CouncilConfig:
    return CouncilConfig(
        threshold=settings.council_threshold if threshold is None else threshold,
        length_bound=settings.council_length_bound if length_bound is None else length_bound,
    )


def _fx(body: NativePayoutBody) -> FxConversion | None:
    currency = (body.input_currency or "USD").strip().upper()
    if currency == "USD" or body.input_amount is None or body.fx_rate is None:
        return None
    return FxConversion(
        input_amount=body.input_amount,
        input_currency=currency,
        rate=body.fx_rate,
        as_of=body.fx_date,
        source=body.fx_source,
    )


def native_request(settings: AppSettings, body: NativePayoutBody) -> PayoutRequest:
    fx = _fx(body)
    usd_amount = body.usd_amount
    if usd_amount is None and fx is not None:
        usd_amount = fx.usd_amount

    endpoints = default_endpoints(settings)
    if body.moonbeam_ws:
        endpoints[Network.MOONBEAM] = body.moonbeam_ws
    if body.moonriver_ws:
        endpoints[Network.MOONRIVER] = body.moonriver_ws

    return build_payout_request(
        usd_amount=usd_amount,
        recipient=body.recipient,
        ratios={
            Token.GLMR: settings.glmr_ratio if body.glmr_ratio is None else body.glmr_ratio,
            Token.MOVR: settings.movr_ratio if body.movr_ratio is None else body.movr_ratio,
        },
        council=_council(settings, body.council_threshold, body.council_length_bound),
        endpoints=endpoints,
        proxy_address=body.proxy_address if body.proxy else None,
        fx=fx,
    )


def stable_request(settings: AppSettings, body: StablePayoutBody) -> PayoutRequest:
    return build_payout_request(
        usd_amount=body.usd_amount,
        recipient=body.recipient,
        ratios={Token.USDC: 1.0},
        council=_council(settings, body.council_threshold, body.council_length_bound),
        endpoints={Network.MOONBEAM: body.moonbeam_ws or settings.moonbeam_ws},
        proxy_address=body.proxy_address if body.proxy else None,
    )


def build_app(
    settings: AppSettings,
    *,
    clients: ChainSessionProvider | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    app = FastAPI(title="payoutor", version="0.1.0")
    chain_clients = clients or ChainClientFactory(settings)
    logger = get_logger("api")

    def http_client() -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=settings.http_timeout_seconds, transport=transport)

    @app.exception_handler(RequestValidationError)
    async def invalid_body(_: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "invalid request body")
        return _error(f"{location}: {message}" if location else message, 400)

    async def run(request: PayoutRequest) -> JSONResponse:
        try:
            async with http_client() as client:
                result = await calculate_payout(
                    request,
                    settings,
                    http_client=client,
                    clients=chain_clients,
                )
        except ValidationError as exc:
            return _error(exc.message, 400)
        except PayoutError as exc:
            return _error(exc.message, 500)
        return JSONResponse(content=result.as_dict())

    @app.get("/livez")
    async def livez() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/calculate")
    async def calculate(body: NativePayoutBody) -> JSONResponse:
        try:
            request = native_request(settings, body)
        except ValidationError as exc:
            logger.info("payout_request_rejected", route="/api/calculate", error=exc.message)
            return _error(exc.message, 400)
        return await run(request)

    @app.post("/api/calculate-usdc")
    async def calculate_usdc(body: StablePayoutBody) -> JSONResponse:
        try:
            request = stable_request(settings, body)
        except ValidationError as exc:
            logger.info("payout_request_rejected", route="/api/calculate-usdc", error=exc.message)
            return _error(exc.message, 400)
        return await run(request)

    @app.get("/api/fx-rate")
    async def fx_rate() -> JSONResponse:
        try:
            async with http_client() as client:
                rate = await fetch_eur_usd_rate(client)
        except FxUnavailable as exc:
            return _error(exc.message, 500)
        return JSONResponse(content=rate.as_dict())

    @app.get("/api/treasury-balances")
    async def treasury_balances() -> Any:
        try:
            async with http_client() as client:
                balances = await fetch_treasury_balances(client, settings)
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("treasury_balances_failed", error=str(exc))
            return _error("Failed to fetch treasury balances", 500)
        return balances.as_dict()

    return app
