from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

from payoutor.config import AppSettings
from payoutor.types import Network, Token

POLKADOT_APPS_URL = "https://polkadot.js.org/apps/"

# Public endpoints used for decode links regardless of the RPC the request used.
PUBLIC_WS_ENDPOINTS: dict[Network, str] = {
    Network.MOONBEAM: "wss://wss.api.moonbeam.network",
    Network.MOONRIVER: "wss://wss.api.moonriver.moonbeam.network",
}


@dataclass(slots=True, frozen=True)
class TokenProfile:
    token: Token
    network: Network
    decimals: int
    asset_id: int | None = None

    @property
    def is_stable(self) -> bool:
        return self.asset_id is not None

    def spend_asset_kind(self) -> dict[str, int | None]:
        if self.asset_id is None:
            return {"Native": None}
        return {"WithId": self.asset_id}


def token_profiles(settings: AppSettings) -> dict[Token, TokenProfile]:
    return {
        Token.GLMR: TokenProfile(Token.GLMR, Network.MOONBEAM, decimals=18),
        Token.MOVR: TokenProfile(Token.MOVR, Network.MOONRIVER, decimals=18),
        Token.USDC: TokenProfile(
            Token.USDC,
            Network.MOONBEAM,
            decimals=6,
            asset_id=settings.usdc_asset_id,
        ),
    }


def default_endpoints(settings: AppSettings) -> dict[Network, str]:
    return {
        Network.MOONBEAM: settings.moonbeam_ws,
        Network.MOONRIVER: settings.moonriver_ws,
    }


def subscan_url(settings: AppSettings, network: Network) -> str:
    return settings.subscan_base_url.format(network=network.value).rstrip("/")


def price_converter_url(
    settings: AppSettings,
    network: Network,
    token: Token,
    block: int,
    value: str = "1",
) -> str:
    return (
        f"{subscan_url(settings, network)}/tools/price_converter"
        f"?value={value}&type=block&from={token.value}&to=USD&time={block}"
    )


def decode_link(network: Network, payload_hex: str) -> str:
    rpc = quote(PUBLIC_WS_ENDPOINTS[network], safe="")
    return f"{POLKADOT_APPS_URL}?rpc={rpc}#/extrinsics/decode/{payload_hex}"
