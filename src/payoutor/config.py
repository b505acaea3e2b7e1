from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_env: str = "dev"
    log_level: str = "INFO"

    moonbeam_ws: str = "wss://wss.api.moonbeam.network"
    moonriver_ws: str = "wss://wss.api.moonriver.moonbeam.network"

    subscan_base_url: str = "https://{network}.subscan.io"
    subscan_api_key: str = ""

    council_threshold: int = 3
    council_length_bound: int = 10_000
    glmr_ratio: float = 0.5
    movr_ratio: float = 0.5

    # Price reference sits this many blocks behind head and uses the EMA of this window.
    price_block_lag: int = 200
    price_ema_window: int = 30

    close_ref_time: int = 5_000_000_000
    close_proof_size: int = 100_000
    close_length_bound: int = 10_000

    http_timeout_seconds: float = 20.0
    rpc_timeout_seconds: float = 30.0

    usdc_asset_id: int = 166377000701797186346254371275954761085

    api_host: str = "127.0.0.1"
    api_port: int = 3000


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return AppSettings()
