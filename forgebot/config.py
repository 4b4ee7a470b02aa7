import os

from decimal import Decimal
from pathlib import Path
from typing import Any, Dict

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Pick up the legacy QuickNode variable used by older deployments."""

        super().model_post_init(__context)

        if not self.rpc_url:
            fallback = os.getenv("QUICKNODE_RPC_URL") or os.getenv("BASE_RPC_URL")
            if fallback:
                object.__setattr__(self, "rpc_url", fallback)

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"],
        description="Origins allowed to call the turn endpoints",
    )

    # Chain
    chain_id: int = Field(default=8453, description="EVM chain ID (Base mainnet)")
    chain_slug: str = Field(default="base", description="Chain slug used by the quote API")
    native_symbol: str = Field(default="ETH", description="Native asset symbol")
    rpc_url: str = Field(
        default="",
        description="JSON-RPC endpoint for balance, allowance and receipt reads",
        validation_alias=AliasChoices("rpc_url", "RPC_URL", "CHAIN_RPC_URL"),
    )
    explorer_tx_url: str = Field(
        default="https://basescan.org/tx/",
        description="Block explorer prefix for transaction links",
    )

    # Quote provider (OpenOcean v4, optionally behind a QuickNode add-on path)
    quote_api_base_url: str = Field(
        default="https://open-api.openocean.finance/v4",
        description="Base URL of the swap quote API",
    )

    # External signing / submission service
    signer_service_url: str = Field(default="", description="Signing service base URL")
    signer_service_token: str = Field(default="", description="Bearer token for the signing service")

    # Persistence
    store_backend: str = Field(default="memory", description="Persistence backend: memory or convex")
    convex_url: str = Field(default="", description="Convex deployment URL")
    convex_deploy_key: str = Field(default="", description="Convex deploy key")

    # Timeouts & retries
    request_timeout_seconds: float = Field(default=15.0, description="Per-request HTTP timeout")
    read_retry_attempts: int = Field(default=3, ge=1, le=10, description="Attempts for idempotent reads")
    read_retry_initial_delay_seconds: float = Field(default=0.5, description="First retry delay")
    confirmation_timeout_seconds: int = Field(default=180, description="Receipt wait limit")
    receipt_poll_interval_seconds: float = Field(default=2.0, description="Receipt poll interval")

    # Gas fallback used when the fee estimator is unavailable (gwei)
    gas_fallback_price_gwei: Decimal = Field(default=Decimal("0.1"))
    gas_fallback_max_fee_gwei: Decimal = Field(default=Decimal("0.1"))
    gas_fallback_max_priority_fee_gwei: Decimal = Field(default=Decimal("0.05"))
    gas_priority_percentiles: Dict[str, int] = Field(
        default_factory=lambda: {"low": 25, "medium": 50, "high": 90},
        description="eth_feeHistory reward percentile per gas priority tier",
    )

    # User defaults
    default_slippage: Decimal = Field(default=Decimal("1.0"), gt=0, le=50)
    default_gas_priority: str = Field(default="medium")

    @property
    def has_rpc_url(self) -> bool:
        return bool(self.rpc_url)

    @property
    def has_signer_service(self) -> bool:
        return bool(self.signer_service_url)

    @property
    def uses_convex(self) -> bool:
        return self.store_backend.lower() == "convex"


# Global settings instance
settings = Settings()
