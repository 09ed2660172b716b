"""Application configuration using pydantic-settings.

The fee-payer secret is the only private key the relay ever holds. User keys
never reach the backend.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

NETWORK_PASSPHRASES = {
    "public": "Public Global Stellar Network ; September 2015",
    "mainnet": "Public Global Stellar Network ; September 2015",
    "testnet": "Test SDF Network ; September 2015",
    "futurenet": "Test SDF Future Network ; October 2022",
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Stellar Network
    # ======================
    stellar_network: str = Field(default="testnet", description="public, testnet or futurenet")
    stellar_network_passphrase: Optional[str] = Field(
        default=None, description="Explicit network passphrase (overrides STELLAR_NETWORK)"
    )
    soroban_rpc_url: str = Field(
        default="https://soroban-testnet.stellar.org", description="Soroban RPC endpoint"
    )
    rpc_request_timeout: float = Field(default=30.0, description="Per-request RPC timeout in seconds")

    # ======================
    # Fee Sponsorship
    # ======================
    fee_payer_secret: Optional[str] = Field(
        default=None, description="Secret seed of the operator fee-payer account"
    )
    base_fee: int = Field(default=100, description="Inclusion fee per operation in stroops")
    tx_validity_seconds: int = Field(
        default=300, description="Validity window of built transactions in seconds"
    )

    # ======================
    # Contracts
    # ======================
    payment_router_contract: str = Field(default="", description="PaymentRouter contract id (C...)")
    tracked_contract_ids: str = Field(
        default="", description="Comma-separated contract ids watched by event ingestion"
    )

    # ======================
    # Event Ingestion
    # ======================
    event_poll_interval: float = Field(default=5.0, description="Seconds between event polls")
    event_error_backoff: float = Field(default=10.0, description="Seconds to wait after a poll error")
    event_fallback_ledger: int = Field(
        default=1, description="Start ledger when neither checkpoint nor network tip is available"
    )
    event_page_limit: int = Field(default=100, description="Maximum events fetched per poll")
    persist_event_cursor: bool = Field(
        default=True, description="Checkpoint the event cursor to the database"
    )

    # ======================
    # Submission
    # ======================
    submission_poll_interval: float = Field(default=2.0, description="Seconds between status polls")
    finality_timeout: float = Field(default=60.0, description="Overall finality deadline in seconds")

    # ======================
    # Database
    # ======================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/blinks_relay.db",
        description="Database connection URL",
    )

    # ======================
    # Notifications
    # ======================
    redis_url: Optional[str] = Field(
        default=None, description="Redis URL for the notification job queue"
    )
    notification_queue_name: str = Field(
        default="blinks:notifications", description="Redis list receiving notification jobs"
    )

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug mode")
    log_level: Optional[str] = Field(default=None, description="Explicit log level (INFO, DEBUG...)")

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def network_passphrase(self) -> str:
        """Resolve the network passphrase for the configured network."""
        if self.stellar_network_passphrase:
            return self.stellar_network_passphrase
        return NETWORK_PASSPHRASES.get(
            self.stellar_network.lower(), NETWORK_PASSPHRASES["testnet"]
        )

    @property
    def has_fee_payer(self) -> bool:
        """Check if a fee-payer secret is configured."""
        return bool(self.fee_payer_secret)

    @property
    def tracked_contracts(self) -> list[str]:
        """Contract ids watched by the event loop.

        Falls back to the PaymentRouter contract when no explicit list is set.
        """
        ids = [c.strip() for c in self.tracked_contract_ids.split(",") if c.strip()]
        if not ids and self.payment_router_contract:
            ids = [self.payment_router_contract]
        return ids

    @property
    def effective_log_level(self) -> str:
        if self.log_level:
            return self.log_level.upper()
        return "DEBUG" if self.debug else "INFO"

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "stellar_network": self.stellar_network,
            "network_passphrase": self.network_passphrase,
            "soroban_rpc_url": self.soroban_rpc_url,
            "fee_payer_secret": "***" if self.fee_payer_secret else "(not set)",
            "payment_router_contract": self.payment_router_contract or "(not set)",
            "tracked_contracts": self.tracked_contracts,
            "database_url": self._redact_url(self.database_url),
            "redis_url": self._redact_url(self.redis_url) if self.redis_url else "(not set)",
            "event_poll_interval": self.event_poll_interval,
            "finality_timeout": self.finality_timeout,
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from database URL."""
        if "@" in url and "://" in url:
            proto, rest = url.split("://", 1)
            if "@" in rest:
                creds, host = rest.rsplit("@", 1)
                if ":" in creds:
                    user = creds.split(":", 1)[0]
                    return f"{proto}://{user}:***@{host}"
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
