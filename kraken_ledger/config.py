"""Application configuration."""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    # API settings
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # Kraken API
    kraken_api_url: str = "https://api.kraken.com"
    api_key: Optional[str] = None
    api_private_key: Optional[str] = None
    request_timeout: float = 30.0

    # Account verification tier, selects the rate limiter preset
    account_tier: str = "pro"

    # Local trade cache
    database_path: str = "./data/trades.db"

    # Sync behaviour
    freshness_window_seconds: float = 300.0
    max_attempts: int = 5
    max_rate_limit_retries: int = 3

    @property
    def has_credentials(self) -> bool:
        """Whether both halves of the Kraken key pair are configured."""
        return bool(self.api_key and self.api_private_key)

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            kraken_api_url=os.getenv("KRAKEN_API_URL", "https://api.kraken.com"),
            api_key=os.getenv("KRAKEN_API_KEY") or None,
            api_private_key=os.getenv("KRAKEN_API_PRIVATE_KEY") or None,
            request_timeout=float(os.getenv("REQUEST_TIMEOUT", "30")),
            account_tier=os.getenv("KRAKEN_ACCOUNT_TIER", "pro").lower(),
            database_path=os.getenv("DATABASE_PATH", "./data/trades.db"),
            freshness_window_seconds=float(os.getenv("SYNC_FRESHNESS_SECONDS", "300")),
            max_attempts=int(os.getenv("SYNC_MAX_ATTEMPTS", "5")),
            max_rate_limit_retries=int(os.getenv("SYNC_MAX_RATE_LIMIT_RETRIES", "3")),
        )
