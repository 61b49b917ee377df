"""FastAPI dependencies for dependency injection."""

from dataclasses import dataclass

from kraken_ledger.config import Config
from kraken_ledger.database import TradeStore
from kraken_ledger.datasources import TradeHistorySource
from kraken_ledger.errors import AuthError
from kraken_ledger.services import (
    InfoService,
    RateLimiter,
    SummaryService,
    TradeService,
    TradeSyncService,
)


@dataclass
class Services:
    """Long-lived objects shared by all requests."""
    config: Config
    store: TradeStore
    datasource: TradeHistorySource
    limiter: RateLimiter
    sync_service: TradeSyncService
    trade_service: TradeService
    summary_service: SummaryService
    info_service: InfoService


# Global services instance - initialized at app startup
_services: Services | None = None


def set_services(services: Services | None) -> None:
    """Set the global services instance."""
    global _services
    _services = services


def get_services() -> Services:
    """Get the global services instance for dependency injection."""
    if _services is None:
        raise RuntimeError("Services not initialized. Call set_services() first.")
    return _services


def get_trade_service() -> TradeService:
    return get_services().trade_service


def get_sync_service() -> TradeSyncService:
    return get_services().sync_service


def get_summary_service() -> SummaryService:
    return get_services().summary_service


def get_info_service() -> InfoService:
    return get_services().info_service


def require_credentials() -> None:
    """Reject the request with 401 unless the Kraken key pair is configured."""
    if not get_services().config.has_credentials:
        raise AuthError("API credentials not configured")
