from .rate_limiter import RateLimiter, RateLimitTier, get_tier
from .sync_service import TradeSyncService, SyncContext, SyncSettings, backoff_delay
from .trade_service import TradeService
from .summary_service import SummaryService
from .info_service import InfoService

__all__ = [
    "RateLimiter",
    "RateLimitTier",
    "get_tier",
    "TradeSyncService",
    "SyncContext",
    "SyncSettings",
    "backoff_delay",
    "TradeService",
    "SummaryService",
    "InfoService",
]
