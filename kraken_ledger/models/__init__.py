from .trade import Trade
from .kraken_trade import KrakenTrade
from .sync import TradePage, SyncCursor, SyncResult
from .history import TradeQuery, TradeHistoryResult, MAX_PAGE_LIMIT
from .summary import PairSummary, TradeSummary
from .info import (
    DatabaseStats,
    LastSyncInfo,
    HealthInfo,
    RateLimiterStatus,
    ExchangeStatus,
    ServiceInfo,
)
from .response import ApiResponse

__all__ = [
    "Trade",
    "KrakenTrade",
    "TradePage",
    "SyncCursor",
    "SyncResult",
    "TradeQuery",
    "TradeHistoryResult",
    "MAX_PAGE_LIMIT",
    "PairSummary",
    "TradeSummary",
    "DatabaseStats",
    "LastSyncInfo",
    "HealthInfo",
    "RateLimiterStatus",
    "ExchangeStatus",
    "ServiceInfo",
    "ApiResponse",
]
