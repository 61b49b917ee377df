from .base import TradeHistoryParams, TradeHistorySource
from .kraken import KrakenDataSource

__all__ = [
    "TradeHistoryParams",
    "TradeHistorySource",
    "KrakenDataSource",
]
