from .store import TradeStore

__all__ = [
    "TradeStore",
]
