"""Models describing sync state and sync outcomes."""

from typing import Literal, Optional
from pydantic import BaseModel, Field, ConfigDict

from .trade import Trade


class TradePage(BaseModel):
    """One page of trade history from the exchange."""
    model_config = ConfigDict(populate_by_name=True)

    trades: dict[str, Trade] = Field(default_factory=dict, description="Trades keyed by id")
    count: int = Field(default=0, description="Total trades matching the request upstream")

    @property
    def max_time(self) -> int:
        """Newest trade time in this page, 0 if empty."""
        return max((t.time for t in self.trades.values()), default=0)


class SyncCursor(BaseModel):
    """
    Singleton sync state persisted next to the trades.

    Only the sync service writes it.
    """
    model_config = ConfigDict(populate_by_name=True)

    lastSyncedAt: float = Field(default=0.0, description="Unix seconds of the last completed sync attempt")
    lastTradeTime: int = Field(default=0, description="Newest stored trade time")
    lastTradeId: Optional[str] = Field(default=None, description="Id of the newest stored trade")
    totalCount: int = Field(default=0, description="Trades in the store after the last sync")

    @property
    def never_synced(self) -> bool:
        return self.lastSyncedAt <= 0


class SyncResult(BaseModel):
    """Outcome of a single sync run."""
    model_config = ConfigDict(populate_by_name=True)

    mode: Literal["incremental", "full"] = "incremental"
    success: bool = True
    newTrades: int = Field(default=0, description="Rows written during the run")
    totalTrades: int = Field(default=0, description="Trades in the store after the run")
    pagesFetched: int = 0
    error: Optional[str] = None
    errorType: Optional[str] = Field(default=None, description="Error class name when the run failed")
