"""Trade history query and result models."""

from typing import Literal, Optional
from pydantic import BaseModel, Field, ConfigDict

from .trade import Trade

MAX_PAGE_LIMIT = 500


class TradeQuery(BaseModel):
    """Filter and pagination for reading trades from the local store."""
    model_config = ConfigDict(populate_by_name=True)

    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=50, ge=1, le=MAX_PAGE_LIMIT)
    pair: Optional[str] = Field(default=None, description="Substring match on the asset pair")
    side: Optional[Literal["buy", "sell"]] = None
    startTime: Optional[int] = Field(default=None, description="Inclusive lower bound, unix seconds")
    endTime: Optional[int] = Field(default=None, description="Inclusive upper bound, unix seconds")


class TradeHistoryResult(BaseModel):
    """
    A page of synchronized trade history.

    `warning` is set when a sync was needed but failed, in which case the
    trades are whatever the local cache already held.
    """
    model_config = ConfigDict(populate_by_name=True)

    count: int = Field(description="Total trades matching the filter")
    trades: list[Trade] = Field(description="Requested page, newest first")
    lastSyncedAt: Optional[float] = Field(default=None, description="Unix seconds of the last sync")
    warning: Optional[str] = None
