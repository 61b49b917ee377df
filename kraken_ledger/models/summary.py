"""Trade summary models for API responses."""

from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class PairSummary(BaseModel):
    """Aggregates for a single asset pair."""
    model_config = ConfigDict(populate_by_name=True)

    pair: str
    tradeCount: int
    volume: float = Field(description="Sum of trade cost (quote currency)")
    feesPaid: float
    realizedPnl: float = Field(description="Sum of net PnL of closed positions")


class TradeSummary(BaseModel):
    """
    Aggregated statistics over the cached trades matching a filter.
    """
    model_config = ConfigDict(populate_by_name=True)

    tradeCount: int
    buyCount: int
    sellCount: int
    volume: float = Field(description="Sum of trade cost (quote currency)")
    feesPaid: float
    realizedPnl: float = Field(description="Sum of net PnL of closed positions")
    makerRatio: Optional[float] = Field(default=None, description="Share of maker fills, None without trades")
    firstTradeTime: Optional[int] = None
    lastTradeTime: Optional[int] = None
    pairs: list[PairSummary] = Field(default_factory=list)
