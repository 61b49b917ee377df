"""Service info models."""

from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class DatabaseStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    totalTrades: int
    oldestTradeTime: Optional[int] = None
    newestTradeTime: Optional[int] = None


class LastSyncInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timestamp: float = Field(description="Unix seconds")
    formattedTime: str = Field(description="ISO 8601, UTC")
    lastTradeId: Optional[str] = None
    lastTradeTime: int = 0
    totalCount: int = 0


class HealthInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    dbConnected: bool
    hasData: bool
    hasCredentials: bool
    syncInProgress: bool
    oldestTrade: Optional[str] = None
    newestTrade: Optional[str] = None


class RateLimiterStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    counter: float
    maxCounter: float
    decayPerSecond: float
    accountTier: str


class ExchangeStatus(BaseModel):
    """Kraken SystemStatus: online, maintenance, cancel_only, post_only."""
    model_config = ConfigDict(populate_by_name=True)

    status: str
    timestamp: Optional[str] = None


class ServiceInfo(BaseModel):
    """Store statistics, last sync metadata and health."""
    model_config = ConfigDict(populate_by_name=True)

    database: DatabaseStats
    lastSync: Optional[LastSyncInfo] = None
    health: HealthInfo
    rateLimiter: RateLimiterStatus
    exchange: ExchangeStatus
