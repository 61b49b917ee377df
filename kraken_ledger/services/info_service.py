"""Info service reporting store statistics and sync health."""

from datetime import datetime, timezone
from typing import Optional

from kraken_ledger.database import TradeStore
from kraken_ledger.datasources import TradeHistorySource
from kraken_ledger.models import (
    DatabaseStats,
    HealthInfo,
    LastSyncInfo,
    ServiceInfo,
)
from .rate_limiter import RateLimiter
from .sync_service import TradeSyncService


def _iso(seconds: Optional[float]) -> Optional[str]:
    if seconds is None:
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()


class InfoService:
    """Read-only view over the store, the sync cursor and the exchange."""

    def __init__(
        self,
        store: TradeStore,
        sync_service: TradeSyncService,
        limiter: RateLimiter,
        datasource: TradeHistorySource,
        has_credentials: bool,
    ):
        self.store = store
        self.sync_service = sync_service
        self.limiter = limiter
        self.datasource = datasource
        self.has_credentials = has_credentials

    async def get_info(self) -> ServiceInfo:
        """
        Collect store statistics, last sync metadata and health flags.

        The exchange status probe is best effort; it reports "unknown"
        rather than failing the call.
        """
        total = self.store.count()
        oldest = self.store.min_trade_time()
        newest = self.store.max_trade_time() if total else None
        cursor = self.store.read_cursor()

        last_sync = None
        if not cursor.never_synced:
            last_sync = LastSyncInfo(
                timestamp=cursor.lastSyncedAt,
                formattedTime=_iso(cursor.lastSyncedAt),
                lastTradeId=cursor.lastTradeId,
                lastTradeTime=cursor.lastTradeTime,
                totalCount=cursor.totalCount,
            )

        return ServiceInfo(
            database=DatabaseStats(
                totalTrades=total,
                oldestTradeTime=oldest,
                newestTradeTime=newest,
            ),
            lastSync=last_sync,
            health=HealthInfo(
                dbConnected=True,
                hasData=total > 0,
                hasCredentials=self.has_credentials,
                syncInProgress=self.sync_service.in_progress,
                oldestTrade=_iso(oldest),
                newestTrade=_iso(newest),
            ),
            rateLimiter=self.limiter.status(),
            exchange=await self.datasource.get_system_status(),
        )
