"""Trade service: cache-aside reads over the local trade store."""

import logging
import time
from typing import Callable

from kraken_ledger.database import TradeStore
from kraken_ledger.models import SyncCursor, TradeHistoryResult, TradeQuery
from .sync_service import TradeSyncService

logger = logging.getLogger(__name__)

DEFAULT_FRESHNESS_WINDOW = 5 * 60.0


class TradeService:
    """Service for reading trades, revalidating the cache when it is stale."""

    def __init__(
        self,
        store: TradeStore,
        sync_service: TradeSyncService,
        freshness_window: float = DEFAULT_FRESHNESS_WINDOW,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.sync_service = sync_service
        self.freshness_window = freshness_window
        self._clock = clock

    def needs_sync(self, cursor: SyncCursor, force_refresh: bool = False) -> bool:
        """Whether a read should be preceded by an incremental sync."""
        if force_refresh:
            return True
        if self.store.count() == 0:
            return True
        return self._clock() - cursor.lastSyncedAt > self.freshness_window

    async def get_trades(
        self,
        query: TradeQuery,
        force_refresh: bool = False,
    ) -> TradeHistoryResult:
        """
        Get a page of trades, syncing first if the cache is stale or empty.

        Args:
            query: Filter and pagination
            force_refresh: Sync before reading regardless of freshness

        Returns:
            TradeHistoryResult; if the sync failed, the cached data is
            returned with a warning instead of an error
        """
        cursor = self.store.read_cursor()
        warning = None

        if self.needs_sync(cursor, force_refresh):
            logger.info("Trade cache is stale or empty, syncing before read")
            result = await self.sync_service.sync()
            if not result.success:
                warning = f"Sync failed, showing cached trades: {result.error}"
                logger.warning(warning)
            cursor = self.store.read_cursor()

        trades, total = self.store.query(query)
        if warning is None:
            logger.debug(f"Returning {len(trades)} of {total} trades from cache")

        return TradeHistoryResult(
            count=total,
            trades=trades,
            lastSyncedAt=None if cursor.never_synced else cursor.lastSyncedAt,
            warning=warning,
        )
