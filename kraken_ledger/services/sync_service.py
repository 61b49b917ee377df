"""Sync service: walks Kraken trade history pages into the local store."""

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Literal, Optional

from kraken_ledger.database import TradeStore
from kraken_ledger.datasources import TradeHistoryParams, TradeHistorySource
from kraken_ledger.datasources.kraken import TRADES_PER_PAGE
from kraken_ledger.errors import (
    FetchError,
    LedgerError,
    RateLimitError,
    StoreError,
    SyncInProgressError,
)
from kraken_ledger.models import SyncCursor, SyncResult, TradePage
from .rate_limiter import TRADES_HISTORY_COST, RateLimiter

logger = logging.getLogger(__name__)

SyncMode = Literal["incremental", "full"]


def backoff_delay(attempt: int, base: float = 1.0, cap: float = 10.0) -> float:
    """
    Delay before retrying after the given number of failed attempts.

    Exponential in the attempt number (0-based), capped:
    1s, 2s, 4s, 8s, 10s, 10s, ... with the defaults.
    """
    return min(base * (2 ** attempt), cap)


@dataclass
class SyncSettings:
    """Tunables for a sync run."""
    page_size: int = TRADES_PER_PAGE
    max_attempts: int = 5
    max_rate_limit_retries: int = 3
    backoff_base: float = 1.0
    backoff_cap: float = 10.0
    request_cost: float = TRADES_HISTORY_COST


@dataclass
class SyncContext:
    """
    Everything a sync run touches.

    Owned by the application and injected, so tests can swap in a fake
    source, an in-memory store and a fake clock.
    """
    source: TradeHistorySource
    store: TradeStore
    limiter: RateLimiter
    settings: SyncSettings = field(default_factory=SyncSettings)
    clock: Callable[[], float] = time.time
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep


class TradeSyncService:
    """
    Drives paginated, rate-limited fetches from the trade history source.

    At most one run is in flight. An incremental request arriving during a
    run waits for it and returns its result; a full resync request during a
    run is rejected.
    """

    def __init__(self, context: SyncContext):
        self.context = context
        self._inflight: Optional["asyncio.Task[SyncResult]"] = None

    @property
    def in_progress(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def sync(self) -> SyncResult:
        """
        Incremental sync from the newest stored trade.

        Returns:
            SyncResult; fetch and store failures are reported in it, not raised
        """
        if self.in_progress:
            logger.info("Sync already in progress, waiting for its result")
            return await asyncio.shield(self._inflight)
        return await self._launch("incremental")

    async def full_resync(self) -> SyncResult:
        """
        Reset the cursor and walk the whole trade history again.

        Raises:
            SyncInProgressError: if another run is active
        """
        if self.in_progress:
            raise SyncInProgressError("A sync is already in progress")
        return await self._launch("full")

    async def _launch(self, mode: SyncMode) -> SyncResult:
        task = asyncio.ensure_future(self._run(mode))
        self._inflight = task
        # A cancelled caller must not abort the shared run
        return await asyncio.shield(task)

    async def _run(self, mode: SyncMode) -> SyncResult:
        ctx = self.context
        store = ctx.store
        page_size = ctx.settings.page_size

        offset = 0
        pages_fetched = 0
        pages_stored = 0
        written = 0
        page_budget: Optional[int] = None
        failure: Optional[LedgerError] = None
        previous_cursor: Optional[SyncCursor] = None

        try:
            if mode == "full":
                previous_cursor = store.read_cursor()
                store.reset_cursor()
                start = None
            else:
                latest = store.max_trade_time()
                start = latest + 1 if latest > 0 else None
            cursor_time = store.max_trade_time()

            logger.info(
                f"Starting {mode} sync (start={start})",
                extra={"event": "sync.start", "mode": mode},
            )

            while True:
                page = await self._fetch_page(TradeHistoryParams(offset=offset, start=start))
                pages_fetched += 1

                written += store.upsert(page.trades)
                pages_stored += 1
                cursor_time = max(cursor_time, page.max_time)

                if page_budget is None:
                    # Page budget is fixed by the first reported count
                    page_budget = max(1, math.ceil(page.count / page_size))

                batch = len(page.trades)
                logger.info(
                    f"Page {pages_fetched} at offset {offset}: {batch} trades "
                    f"(available {page.count}, cursor {cursor_time})",
                    extra={"event": "sync.page", "mode": mode},
                )

                if batch < page_size or offset + page_size >= page.count or pages_fetched >= page_budget:
                    break
                offset += page_size

        except (FetchError, StoreError) as e:
            failure = e
            logger.error(
                f"{mode.capitalize()} sync failed after {pages_fetched} pages: {e}",
                extra={"event": "sync.failed", "mode": mode},
            )

        if failure is None or pages_stored > 0:
            try:
                self._persist_cursor()
            except StoreError as e:
                logger.error(f"Failed to persist sync cursor: {e}", extra={"event": "sync.failed"})
                failure = failure or e
        elif previous_cursor is not None:
            # Nothing was written, so the reset must not stick
            try:
                store.write_cursor(previous_cursor)
            except StoreError as e:
                logger.error(f"Failed to restore sync cursor: {e}", extra={"event": "sync.failed"})

        result = SyncResult(
            mode=mode,
            success=failure is None,
            newTrades=written,
            totalTrades=self._safe_count(),
            pagesFetched=pages_fetched,
            error=failure.message if failure else None,
            errorType=type(failure).__name__ if failure else None,
        )
        if failure is None:
            logger.info(
                f"{mode.capitalize()} sync completed: {written} trades written over "
                f"{pages_fetched} pages, {result.totalTrades} in store",
                extra={"event": "sync.done", "mode": mode},
            )
        return result

    async def _fetch_page(self, params: TradeHistoryParams) -> TradePage:
        """Fetch one page through the rate limiter, retrying what is retryable."""
        ctx = self.context
        settings = ctx.settings
        transient_failures = 0
        rate_limit_retries = 0

        while True:
            await ctx.limiter.reserve(settings.request_cost)
            try:
                return await ctx.source.fetch_trades_page(params)
            except RateLimitError as e:
                if rate_limit_retries >= settings.max_rate_limit_retries:
                    raise
                rate_limit_retries += 1
                logger.warning(
                    f"Rate limited at offset {params.offset} "
                    f"(retry {rate_limit_retries}/{settings.max_rate_limit_retries}): {e}",
                    extra={"event": "sync.rate_limited"},
                )
                await ctx.limiter.recover()
            except FetchError as e:
                if not e.retryable:
                    raise
                transient_failures += 1
                if transient_failures >= settings.max_attempts:
                    raise
                delay = backoff_delay(
                    transient_failures - 1, settings.backoff_base, settings.backoff_cap
                )
                logger.warning(
                    f"Fetch at offset {params.offset} failed "
                    f"(attempt {transient_failures}/{settings.max_attempts}), "
                    f"retrying in {delay:g}s: {e}",
                    extra={"event": "sync.retry"},
                )
                await ctx.sleep(delay)

    def _persist_cursor(self) -> None:
        """Recompute the cursor from store truth and write it."""
        store = self.context.store
        cursor = SyncCursor(
            lastSyncedAt=self.context.clock(),
            lastTradeTime=store.max_trade_time(),
            lastTradeId=store.latest_trade_id(),
            totalCount=store.count(),
        )
        store.write_cursor(cursor)

    def _safe_count(self) -> int:
        try:
            return self.context.store.count()
        except StoreError as e:
            logger.error(f"Could not count stored trades: {e}")
            return 0
