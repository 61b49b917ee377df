"""Tests for the paginated, rate-limited sync service."""

from __future__ import annotations

import asyncio
import math

import pytest

from conftest import BASE_TIME, FakeClock, ScriptedSource, make_trade, make_trades
from kraken_ledger.database import TradeStore
from kraken_ledger.errors import (
    AuthError,
    FetchError,
    ProtocolError,
    RateLimitError,
    StoreError,
    SyncInProgressError,
    TransientError,
)
from kraken_ledger.models import TradeQuery
from kraken_ledger.services import TradeSyncService, backoff_delay


def _all_trades(store: TradeStore):
    return store.query(TradeQuery(limit=500))


def test_backoff_schedule() -> None:
    assert [backoff_delay(a) for a in range(6)] == [1, 2, 4, 8, 10, 10]
    assert backoff_delay(3, base=0.5, cap=3) == 3


def test_full_resync_walks_all_pages(
    sync_service: TradeSyncService, source: ScriptedSource, store: TradeStore, clock: FakeClock
) -> None:
    result = asyncio.run(sync_service.full_resync())

    assert result.success
    assert result.mode == "full"
    assert result.pagesFetched == 3
    assert result.newTrades == 120
    assert result.totalTrades == 120
    assert [call.offset for call in source.calls] == [0, 50, 100]
    assert all(call.start is None for call in source.calls)

    cursor = store.read_cursor()
    assert cursor.totalCount == 120
    assert cursor.lastTradeTime == BASE_TIME + 119
    assert cursor.lastTradeId == "T0119"
    assert cursor.lastSyncedAt == clock.now


def test_rate_limit_on_page_two_recovers_and_completes(
    sync_service: TradeSyncService, source: ScriptedSource, store: TradeStore, clock: FakeClock
) -> None:
    source.errors[2] = RateLimitError("EAPI:Rate limit exceeded")

    result = asyncio.run(sync_service.full_resync())

    assert result.success
    assert [call.offset for call in source.calls] == [0, 50, 50, 100]
    # Recovery drains the full pro-tier counter: 20 units at 1 unit/s
    assert pytest.approx(20.0) in clock.sleeps
    assert store.count() == 120
    assert result.totalTrades == 120


def test_rate_limit_retries_are_bounded(
    sync_service: TradeSyncService, source: ScriptedSource, store: TradeStore
) -> None:
    for call in range(1, 10):
        source.errors[call] = RateLimitError("EAPI:Rate limit exceeded")

    result = asyncio.run(sync_service.sync())

    assert not result.success
    assert result.errorType == "RateLimitError"
    # One attempt plus three retries
    assert len(source.calls) == 4
    assert store.count() == 0


def test_transient_errors_back_off_then_succeed(
    sync_service: TradeSyncService, source: ScriptedSource, clock: FakeClock
) -> None:
    source.errors[1] = TransientError("timeout")
    source.errors[2] = TransientError("EService:Unavailable")

    result = asyncio.run(sync_service.sync())

    assert result.success
    assert result.totalTrades == 120
    assert clock.sleeps[:2] == [1.0, 2.0]
    assert [call.offset for call in source.calls] == [0, 0, 0, 50, 100]


def test_transient_retry_exhaustion_fails_without_touching_store(
    sync_service: TradeSyncService, source: ScriptedSource, store: TradeStore, clock: FakeClock
) -> None:
    for call in range(1, 20):
        source.errors[call] = TransientError("connection reset")

    result = asyncio.run(sync_service.sync())

    assert not result.success
    assert result.errorType == "TransientError"
    assert len(source.calls) == 5
    assert clock.sleeps == [1.0, 2.0, 4.0, 8.0]
    assert store.count() == 0
    assert store.read_cursor().never_synced


@pytest.mark.parametrize("error", [AuthError("EAPI:Invalid key"), ProtocolError("bad shape")])
def test_fatal_errors_stop_immediately(
    sync_service: TradeSyncService, source: ScriptedSource, error: Exception
) -> None:
    source.errors[1] = error

    result = asyncio.run(sync_service.sync())

    assert not result.success
    assert result.errorType == type(error).__name__
    assert result.error == str(error)
    assert len(source.calls) == 1


def test_partial_failure_keeps_written_pages_and_cursor(
    sync_service: TradeSyncService, source: ScriptedSource, store: TradeStore
) -> None:
    source.errors[2] = ProtocolError("Malformed trade")

    result = asyncio.run(sync_service.sync())

    assert not result.success
    assert result.newTrades == 50
    assert store.count() == 50
    cursor = store.read_cursor()
    assert not cursor.never_synced
    assert cursor.totalCount == 50
    assert cursor.lastTradeTime == BASE_TIME + 119


def test_incremental_after_full_with_no_new_data_is_a_no_op(
    sync_service: TradeSyncService, source: ScriptedSource, store: TradeStore
) -> None:
    asyncio.run(sync_service.full_resync())
    before = _all_trades(store)
    source.calls.clear()

    result = asyncio.run(sync_service.sync())

    assert result.success
    assert result.newTrades == 0
    assert len(source.calls) == 1
    assert source.calls[0].start == BASE_TIME + 119 + 1
    assert _all_trades(store) == before
    assert store.read_cursor().totalCount == 120


def test_incremental_sync_fetches_only_newer_trades(
    sync_service: TradeSyncService, source: ScriptedSource, store: TradeStore
) -> None:
    asyncio.run(sync_service.sync())
    source.trades.extend(make_trades(3, start_time=BASE_TIME + 500, prefix="N"))
    source.calls.clear()

    result = asyncio.run(sync_service.sync())

    assert result.success
    assert result.newTrades == 3
    assert result.totalTrades == 123
    assert len(source.calls) == 1
    assert store.read_cursor().lastTradeTime == BASE_TIME + 502


def test_cursor_time_never_moves_backwards(
    sync_service: TradeSyncService, source: ScriptedSource, store: TradeStore
) -> None:
    asyncio.run(sync_service.sync())
    before = store.read_cursor().lastTradeTime

    # Upstream now only reports an older trade
    source.trades = [make_trade("OLD", BASE_TIME - 1000)]
    asyncio.run(sync_service.full_resync())

    assert store.read_cursor().lastTradeTime >= before


def test_full_resync_resets_then_rebuilds_cursor(
    sync_service: TradeSyncService, store: TradeStore, clock: FakeClock
) -> None:
    asyncio.run(sync_service.sync())
    clock.advance(60)

    result = asyncio.run(sync_service.full_resync())

    assert result.success
    assert result.newTrades == 120
    cursor = store.read_cursor()
    assert cursor.lastSyncedAt == clock.now
    assert cursor.totalCount == 120


def test_pagination_terminates_when_count_keeps_growing(
    sync_service: TradeSyncService, source: ScriptedSource
) -> None:
    source.trades = make_trades(500)
    # Reported total grows on every call, pages are always full
    source.count_override = lambda call: 100 + 50 * call

    result = asyncio.run(sync_service.sync())

    assert result.success
    first_count = 150
    assert len(source.calls) <= math.ceil(first_count / 50)


def test_empty_upstream_finishes_after_one_call(
    sync_service: TradeSyncService, source: ScriptedSource, store: TradeStore
) -> None:
    source.trades = []

    result = asyncio.run(sync_service.sync())

    assert result.success
    assert result.pagesFetched == 1
    assert store.count() == 0
    assert not store.read_cursor().never_synced


def test_concurrent_syncs_share_one_run(
    sync_service: TradeSyncService, source: ScriptedSource
) -> None:
    async def run():
        return await asyncio.gather(sync_service.sync(), sync_service.sync())

    first, second = asyncio.run(run())

    assert first == second
    assert len(source.calls) == 3
    assert not sync_service.in_progress


def test_full_resync_rejected_while_sync_in_flight(
    sync_service: TradeSyncService, source: ScriptedSource
) -> None:
    async def run():
        source.gate = asyncio.Event()
        running = asyncio.ensure_future(sync_service.sync())
        await asyncio.sleep(0)
        assert sync_service.in_progress

        with pytest.raises(SyncInProgressError):
            await sync_service.full_resync()

        source.gate.set()
        return await running

    result = asyncio.run(run())
    assert result.success
    assert result.totalTrades == 120


def test_store_failure_is_reported(
    sync_service: TradeSyncService, store: TradeStore, monkeypatch
) -> None:
    def broken_upsert(trades):
        raise StoreError("disk I/O error")

    monkeypatch.setattr(store, "upsert", broken_upsert)

    result = asyncio.run(sync_service.sync())

    assert not result.success
    assert result.errorType == "StoreError"
    assert store.read_cursor().never_synced


def test_failed_full_resync_before_any_page_keeps_cursor(
    sync_service: TradeSyncService, source: ScriptedSource, store: TradeStore, clock: FakeClock
) -> None:
    asyncio.run(sync_service.sync())
    before = store.read_cursor()
    clock.advance(60)
    source.errors[len(source.calls) + 1] = AuthError("EAPI:Invalid key")

    result = asyncio.run(sync_service.full_resync())

    assert not result.success
    assert result.pagesFetched == 0
    assert store.read_cursor() == before
    assert not store.read_cursor().never_synced


def test_retry_follows_error_retryable_flag(
    sync_service: TradeSyncService, source: ScriptedSource
) -> None:
    assert TransientError.retryable and RateLimitError.retryable
    assert not FetchError.retryable and not ProtocolError.retryable and not AuthError.retryable

    source.errors[1] = FetchError("unclassified upstream failure")

    result = asyncio.run(sync_service.sync())

    assert not result.success
    assert result.errorType == "FetchError"
    assert len(source.calls) == 1
