"""Shared fixtures: in-memory store, fake clock and a scripted trade source."""

from __future__ import annotations

import asyncio
import socket
from typing import Optional

import pytest

from kraken_ledger.database import TradeStore
from kraken_ledger.datasources import TradeHistoryParams, TradeHistorySource
from kraken_ledger.models import ExchangeStatus, Trade, TradePage
from kraken_ledger.services import RateLimiter, SyncContext, SyncSettings, TradeSyncService
from kraken_ledger.services.rate_limiter import PRO

PAGE_SIZE = 50
BASE_TIME = 1_700_000_000


def make_trade(
    trade_id: str,
    time: int,
    pair: str = "XXBTZUSD",
    side: str = "buy",
    cost: str = "100.00",
    fee: str = "0.26",
    **overrides,
) -> Trade:
    fields = dict(
        id=trade_id,
        orderId=f"O-{trade_id}",
        pair=pair,
        time=time,
        side=side,
        orderType="limit",
        price="50000.0",
        cost=cost,
        fee=fee,
        volume="0.002",
        margin="0.00000",
        isMaker=False,
        ledgerIds=[f"L-{trade_id}"],
    )
    fields.update(overrides)
    return Trade(**fields)


def make_trades(count: int, start_time: int = BASE_TIME, prefix: str = "T") -> list[Trade]:
    return [make_trade(f"{prefix}{i:04d}", start_time + i) for i in range(count)]


class FakeClock:
    """Manually advanced clock whose sleeps advance time and are recorded."""

    def __init__(self, now: float = float(BASE_TIME)):
        self.now = now
        self.sleeps: list[float] = []

    def time(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class ScriptedSource(TradeHistorySource):
    """
    In-memory stand-in for the Kraken TradesHistory endpoint.

    Pages newest first, `start` is exclusive. `errors` maps a 1-based call
    number to the exception that call raises instead of returning a page.
    """

    def __init__(self, trades: Optional[list[Trade]] = None, page_size: int = PAGE_SIZE):
        self.trades: list[Trade] = list(trades or [])
        self.page_size = page_size
        self.errors: dict[int, Exception] = {}
        self.calls: list[TradeHistoryParams] = []
        self.gate: Optional[asyncio.Event] = None
        self.count_override = None
        self.closed = False

    async def fetch_trades_page(self, params: TradeHistoryParams) -> TradePage:
        self.calls.append(params)
        call_number = len(self.calls)
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(0)

        if call_number in self.errors:
            raise self.errors[call_number]

        matching = [
            t for t in self.trades
            if params.start is None or t.time > params.start
        ]
        matching.sort(key=lambda t: (-t.time, t.id))
        page = matching[params.offset:params.offset + self.page_size]
        count = len(matching)
        if self.count_override is not None:
            count = self.count_override(call_number)
        return TradePage(trades={t.id: t for t in page}, count=count)

    async def get_system_status(self) -> ExchangeStatus:
        return ExchangeStatus(status="online", timestamp="2026-10-19T00:00:00Z")

    async def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def _block_network(monkeypatch):
    def _no_network(*args, **kwargs):  # noqa: ANN001
        raise RuntimeError("Network access blocked in tests")

    monkeypatch.setattr(socket, "create_connection", _no_network)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store():
    trade_store = TradeStore(":memory:")
    yield trade_store
    trade_store.close()


@pytest.fixture
def source() -> ScriptedSource:
    return ScriptedSource(make_trades(120))


@pytest.fixture
def limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(PRO, clock=clock.time, sleep=clock.sleep)


@pytest.fixture
def sync_service(source, store, limiter, clock) -> TradeSyncService:
    context = SyncContext(
        source=source,
        store=store,
        limiter=limiter,
        settings=SyncSettings(page_size=PAGE_SIZE),
        clock=clock.time,
        sleep=clock.sleep,
    )
    return TradeSyncService(context)
