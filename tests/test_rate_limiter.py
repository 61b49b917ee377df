"""Tests for the decaying rate limiter."""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeClock
from kraken_ledger.services import RateLimiter, get_tier
from kraken_ledger.services.rate_limiter import INTERMEDIATE, PRO, STARTER, TRADES_HISTORY_COST


def test_reserve_under_ceiling_does_not_wait(clock: FakeClock, limiter: RateLimiter) -> None:
    async def run() -> None:
        for _ in range(10):
            await limiter.reserve(TRADES_HISTORY_COST)

    asyncio.run(run())
    assert clock.sleeps == []
    assert limiter.counter == pytest.approx(20.0)


def test_reserve_over_ceiling_waits_for_excess(clock: FakeClock, limiter: RateLimiter) -> None:
    async def run() -> None:
        for _ in range(11):
            await limiter.reserve(2)

    asyncio.run(run())
    # 20 + 2 - 20 = 2 units at 1 unit/s on the pro tier
    assert clock.sleeps == [pytest.approx(2.0)]
    assert limiter.counter == pytest.approx(20.0)


def test_counter_decays_with_elapsed_time(clock: FakeClock, limiter: RateLimiter) -> None:
    asyncio.run(limiter.reserve(10))
    clock.advance(4)
    status = limiter.status()
    assert status.counter == pytest.approx(6.0)
    assert status.maxCounter == 20
    assert status.accountTier == "pro"


def test_counter_never_goes_below_zero(clock: FakeClock, limiter: RateLimiter) -> None:
    asyncio.run(limiter.reserve(2))
    clock.advance(3600)
    assert limiter.status().counter == 0


def test_starter_tier_wait_uses_its_decay_rate() -> None:
    clock = FakeClock()
    limiter = RateLimiter(STARTER, clock=clock.time, sleep=clock.sleep)

    async def run() -> None:
        for _ in range(8):
            await limiter.reserve(2)

    asyncio.run(run())
    # 7 calls fill 14 of 15, the 8th needs 1 unit drained at 0.33/s
    assert len(clock.sleeps) == 1
    assert clock.sleeps[0] == pytest.approx(1 / 0.33)


def test_counter_bounded_after_every_reserve() -> None:
    clock = FakeClock()
    limiter = RateLimiter(PRO, clock=clock.time, sleep=clock.sleep)
    costs = [2, 1, 3, 2, 5, 2, 2, 4, 1, 2, 6, 2, 2, 3, 2, 2, 1, 2, 2, 7]
    gaps = [0, 0.5, 0, 0.1, 0, 2, 0, 0, 0.3, 0, 0, 1.5, 0, 0, 0, 0.2, 0, 0, 0, 0]

    async def run() -> list[float]:
        seen = []
        for cost, gap in zip(costs, gaps):
            clock.advance(gap)
            await limiter.reserve(cost)
            seen.append(limiter.counter)
        return seen

    for value in asyncio.run(run()):
        assert value <= PRO.max_counter


def test_recover_waits_for_full_drain_and_resets(clock: FakeClock, limiter: RateLimiter) -> None:
    async def run() -> None:
        await limiter.reserve(4)
        await limiter.recover()

    asyncio.run(run())
    assert clock.sleeps == [pytest.approx(20.0)]
    assert limiter.counter == 0
    assert limiter.status().counter == 0


def test_cost_above_ceiling_is_rejected(limiter: RateLimiter) -> None:
    with pytest.raises(ValueError):
        asyncio.run(limiter.reserve(25))


def test_get_tier_lookup() -> None:
    assert get_tier("Intermediate").max_counter == 20
    assert get_tier("intermediate").decay_per_second == 0.5
    with pytest.raises(ValueError):
        get_tier("platinum")


@pytest.mark.parametrize("tier", [STARTER, INTERMEDIATE, PRO])
def test_each_wait_is_a_single_sleep_at_large_clock_values(tier) -> None:
    clock = FakeClock(now=1_700_000_000)
    sleeps = []

    async def bounded_sleep(seconds: float) -> None:
        sleeps.append(seconds)
        if len(sleeps) > 40:
            raise RuntimeError(f"limiter kept sleeping: {sleeps[:5]}")
        clock.now += seconds

    limiter = RateLimiter(tier, clock=clock.time, sleep=bounded_sleep)

    async def run() -> None:
        for _ in range(30):
            await limiter.reserve(TRADES_HISTORY_COST)

    asyncio.run(run())

    # Calls that fit under the ceiling never sleep, each later call sleeps once
    fits = int(tier.max_counter // TRADES_HISTORY_COST)
    assert len(sleeps) == 30 - fits
    assert all(s >= 1.0 for s in sleeps)
    assert limiter.counter <= tier.max_counter
