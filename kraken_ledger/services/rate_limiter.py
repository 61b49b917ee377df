"""Client-side model of Kraken's decaying API call counter."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from kraken_ledger.models import RateLimiterStatus

logger = logging.getLogger(__name__)

# TradesHistory (like the other ledger/trade queries) adds 2 to the counter
TRADES_HISTORY_COST = 2.0

# Float noise tolerated when comparing against the ceiling
_EPSILON = 1e-9


@dataclass(frozen=True)
class RateLimitTier:
    """Counter ceiling and decay rate for an account verification tier."""
    name: str
    max_counter: float
    decay_per_second: float


STARTER = RateLimitTier("starter", 15.0, 0.33)
INTERMEDIATE = RateLimitTier("intermediate", 20.0, 0.5)
PRO = RateLimitTier("pro", 20.0, 1.0)

TIERS = {tier.name: tier for tier in (STARTER, INTERMEDIATE, PRO)}


def get_tier(name: str) -> RateLimitTier:
    """Look up a tier by name, case-insensitive."""
    try:
        return TIERS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown account tier {name!r}, expected one of {', '.join(TIERS)}"
        ) from None


class RateLimiter:
    """
    Decaying request-cost counter.

    The counter drops linearly at the tier's decay rate and never goes below
    zero. `reserve` waits until a call of the given cost fits under the
    ceiling, then commits the cost. Calls are serialized, so concurrent
    coroutines cannot both pass the check before either commits.
    """

    def __init__(
        self,
        tier: RateLimitTier = PRO,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.tier = tier
        self._clock = clock
        self._sleep = sleep
        self._counter = 0.0
        self._last_update = clock()
        self._lock = asyncio.Lock()

    @property
    def counter(self) -> float:
        """Counter value as of the last update, without decaying it."""
        return self._counter

    def _decay(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last_update)
        self._counter = max(0.0, self._counter - elapsed * self.tier.decay_per_second)
        self._last_update = now

    async def reserve(self, cost: float = TRADES_HISTORY_COST) -> None:
        """
        Block until `cost` fits under the ceiling, then add it to the counter.

        Raises:
            ValueError: if the cost alone exceeds the ceiling
        """
        if cost > self.tier.max_counter:
            raise ValueError(
                f"Call cost {cost} exceeds the {self.tier.name} ceiling {self.tier.max_counter}"
            )

        async with self._lock:
            self._decay()
            if self._counter + cost > self.tier.max_counter + _EPSILON:
                wait = (self._counter + cost - self.tier.max_counter) / self.tier.decay_per_second
                logger.info(
                    f"Rate limit protection: waiting {wait:.2f}s "
                    f"(counter {self._counter:.2f}/{self.tier.max_counter:g})",
                    extra={"event": "rate_limiter.wait"},
                )
                await self._sleep(wait)
                self._decay()
                # One wait covers the excess; clock rounding must not leave a residue
                self._counter = min(self._counter, self.tier.max_counter - cost)

            self._counter = min(self._counter + cost, self.tier.max_counter)
            logger.debug(
                f"Rate limiter counter at {self._counter:.2f}/{self.tier.max_counter:g} "
                f"({self.tier.name})",
                extra={"event": "rate_limiter.reserve"},
            )

    async def recover(self) -> None:
        """
        Recovery path after the exchange rejected a call for rate limiting.

        The local estimate was wrong, so assume the counter is full, wait for
        it to drain completely and start again from zero.
        """
        async with self._lock:
            self._counter = self.tier.max_counter
            wait = self.tier.max_counter / self.tier.decay_per_second
            logger.warning(
                f"Rate limit hit, waiting {wait:.1f}s for full recovery",
                extra={"event": "rate_limiter.recover"},
            )
            await self._sleep(wait)
            self._counter = 0.0
            self._last_update = self._clock()

    def status(self) -> RateLimiterStatus:
        """Current (decayed) counter for debugging and the info endpoint."""
        self._decay()
        return RateLimiterStatus(
            counter=round(self._counter, 2),
            maxCounter=self.tier.max_counter,
            decayPerSecond=self.tier.decay_per_second,
            accountTier=self.tier.name,
        )
