"""Abstract base class for trade history sources."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from kraken_ledger.models import ExchangeStatus, TradePage


@dataclass
class TradeHistoryParams:
    """
    Pagination and filter parameters for one trade history request.

    `start` is exclusive and `end` inclusive, both unix seconds.
    """
    offset: int = 0
    start: Optional[int] = None
    end: Optional[int] = None
    trade_type: str = "all"
    consolidate_taker: bool = True
    include_trades: bool = False
    include_ledgers: bool = False


class TradeHistorySource(ABC):
    """
    Abstract interface for the trade-history fetch capability.

    This abstraction lets the sync service run against the live exchange
    or a scripted fake with no other changes.
    """

    @abstractmethod
    async def fetch_trades_page(self, params: TradeHistoryParams) -> TradePage:
        """
        Fetch one page of trade history.

        Args:
            params: Pagination cursor and filters

        Returns:
            TradePage with trades keyed by id and the upstream total count

        Raises:
            AuthError: credentials missing or rejected
            RateLimitError: the exchange throttled the request
            TransientError: network failure or temporary exchange error
            ProtocolError: the response could not be understood

        Note:
            One call is one upstream request. Pagination and retries are the
            caller's responsibility.
        """
        pass

    @abstractmethod
    async def get_system_status(self) -> ExchangeStatus:
        """
        Get the exchange's current operating status.

        Returns:
            ExchangeStatus, with status "unknown" if it could not be determined
        """
        pass

    async def close(self) -> None:
        """
        Clean up resources (e.g., close HTTP sessions).

        Override this if the data source holds resources that need cleanup.
        """
        pass
