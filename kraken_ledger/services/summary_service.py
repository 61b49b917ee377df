"""Summary service for aggregating cached trades."""

from typing import Iterable

from kraken_ledger.database import TradeStore
from kraken_ledger.models import PairSummary, Trade, TradeQuery, TradeSummary


class SummaryService:
    """Service for volume, fee and realized PnL aggregates."""

    def __init__(self, store: TradeStore):
        self.store = store

    def get_summary(self, query: TradeQuery) -> TradeSummary:
        """
        Aggregate every cached trade matching the filter.

        Offset and limit are ignored. Only reads the store, never syncs.
        """
        trades = list(self.store.iter_trades(query))
        aggregates = calculate_trade_aggregates(trades)

        by_pair: dict[str, list[Trade]] = {}
        for trade in trades:
            by_pair.setdefault(trade.pair, []).append(trade)

        pairs = []
        for pair, pair_trades in by_pair.items():
            pair_aggregates = calculate_trade_aggregates(pair_trades)
            pairs.append(PairSummary(
                pair=pair,
                tradeCount=pair_aggregates["trade_count"],
                volume=pair_aggregates["volume"],
                feesPaid=pair_aggregates["fees_paid"],
                realizedPnl=pair_aggregates["realized_pnl"],
            ))
        # Largest pairs first
        pairs.sort(key=lambda p: (-p.volume, p.pair))

        maker_count = sum(1 for t in trades if t.isMaker)

        return TradeSummary(
            tradeCount=aggregates["trade_count"],
            buyCount=sum(1 for t in trades if t.is_buy),
            sellCount=sum(1 for t in trades if not t.is_buy),
            volume=aggregates["volume"],
            feesPaid=aggregates["fees_paid"],
            realizedPnl=aggregates["realized_pnl"],
            makerRatio=maker_count / len(trades) if trades else None,
            firstTradeTime=trades[0].time if trades else None,
            lastTradeTime=trades[-1].time if trades else None,
            pairs=pairs,
        )


def calculate_trade_aggregates(trades: Iterable[Trade]) -> dict:
    """
    Calculate aggregate statistics from trades.

    Decimal strings are parsed to float here, for display only.

    Returns:
        dict with: realized_pnl, fees_paid, trade_count, volume
    """
    realized_pnl = 0.0
    fees_paid = 0.0
    volume = 0.0
    trade_count = 0

    for trade in trades:
        trade_count += 1
        volume += trade.cost_amount
        fees_paid += trade.fee_amount
        if trade.positionStatus == "closed" and trade.netPnl is not None:
            realized_pnl += trade.netPnl

    return {
        "realized_pnl": realized_pnl,
        "fees_paid": fees_paid,
        "trade_count": trade_count,
        "volume": volume,
    }
