"""SQLite-backed trade store with a singleton sync cursor."""

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Iterator, Optional

from kraken_ledger.errors import StoreError
from kraken_ledger.models import SyncCursor, Trade, TradeQuery
from .schema import (
    SYNC_STATE_SEED,
    SYNC_STATE_TABLE_SCHEMA,
    TRADES_INDEXES,
    TRADES_TABLE_SCHEMA,
    UPSERT_TRADE_SQL,
)

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


class TradeStore:
    """
    Durable keyed storage of trades plus the sync cursor.

    Each upsert batch is a single transaction, so readers never observe a
    half-written page. The connection is shared, guarded by a lock.
    """

    def __init__(self, path: str = MEMORY_PATH):
        """
        Open (and create if needed) the trade database.

        Args:
            path: SQLite file path, or ":memory:" for a throwaway store
        """
        self.path = path
        # Queries are short and run inline on the event loop. The connection
        # may still be used from other threads (threadpool handlers, the
        # test client portal), so every access holds this lock.
        self._lock = threading.RLock()
        try:
            if path != MEMORY_PATH:
                Path(path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._initialize()
        except (sqlite3.Error, OSError) as e:
            raise StoreError(f"Failed to open trade store at {path}: {e}") from e

    def _initialize(self) -> None:
        """Create tables and indexes, seed the cursor row."""
        with self._lock, self._conn:
            self._conn.execute("PRAGMA journal_mode = WAL")
            self._conn.execute("PRAGMA synchronous = NORMAL")
            self._conn.execute(TRADES_TABLE_SCHEMA)
            for index_sql in TRADES_INDEXES:
                self._conn.execute(index_sql)
            self._conn.execute(SYNC_STATE_TABLE_SCHEMA)
            self._conn.execute(SYNC_STATE_SEED)
        logger.info(f"Trade store initialized at {self.path}")

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ------------------------------------------------------------------
    # Trades
    # ------------------------------------------------------------------

    def upsert(self, trades: dict[str, Trade]) -> int:
        """
        Insert or replace trades by id in one transaction.

        Args:
            trades: Trades keyed by id

        Returns:
            Number of rows written
        """
        if not trades:
            return 0

        rows = [_trade_to_row(trade_id, trade) for trade_id, trade in trades.items()]
        try:
            with self._lock, self._conn:
                self._conn.executemany(UPSERT_TRADE_SQL, rows)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to upsert {len(rows)} trades: {e}") from e

        logger.debug(f"Upserted {len(rows)} trades")
        return len(rows)

    def query(self, query: TradeQuery) -> tuple[list[Trade], int]:
        """
        Read a page of trades, newest first with id as tie-break.

        Returns:
            (page of trades, total number of trades matching the filter)
        """
        where, params = _build_where(query)
        try:
            with self._lock:
                total = self._conn.execute(
                    f"SELECT COUNT(*) FROM trades {where}", params
                ).fetchone()[0]
                rows = self._conn.execute(
                    f"SELECT * FROM trades {where} ORDER BY time DESC, id ASC LIMIT ? OFFSET ?",
                    [*params, query.limit, query.offset],
                ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to query trades: {e}") from e

        return [_row_to_trade(row) for row in rows], total

    def iter_trades(self, query: TradeQuery) -> Iterator[Trade]:
        """Yield every trade matching the filter, ignoring offset and limit."""
        where, params = _build_where(query)
        try:
            with self._lock:
                rows = self._conn.execute(
                    f"SELECT * FROM trades {where} ORDER BY time ASC, id ASC", params
                ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read trades: {e}") from e

        for row in rows:
            yield _row_to_trade(row)

    def count(self) -> int:
        return self._scalar("SELECT COUNT(*) FROM trades") or 0

    def max_trade_time(self) -> int:
        """Newest trade time, 0 if the store is empty."""
        return self._scalar("SELECT MAX(time) FROM trades") or 0

    def min_trade_time(self) -> Optional[int]:
        return self._scalar("SELECT MIN(time) FROM trades")

    def latest_trade_id(self) -> Optional[str]:
        return self._scalar("SELECT id FROM trades ORDER BY time DESC, id ASC LIMIT 1")

    def _scalar(self, sql: str) -> Any:
        try:
            with self._lock:
                row = self._conn.execute(sql).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Store read failed: {e}") from e
        return row[0] if row else None

    # ------------------------------------------------------------------
    # Sync cursor
    # ------------------------------------------------------------------

    def read_cursor(self) -> SyncCursor:
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT last_synced_at, last_trade_time, last_trade_id, total_count "
                    "FROM sync_state WHERE id = 1"
                ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read sync cursor: {e}") from e

        if row is None:
            return SyncCursor()
        return SyncCursor(
            lastSyncedAt=row["last_synced_at"],
            lastTradeTime=row["last_trade_time"],
            lastTradeId=row["last_trade_id"],
            totalCount=row["total_count"],
        )

    def write_cursor(self, cursor: SyncCursor) -> None:
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    """
                    UPDATE sync_state
                    SET last_synced_at = ?, last_trade_time = ?, last_trade_id = ?,
                        total_count = ?, updated_at = strftime('%s', 'now')
                    WHERE id = 1
                    """,
                    (
                        cursor.lastSyncedAt,
                        cursor.lastTradeTime,
                        cursor.lastTradeId,
                        cursor.totalCount,
                    ),
                )
        except sqlite3.Error as e:
            raise StoreError(f"Failed to write sync cursor: {e}") from e

    def reset_cursor(self) -> None:
        """Force the cursor back to zero, keeping the cached count."""
        current = self.read_cursor()
        self.write_cursor(SyncCursor(totalCount=current.totalCount))


def _build_where(query: TradeQuery) -> tuple[str, list[Any]]:
    clauses: list[str] = []
    params: list[Any] = []

    if query.pair:
        clauses.append("pair LIKE ?")
        params.append(f"%{query.pair}%")
    if query.side:
        clauses.append("side = ?")
        params.append(query.side)
    if query.startTime is not None:
        clauses.append("time >= ?")
        params.append(query.startTime)
    if query.endTime is not None:
        clauses.append("time <= ?")
        params.append(query.endTime)

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, params


def _trade_to_row(trade_id: str, trade: Trade) -> tuple:
    return (
        trade_id,
        trade.orderId,
        trade.positionId,
        trade.pair,
        trade.time,
        trade.side,
        trade.orderType,
        trade.price,
        trade.cost,
        trade.fee,
        trade.volume,
        trade.margin,
        trade.leverage,
        trade.misc,
        trade.tradeId,
        1 if trade.isMaker else 0,
        trade.positionStatus,
        trade.closePrice,
        trade.closeCost,
        trade.closeFee,
        trade.closeVolume,
        trade.closeMargin,
        trade.netPnl,
        json.dumps(trade.ledgerIds) if trade.ledgerIds is not None else None,
        json.dumps(trade.closingTradeIds) if trade.closingTradeIds is not None else None,
    )


def _row_to_trade(row: sqlite3.Row) -> Trade:
    return Trade(
        id=row["id"],
        orderId=row["order_id"],
        positionId=row["position_id"],
        pair=row["pair"],
        time=row["time"],
        side=row["side"],
        orderType=row["order_type"],
        price=row["price"],
        cost=row["cost"],
        fee=row["fee"],
        volume=row["volume"],
        margin=row["margin"],
        leverage=row["leverage"],
        misc=row["misc"],
        tradeId=row["trade_id"],
        isMaker=bool(row["is_maker"]),
        positionStatus=row["position_status"],
        closePrice=row["close_price"],
        closeCost=row["close_cost"],
        closeFee=row["close_fee"],
        closeVolume=row["close_volume"],
        closeMargin=row["close_margin"],
        netPnl=row["net_pnl"],
        ledgerIds=json.loads(row["ledger_ids"]) if row["ledger_ids"] else None,
        closingTradeIds=json.loads(row["closing_trade_ids"]) if row["closing_trade_ids"] else None,
    )
