"""SQLite schema for cached trades and sync state."""

TRADES_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS trades (
    id TEXT PRIMARY KEY,
    order_id TEXT,
    position_id TEXT,
    pair TEXT NOT NULL,
    time INTEGER NOT NULL,
    side TEXT NOT NULL,
    order_type TEXT NOT NULL,
    price TEXT NOT NULL,
    cost TEXT NOT NULL,
    fee TEXT NOT NULL,
    volume TEXT NOT NULL,
    margin TEXT NOT NULL,
    leverage TEXT,
    misc TEXT,
    trade_id INTEGER,
    is_maker INTEGER NOT NULL DEFAULT 0,
    position_status TEXT,
    close_price REAL,
    close_cost REAL,
    close_fee REAL,
    close_volume REAL,
    close_margin REAL,
    net_pnl REAL,
    ledger_ids TEXT,        -- JSON array
    closing_trade_ids TEXT, -- JSON array
    updated_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
)
"""

TRADES_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_trades_time ON trades(time DESC, id ASC)",
    "CREATE INDEX IF NOT EXISTS idx_trades_pair ON trades(pair)",
    "CREATE INDEX IF NOT EXISTS idx_trades_side ON trades(side)",
]

# Single row, enforced by the CHECK constraint
SYNC_STATE_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS sync_state (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    last_synced_at REAL NOT NULL DEFAULT 0,
    last_trade_time INTEGER NOT NULL DEFAULT 0,
    last_trade_id TEXT,
    total_count INTEGER NOT NULL DEFAULT 0,
    updated_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
)
"""

SYNC_STATE_SEED = """
INSERT OR IGNORE INTO sync_state (id, last_synced_at, last_trade_time, total_count)
VALUES (1, 0, 0, 0)
"""

TRADE_COLUMNS = (
    "id",
    "order_id",
    "position_id",
    "pair",
    "time",
    "side",
    "order_type",
    "price",
    "cost",
    "fee",
    "volume",
    "margin",
    "leverage",
    "misc",
    "trade_id",
    "is_maker",
    "position_status",
    "close_price",
    "close_cost",
    "close_fee",
    "close_volume",
    "close_margin",
    "net_pnl",
    "ledger_ids",
    "closing_trade_ids",
)

_UPDATE_COLUMNS = ", ".join(
    f"{column} = excluded.{column}" for column in TRADE_COLUMNS if column != "id"
)

UPSERT_TRADE_SQL = f"""
INSERT INTO trades ({", ".join(TRADE_COLUMNS)}, updated_at)
VALUES ({", ".join("?" for _ in TRADE_COLUMNS)}, strftime('%s', 'now'))
ON CONFLICT(id) DO UPDATE SET {_UPDATE_COLUMNS}, updated_at = excluded.updated_at
"""
