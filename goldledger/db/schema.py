"""SQLite database schema definition."""

import sqlite3
from pathlib import Path

SCHEMA_VERSION = 2

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS ledger_entries (
    id TEXT PRIMARY KEY,
    entry_date TEXT NOT NULL,
    intake_g TEXT NOT NULL,
    purity_bp INTEGER NOT NULL CHECK (purity_bp BETWEEN 0 AND 10000),
    source TEXT,
    serial TEXT,
    batch TEXT,
    storage TEXT,
    custody TEXT,
    insurance TEXT,
    audit_ref TEXT,
    note TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS accounts (
    id TEXT PRIMARY KEY,
    wallet_identity TEXT NOT NULL UNIQUE,
    email TEXT,
    fiat_credit TEXT NOT NULL DEFAULT '0',
    token_grams TEXT NOT NULL DEFAULT '0',
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    account_id TEXT NOT NULL REFERENCES accounts(id),
    side TEXT NOT NULL,
    requested_grams TEXT NOT NULL,
    quoted_price_per_g TEXT NOT NULL,
    fiat_amount TEXT NOT NULL,
    state TEXT NOT NULL,
    tx_ref TEXT,
    failure_reason TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS token_ops (
    id TEXT PRIMARY KEY,
    account_id TEXT NOT NULL REFERENCES accounts(id),
    wallet_address TEXT NOT NULL,
    op_type TEXT NOT NULL,
    grams TEXT NOT NULL DEFAULT '0',
    amount_myr TEXT NOT NULL,
    price_myr_per_g TEXT,
    tx_hash TEXT,
    note TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_token_ops_account ON token_ops(account_id, created_at);

CREATE TABLE IF NOT EXISTS audit_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp TEXT NOT NULL DEFAULT (datetime('now')),
    engine TEXT NOT NULL,
    operation TEXT NOT NULL,
    inputs TEXT NOT NULL,
    output TEXT NOT NULL,
    notes TEXT
);
"""


def create_schema(db_path: Path) -> sqlite3.Connection:
    """Create the database schema, migrating older databases. Returns the connection."""
    from goldledger.db.migrations import get_current_version, migrate

    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    existing = get_current_version(conn)
    conn.executescript(SCHEMA_SQL)
    if 0 < existing < SCHEMA_VERSION:
        migrate(conn)
    else:
        conn.execute(
            "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
        conn.commit()
    return conn
