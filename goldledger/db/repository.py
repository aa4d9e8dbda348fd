"""Data access layer for goldledger."""

import json
import sqlite3
from datetime import UTC, datetime

from goldledger.models.accounts import Account, ActivityRecord, Transaction
from goldledger.models.ledger import LedgerEntry
from goldledger.models.reports import AuditEntry


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _rows(cursor: sqlite3.Cursor) -> list[dict]:
    columns = [desc[0] for desc in cursor.description]
    return [dict(zip(columns, row)) for row in cursor.fetchall()]


def _one(cursor: sqlite3.Cursor) -> dict | None:
    rows = _rows(cursor)
    return rows[0] if rows else None


class GoldRepository:
    """CRUD operations for ledger, account, and transaction records."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # --- Ledger entries ---

    def save_ledger_entry(self, entry: LedgerEntry) -> None:
        """Insert an intake record. Entries are append-only."""
        self.conn.execute(
            """INSERT INTO ledger_entries
               (id, entry_date, intake_g, purity_bp, source, serial, batch,
                storage, custody, insurance, audit_ref, note, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                entry.id,
                entry.entry_date.isoformat(),
                str(entry.intake_g),
                entry.purity_bp,
                entry.source,
                entry.serial,
                entry.batch,
                entry.storage,
                entry.custody,
                entry.insurance,
                entry.audit_ref,
                entry.note,
                entry.created_at.isoformat() if entry.created_at else _now(),
            ),
        )
        self.conn.commit()

    def get_ledger_entries(self, limit: int = 200) -> list[dict]:
        """Retrieve intake records, newest first."""
        cursor = self.conn.execute(
            "SELECT * FROM ledger_entries ORDER BY entry_date DESC, created_at DESC LIMIT ?",
            (limit,),
        )
        return _rows(cursor)

    # --- Accounts ---

    def create_account(self, account: Account) -> None:
        self.conn.execute(
            """INSERT INTO accounts
               (id, wallet_identity, email, fiat_credit, token_grams, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                account.id,
                account.wallet_identity,
                account.email,
                str(account.fiat_credit),
                str(account.token_grams),
                account.created_at.isoformat() if account.created_at else _now(),
                account.updated_at.isoformat() if account.updated_at else None,
            ),
        )
        self.conn.commit()

    def get_account(self, account_id: str) -> dict | None:
        cursor = self.conn.execute("SELECT * FROM accounts WHERE id = ?", (account_id,))
        return _one(cursor)

    def get_account_by_wallet(self, wallet_identity: str) -> dict | None:
        cursor = self.conn.execute(
            "SELECT * FROM accounts WHERE wallet_identity = ?", (wallet_identity,)
        )
        return _one(cursor)

    def update_account_balances(self, account: Account) -> int:
        """Write both balances in one statement. Returns the number of rows updated."""
        cursor = self.conn.execute(
            """UPDATE accounts SET fiat_credit = ?, token_grams = ?, updated_at = ?
               WHERE id = ?""",
            (
                str(account.fiat_credit),
                str(account.token_grams),
                account.updated_at.isoformat() if account.updated_at else _now(),
                account.id,
            ),
        )
        self.conn.commit()
        return cursor.rowcount

    # --- Transactions ---

    def save_transaction(self, txn: Transaction) -> None:
        """Insert or update a transaction and its current state."""
        self.conn.execute(
            """INSERT OR REPLACE INTO transactions
               (id, account_id, side, requested_grams, quoted_price_per_g,
                fiat_amount, state, tx_ref, failure_reason, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                txn.id,
                txn.account_id,
                txn.side.value,
                str(txn.requested_grams),
                str(txn.quoted_price_per_g),
                str(txn.fiat_amount),
                txn.state.value,
                txn.tx_ref,
                txn.failure_reason,
                txn.created_at.isoformat(),
                txn.updated_at.isoformat() if txn.updated_at else None,
            ),
        )
        self.conn.commit()

    def get_transaction(self, transaction_id: str) -> dict | None:
        cursor = self.conn.execute("SELECT * FROM transactions WHERE id = ?", (transaction_id,))
        return _one(cursor)

    def get_transactions(self, account_id: str) -> list[dict]:
        cursor = self.conn.execute(
            "SELECT * FROM transactions WHERE account_id = ? ORDER BY created_at DESC",
            (account_id,),
        )
        return _rows(cursor)

    # --- Activity (token_ops) ---

    def save_activity(self, record: ActivityRecord) -> None:
        row = record.to_raw_event()
        self.conn.execute(
            """INSERT INTO token_ops
               (id, account_id, wallet_address, op_type, grams, amount_myr,
                price_myr_per_g, tx_hash, note, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                row["id"],
                record.account_id,
                row["wallet_address"],
                row["op_type"],
                row["grams"],
                row["amount_myr"],
                row["price_myr_per_g"],
                row["tx_hash"],
                row["note"],
                row["created_at"],
            ),
        )
        self.conn.commit()

    def get_activity(self, account_id: str, limit: int = 20, offset: int = 0) -> list[dict]:
        """Retrieve one account's activity, newest first."""
        cursor = self.conn.execute(
            """SELECT * FROM token_ops WHERE account_id = ?
               ORDER BY created_at DESC LIMIT ? OFFSET ?""",
            (account_id, limit, offset),
        )
        return _rows(cursor)

    def get_token_ops(self, limit: int = 200, offset: int = 0) -> list[dict]:
        """Retrieve the raw token-op log across all accounts, newest first."""
        cursor = self.conn.execute(
            "SELECT * FROM token_ops ORDER BY created_at DESC LIMIT ? OFFSET ?",
            (limit, offset),
        )
        return _rows(cursor)

    # --- Audit log ---

    def save_audit_entry(self, entry: AuditEntry) -> None:
        """Insert an audit log entry."""
        self.conn.execute(
            """INSERT INTO audit_log (timestamp, engine, operation, inputs, output, notes)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                entry.timestamp.isoformat(),
                entry.engine,
                entry.operation,
                json.dumps(entry.inputs, default=str),
                json.dumps(entry.output, default=str),
                entry.notes,
            ),
        )
        self.conn.commit()

    def get_audit_entries(self, engine: str | None = None) -> list[dict]:
        if engine:
            cursor = self.conn.execute(
                "SELECT * FROM audit_log WHERE engine = ? ORDER BY id", (engine,)
            )
        else:
            cursor = self.conn.execute("SELECT * FROM audit_log ORDER BY id")
        rows = []
        for record in _rows(cursor):
            record["inputs"] = json.loads(record["inputs"])
            record["output"] = json.loads(record["output"])
            rows.append(record)
        return rows
