"""Database schema migrations."""

import logging
import sqlite3

from goldledger.db.schema import SCHEMA_VERSION

logger = logging.getLogger(__name__)


def get_current_version(conn: sqlite3.Connection) -> int:
    """Get the current schema version from the database."""
    try:
        cursor = conn.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        return row[0] if row and row[0] else 0
    except sqlite3.OperationalError:
        return 0


def _column_names(conn: sqlite3.Connection, table: str) -> set[str]:
    return {row[1] for row in conn.execute(f"PRAGMA table_info({table})")}


def migrate(conn: sqlite3.Connection) -> int:
    """Run any pending migrations. Returns the resulting schema version."""
    current = get_current_version(conn)
    if current >= SCHEMA_VERSION:
        return current

    if current < 2:
        # v2 added account e-mail (registration) and the activity note column.
        if "email" not in _column_names(conn, "accounts"):
            conn.execute("ALTER TABLE accounts ADD COLUMN email TEXT")
        if "note" not in _column_names(conn, "token_ops"):
            conn.execute("ALTER TABLE token_ops ADD COLUMN note TEXT")
        conn.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (2)")
        conn.commit()
        logger.info("Migrated schema from v%d to v2", current)

    return get_current_version(conn)
