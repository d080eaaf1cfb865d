"""
Database connection management.

Connections for the points ledger. Transactions are controlled explicitly:
the ledger opens each balance change with BEGIN IMMEDIATE, which takes the
write lock before the balance is read, so two concurrent deductions are
serialized instead of both passing the balance check.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "factcheck_billing.db"

# Seconds a writer waits for another writer's BEGIN IMMEDIATE lock
LOCK_TIMEOUT_SECONDS = 10.0


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Open a ledger connection.

    The connection is in autocommit mode (no implicit transactions), so
    only an explicit BEGIN starts one. Foreign keys are enforced.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLite connection
    """
    conn = sqlite3.connect(
        str(Path(db_path)),
        timeout=LOCK_TIMEOUT_SECONDS,
        isolation_level=None
    )
    conn.execute("PRAGMA foreign_keys = ON")
    return conn
