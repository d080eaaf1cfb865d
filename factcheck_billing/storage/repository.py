"""
Points ledger persistence.

Account balances plus an append-only log of every balance change.
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from factcheck_billing.core.errors import InsufficientPointsError, NotFoundError
from .db import DEFAULT_DB_PATH, get_connection
from .models import PointsTransaction, TransactionType

logger = logging.getLogger(__name__)


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the ledger tables if they don't exist.

    points_transaction is append-only: no UPDATE or DELETE is ever
    performed on it.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS points_account (
                user_id TEXT PRIMARY KEY,
                points_balance INTEGER NOT NULL CHECK (points_balance >= 0),
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS points_transaction (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                user_id TEXT NOT NULL REFERENCES points_account(user_id),
                type TEXT NOT NULL,
                amount INTEGER NOT NULL,
                balance_after INTEGER NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                order_id TEXT UNIQUE
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_points_transaction_user
            ON points_transaction (user_id, timestamp)
        """)
        conn.commit()
    finally:
        conn.close()


class PointsLedger:
    """Balances and transaction history backed by SQLite.

    Every balance change runs in a single IMMEDIATE transaction, so
    concurrent deductions for the same user cannot double-spend.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the ledger with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = get_connection(self.db_path)
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def open_account(self, user_id: str, welcome_bonus: int = 0) -> bool:
        """Create an account, crediting the welcome bonus once.

        Args:
            user_id: Account identifier
            welcome_bonus: Points granted on creation

        Returns:
            True if the account was created, False if it already existed
        """
        if welcome_bonus < 0:
            raise ValueError("welcome_bonus must be >= 0")

        with self._transaction() as conn:
            existing = conn.execute(
                "SELECT 1 FROM points_account WHERE user_id = ?", (user_id,)
            ).fetchone()
            if existing:
                return False

            now = datetime.now()
            conn.execute(
                "INSERT INTO points_account (user_id, points_balance, created_at, updated_at) "
                "VALUES (?, ?, ?, ?)",
                (user_id, welcome_bonus, now.isoformat(), now.isoformat())
            )
            if welcome_bonus > 0:
                _insert_transaction(conn, PointsTransaction(
                    timestamp=now,
                    user_id=user_id,
                    type=TransactionType.BONUS,
                    amount=welcome_bonus,
                    balance_after=welcome_bonus,
                    description="Welcome bonus"
                ))

        logger.info("Opened account %s with %d points", user_id, welcome_bonus)
        return True

    def get_balance(self, user_id: str) -> int:
        """Current balance; 0 for an unknown account."""
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT points_balance FROM points_account WHERE user_id = ?", (user_id,)
            ).fetchone()
            return row[0] if row else 0
        finally:
            conn.close()

    def credit_purchase(
        self,
        user_id: str,
        points: int,
        order_id: str,
        description: str = "Points purchase"
    ) -> bool:
        """Credit purchased points exactly once per order.

        Args:
            user_id: Account identifier
            points: Points to credit
            order_id: Payment processor order id
            description: Ledger description

        Returns:
            True if credited, False if the order was already processed

        Raises:
            ValueError: If points is not positive
            NotFoundError: If the account doesn't exist
        """
        if points <= 0:
            raise ValueError("points must be > 0")

        with self._transaction() as conn:
            processed = conn.execute(
                "SELECT 1 FROM points_transaction WHERE order_id = ?", (order_id,)
            ).fetchone()
            if processed:
                logger.info("Order %s already credited; skipping", order_id)
                return False

            balance = _locked_balance(conn, user_id)
            new_balance = balance + points
            now = datetime.now()
            _update_balance(conn, user_id, new_balance, now)
            _insert_transaction(conn, PointsTransaction(
                timestamp=now,
                user_id=user_id,
                type=TransactionType.PURCHASE,
                amount=points,
                balance_after=new_balance,
                description=description,
                order_id=order_id
            ))

        logger.info("Credited %d points to %s for order %s", points, user_id, order_id)
        return True

    def deduct(self, user_id: str, points: int, description: str = "") -> int:
        """Deduct points atomically.

        Args:
            user_id: Account identifier
            points: Points to deduct
            description: Ledger description

        Returns:
            New balance

        Raises:
            ValueError: If points is negative
            NotFoundError: If the account doesn't exist
            InsufficientPointsError: If the balance is too low; nothing is written
        """
        if points < 0:
            raise ValueError("points must be >= 0")

        with self._transaction() as conn:
            balance = _locked_balance(conn, user_id)
            if balance < points:
                logger.info(
                    "Insufficient points for %s: has %d, needs %d", user_id, balance, points
                )
                raise InsufficientPointsError(required=points, balance=balance)

            new_balance = balance - points
            now = datetime.now()
            _update_balance(conn, user_id, new_balance, now)
            _insert_transaction(conn, PointsTransaction(
                timestamp=now,
                user_id=user_id,
                type=TransactionType.DEDUCTION,
                amount=points,
                balance_after=new_balance,
                description=description
            ))

        logger.info("Deducted %d points from %s; balance %d", points, user_id, new_balance)
        return new_balance

    def list_transactions(self, user_id: str, limit: int = 50) -> List[PointsTransaction]:
        """Get an account's transactions, newest first.

        Args:
            user_id: Account identifier
            limit: Maximum number of transactions to return

        Returns:
            List of transactions ordered by timestamp (newest first)
        """
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                SELECT timestamp, user_id, type, amount, balance_after,
                       description, order_id
                FROM points_transaction
                WHERE user_id = ?
                ORDER BY timestamp DESC, id DESC
                LIMIT ?
            """, (user_id, limit))
            transactions = []
            for row in cursor.fetchall():
                transactions.append(PointsTransaction(
                    timestamp=datetime.fromisoformat(row[0]),
                    user_id=row[1],
                    type=TransactionType(row[2]),
                    amount=row[3],
                    balance_after=row[4],
                    description=row[5],
                    order_id=row[6]
                ))
            return transactions
        finally:
            conn.close()


def _locked_balance(conn: sqlite3.Connection, user_id: str) -> int:
    row = conn.execute(
        "SELECT points_balance FROM points_account WHERE user_id = ?", (user_id,)
    ).fetchone()
    if row is None:
        raise NotFoundError(f"Unknown account: {user_id}")
    return row[0]


def _update_balance(conn: sqlite3.Connection, user_id: str, balance: int, now: datetime) -> None:
    conn.execute(
        "UPDATE points_account SET points_balance = ?, updated_at = ? WHERE user_id = ?",
        (balance, now.isoformat(), user_id)
    )


def _insert_transaction(conn: sqlite3.Connection, transaction: PointsTransaction) -> None:
    conn.execute("""
        INSERT INTO points_transaction
        (timestamp, user_id, type, amount, balance_after, description, order_id)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    """, (
        transaction.timestamp.isoformat(),
        transaction.user_id,
        transaction.type.value,
        transaction.amount,
        transaction.balance_after,
        transaction.description,
        transaction.order_id
    ))


# Global ledger instance
_default_ledger: Optional[PointsLedger] = None


def get_ledger(db_path: str = DEFAULT_DB_PATH) -> PointsLedger:
    """Get the process-wide ledger instance.

    Args:
        db_path: Path to SQLite database file, used on first call

    Returns:
        An instance of PointsLedger
    """
    global _default_ledger
    if _default_ledger is None:
        _default_ledger = PointsLedger(db_path)
    return _default_ledger
