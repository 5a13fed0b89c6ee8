"""
SQLite store.

Default persistence for StockDash. Holdings and watchlists are stored as JSON
(msgspec) columns; money as TEXT so Decimal values round-trip exactly.

Settlement commits run inside one SQLite transaction with two guarded
updates (account version, transaction still pending); if either matches no
row the whole transaction is rolled back.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

import msgspec

from stockdash.core.errors import (
    ConcurrentUpdateError,
    NotFoundError,
    PersistenceError,
    UserExistsError,
)
from stockdash.core.ledger.models import Account, Position, TradeType
from stockdash.core.transactions.models import TransactionRequest, TransactionStatus
from stockdash.core.users import Role, User, WatchlistItem


logger = logging.getLogger(__name__)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT UNIQUE NOT NULL,
    hashed_password TEXT NOT NULL,
    role TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    watchlist TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS accounts (
    user_id TEXT PRIMARY KEY REFERENCES users(id),
    balance TEXT NOT NULL,
    holdings TEXT NOT NULL DEFAULT '[]',
    version INTEGER NOT NULL,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES users(id),
    symbol TEXT NOT NULL,
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    quantity INTEGER NOT NULL,
    price TEXT NOT NULL,
    total_amount TEXT NOT NULL,
    status TEXT NOT NULL,
    processed_by TEXT,
    processed_at TEXT,
    notes TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_transactions_user ON transactions(user_id);
CREATE INDEX IF NOT EXISTS idx_transactions_created ON transactions(created_at);
"""

# Reuse msgspec encoders/decoders
_encoder = msgspec.json.Encoder()
_holdings_decoder = msgspec.json.Decoder(tuple[Position, ...])
_watchlist_decoder = msgspec.json.Decoder(tuple[WatchlistItem, ...])


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SQLiteStore:
    """
    SQLite-backed LedgerStore.

    Example:
        store = SQLiteStore(Path("~/.stockdash/data/stockdash.db").expanduser())
        store.initialize()
        ...
        store.close()

    A single connection is shared across threads behind a lock; use
    ``":memory:"`` as the path for a throwaway database.
    """

    def __init__(self, db_path: Path | str = ":memory:") -> None:
        self.db_path = str(db_path)
        self._conn: sqlite3.Connection | None = None
        self._db_lock = threading.Lock()

    def initialize(self) -> SQLiteStore:
        """Open the database and create the schema."""
        if self._conn is not None:
            return self

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            if self.db_path != ":memory:":
                self._conn.execute("PRAGMA journal_mode = WAL")
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open database {self.db_path}: {e}") from e

        logger.info("SQLite store initialized at %s", self.db_path)
        return self

    def close(self) -> None:
        """Close the connection."""
        with self._db_lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
        logger.info("SQLite store closed")

    def __enter__(self) -> SQLiteStore:
        return self.initialize()

    def __exit__(self, *_args: object) -> None:
        self.close()

    def _ensure_connected(self) -> sqlite3.Connection:
        if self._conn is None:
            raise PersistenceError("Store not initialized. Call initialize() first.")
        return self._conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Cursor]:
        """Run the block in one SQLite transaction (rolled back on any error)."""
        with self._db_lock:
            conn = self._ensure_connected()
            try:
                with conn:
                    yield conn.cursor()
            except (sqlite3.Error, OverflowError) as e:
                logger.exception("SQLite transaction failed")
                raise PersistenceError(f"Database error: {e}") from e

    def _fetch(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        with self._db_lock:
            conn = self._ensure_connected()
            try:
                return conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                logger.exception("SQLite query failed")
                raise PersistenceError(f"Database error: {e}") from e

    # =========================================================================
    # Row mapping
    # =========================================================================

    @staticmethod
    def _user_from_row(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            hashed_password=row["hashed_password"],
            role=Role(row["role"]),
            is_active=bool(row["is_active"]),
            watchlist=_watchlist_decoder.decode(row["watchlist"]),
            created_at=_parse_ts(row["created_at"]),
        )

    @staticmethod
    def _account_from_row(row: sqlite3.Row) -> Account:
        return Account(
            user_id=row["user_id"],
            balance=Decimal(row["balance"]),
            holdings=_holdings_decoder.decode(row["holdings"]),
            version=row["version"],
            updated_at=_parse_ts(row["updated_at"]),
        )

    @staticmethod
    def _transaction_from_row(row: sqlite3.Row) -> TransactionRequest:
        return TransactionRequest(
            id=row["id"],
            user_id=row["user_id"],
            symbol=row["symbol"],
            name=row["name"],
            type=TradeType(row["type"]),
            quantity=row["quantity"],
            price=Decimal(row["price"]),
            total_amount=Decimal(row["total_amount"]),
            status=TransactionStatus(row["status"]),
            processed_by=row["processed_by"],
            processed_at=_parse_ts(row["processed_at"]),
            notes=row["notes"],
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    # =========================================================================
    # Users
    # =========================================================================

    def add_user(self, user: User, account: Account) -> User:
        """Insert a user together with their opening account."""
        with self._transaction() as cur:
            cur.execute("SELECT 1 FROM users WHERE email = ?", (user.email,))
            if cur.fetchone() is not None:
                raise UserExistsError("User already exists")

            cur.execute(
                "INSERT INTO users (id, name, email, hashed_password, role, is_active, "
                "watchlist, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    user.id,
                    user.name,
                    user.email,
                    user.hashed_password,
                    user.role.value,
                    int(user.is_active),
                    _encoder.encode(user.watchlist).decode(),
                    _ts(user.created_at),
                ),
            )
            cur.execute(
                "INSERT INTO accounts (user_id, balance, holdings, version, updated_at) "
                "VALUES (?, ?, ?, 1, ?)",
                (
                    account.user_id,
                    str(account.balance),
                    _encoder.encode(account.holdings).decode(),
                    _ts(account.updated_at),
                ),
            )
        return user

    def find_user(self, user_id: str) -> User:
        """Get user by ID."""
        rows = self._fetch("SELECT * FROM users WHERE id = ?", (user_id,))
        if not rows:
            raise NotFoundError(f"User {user_id} not found")
        return self._user_from_row(rows[0])

    def find_user_by_email(self, email: str) -> User | None:
        """Get user by (normalized) email."""
        rows = self._fetch("SELECT * FROM users WHERE email = ?", (email,))
        return self._user_from_row(rows[0]) if rows else None

    def save_user(self, user: User) -> User:
        """Overwrite a user's profile."""
        with self._transaction() as cur:
            cur.execute(
                "UPDATE users SET name = ?, role = ?, is_active = ?, watchlist = ? "
                "WHERE id = ?",
                (
                    user.name,
                    user.role.value,
                    int(user.is_active),
                    _encoder.encode(user.watchlist).decode(),
                    user.id,
                ),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"User {user.id} not found")
        return user

    def list_users(self, role: Role | None = None) -> list[User]:
        """Users in signup order."""
        if role is None:
            rows = self._fetch("SELECT * FROM users ORDER BY created_at")
        else:
            rows = self._fetch(
                "SELECT * FROM users WHERE role = ? ORDER BY created_at",
                (role.value,),
            )
        return [self._user_from_row(r) for r in rows]

    # =========================================================================
    # Accounts
    # =========================================================================

    def find_account(self, user_id: str) -> Account:
        """Get a user's account."""
        rows = self._fetch("SELECT * FROM accounts WHERE user_id = ?", (user_id,))
        if not rows:
            raise NotFoundError(f"Account for user {user_id} not found")
        return self._account_from_row(rows[0])

    def save_account(self, account: Account) -> Account:
        """Persist with optimistic version check."""
        with self._transaction() as cur:
            self._update_account(cur, account)
        return msgspec.structs.replace(account, version=account.version + 1)

    @staticmethod
    def _update_account(cur: sqlite3.Cursor, account: Account) -> None:
        cur.execute(
            "UPDATE accounts SET balance = ?, holdings = ?, version = version + 1, "
            "updated_at = ? WHERE user_id = ? AND version = ?",
            (
                str(account.balance),
                _encoder.encode(account.holdings).decode(),
                _ts(account.updated_at),
                account.user_id,
                account.version,
            ),
        )
        if cur.rowcount == 0:
            logger.warning(
                "Stale account write for %s (v%d)", account.user_id, account.version
            )
            raise ConcurrentUpdateError(
                f"Account {account.user_id} was modified concurrently"
            )

    # =========================================================================
    # Transactions
    # =========================================================================

    def create_transaction(self, transaction: TransactionRequest) -> TransactionRequest:
        """Insert a new request."""
        with self._transaction() as cur:
            cur.execute(
                "INSERT INTO transactions (id, user_id, symbol, name, type, quantity, "
                "price, total_amount, status, processed_by, processed_at, notes, "
                "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    transaction.id,
                    transaction.user_id,
                    transaction.symbol,
                    transaction.name,
                    transaction.type.value,
                    transaction.quantity,
                    str(transaction.price),
                    str(transaction.total_amount),
                    transaction.status.value,
                    transaction.processed_by,
                    _ts(transaction.processed_at),
                    transaction.notes,
                    _ts(transaction.created_at),
                    _ts(transaction.updated_at),
                ),
            )
        return transaction

    def find_transaction(self, transaction_id: str) -> TransactionRequest:
        """Get request by ID."""
        rows = self._fetch("SELECT * FROM transactions WHERE id = ?", (transaction_id,))
        if not rows:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return self._transaction_from_row(rows[0])

    def save_transaction(self, transaction: TransactionRequest) -> TransactionRequest:
        """Overwrite a request that is still PENDING in the store."""
        with self._transaction() as cur:
            self._update_transaction(cur, transaction)
        return transaction

    @staticmethod
    def _update_transaction(cur: sqlite3.Cursor, transaction: TransactionRequest) -> None:
        cur.execute(
            "UPDATE transactions SET status = ?, processed_by = ?, processed_at = ?, "
            "notes = ?, updated_at = ? WHERE id = ? AND status = ?",
            (
                transaction.status.value,
                transaction.processed_by,
                _ts(transaction.processed_at),
                transaction.notes,
                _ts(transaction.updated_at),
                transaction.id,
                TransactionStatus.PENDING.value,
            ),
        )
        if cur.rowcount == 0:
            cur.execute("SELECT 1 FROM transactions WHERE id = ?", (transaction.id,))
            if cur.fetchone() is None:
                raise NotFoundError(f"Transaction {transaction.id} not found")
            raise ConcurrentUpdateError(
                f"Transaction {transaction.id} was processed concurrently"
            )

    def list_transactions_by_user(self, user_id: str) -> list[TransactionRequest]:
        """Requests of one user, newest first."""
        rows = self._fetch(
            "SELECT * FROM transactions WHERE user_id = ? ORDER BY created_at DESC",
            (user_id,),
        )
        return [self._transaction_from_row(r) for r in rows]

    def list_transactions(self) -> list[TransactionRequest]:
        """All requests, newest first."""
        rows = self._fetch("SELECT * FROM transactions ORDER BY created_at DESC")
        return [self._transaction_from_row(r) for r in rows]

    # =========================================================================
    # Settlement
    # =========================================================================

    def commit_settlement(
        self,
        account: Account,
        transaction: TransactionRequest,
    ) -> tuple[Account, TransactionRequest]:
        """Write account and request in one SQLite transaction."""
        with self._transaction() as cur:
            self._update_account(cur, account)
            self._update_transaction(cur, transaction)
        return msgspec.structs.replace(account, version=account.version + 1), transaction

    # =========================================================================
    # Health Check
    # =========================================================================

    def ping(self) -> bool:
        """
        Check database health.

        Returns:
            True if a trivial query succeeds
        """
        try:
            self._fetch("SELECT 1")
            return True
        except PersistenceError:
            logger.exception("SQLite ping failed")
            return False
