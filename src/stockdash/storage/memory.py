"""
In-memory store.

Keeps users, accounts and transactions in dictionaries behind a single
re-entrant lock. Used by tests and by ``STOCKDASH_STORAGE=memory``.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

import msgspec

from stockdash.core.errors import ConcurrentUpdateError, NotFoundError, UserExistsError
from stockdash.core.transactions.models import TransactionStatus


if TYPE_CHECKING:
    from stockdash.core.ledger.models import Account
    from stockdash.core.transactions.models import TransactionRequest
    from stockdash.core.users import Role, User


logger = logging.getLogger(__name__)


class MemoryStore:
    """
    Dictionary-backed LedgerStore.

    Example:
        store = MemoryStore()
        store.add_user(user, Account(user_id=user.id, balance=Decimal("10000")))
        account = store.find_account(user.id)
    """

    def __init__(self) -> None:
        self._users: dict[str, User] = {}
        self._emails: dict[str, str] = {}  # email -> user_id
        self._accounts: dict[str, Account] = {}
        self._transactions: dict[str, TransactionRequest] = {}
        self._lock = threading.RLock()

    # =========================================================================
    # Users
    # =========================================================================

    def add_user(self, user: User, account: Account) -> User:
        """Insert a user together with their opening account."""
        with self._lock:
            if user.email in self._emails:
                raise UserExistsError("User already exists")
            self._users[user.id] = user
            self._emails[user.email] = user.id
            self._accounts[user.id] = msgspec.structs.replace(account, version=1)
        return user

    def find_user(self, user_id: str) -> User:
        """Get user by ID."""
        with self._lock:
            user = self._users.get(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def find_user_by_email(self, email: str) -> User | None:
        """Get user by (normalized) email."""
        with self._lock:
            user_id = self._emails.get(email)
            return self._users.get(user_id) if user_id else None

    def save_user(self, user: User) -> User:
        """Overwrite a user's profile."""
        with self._lock:
            if user.id not in self._users:
                raise NotFoundError(f"User {user.id} not found")
            self._users[user.id] = user
        return user

    def list_users(self, role: Role | None = None) -> list[User]:
        """Users in signup order."""
        with self._lock:
            users = list(self._users.values())
        if role is not None:
            users = [u for u in users if u.role == role]
        return sorted(users, key=lambda u: u.created_at)

    # =========================================================================
    # Accounts
    # =========================================================================

    def find_account(self, user_id: str) -> Account:
        """Get a user's account."""
        with self._lock:
            account = self._accounts.get(user_id)
        if account is None:
            raise NotFoundError(f"Account for user {user_id} not found")
        return account

    def save_account(self, account: Account) -> Account:
        """Persist with optimistic version check."""
        with self._lock:
            self._check_account_version(account)
            stored = msgspec.structs.replace(account, version=account.version + 1)
            self._accounts[account.user_id] = stored
        return stored

    def _check_account_version(self, account: Account) -> None:
        current = self._accounts.get(account.user_id)
        if current is None:
            raise NotFoundError(f"Account for user {account.user_id} not found")
        if current.version != account.version:
            logger.warning(
                "Stale account write for %s (have v%d, stored v%d)",
                account.user_id,
                account.version,
                current.version,
            )
            raise ConcurrentUpdateError(
                f"Account {account.user_id} was modified concurrently"
            )

    # =========================================================================
    # Transactions
    # =========================================================================

    def create_transaction(self, transaction: TransactionRequest) -> TransactionRequest:
        """Insert a new request."""
        with self._lock:
            if transaction.id in self._transactions:
                raise ConcurrentUpdateError(f"Transaction {transaction.id} already exists")
            self._transactions[transaction.id] = transaction
        return transaction

    def find_transaction(self, transaction_id: str) -> TransactionRequest:
        """Get request by ID."""
        with self._lock:
            transaction = self._transactions.get(transaction_id)
        if transaction is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return transaction

    def save_transaction(self, transaction: TransactionRequest) -> TransactionRequest:
        """Overwrite a request that is still PENDING in the store."""
        with self._lock:
            self._check_pending(transaction.id)
            self._transactions[transaction.id] = transaction
        return transaction

    def _check_pending(self, transaction_id: str) -> None:
        current = self._transactions.get(transaction_id)
        if current is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        if current.status != TransactionStatus.PENDING:
            raise ConcurrentUpdateError(
                f"Transaction {transaction_id} was processed concurrently"
            )

    def list_transactions_by_user(self, user_id: str) -> list[TransactionRequest]:
        """Requests of one user, newest first."""
        with self._lock:
            transactions = [t for t in self._transactions.values() if t.user_id == user_id]
        return sorted(transactions, key=lambda t: t.created_at, reverse=True)

    def list_transactions(self) -> list[TransactionRequest]:
        """All requests, newest first."""
        with self._lock:
            transactions = list(self._transactions.values())
        return sorted(transactions, key=lambda t: t.created_at, reverse=True)

    # =========================================================================
    # Settlement
    # =========================================================================

    def commit_settlement(
        self,
        account: Account,
        transaction: TransactionRequest,
    ) -> tuple[Account, TransactionRequest]:
        """Write account and request together, after both checks pass."""
        with self._lock:
            self._check_account_version(account)
            self._check_pending(transaction.id)

            stored = msgspec.structs.replace(account, version=account.version + 1)
            self._accounts[account.user_id] = stored
            self._transactions[transaction.id] = transaction
        return stored, transaction

    def ping(self) -> bool:
        """Always healthy."""
        return True

    def close(self) -> None:
        """Nothing to release."""

    @property
    def stats(self) -> dict[str, int]:
        """Get store statistics."""
        with self._lock:
            return {
                "users": len(self._users),
                "accounts": len(self._accounts),
                "transactions": len(self._transactions),
            }
