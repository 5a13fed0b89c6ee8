"""
Store protocols consumed by the settlement core.

Two implementations ship with StockDash: MemoryStore (tests, demos) and
SQLiteStore (default). Both honour the same optimistic-concurrency contract:

- ``save_account`` / ``commit_settlement`` accept an Account only if its
  ``version`` matches the stored one, and persist it with ``version + 1``.
- ``save_transaction`` / ``commit_settlement`` only overwrite a transaction
  that is still PENDING in the store.

Violations raise ConcurrentUpdateError and leave the store untouched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable


if TYPE_CHECKING:
    from stockdash.core.ledger.models import Account
    from stockdash.core.transactions.models import TransactionRequest
    from stockdash.core.users import Role, User


@runtime_checkable
class AccountDirectory(Protocol):
    """Lookup and persistence of accounts."""

    def find_account(self, user_id: str) -> Account:
        """Return the account, or raise NotFoundError."""
        ...

    def save_account(self, account: Account) -> Account:
        """Persist with a version check; return the stored account."""
        ...


@runtime_checkable
class TransactionStore(Protocol):
    """Persistence of trade requests."""

    def create_transaction(self, transaction: TransactionRequest) -> TransactionRequest:
        """Insert a new request."""
        ...

    def find_transaction(self, transaction_id: str) -> TransactionRequest:
        """Return the request, or raise NotFoundError."""
        ...

    def save_transaction(self, transaction: TransactionRequest) -> TransactionRequest:
        """Overwrite a PENDING request (compare-and-set on status)."""
        ...

    def list_transactions_by_user(self, user_id: str) -> list[TransactionRequest]:
        """Requests of one user, newest first."""
        ...

    def list_transactions(self) -> list[TransactionRequest]:
        """All requests, newest first."""
        ...


@runtime_checkable
class UserDirectory(Protocol):
    """Registered users."""

    def add_user(self, user: User, account: Account) -> User:
        """Insert a user together with their opening account."""
        ...

    def find_user(self, user_id: str) -> User:
        """Return the user, or raise NotFoundError."""
        ...

    def find_user_by_email(self, email: str) -> User | None:
        """Return the user registered under ``email`` or None."""
        ...

    def save_user(self, user: User) -> User:
        """Overwrite profile fields (watchlist, name)."""
        ...

    def list_users(self, role: Role | None = None) -> list[User]:
        """Users ordered by signup time, optionally filtered by role."""
        ...


@runtime_checkable
class LedgerStore(AccountDirectory, TransactionStore, UserDirectory, Protocol):
    """Everything the services need, plus the atomic settlement commit."""

    def commit_settlement(
        self,
        account: Account,
        transaction: TransactionRequest,
    ) -> tuple[Account, TransactionRequest]:
        """
        Persist the settled account and the processed transaction as one unit.

        Either both writes land or neither does.
        """
        ...

    def ping(self) -> bool:
        """Health check."""
        ...

    def close(self) -> None:
        """Release resources."""
        ...
