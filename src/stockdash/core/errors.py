"""
Error taxonomy for StockDash.

Every failure surfaced by the ledger, the transaction state machine and the
stores derives from StockDashError and carries a stable ``code`` string that
the HTTP layer returns to clients.
"""

from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from stockdash.core.transactions.models import TransactionRequest


class StockDashError(Exception):
    """Base class for all StockDash errors."""

    code = "error"


class ValidationError(StockDashError):
    """Malformed input (bad quantity, price, trade type, email...)."""

    code = "validation_error"


class AffordabilityError(StockDashError):
    """
    A trade cannot be covered by the account.

    When raised while approving, ``transaction`` holds the request as it was
    persisted after the automatic rejection.
    """

    code = "affordability_error"

    def __init__(
        self,
        message: str,
        transaction: TransactionRequest | None = None,
    ) -> None:
        super().__init__(message)
        self.transaction = transaction


class InsufficientBalanceError(AffordabilityError):
    """Buy total exceeds the cash balance."""

    code = "insufficient_balance"


class InsufficientHoldingsError(AffordabilityError):
    """Sell quantity exceeds the shares held (or no position exists)."""

    code = "insufficient_holdings"


class NotFoundError(StockDashError):
    """Unknown transaction, user or account."""

    code = "not_found"


class AlreadyProcessedError(StockDashError):
    """Attempt to approve or reject a transaction that is no longer pending."""

    code = "already_processed"


class PersistenceError(StockDashError):
    """Store unavailable or busy. Callers may retry."""

    code = "persistence_error"
    retryable = True


class ConcurrentUpdateError(PersistenceError):
    """Optimistic check failed: the account or transaction changed underneath."""

    code = "concurrent_update"


class AuthenticationError(StockDashError):
    """Invalid credentials or token."""

    code = "authentication_error"


class UserExistsError(ValidationError):
    """Signup with an email that is already registered."""

    code = "user_exists"


class DuplicateWatchlistItemError(ValidationError):
    """Symbol already on the user's watchlist."""

    code = "duplicate_watchlist_item"
