"""
StockDash core: account ledger, transaction settlement, users and watchlists.
"""

from stockdash.core.errors import (
    AffordabilityError,
    AlreadyProcessedError,
    AuthenticationError,
    ConcurrentUpdateError,
    DuplicateWatchlistItemError,
    InsufficientBalanceError,
    InsufficientHoldingsError,
    NotFoundError,
    PersistenceError,
    StockDashError,
    UserExistsError,
    ValidationError,
)


__all__ = [
    "AffordabilityError",
    "AlreadyProcessedError",
    "AuthenticationError",
    "ConcurrentUpdateError",
    "DuplicateWatchlistItemError",
    "InsufficientBalanceError",
    "InsufficientHoldingsError",
    "NotFoundError",
    "PersistenceError",
    "StockDashError",
    "UserExistsError",
    "ValidationError",
]
