"""
Transaction State Machine.

Trade requests move PENDING -> APPROVED | REJECTED exactly once. Approval is
where settlement happens: the requester's current account is re-validated and
the ledger change is committed together with the status change.

Example:
    >>> from stockdash.core.transactions import TransactionService
    >>> service = TransactionService(store)
    >>> txn = service.submit("usr_1", "MSFT", "Microsoft", "buy", 5, Decimal("400"))
    >>> service.reject("usr_admin", txn.id).notes
    'Rejected by admin'
"""

from stockdash.core.transactions.models import (
    DEFAULT_REJECTION_NOTE,
    TransactionEvent,
    TransactionRequest,
    TransactionStatus,
)
from stockdash.core.transactions.service import TransactionService


__all__ = [
    "DEFAULT_REJECTION_NOTE",
    "TransactionEvent",
    "TransactionRequest",
    "TransactionService",
    "TransactionStatus",
]
