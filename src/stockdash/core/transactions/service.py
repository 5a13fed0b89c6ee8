"""
Transaction state machine and settlement.

Two-phase design: submit() records a PENDING request after an advisory
affordability check and reserves nothing; approve() re-reads the requester's
current account, re-validates, and commits the settled account together with
the APPROVED request. Between the two phases the account may change, so
approval is the only source of truth.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Callable
from uuid import uuid4

from stockdash.core.errors import AffordabilityError
from stockdash.core.ledger import (
    TradeType,
    apply_trade,
    ensure_affordable,
    trade_total,
    validate_trade,
)
from stockdash.core.locks import KeyedLock
from stockdash.core.transactions.models import (
    TransactionEvent,
    TransactionRequest,
)


if TYPE_CHECKING:
    from stockdash.storage.protocol import LedgerStore


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransactionService:
    """
    Submits, approves and rejects trade requests.

    Status changes for one user's requests are serialized by a per-user lock,
    and the store's commit_settlement() writes account and request atomically
    with an optimistic version check, so two approvals touching the same
    account can never both spend the same cash.

    Example:
        >>> service = TransactionService(store)
        >>> txn = service.submit("usr_1", "AAPL", "Apple Inc.", "buy", 10, Decimal("150"))
        >>> txn.status
        <TransactionStatus.PENDING: 'pending'>
        >>> service.approve("usr_admin", txn.id).status
        <TransactionStatus.APPROVED: 'approved'>
    """

    def __init__(
        self,
        store: LedgerStore,
        locks: KeyedLock | None = None,
        on_event: Callable[[TransactionEvent], None] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Initialize the service.

        Args:
            store: Account, user and transaction persistence
            locks: Per-user locks (share one instance across services)
            on_event: Callback for lifecycle events
            clock: Time source for timestamps
        """
        self.store = store
        self._locks = locks or KeyedLock()
        self._on_event = on_event
        self._clock = clock

    # =========================================================================
    # Submission
    # =========================================================================

    def submit(
        self,
        user_id: str,
        symbol: str,
        name: str,
        trade_type: TradeType | str,
        quantity: int,
        price: Decimal,
    ) -> TransactionRequest:
        """
        Record a new PENDING trade request.

        The affordability check here is advisory: it gives early feedback but
        reserves nothing. Balance and holdings are untouched.

        Raises:
            ValidationError: Malformed parameters
            NotFoundError: Unknown user
            InsufficientBalanceError / InsufficientHoldingsError: Pre-check failed
        """
        parsed, price = validate_trade(trade_type, symbol, quantity, price)

        account = self.store.find_account(user_id)
        ensure_affordable(account, parsed, symbol, quantity, price)

        now = self._clock()
        transaction = TransactionRequest(
            id=f"txn_{uuid4().hex[:12]}",
            user_id=user_id,
            symbol=symbol,
            name=name or symbol,
            type=parsed,
            quantity=quantity,
            price=price,
            total_amount=trade_total(quantity, price),
            created_at=now,
            updated_at=now,
        )
        transaction = self.store.create_transaction(transaction)

        logger.info(
            "Submitted %s: %s %d %s @ %s by %s",
            transaction.id,
            parsed.value,
            quantity,
            symbol,
            price,
            user_id,
        )
        self._emit("transaction_submitted", transaction)
        return transaction

    # =========================================================================
    # Processing
    # =========================================================================

    def approve(self, admin_id: str, transaction_id: str) -> TransactionRequest:
        """
        Settle a PENDING request against the requester's current account.

        If the account can no longer cover the trade, the request is moved to
        REJECTED with the reason as its note, and the affordability error is
        raised with ``error.transaction`` set to the rejected record.

        Raises:
            NotFoundError: Unknown transaction
            AlreadyProcessedError: Not PENDING
            InsufficientBalanceError / InsufficientHoldingsError: Re-check failed
            PersistenceError: Store failure or lock timeout (retryable)
        """
        owner = self.store.find_transaction(transaction_id).user_id

        with self._locks.hold(owner):
            # Re-read under the lock; another admin may have processed it
            transaction = self.store.find_transaction(transaction_id)
            now = self._clock()
            approved = transaction.approve(admin_id, now)

            account = self.store.find_account(transaction.user_id)
            try:
                settled = apply_trade(
                    account,
                    transaction.type,
                    transaction.symbol,
                    transaction.quantity,
                    transaction.price,
                    now=now,
                )
            except AffordabilityError as exc:
                rejected = self.store.save_transaction(
                    transaction.reject(admin_id, now, notes=str(exc))
                )
                logger.info("Auto-rejected %s on approval: %s", transaction_id, exc)
                self._emit("transaction_rejected", rejected)
                exc.transaction = rejected
                raise

            account, approved = self.store.commit_settlement(settled, approved)

        logger.info(
            "Approved %s by %s: balance now %s (account v%d)",
            transaction_id,
            admin_id,
            account.balance,
            account.version,
        )
        self._emit("transaction_approved", approved)
        return approved

    def reject(
        self,
        admin_id: str,
        transaction_id: str,
        notes: str | None = None,
    ) -> TransactionRequest:
        """
        Close a PENDING request without touching the account.

        ``notes`` defaults to "Rejected by admin".

        Raises:
            NotFoundError: Unknown transaction
            AlreadyProcessedError: Not PENDING
        """
        owner = self.store.find_transaction(transaction_id).user_id

        with self._locks.hold(owner):
            transaction = self.store.find_transaction(transaction_id)
            rejected = self.store.save_transaction(
                transaction.reject(admin_id, self._clock(), notes=notes)
            )

        logger.info("Rejected %s by %s: %s", transaction_id, admin_id, rejected.notes)
        self._emit("transaction_rejected", rejected)
        return rejected

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, transaction_id: str) -> TransactionRequest:
        """Get a request by ID."""
        return self.store.find_transaction(transaction_id)

    def list_for_user(self, user_id: str) -> list[TransactionRequest]:
        """Requests of one user, newest first."""
        return self.store.list_transactions_by_user(user_id)

    def list_all(self) -> list[TransactionRequest]:
        """Every request, newest first."""
        return self.store.list_transactions()

    def _emit(self, event_type: str, transaction: TransactionRequest) -> None:
        """Notify the listener, if any."""
        if self._on_event is None:
            return

        event = TransactionEvent(
            event_type=event_type,
            transaction_id=transaction.id,
            user_id=transaction.user_id,
            symbol=transaction.symbol,
            status=transaction.status,
            timestamp=self._clock(),
            notes=transaction.notes,
        )

        try:
            self._on_event(event)
        except Exception:
            # Settlement is already committed at this point
            logger.exception("Transaction event listener failed for %s", transaction.id)
