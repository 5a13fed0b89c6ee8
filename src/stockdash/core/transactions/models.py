"""
Trade request models and their lifecycle.

A TransactionRequest is created PENDING and moves exactly once to APPROVED or
REJECTED. Records are frozen; each transition returns a new record with the
terminal fields stamped.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

import msgspec

from stockdash.core.errors import AlreadyProcessedError
from stockdash.core.ledger.models import TradeType


DEFAULT_REJECTION_NOTE = "Rejected by admin"


class TransactionStatus(str, Enum):
    """Lifecycle state of a trade request."""

    PENDING = "pending"  # Submitted, awaiting an admin
    APPROVED = "approved"  # Settled against the account
    REJECTED = "rejected"  # Closed without touching the account


class TransactionRequest(msgspec.Struct, frozen=True, kw_only=True):
    """A user-submitted buy or sell intent."""

    id: str
    user_id: str

    # Trade details
    symbol: str
    name: str
    type: TradeType
    quantity: int
    price: Decimal
    total_amount: Decimal

    status: TransactionStatus = TransactionStatus.PENDING

    # Set once, by the transition out of PENDING
    processed_by: str | None = None
    processed_at: datetime | None = None
    notes: str = ""

    created_at: datetime
    updated_at: datetime

    @property
    def is_pending(self) -> bool:
        """Check if the request still awaits an admin."""
        return self.status == TransactionStatus.PENDING

    @property
    def is_buy(self) -> bool:
        """Check if this is a buy request."""
        return self.type == TradeType.BUY

    def _ensure_pending(self) -> None:
        if not self.is_pending:
            raise AlreadyProcessedError(
                f"Transaction {self.id} already processed (status: {self.status.value})"
            )

    def approve(self, admin_id: str, at: datetime) -> TransactionRequest:
        """Return the APPROVED version of this request."""
        self._ensure_pending()
        return msgspec.structs.replace(
            self,
            status=TransactionStatus.APPROVED,
            processed_by=admin_id,
            processed_at=at,
            updated_at=at,
        )

    def reject(
        self,
        admin_id: str,
        at: datetime,
        notes: str | None = None,
    ) -> TransactionRequest:
        """Return the REJECTED version of this request."""
        self._ensure_pending()
        return msgspec.structs.replace(
            self,
            status=TransactionStatus.REJECTED,
            processed_by=admin_id,
            processed_at=at,
            notes=notes or DEFAULT_REJECTION_NOTE,
            updated_at=at,
        )


class TransactionEvent(msgspec.Struct, frozen=True, gc=False):
    """
    Emitted on every lifecycle change.

    Listeners (e.g. the WebSocket broadcaster) receive these after the change
    has been persisted.
    """

    event_type: str  # "transaction_submitted", "transaction_approved", ...
    transaction_id: str
    user_id: str
    symbol: str
    status: TransactionStatus
    timestamp: datetime
    notes: str = ""
