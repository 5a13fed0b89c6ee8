"""
Unit tests for TransactionRequest status transitions.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from stockdash.core.errors import AlreadyProcessedError
from stockdash.core.ledger import TradeType
from stockdash.core.transactions import (
    DEFAULT_REJECTION_NOTE,
    TransactionRequest,
    TransactionStatus,
)


NOW = datetime(2024, 1, 8, tzinfo=timezone.utc)
LATER = datetime(2024, 1, 9, tzinfo=timezone.utc)


@pytest.fixture
def pending() -> TransactionRequest:
    return TransactionRequest(
        id="txn_1",
        user_id="usr_1",
        symbol="AAPL",
        name="Apple Inc.",
        type=TradeType.BUY,
        quantity=10,
        price=Decimal("150"),
        total_amount=Decimal("1500"),
        created_at=NOW,
        updated_at=NOW,
    )


class TestTransactionRequest:
    """Tests for approve/reject on the record itself."""

    def test_defaults(self, pending: TransactionRequest) -> None:
        assert pending.is_pending
        assert pending.is_buy
        assert pending.notes == ""

    def test_approve(self, pending: TransactionRequest) -> None:
        approved = pending.approve("usr_admin", LATER)

        assert approved.status == TransactionStatus.APPROVED
        assert approved.processed_by == "usr_admin"
        assert approved.processed_at == LATER
        assert approved.updated_at == LATER
        assert approved.created_at == NOW
        assert pending.is_pending

    def test_reject_default_note(self, pending: TransactionRequest) -> None:
        rejected = pending.reject("usr_admin", LATER)

        assert rejected.status == TransactionStatus.REJECTED
        assert rejected.notes == DEFAULT_REJECTION_NOTE

    @pytest.mark.parametrize("terminal", ["approve", "reject"])
    def test_terminal_states_are_final(self, pending: TransactionRequest, terminal: str) -> None:
        done = getattr(pending, terminal)("usr_admin", LATER)

        with pytest.raises(AlreadyProcessedError, match="already processed"):
            done.approve("usr_admin", LATER)
        with pytest.raises(AlreadyProcessedError):
            done.reject("usr_admin", LATER)
