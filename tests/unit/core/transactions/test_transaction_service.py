"""
Unit tests for TransactionService.

Tests the submit / approve / reject state machine, re-validation at approval
and lifecycle events.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from stockdash.core.errors import (
    AlreadyProcessedError,
    InsufficientBalanceError,
    InsufficientHoldingsError,
    NotFoundError,
    ValidationError,
)
from stockdash.core.ledger import Position, TradeType
from stockdash.core.transactions import (
    DEFAULT_REJECTION_NOTE,
    TransactionEvent,
    TransactionService,
    TransactionStatus,
)
from stockdash.core.users import Role
from stockdash.storage import MemoryStore


class TickingClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 8, 9, 30, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


class TestTransactionService:
    """Tests for the trade request lifecycle."""

    @pytest.fixture
    def events(self) -> list[TransactionEvent]:
        return []

    @pytest.fixture
    def service(self, memory_store: MemoryStore, events: list[TransactionEvent]) -> TransactionService:
        return TransactionService(memory_store, on_event=events.append, clock=TickingClock())

    @pytest.fixture
    def admin(self, make_user):
        return make_user(role=Role.ADMIN, name="Admin")

    # =========================================================================
    # Submit
    # =========================================================================

    def test_submit_records_pending_request(self, service, memory_store, make_user) -> None:
        user = make_user("10000")
        txn = service.submit(user.id, "AAPL", "Apple Inc.", "buy", 10, Decimal("150"))

        assert txn.status == TransactionStatus.PENDING
        assert txn.id.startswith("txn_")
        assert txn.type is TradeType.BUY
        assert txn.total_amount == Decimal("1500")
        assert txn.processed_by is None
        assert memory_store.find_transaction(txn.id) == txn

    def test_submit_does_not_reserve_funds(self, service, memory_store, make_user) -> None:
        user = make_user("10000")
        service.submit(user.id, "AAPL", "Apple Inc.", "buy", 10, Decimal("150"))

        assert memory_store.find_account(user.id).balance == Decimal("10000")

    def test_submit_insufficient_balance_persists_nothing(
        self, service, memory_store, make_user, events
    ) -> None:
        user = make_user("500")

        with pytest.raises(InsufficientBalanceError):
            service.submit(user.id, "AAPL", "Apple Inc.", "buy", 10, Decimal("100"))

        assert memory_store.list_transactions() == []
        assert events == []

    def test_submit_sell_without_holdings(self, service, make_user) -> None:
        user = make_user("10000")

        with pytest.raises(InsufficientHoldingsError):
            service.submit(user.id, "AAPL", "Apple Inc.", "sell", 1, Decimal("100"))

    def test_submit_invalid_quantity(self, service, make_user) -> None:
        user = make_user()

        with pytest.raises(ValidationError):
            service.submit(user.id, "AAPL", "Apple Inc.", "buy", 0, Decimal("100"))

    def test_submit_unknown_user(self, service) -> None:
        with pytest.raises(NotFoundError):
            service.submit("usr_missing", "AAPL", "Apple Inc.", "buy", 1, Decimal("1"))

    def test_name_defaults_to_symbol(self, service, make_user) -> None:
        user = make_user()
        txn = service.submit(user.id, "AAPL", "", "buy", 1, Decimal("1"))

        assert txn.name == "AAPL"

    # =========================================================================
    # Approve
    # =========================================================================

    def test_approve_settles_buy(self, service, memory_store, make_user, admin) -> None:
        user = make_user("10000")
        txn = service.submit(user.id, "AAPL", "Apple Inc.", "buy", 10, Decimal("150"))

        approved = service.approve(admin.id, txn.id)

        assert approved.status == TransactionStatus.APPROVED
        assert approved.processed_by == admin.id
        assert approved.processed_at is not None
        account = memory_store.find_account(user.id)
        assert account.balance == Decimal("8500")
        assert account.holdings == (Position("AAPL", 10, Decimal("150")),)
        assert memory_store.find_transaction(txn.id).status == TransactionStatus.APPROVED

    def test_approve_settles_sell(self, service, memory_store, make_user, admin) -> None:
        user = make_user("10000")
        buy = service.submit(user.id, "AAPL", "Apple Inc.", "buy", 20, Decimal("150"))
        service.approve(admin.id, buy.id)

        sell = service.submit(user.id, "AAPL", "Apple Inc.", "sell", 20, Decimal("160"))
        service.approve(admin.id, sell.id)

        account = memory_store.find_account(user.id)
        assert account.holdings == ()
        assert account.balance == Decimal("10200")

    def test_approve_rechecks_balance(self, service, memory_store, make_user, admin) -> None:
        user = make_user("1000")
        first = service.submit(user.id, "AAPL", "Apple Inc.", "buy", 6, Decimal("100"))
        second = service.submit(user.id, "AAPL", "Apple Inc.", "buy", 6, Decimal("100"))

        service.approve(admin.id, first.id)
        assert memory_store.find_account(user.id).balance == Decimal("400")

        with pytest.raises(InsufficientBalanceError) as exc_info:
            service.approve(admin.id, second.id)

        rejected = exc_info.value.transaction
        assert rejected is not None
        assert rejected.status == TransactionStatus.REJECTED
        assert "Insufficient balance" in rejected.notes
        assert rejected.processed_by == admin.id

        stored = memory_store.find_transaction(second.id)
        assert stored.status == TransactionStatus.REJECTED
        assert stored.notes == rejected.notes
        assert memory_store.find_account(user.id).balance == Decimal("400")

    def test_approve_rechecks_holdings(self, service, memory_store, make_user, admin) -> None:
        user = make_user("10000")
        buy = service.submit(user.id, "AAPL", "Apple Inc.", "buy", 5, Decimal("100"))
        service.approve(admin.id, buy.id)

        sell_a = service.submit(user.id, "AAPL", "Apple Inc.", "sell", 5, Decimal("100"))
        sell_b = service.submit(user.id, "AAPL", "Apple Inc.", "sell", 5, Decimal("100"))
        service.approve(admin.id, sell_a.id)

        with pytest.raises(InsufficientHoldingsError):
            service.approve(admin.id, sell_b.id)

        assert memory_store.find_transaction(sell_b.id).status == TransactionStatus.REJECTED
        assert memory_store.find_account(user.id).balance == Decimal("10000")

    def test_approve_twice_raises(self, service, memory_store, make_user, admin) -> None:
        user = make_user("10000")
        txn = service.submit(user.id, "AAPL", "Apple Inc.", "buy", 1, Decimal("100"))
        service.approve(admin.id, txn.id)
        account_after_first = memory_store.find_account(user.id)

        with pytest.raises(AlreadyProcessedError):
            service.approve(admin.id, txn.id)

        assert memory_store.find_account(user.id) == account_after_first

    def test_approve_unknown_transaction(self, service, admin) -> None:
        with pytest.raises(NotFoundError):
            service.approve(admin.id, "txn_missing")

    def test_approve_bumps_account_version(self, service, memory_store, make_user, admin) -> None:
        user = make_user("10000")
        version = memory_store.find_account(user.id).version
        txn = service.submit(user.id, "AAPL", "Apple Inc.", "buy", 1, Decimal("100"))

        service.approve(admin.id, txn.id)

        assert memory_store.find_account(user.id).version == version + 1

    # =========================================================================
    # Reject
    # =========================================================================

    def test_reject_default_note(self, service, memory_store, make_user, admin) -> None:
        user = make_user("10000")
        txn = service.submit(user.id, "AAPL", "Apple Inc.", "buy", 1, Decimal("100"))

        rejected = service.reject(admin.id, txn.id)

        assert rejected.status == TransactionStatus.REJECTED
        assert rejected.notes == DEFAULT_REJECTION_NOTE
        assert rejected.processed_by == admin.id
        assert memory_store.find_account(user.id).balance == Decimal("10000")

    def test_reject_custom_note(self, service, make_user, admin) -> None:
        user = make_user("10000")
        txn = service.submit(user.id, "AAPL", "Apple Inc.", "buy", 1, Decimal("100"))

        assert service.reject(admin.id, txn.id, notes="Market closed").notes == "Market closed"

    def test_reject_then_approve_raises(self, service, memory_store, make_user, admin) -> None:
        user = make_user("10000")
        txn = service.submit(user.id, "AAPL", "Apple Inc.", "buy", 1, Decimal("100"))
        service.reject(admin.id, txn.id)

        with pytest.raises(AlreadyProcessedError):
            service.approve(admin.id, txn.id)
        with pytest.raises(AlreadyProcessedError):
            service.reject(admin.id, txn.id)

        assert memory_store.find_account(user.id).balance == Decimal("10000")

    # =========================================================================
    # Queries
    # =========================================================================

    def test_lists_newest_first(self, service, make_user) -> None:
        alice = make_user("10000")
        bob = make_user("10000")
        t1 = service.submit(alice.id, "AAPL", "Apple Inc.", "buy", 1, Decimal("1"))
        t2 = service.submit(bob.id, "MSFT", "Microsoft", "buy", 1, Decimal("1"))
        t3 = service.submit(alice.id, "IBM", "IBM", "buy", 1, Decimal("1"))

        assert [t.id for t in service.list_for_user(alice.id)] == [t3.id, t1.id]
        assert [t.id for t in service.list_all()] == [t3.id, t2.id, t1.id]
        assert service.get(t2.id) == t2

    # =========================================================================
    # Events
    # =========================================================================

    def test_events_emitted(self, service, make_user, admin, events) -> None:
        user = make_user("10000")
        a = service.submit(user.id, "AAPL", "Apple Inc.", "buy", 1, Decimal("100"))
        b = service.submit(user.id, "MSFT", "Microsoft", "buy", 1, Decimal("100"))
        service.approve(admin.id, a.id)
        service.reject(admin.id, b.id, notes="No")

        assert [(e.event_type, e.transaction_id) for e in events] == [
            ("transaction_submitted", a.id),
            ("transaction_submitted", b.id),
            ("transaction_approved", a.id),
            ("transaction_rejected", b.id),
        ]
        assert events[-1].status == TransactionStatus.REJECTED
        assert events[-1].notes == "No"

    def test_listener_failure_does_not_undo_settlement(self, memory_store, make_user) -> None:
        def broken(_event: TransactionEvent) -> None:
            raise RuntimeError("listener down")

        service = TransactionService(memory_store, on_event=broken)
        user = make_user("10000")
        admin = make_user(role=Role.ADMIN)
        txn = service.submit(user.id, "AAPL", "Apple Inc.", "buy", 1, Decimal("100"))

        approved = service.approve(admin.id, txn.id)

        assert approved.status == TransactionStatus.APPROVED
        assert memory_store.find_account(user.id).balance == Decimal("9900")
