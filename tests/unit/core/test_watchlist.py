"""
Unit tests for WatchlistService.
"""

from __future__ import annotations

import pytest

from stockdash.core.errors import DuplicateWatchlistItemError, ValidationError
from stockdash.core.watchlist import WatchlistService
from stockdash.storage import MemoryStore


class TestWatchlistService:
    """Tests for watchlist CRUD."""

    @pytest.fixture
    def service(self, memory_store: MemoryStore) -> WatchlistService:
        return WatchlistService(memory_store)

    def test_add_and_list(self, service: WatchlistService, make_user) -> None:
        user = make_user()
        service.add(user.id, "AAPL", "Apple Inc.")
        items = service.add(user.id, "MSFT", "")

        assert [(i.symbol, i.name) for i in items] == [("AAPL", "Apple Inc."), ("MSFT", "MSFT")]
        assert service.entries(user.id) == items

    def test_duplicate_rejected(self, service: WatchlistService, make_user) -> None:
        user = make_user()
        service.add(user.id, "AAPL", "Apple Inc.")

        with pytest.raises(DuplicateWatchlistItemError, match="already in watchlist"):
            service.add(user.id, "AAPL", "Apple Inc.")

    def test_symbols_are_case_sensitive(self, service: WatchlistService, make_user) -> None:
        user = make_user()
        service.add(user.id, "AAPL", "Apple Inc.")

        assert len(service.add(user.id, "aapl", "Apple lower")) == 2

    def test_empty_symbol(self, service: WatchlistService, make_user) -> None:
        with pytest.raises(ValidationError):
            service.add(make_user().id, " ", "Nothing")

    def test_remove(self, service: WatchlistService, make_user) -> None:
        user = make_user()
        service.add(user.id, "AAPL", "Apple Inc.")
        service.add(user.id, "MSFT", "Microsoft")

        items = service.remove(user.id, "AAPL")

        assert [i.symbol for i in items] == ["MSFT"]

    def test_remove_absent_is_noop(self, service: WatchlistService, make_user) -> None:
        user = make_user()
        service.add(user.id, "AAPL", "Apple Inc.")

        assert [i.symbol for i in service.remove(user.id, "TSLA")] == ["AAPL"]

    def test_watchlists_are_per_user(self, service: WatchlistService, make_user) -> None:
        alice = make_user()
        bob = make_user()
        service.add(alice.id, "AAPL", "Apple Inc.")

        assert service.entries(bob.id) == []
