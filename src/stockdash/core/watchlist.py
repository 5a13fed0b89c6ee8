"""Watchlist: symbols a user follows. Pure CRUD on the user record."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import msgspec

from stockdash.core.errors import DuplicateWatchlistItemError, ValidationError
from stockdash.core.locks import KeyedLock
from stockdash.core.users import WatchlistItem


if TYPE_CHECKING:
    from stockdash.storage.protocol import LedgerStore


class WatchlistService:
    """Add, remove and list watchlist entries (exact symbol match)."""

    def __init__(self, store: LedgerStore, locks: KeyedLock | None = None) -> None:
        self.store = store
        self._locks = locks or KeyedLock()

    def entries(self, user_id: str) -> list[WatchlistItem]:
        """Entries in the order they were added."""
        return list(self.store.find_user(user_id).watchlist)

    def add(self, user_id: str, symbol: str, name: str) -> list[WatchlistItem]:
        """
        Append a symbol.

        Raises:
            ValidationError: Empty symbol
            DuplicateWatchlistItemError: Symbol already present
        """
        if not symbol or not symbol.strip():
            raise ValidationError("Symbol is required")

        with self._locks.hold(user_id):
            user = self.store.find_user(user_id)
            if any(item.symbol == symbol for item in user.watchlist):
                raise DuplicateWatchlistItemError("Stock already in watchlist")

            item = WatchlistItem(
                symbol=symbol,
                name=name or symbol,
                added_at=datetime.now(timezone.utc),
            )
            user = self.store.save_user(
                msgspec.structs.replace(user, watchlist=(*user.watchlist, item))
            )
            return list(user.watchlist)

    def remove(self, user_id: str, symbol: str) -> list[WatchlistItem]:
        """Drop a symbol. Removing an absent symbol is a no-op."""
        with self._locks.hold(user_id):
            user = self.store.find_user(user_id)
            remaining = tuple(item for item in user.watchlist if item.symbol != symbol)
            if len(remaining) != len(user.watchlist):
                user = self.store.save_user(
                    msgspec.structs.replace(user, watchlist=remaining)
                )
            return list(user.watchlist)
