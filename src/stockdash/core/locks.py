"""
Per-key mutual exclusion.

Settlement serializes all status changes for one user's transactions through
a lock keyed by user id, so concurrent approvals never interleave their
read-modify-write of the same account.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from stockdash.core.errors import PersistenceError


logger = logging.getLogger(__name__)


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0  # holders plus waiters


class KeyedLock:
    """
    A lazily created threading.Lock per key.

    Example:
        locks = KeyedLock(timeout=5.0)
        with locks.hold("usr_123"):
            ...  # exclusive for usr_123

    Acquisition is bounded by ``timeout``; on expiry a PersistenceError is
    raised so callers can retry instead of blocking forever. A key is dropped
    once nobody holds or waits for it.
    """

    def __init__(self, timeout: float = 5.0) -> None:
        self.timeout = timeout
        self._locks: dict[str, _Entry] = {}
        self._guard = threading.Lock()

    def _checkout(self, key: str) -> _Entry:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = _Entry()
                self._locks[key] = entry
            entry.users += 1
            return entry

    def _checkin(self, key: str, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        entry = self._checkout(key)
        try:
            if not entry.lock.acquire(timeout=self.timeout):
                logger.warning("Timed out waiting for lock on %s", key)
                raise PersistenceError(f"Account {key} is busy, retry later")
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._checkin(key, entry)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
