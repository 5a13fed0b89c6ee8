"""
Persistence for StockDash.

Provides:
- LedgerStore protocol implemented by every backend
- SQLiteStore: default on-disk store
- MemoryStore: dictionaries, for tests and throwaway runs
- StockDashPaths: home directory layout
"""

from stockdash.storage.memory import MemoryStore
from stockdash.storage.paths import StockDashPaths
from stockdash.storage.protocol import (
    AccountDirectory,
    LedgerStore,
    TransactionStore,
    UserDirectory,
)
from stockdash.storage.sqlite import SQLiteStore


__all__ = [
    "AccountDirectory",
    "LedgerStore",
    "MemoryStore",
    "SQLiteStore",
    "StockDashPaths",
    "TransactionStore",
    "UserDirectory",
]
