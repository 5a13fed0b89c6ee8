"""
Pytest configuration and shared fixtures for StockDash tests.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from stockdash.core.users import Role, User, UserService
from stockdash.storage import MemoryStore


# =============================================================================
# Store fixtures
# =============================================================================


@pytest.fixture
def memory_store() -> MemoryStore:
    """Empty in-memory store."""
    return MemoryStore()


@pytest.fixture
def make_user(memory_store: MemoryStore):
    """Factory registering users with a chosen starting balance."""
    counter = {"n": 0}

    def _make(
        balance: Decimal | str = "10000",
        role: Role = Role.USER,
        name: str | None = None,
    ) -> User:
        counter["n"] += 1
        n = counter["n"]
        service = UserService(memory_store, starting_balance=Decimal(balance))
        return service.register(
            name or f"User {n}",
            f"user{n}@example.com",
            "not-a-real-hash",
            role=role,
        )

    return _make


# =============================================================================
# Markers
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks integration tests")
