"""
Unit tests for UserService.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from stockdash.core.errors import NotFoundError, UserExistsError, ValidationError
from stockdash.core.users import Role, UserService, normalize_email
from stockdash.storage import MemoryStore


class TestNormalizeEmail:
    """Tests for email normalization."""

    def test_trims_and_lowercases(self) -> None:
        assert normalize_email("  Ada@Example.COM ") == "ada@example.com"

    @pytest.mark.parametrize("email", ["", "ada", "@example.com", "ada@localhost"])
    def test_rejects_malformed(self, email: str) -> None:
        with pytest.raises(ValidationError):
            normalize_email(email)


class TestUserService:
    """Tests for signup and lookup."""

    @pytest.fixture
    def service(self, memory_store: MemoryStore) -> UserService:
        return UserService(memory_store, starting_balance=Decimal("10000"))

    def test_register_creates_account(self, service: UserService) -> None:
        user = service.register("Ada", "Ada@Example.com", "hash")

        assert user.id.startswith("usr_")
        assert user.email == "ada@example.com"
        assert user.role == Role.USER
        assert not user.is_admin
        account = service.account(user.id)
        assert account.balance == Decimal("10000")
        assert account.holdings == ()

    def test_register_admin(self, service: UserService) -> None:
        user = service.register("Root", "root@example.com", "hash", role=Role.ADMIN)

        assert user.is_admin

    def test_duplicate_email(self, service: UserService) -> None:
        service.register("Ada", "ada@example.com", "hash")

        with pytest.raises(UserExistsError, match="User already exists"):
            service.register("Ada Again", " ADA@example.com", "hash")

    def test_blank_name(self, service: UserService) -> None:
        with pytest.raises(ValidationError, match="Name is required"):
            service.register("  ", "ada@example.com", "hash")

    def test_find_by_email(self, service: UserService) -> None:
        user = service.register("Ada", "ada@example.com", "hash")

        assert service.find_by_email("ADA@example.com") == user
        assert service.find_by_email("nobody@example.com") is None
        assert service.find_by_email("not-an-email") is None

    def test_get_unknown(self, service: UserService) -> None:
        with pytest.raises(NotFoundError):
            service.get("usr_missing")

    def test_list_customers_excludes_admins(self, service: UserService) -> None:
        ada = service.register("Ada", "ada@example.com", "hash")
        service.register("Root", "root@example.com", "hash", role=Role.ADMIN)
        bob = service.register("Bob", "bob@example.com", "hash")

        assert [u.id for u in service.list_customers()] == [ada.id, bob.id]
