"""
User directory: registered users and their opening accounts.

Passwords never reach this module in clear text; the API layer hashes them
(passlib) before calling register().
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import uuid4

import msgspec

from stockdash.core.errors import UserExistsError, ValidationError
from stockdash.core.ledger.models import Account


if TYPE_CHECKING:
    from stockdash.storage.protocol import LedgerStore


logger = logging.getLogger(__name__)

DEFAULT_STARTING_BALANCE = Decimal("10000")


class Role(str, Enum):
    """User role."""

    USER = "user"
    ADMIN = "admin"


class WatchlistItem(msgspec.Struct, frozen=True, gc=False):
    """A symbol the user follows."""

    symbol: str
    name: str
    added_at: datetime


class User(msgspec.Struct, frozen=True, kw_only=True):
    """A registered user."""

    id: str
    name: str
    email: str
    hashed_password: str
    role: Role = Role.USER
    is_active: bool = True
    watchlist: tuple[WatchlistItem, ...] = ()
    created_at: datetime

    @property
    def is_admin(self) -> bool:
        """Check if the user may approve and reject transactions."""
        return self.role == Role.ADMIN


def normalize_email(email: str) -> str:
    """Trim and lower-case an email address."""
    normalized = (email or "").strip().lower()
    local, sep, domain = normalized.partition("@")
    if not sep or not local or "." not in domain:
        raise ValidationError(f"Invalid email address: {email!r}")
    return normalized


class UserService:
    """
    Signup and lookup of users.

    Example:
        service = UserService(store)
        user = service.register("Ada", "ada@example.com", hashed)
        store.find_account(user.id).balance  # Decimal("10000")
    """

    def __init__(
        self,
        store: LedgerStore,
        starting_balance: Decimal = DEFAULT_STARTING_BALANCE,
    ) -> None:
        self.store = store
        self.starting_balance = starting_balance

    def register(
        self,
        name: str,
        email: str,
        hashed_password: str,
        role: Role = Role.USER,
    ) -> User:
        """
        Create a user and their opening account.

        Raises:
            ValidationError: Empty name or malformed email
            UserExistsError: Email already registered
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name is required")
        email = normalize_email(email)

        if self.store.find_user_by_email(email) is not None:
            raise UserExistsError("User already exists")

        now = datetime.now(timezone.utc)
        user = User(
            id=f"usr_{uuid4().hex[:12]}",
            name=name,
            email=email,
            hashed_password=hashed_password,
            role=role,
            created_at=now,
        )
        account = Account(
            user_id=user.id,
            balance=self.starting_balance,
            updated_at=now,
        )

        user = self.store.add_user(user, account)
        logger.info("Registered user %s (%s, role=%s)", user.id, email, role.value)
        return user

    def get(self, user_id: str) -> User:
        """Get user by ID."""
        return self.store.find_user(user_id)

    def find_by_email(self, email: str) -> User | None:
        """Get user by email, or None if unknown or malformed."""
        try:
            return self.store.find_user_by_email(normalize_email(email))
        except ValidationError:
            return None

    def list_customers(self) -> list[User]:
        """All non-admin users."""
        return self.store.list_users(role=Role.USER)

    def account(self, user_id: str) -> Account:
        """Current account of a user."""
        return self.store.find_account(user_id)
