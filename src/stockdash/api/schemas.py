"""
Pydantic schemas for API request/response models.

All API models use Pydantic v2 for:
- Request validation
- Response serialization (Decimal amounts are emitted as strings)
- OpenAPI schema generation

Response models read domain structs directly via ``from_attributes``.
"""

from __future__ import annotations

import datetime as dt
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from stockdash.core.ledger import TradeType
from stockdash.core.transactions import TransactionStatus
from stockdash.core.users import Role


if TYPE_CHECKING:
    from stockdash.core.ledger import Account
    from stockdash.core.users import User


# =============================================================================
# Auth Schemas
# =============================================================================


class Token(BaseModel):
    """JWT token response."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds")


class TokenData(BaseModel):
    """Decoded token payload."""

    user_id: str
    role: str = Role.USER.value


class SignupRequest(BaseModel):
    """Schema for creating an account."""

    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    """Schema for email/password login."""

    email: str
    password: str


class PositionResponse(BaseModel):
    """One holding."""

    model_config = ConfigDict(from_attributes=True)

    symbol: str
    quantity: int
    avg_price: Decimal = Field(..., description="Weighted average purchase price")
    cost_basis: Decimal


class WatchlistItemResponse(BaseModel):
    """One watchlist entry."""

    model_config = ConfigDict(from_attributes=True)

    symbol: str
    name: str
    added_at: datetime


class ProfileResponse(BaseModel):
    """User profile with account state."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    role: Role
    is_active: bool = True
    balance: Decimal
    holdings: list[PositionResponse] = Field(default_factory=list)
    watchlist: list[WatchlistItemResponse] = Field(default_factory=list)
    invested_value: Decimal = Field(..., description="Sum of holding cost bases")
    created_at: datetime

    @classmethod
    def from_user(cls, user: User, account: Account, **extra: Any) -> ProfileResponse:
        """Combine a user and their account into one response."""
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            is_active=user.is_active,
            balance=account.balance,
            holdings=[PositionResponse.model_validate(p) for p in account.holdings],
            watchlist=[WatchlistItemResponse.model_validate(w) for w in user.watchlist],
            invested_value=account.invested_value,
            created_at=user.created_at,
            **extra,
        )


class AuthResponse(ProfileResponse):
    """Profile plus a fresh access token (signup/login)."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int


# =============================================================================
# Transaction Schemas
# =============================================================================


class TransactionCreate(BaseModel):
    """
    Schema for submitting a trade request.

    Range checks (positive quantity and price, non-empty symbol) happen in the
    ledger so every caller gets the same 400 response.
    """

    symbol: str = Field(..., description="Stock symbol, matched exactly")
    name: str = Field("", description="Company name")
    type: TradeType
    quantity: int
    price: Decimal = Field(..., description="Client-supplied unit price")


class RejectRequest(BaseModel):
    """Optional admin note for a rejection."""

    notes: str | None = Field(None, max_length=500)


class TransactionResponse(BaseModel):
    """Trade request response model."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    symbol: str
    name: str
    type: TradeType
    quantity: int
    price: Decimal
    total_amount: Decimal
    status: TransactionStatus
    processed_by: str | None = None
    processed_at: datetime | None = None
    notes: str = ""
    created_at: datetime
    updated_at: datetime


class AdminTransactionResponse(TransactionResponse):
    """Trade request with requester and processor details."""

    user_name: str | None = None
    user_email: str | None = None
    processed_by_name: str | None = None


# =============================================================================
# Market Data Schemas
# =============================================================================


class QuoteResponse(BaseModel):
    """Latest quote."""

    model_config = ConfigDict(from_attributes=True)

    symbol: str
    price: Decimal
    change: Decimal
    change_percent: Decimal
    high: Decimal
    low: Decimal
    open: Decimal
    previous_close: Decimal
    volume: int
    latest_trading_day: dt.date | None = None


class PriceBarResponse(BaseModel):
    """Daily OHLCV bar."""

    model_config = ConfigDict(from_attributes=True)

    date: dt.date
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: int


class SymbolMatchResponse(BaseModel):
    """Symbol search hit."""

    model_config = ConfigDict(from_attributes=True)

    symbol: str
    name: str
    type: str = ""
    region: str = ""


class PopularStockResponse(BaseModel):
    """Popular stock summary."""

    model_config = ConfigDict(from_attributes=True)

    symbol: str
    name: str
    price: Decimal
    change: Decimal
    change_percent: Decimal


# =============================================================================
# Watchlist Schemas
# =============================================================================


class WatchlistAdd(BaseModel):
    """Schema for adding a watchlist entry."""

    symbol: str = Field(..., min_length=1)
    name: str = ""


# =============================================================================
# Error Schemas
# =============================================================================


class ErrorResponse(BaseModel):
    """Body of every domain error response."""

    detail: str
    code: str
    transaction: TransactionResponse | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    components: dict[str, Any] = Field(default_factory=dict)
