"""
Account ledger data models.

An Account is a user's simulated cash balance plus share positions. Positions
hold an integer share count and a weighted-average cost basis; a position that
reaches zero shares is removed rather than kept at zero.
"""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_EVEN, Context, Decimal, localcontext
from enum import Enum

import msgspec


# Wide enough that products and sums of validated quantities and prices are exact
LEDGER_CONTEXT = Context(prec=64, rounding=ROUND_HALF_EVEN)


class TradeType(str, Enum):
    """Direction of a trade request."""

    BUY = "buy"
    SELL = "sell"


class Position(msgspec.Struct, frozen=True, gc=False):
    """
    Shares held in one symbol.

    ``avg_price`` is the weighted average cost basis, not a market price.
    """

    symbol: str
    quantity: int
    avg_price: Decimal

    @property
    def cost_basis(self) -> Decimal:
        """Total amount paid for the shares currently held."""
        with localcontext(LEDGER_CONTEXT):
            return self.quantity * self.avg_price


class Account(msgspec.Struct, frozen=True, kw_only=True):
    """
    Cash balance and holdings of a single user.

    ``version`` is an optimistic concurrency token: stores only accept a write
    whose version matches the stored one, then increment it.
    """

    user_id: str
    balance: Decimal
    holdings: tuple[Position, ...] = ()
    version: int = 0
    updated_at: datetime | None = None

    def position(self, symbol: str) -> Position | None:
        """Return the position for ``symbol`` (exact match) or None."""
        for holding in self.holdings:
            if holding.symbol == symbol:
                return holding
        return None

    @property
    def invested_value(self) -> Decimal:
        """Cost basis of all holdings."""
        with localcontext(LEDGER_CONTEXT):
            return sum((h.cost_basis for h in self.holdings), Decimal(0))
