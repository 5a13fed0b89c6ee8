"""
Market data types and errors.

Prices are Decimal, like every other amount in StockDash, so a quote can be
fed straight into a trade request.
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

import msgspec

from stockdash.core.errors import NotFoundError, StockDashError


class MarketDataError(StockDashError):
    """Upstream market data failure (transport, throttling, bad payload)."""

    code = "market_data_error"


class SymbolNotFoundError(MarketDataError, NotFoundError):
    """The provider has no data for the symbol."""

    code = "symbol_not_found"


class Quote(msgspec.Struct, frozen=True, kw_only=True):
    """Latest quote for a symbol."""

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


class PriceBar(msgspec.Struct, frozen=True, gc=False):
    """One daily OHLCV bar."""

    date: dt.date
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: int


class SymbolMatch(msgspec.Struct, frozen=True, gc=False):
    """A symbol search hit."""

    symbol: str
    name: str
    type: str = ""
    region: str = ""


class PopularStock(msgspec.Struct, frozen=True, gc=False):
    """Summary row for the popular stocks list."""

    symbol: str
    name: str
    price: Decimal
    change: Decimal
    change_percent: Decimal
