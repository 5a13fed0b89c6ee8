"""
Market data provider protocol and the popular stocks list.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Protocol, runtime_checkable

from stockdash.market.models import (
    MarketDataError,
    PopularStock,
    PriceBar,
    Quote,
    SymbolMatch,
)


logger = logging.getLogger(__name__)


POPULAR_STOCKS: tuple[tuple[str, str], ...] = (
    ("AAPL", "Apple Inc."),
    ("MSFT", "Microsoft Corporation"),
    ("GOOGL", "Alphabet Inc."),
    ("AMZN", "Amazon.com Inc."),
    ("TSLA", "Tesla Inc."),
    ("META", "Meta Platforms Inc."),
    ("NVDA", "NVIDIA Corporation"),
    ("NFLX", "Netflix Inc."),
    ("AMD", "Advanced Micro Devices"),
    ("INTC", "Intel Corporation"),
    ("IBM", "International Business Machines"),
    ("ORCL", "Oracle Corporation"),
)


@runtime_checkable
class MarketDataProvider(Protocol):
    """
    Source of quotes, daily history and symbol search.

    Implementations raise SymbolNotFoundError for unknown symbols and
    MarketDataError for any other upstream failure.
    """

    async def get_quote(self, symbol: str) -> Quote:
        """Latest quote for ``symbol``."""
        ...

    async def get_history(self, symbol: str, days: int = 30) -> list[PriceBar]:
        """The most recent ``days`` daily bars, oldest first."""
        ...

    async def search(self, query: str) -> list[SymbolMatch]:
        """Symbols matching ``query``."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...


async def popular_quotes(provider: MarketDataProvider) -> list[PopularStock]:
    """
    Quote every stock in POPULAR_STOCKS.

    Symbols are fetched one at a time (free API tiers throttle bursts). A
    symbol that fails yields a zero-priced placeholder instead of failing the
    whole list.
    """
    zero = Decimal("0")
    results: list[PopularStock] = []

    for symbol, name in POPULAR_STOCKS:
        try:
            quote = await provider.get_quote(symbol)
        except MarketDataError as e:
            logger.warning("Quote for %s unavailable: %s", symbol, e)
            results.append(PopularStock(symbol, name, zero, zero, zero))
            continue
        results.append(
            PopularStock(symbol, name, quote.price, quote.change, quote.change_percent)
        )

    return results
