"""
Market data for StockDash.

Provides:
- MarketDataProvider protocol
- AlphaVantageProvider: live data over HTTP (httpx)
- SimulatedMarketData: seeded random walk for offline use
- popular_quotes: summary of the popular stocks list
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from stockdash.market.alphavantage import AlphaVantageProvider
from stockdash.market.models import (
    MarketDataError,
    PopularStock,
    PriceBar,
    Quote,
    SymbolMatch,
    SymbolNotFoundError,
)
from stockdash.market.protocol import POPULAR_STOCKS, MarketDataProvider, popular_quotes
from stockdash.market.simulated import SimulatedMarketData


if TYPE_CHECKING:
    from stockdash.config import Settings


def create_provider(settings: Settings) -> MarketDataProvider:
    """Build the provider selected by ``settings.market_source``."""
    if settings.market_source == "alphavantage":
        return AlphaVantageProvider(api_key=settings.stock_api_key or "")
    return SimulatedMarketData()


__all__ = [
    "POPULAR_STOCKS",
    "AlphaVantageProvider",
    "MarketDataError",
    "MarketDataProvider",
    "PopularStock",
    "PriceBar",
    "Quote",
    "SimulatedMarketData",
    "SymbolMatch",
    "SymbolNotFoundError",
    "create_provider",
    "popular_quotes",
]
