"""
Unit tests for SimulatedMarketData and popular_quotes.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from stockdash.market import (
    POPULAR_STOCKS,
    MarketDataError,
    PriceBar,
    Quote,
    SimulatedMarketData,
    SymbolMatch,
    SymbolNotFoundError,
    popular_quotes,
)


TODAY = date(2024, 1, 10)  # Wednesday


class TestSimulatedMarketData:
    """Tests for the offline provider."""

    @pytest.mark.asyncio
    async def test_quote_is_positive(self) -> None:
        provider = SimulatedMarketData(seed=1, today=TODAY)

        quote = await provider.get_quote("AAPL")

        assert quote.symbol == "AAPL"
        assert quote.price > 0
        assert quote.low <= quote.price <= quote.high
        assert quote.change == quote.price - quote.previous_close
        assert quote.latest_trading_day == TODAY

    @pytest.mark.asyncio
    async def test_same_seed_same_prices(self) -> None:
        a = SimulatedMarketData(seed=7, today=TODAY)
        b = SimulatedMarketData(seed=7, today=TODAY)

        assert [(await a.get_quote("MSFT")).price for _ in range(3)] == [
            (await b.get_quote("MSFT")).price for _ in range(3)
        ]

    @pytest.mark.asyncio
    async def test_unknown_symbol(self) -> None:
        provider = SimulatedMarketData(seed=1)

        with pytest.raises(SymbolNotFoundError):
            await provider.get_quote("ZZZZ")
        with pytest.raises(SymbolNotFoundError):
            await provider.get_history("ZZZZ")

    @pytest.mark.asyncio
    async def test_history_weekdays_oldest_first(self) -> None:
        provider = SimulatedMarketData(seed=1, today=TODAY)

        bars = await provider.get_history("IBM", days=10)

        assert len(bars) == 10
        assert bars[-1].date == TODAY
        assert all(b.date.weekday() < 5 for b in bars)
        assert [b.date for b in bars] == sorted(b.date for b in bars)
        assert all(b.low <= min(b.open, b.close) for b in bars)
        assert all(b.high >= max(b.open, b.close) for b in bars)

    @pytest.mark.asyncio
    async def test_search(self) -> None:
        provider = SimulatedMarketData()

        matches = await provider.search("micro")

        assert {m.symbol for m in matches} == {"MSFT", "AMD"}
        assert await provider.search("  ") == []


class FlakyProvider:
    """Fails for one symbol, fixed quote for the rest."""

    def __init__(self, failing: str) -> None:
        self.failing = failing

    async def get_quote(self, symbol: str) -> Quote:
        if symbol == self.failing:
            raise MarketDataError("throttled")
        return Quote(
            symbol=symbol,
            price=Decimal("10"),
            change=Decimal("1"),
            change_percent=Decimal("11.1111"),
            high=Decimal("11"),
            low=Decimal("9"),
            open=Decimal("9"),
            previous_close=Decimal("9"),
            volume=100,
        )

    async def get_history(self, symbol: str, days: int = 30) -> list[PriceBar]:
        return []

    async def search(self, query: str) -> list[SymbolMatch]:
        return []

    async def close(self) -> None:
        pass


class TestPopularQuotes:
    """Tests for the popular stocks summary."""

    @pytest.mark.asyncio
    async def test_all_popular_stocks_listed(self) -> None:
        stocks = await popular_quotes(SimulatedMarketData(seed=3))

        assert [(s.symbol, s.name) for s in stocks] == list(POPULAR_STOCKS)
        assert len(stocks) == 12
        assert all(s.price > 0 for s in stocks)

    @pytest.mark.asyncio
    async def test_failure_yields_placeholder(self) -> None:
        stocks = await popular_quotes(FlakyProvider("TSLA"))

        tsla = next(s for s in stocks if s.symbol == "TSLA")
        assert tsla.name == "Tesla Inc."
        assert tsla.price == 0
        assert tsla.change == 0
        assert tsla.change_percent == 0
        assert all(s.price == Decimal("10") for s in stocks if s.symbol != "TSLA")
