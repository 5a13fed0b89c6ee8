"""
Simulated market data for offline use and tests.

Quotes follow a seeded random walk around fixed base prices, so two providers
built with the same seed produce the same sequence.
"""

from __future__ import annotations

import random
from datetime import date, timedelta
from decimal import Decimal

from stockdash.market.models import PriceBar, Quote, SymbolMatch, SymbolNotFoundError
from stockdash.market.protocol import POPULAR_STOCKS


_CENT = Decimal("0.01")

_base_prices = {
    "AAPL": Decimal("189.50"),
    "MSFT": Decimal("415.20"),
    "GOOGL": Decimal("152.80"),
    "AMZN": Decimal("178.25"),
    "TSLA": Decimal("175.40"),
    "META": Decimal("495.00"),
    "NVDA": Decimal("880.10"),
    "NFLX": Decimal("610.75"),
    "AMD": Decimal("165.30"),
    "INTC": Decimal("35.60"),
    "IBM": Decimal("185.90"),
    "ORCL": Decimal("125.45"),
}


class SimulatedMarketData:
    """
    In-process MarketDataProvider.

    Example:
        provider = SimulatedMarketData(seed=42)
        quote = await provider.get_quote("AAPL")

    Only the popular stocks are known; any other symbol raises
    SymbolNotFoundError.
    """

    def __init__(self, seed: int | None = None, today: date | None = None) -> None:
        self._rng = random.Random(seed)
        self._today = today
        self._names = dict(POPULAR_STOCKS)
        self._last: dict[str, Decimal] = dict(_base_prices)

    @property
    def name(self) -> str:
        """Provider name."""
        return "simulated"

    def _require(self, symbol: str) -> Decimal:
        base = _base_prices.get(symbol)
        if base is None:
            raise SymbolNotFoundError(f"Stock data not found for {symbol}")
        return base

    def _step(self, price: Decimal, max_move: float) -> Decimal:
        change = Decimal(str(self._rng.uniform(-max_move, max_move)))
        return max((price * (1 + change)).quantize(_CENT), _CENT)

    async def get_quote(self, symbol: str) -> Quote:
        """Next point of the random walk for ``symbol``."""
        base = self._require(symbol)
        previous = self._last[symbol]
        price = self._step(previous, 0.02)
        self._last[symbol] = price

        change = price - previous
        spread = Decimal(str(self._rng.uniform(0, 0.01)))
        return Quote(
            symbol=symbol,
            price=price,
            change=change,
            change_percent=(change / previous * 100).quantize(Decimal("0.0001")),
            high=(max(price, previous) * (1 + spread)).quantize(_CENT),
            low=(min(price, previous) * (1 - spread)).quantize(_CENT),
            open=previous,
            previous_close=previous,
            volume=self._rng.randint(1_000_000, 50_000_000),
            latest_trading_day=self._today or date.today(),
        )

    async def get_history(self, symbol: str, days: int = 30) -> list[PriceBar]:
        """``days`` weekday bars ending today, oldest first."""
        price = self._require(symbol)

        trading_days: list[date] = []
        day = self._today or date.today()
        while len(trading_days) < days:
            if day.weekday() < 5:
                trading_days.append(day)
            day -= timedelta(days=1)

        bars = []
        for day in reversed(trading_days):
            open_price = price
            close_price = self._step(open_price, 0.01)
            high = max(open_price, close_price) * Decimal(str(1 + self._rng.uniform(0, 0.005)))
            low = min(open_price, close_price) * Decimal(str(1 - self._rng.uniform(0, 0.005)))
            bars.append(
                PriceBar(
                    date=day,
                    open=open_price,
                    high=high.quantize(_CENT),
                    low=low.quantize(_CENT),
                    close=close_price,
                    volume=self._rng.randint(1_000_000, 50_000_000),
                )
            )
            price = close_price

        return bars

    async def search(self, query: str) -> list[SymbolMatch]:
        """Case-insensitive match on symbol or company name."""
        needle = query.strip().lower()
        if not needle:
            return []
        return [
            SymbolMatch(symbol=symbol, name=name, type="Equity", region="United States")
            for symbol, name in self._names.items()
            if needle in symbol.lower() or needle in name.lower()
        ]

    async def close(self) -> None:
        """Nothing to release."""
