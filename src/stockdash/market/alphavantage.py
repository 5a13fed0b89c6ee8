"""
Alpha Vantage market data provider.

Endpoints used:
- GLOBAL_QUOTE: latest quote
- TIME_SERIES_DAILY: daily OHLCV history
- SYMBOL_SEARCH: symbol lookup

See: https://www.alphavantage.co/documentation/

Alpha Vantage reports throttling and bad requests with HTTP 200 and a
"Note", "Information" or "Error Message" field, so every payload is checked
for those before parsing.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from stockdash.market.models import (
    MarketDataError,
    PriceBar,
    Quote,
    SymbolMatch,
    SymbolNotFoundError,
)


logger = logging.getLogger(__name__)

_ERROR_FIELDS = ("Error Message", "Note", "Information")


def _decimal(value: Any, field: str) -> Decimal:
    try:
        return Decimal(str(value).strip().rstrip("%"))
    except (InvalidOperation, AttributeError) as e:
        raise MarketDataError(f"Malformed {field!r} in response: {value!r}") from e


def _int(value: Any, field: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise MarketDataError(f"Malformed {field!r} in response: {value!r}") from e


class AlphaVantageProvider:
    """
    Alpha Vantage REST client.

    Example:
        async with AlphaVantageProvider(api_key="demo") as provider:
            quote = await provider.get_quote("IBM")
            bars = await provider.get_history("IBM", days=30)

    Pass ``client`` to share or mock the underlying httpx.AsyncClient;
    otherwise one is created and owned by the provider.
    """

    BASE_URL = "https://www.alphavantage.co/query"

    def __init__(
        self,
        api_key: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        if not api_key:
            raise ValueError("Alpha Vantage requires an API key")
        self._api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Accept": "application/json"},
        )

    @property
    def name(self) -> str:
        """Provider name."""
        return "alphavantage"

    async def close(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._owns_client:
            await self._client.aclose()
        logger.info("%s provider closed", self.name)

    async def __aenter__(self) -> AlphaVantageProvider:
        return self

    async def __aexit__(self, *_args: object) -> None:
        await self.close()

    async def _query(self, function: str, **params: str) -> dict[str, Any]:
        """Call one API function and return its checked JSON payload."""
        query = {"function": function, "apikey": self._api_key, **params}

        try:
            response = await self._client.get(self.BASE_URL, params=query)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error("Alpha Vantage %s request failed: %s", function, e)
            raise MarketDataError(f"Market data request failed: {e}") from e
        except ValueError as e:
            raise MarketDataError("Market data response is not JSON") from e

        if not isinstance(data, dict):
            raise MarketDataError("Unexpected market data response")

        for field in _ERROR_FIELDS:
            if field in data:
                logger.warning("Alpha Vantage %s: %s", function, data[field])
                raise MarketDataError(str(data[field]))

        return data

    # =========================================================================
    # Quotes and history
    # =========================================================================

    async def get_quote(self, symbol: str) -> Quote:
        """
        Get latest quote.

        Raises:
            SymbolNotFoundError: Empty "Global Quote"
            MarketDataError: Transport or API failure
        """
        data = await self._query("GLOBAL_QUOTE", symbol=symbol)
        raw = data.get("Global Quote") or {}
        if not raw:
            raise SymbolNotFoundError(f"Stock data not found for {symbol}")

        trading_day = raw.get("07. latest trading day")
        return Quote(
            symbol=raw.get("01. symbol", symbol),
            price=_decimal(raw.get("05. price"), "price"),
            change=_decimal(raw.get("09. change"), "change"),
            change_percent=_decimal(raw.get("10. change percent"), "change percent"),
            high=_decimal(raw.get("03. high"), "high"),
            low=_decimal(raw.get("04. low"), "low"),
            open=_decimal(raw.get("02. open"), "open"),
            previous_close=_decimal(raw.get("08. previous close"), "previous close"),
            volume=_int(raw.get("06. volume"), "volume"),
            latest_trading_day=date.fromisoformat(trading_day) if trading_day else None,
        )

    async def get_history(self, symbol: str, days: int = 30) -> list[PriceBar]:
        """
        Get the most recent daily bars, oldest first.

        Raises:
            SymbolNotFoundError: No "Time Series (Daily)" in the response
            MarketDataError: Transport or API failure
        """
        data = await self._query("TIME_SERIES_DAILY", symbol=symbol)
        series = data.get("Time Series (Daily)")
        if not series:
            raise SymbolNotFoundError(f"Historical data not found for {symbol}")

        recent = sorted(series, reverse=True)[:days]
        bars = []
        for day in reversed(recent):
            values = series[day]
            bars.append(
                PriceBar(
                    date=date.fromisoformat(day),
                    open=_decimal(values.get("1. open"), "open"),
                    high=_decimal(values.get("2. high"), "high"),
                    low=_decimal(values.get("3. low"), "low"),
                    close=_decimal(values.get("4. close"), "close"),
                    volume=_int(values.get("5. volume"), "volume"),
                )
            )
        return bars

    async def search(self, query: str) -> list[SymbolMatch]:
        """Search symbols by keyword."""
        data = await self._query("SYMBOL_SEARCH", keywords=query)
        return [
            SymbolMatch(
                symbol=match.get("1. symbol", ""),
                name=match.get("2. name", ""),
                type=match.get("3. type", ""),
                region=match.get("4. region", ""),
            )
            for match in data.get("bestMatches", [])
        ]
