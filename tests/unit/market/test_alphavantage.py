"""
Unit tests for AlphaVantageProvider against a mocked HTTP transport.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

import httpx
import pytest

from stockdash.market import (
    AlphaVantageProvider,
    MarketDataError,
    SymbolNotFoundError,
)


GLOBAL_QUOTE = {
    "Global Quote": {
        "01. symbol": "IBM",
        "02. open": "182.0000",
        "03. high": "184.5000",
        "04. low": "181.2500",
        "05. price": "183.7100",
        "06. volume": "4123456",
        "07. latest trading day": "2024-01-08",
        "08. previous close": "181.9000",
        "09. change": "1.8100",
        "10. change percent": "0.9951%",
    }
}

TIME_SERIES = {
    "Meta Data": {"2. Symbol": "IBM"},
    "Time Series (Daily)": {
        "2024-01-08": {
            "1. open": "182.00",
            "2. high": "184.50",
            "3. low": "181.25",
            "4. close": "183.71",
            "5. volume": "4123456",
        },
        "2024-01-05": {
            "1. open": "180.00",
            "2. high": "182.10",
            "3. low": "179.90",
            "4. close": "181.90",
            "5. volume": "3900000",
        },
        "2024-01-04": {
            "1. open": "179.00",
            "2. high": "180.50",
            "3. low": "178.00",
            "4. close": "180.00",
            "5. volume": "3500000",
        },
    },
}

SEARCH = {
    "bestMatches": [
        {
            "1. symbol": "IBM",
            "2. name": "International Business Machines Corp",
            "3. type": "Equity",
            "4. region": "United States",
        },
        {
            "1. symbol": "IBM.LON",
            "2. name": "International Business Machines Corp",
            "3. type": "Equity",
            "4. region": "United Kingdom",
        },
    ]
}


class MockAlphaVantage:
    """Records requests and answers with canned payloads."""

    def __init__(self, payloads: dict[str, Any] | None = None, status_code: int = 200) -> None:
        self.payloads = payloads or {}
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        function = request.url.params["function"]
        return httpx.Response(self.status_code, json=self.payloads.get(function, {}))


def provider_for(api: MockAlphaVantage) -> AlphaVantageProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(api))
    return AlphaVantageProvider(api_key="test-key", client=client)


class TestAlphaVantageProvider:
    """Tests for request building and payload parsing."""

    @pytest.mark.asyncio
    async def test_get_quote(self) -> None:
        api = MockAlphaVantage({"GLOBAL_QUOTE": GLOBAL_QUOTE})
        provider = provider_for(api)

        quote = await provider.get_quote("IBM")

        assert quote.symbol == "IBM"
        assert quote.price == Decimal("183.7100")
        assert quote.change == Decimal("1.8100")
        assert quote.change_percent == Decimal("0.9951")
        assert quote.high == Decimal("184.5000")
        assert quote.low == Decimal("181.2500")
        assert quote.open == Decimal("182.0000")
        assert quote.previous_close == Decimal("181.9000")
        assert quote.volume == 4123456
        assert quote.latest_trading_day == date(2024, 1, 8)

        params = api.requests[0].url.params
        assert params["symbol"] == "IBM"
        assert params["apikey"] == "test-key"

    @pytest.mark.asyncio
    async def test_empty_quote_is_not_found(self) -> None:
        provider = provider_for(MockAlphaVantage({"GLOBAL_QUOTE": {"Global Quote": {}}}))

        with pytest.raises(SymbolNotFoundError):
            await provider.get_quote("NOPE")

    @pytest.mark.asyncio
    async def test_history_oldest_first_and_limited(self) -> None:
        provider = provider_for(MockAlphaVantage({"TIME_SERIES_DAILY": TIME_SERIES}))

        bars = await provider.get_history("IBM", days=2)

        assert [b.date for b in bars] == [date(2024, 1, 5), date(2024, 1, 8)]
        assert bars[-1].close == Decimal("183.71")
        assert bars[0].volume == 3900000

    @pytest.mark.asyncio
    async def test_history_missing_series(self) -> None:
        provider = provider_for(MockAlphaVantage({"TIME_SERIES_DAILY": {}}))

        with pytest.raises(SymbolNotFoundError):
            await provider.get_history("NOPE")

    @pytest.mark.asyncio
    async def test_search(self) -> None:
        api = MockAlphaVantage({"SYMBOL_SEARCH": SEARCH})
        provider = provider_for(api)

        matches = await provider.search("ibm")

        assert [m.symbol for m in matches] == ["IBM", "IBM.LON"]
        assert matches[1].region == "United Kingdom"
        assert api.requests[0].url.params["keywords"] == "ibm"

    @pytest.mark.asyncio
    async def test_search_without_matches(self) -> None:
        provider = provider_for(MockAlphaVantage({"SYMBOL_SEARCH": {"bestMatches": []}}))

        assert await provider.search("zzzz") == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["Note", "Information", "Error Message"])
    async def test_api_error_fields(self, field: str) -> None:
        provider = provider_for(
            MockAlphaVantage({"GLOBAL_QUOTE": {field: "API call frequency exceeded"}})
        )

        with pytest.raises(MarketDataError, match="frequency"):
            await provider.get_quote("IBM")

    @pytest.mark.asyncio
    async def test_http_error(self) -> None:
        provider = provider_for(MockAlphaVantage(status_code=500))

        with pytest.raises(MarketDataError, match="request failed"):
            await provider.get_quote("IBM")

    @pytest.mark.asyncio
    async def test_malformed_number(self) -> None:
        payload = {"Global Quote": {**GLOBAL_QUOTE["Global Quote"], "05. price": "n/a"}}
        provider = provider_for(MockAlphaVantage({"GLOBAL_QUOTE": payload}))

        with pytest.raises(MarketDataError, match="price"):
            await provider.get_quote("IBM")

    @pytest.mark.asyncio
    async def test_close_keeps_shared_client_open(self) -> None:
        client = httpx.AsyncClient(transport=httpx.MockTransport(MockAlphaVantage()))
        provider = AlphaVantageProvider(api_key="test-key", client=client)

        await provider.close()

        assert not client.is_closed
        await client.aclose()

    def test_requires_api_key(self) -> None:
        with pytest.raises(ValueError):
            AlphaVantageProvider(api_key="")
