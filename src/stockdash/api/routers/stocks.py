"""
Stocks Router for the StockDash API.

Endpoints:
- GET /popular - Quotes for the popular stocks list
- GET /search - Symbol search
- GET /quote/{symbol} - Latest quote
- GET /history/{symbol} - Daily bars (1 to 100 days)
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from stockdash.api.deps import get_market_data
from stockdash.api.schemas import (
    PopularStockResponse,
    PriceBarResponse,
    QuoteResponse,
    SymbolMatchResponse,
)
from stockdash.market import MarketDataProvider, popular_quotes


router = APIRouter()

MarketDep = Annotated[MarketDataProvider, Depends(get_market_data)]


@router.get("/popular", response_model=list[PopularStockResponse])
async def get_popular_stocks(market: MarketDep) -> list[PopularStockResponse]:
    """
    Quotes for the popular stocks.

    A stock whose quote cannot be fetched is listed with zero price.
    """
    return [PopularStockResponse.model_validate(s) for s in await popular_quotes(market)]


@router.get("/search", response_model=list[SymbolMatchResponse])
async def search_stocks(
    market: MarketDep,
    query: Annotated[str, Query(min_length=1, description="Symbol or company name")],
) -> list[SymbolMatchResponse]:
    """Search symbols."""
    return [SymbolMatchResponse.model_validate(m) for m in await market.search(query)]


@router.get("/quote/{symbol}", response_model=QuoteResponse)
async def get_quote(symbol: str, market: MarketDep) -> QuoteResponse:
    """Get the latest quote for a symbol."""
    return QuoteResponse.model_validate(await market.get_quote(symbol))


@router.get("/history/{symbol}", response_model=list[PriceBarResponse])
async def get_history(
    symbol: str,
    market: MarketDep,
    days: Annotated[int, Query(ge=1, le=100, description="Number of daily bars")] = 30,
) -> list[PriceBarResponse]:
    """Get daily OHLCV bars, oldest first."""
    return [PriceBarResponse.model_validate(b) for b in await market.get_history(symbol, days)]
