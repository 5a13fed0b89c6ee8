"""
Watchlist Router for the StockDash API.

Endpoints:
- GET / - Current watchlist
- POST / - Add a symbol
- DELETE /{symbol} - Remove a symbol
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from stockdash.api.deps import CurrentUser, get_watchlist_service
from stockdash.api.schemas import WatchlistAdd, WatchlistItemResponse
from stockdash.core.watchlist import WatchlistService


router = APIRouter()

WatchlistDep = Annotated[WatchlistService, Depends(get_watchlist_service)]


@router.get("", response_model=list[WatchlistItemResponse])
def get_watchlist(current_user: CurrentUser, watchlist: WatchlistDep) -> list[WatchlistItemResponse]:
    """List the current user's watchlist."""
    return [WatchlistItemResponse.model_validate(i) for i in watchlist.entries(current_user.id)]


@router.post("", response_model=list[WatchlistItemResponse])
def add_to_watchlist(
    body: WatchlistAdd,
    current_user: CurrentUser,
    watchlist: WatchlistDep,
) -> list[WatchlistItemResponse]:
    """Add a symbol; duplicates are rejected with 400."""
    items = watchlist.add(current_user.id, body.symbol, body.name)
    return [WatchlistItemResponse.model_validate(i) for i in items]


@router.delete("/{symbol}", response_model=list[WatchlistItemResponse])
def remove_from_watchlist(
    symbol: str,
    current_user: CurrentUser,
    watchlist: WatchlistDep,
) -> list[WatchlistItemResponse]:
    """Remove a symbol (no-op if absent)."""
    items = watchlist.remove(current_user.id, symbol)
    return [WatchlistItemResponse.model_validate(i) for i in items]
