"""
API Routers for the StockDash REST API.

Each router handles a specific domain:
- auth: Signup, login and profiles
- stocks: Market data
- watchlist: Followed symbols
- transactions: Trade requests and admin approval
- system: Health and info
"""

from stockdash.api.routers.auth import router as auth_router
from stockdash.api.routers.stocks import router as stocks_router
from stockdash.api.routers.system import router as system_router
from stockdash.api.routers.transactions import router as transactions_router
from stockdash.api.routers.watchlist import router as watchlist_router

__all__ = [
    "auth_router",
    "stocks_router",
    "watchlist_router",
    "transactions_router",
    "system_router",
]
