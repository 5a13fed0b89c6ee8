"""
FastAPI dependencies for the StockDash API.

Provides dependency injection for:
- Authentication (JWT bearer)
- Rate limiting
- Service instances (store, settlement, users, watchlist, market data)
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from typing import Annotated, Any

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from stockdash.api.auth import decode_access_token
from stockdash.api.websocket import ConnectionManager, TransactionEventPublisher
from stockdash.config import Settings
from stockdash.core.errors import NotFoundError
from stockdash.core.locks import KeyedLock
from stockdash.core.transactions import TransactionService
from stockdash.core.users import User, UserService
from stockdash.core.watchlist import WatchlistService
from stockdash.market import MarketDataProvider, create_provider
from stockdash.storage import LedgerStore, MemoryStore, SQLiteStore


logger = logging.getLogger(__name__)


# =============================================================================
# Service Dependencies
# =============================================================================

# Global service instances (created lazily or at startup)
_services: dict[str, Any] = {}


def get_settings() -> Settings:
    """Get Settings instance."""
    if "settings" not in _services:
        _services["settings"] = Settings.load()
    return _services["settings"]


def get_store() -> LedgerStore:
    """Get the configured LedgerStore."""
    if "store" not in _services:
        settings = get_settings()
        if settings.storage == "memory":
            store: LedgerStore = MemoryStore()
        else:
            store = SQLiteStore(settings.database_path).initialize()
        logger.info("Using %s store", settings.storage)
        _services["store"] = store
    return _services["store"]


def get_locks() -> KeyedLock:
    """Get the per-user lock table shared by all services."""
    if "locks" not in _services:
        _services["locks"] = KeyedLock(timeout=get_settings().lock_timeout)
    return _services["locks"]


def get_connection_manager() -> ConnectionManager:
    """Get WebSocket ConnectionManager instance."""
    if "connection_manager" not in _services:
        _services["connection_manager"] = ConnectionManager()
    return _services["connection_manager"]


def get_event_publisher() -> TransactionEventPublisher:
    """Get the publisher that forwards settlement events to WebSockets."""
    if "event_publisher" not in _services:
        _services["event_publisher"] = TransactionEventPublisher(get_connection_manager())
    return _services["event_publisher"]


def get_user_service() -> UserService:
    """Get UserService instance."""
    if "user_service" not in _services:
        _services["user_service"] = UserService(
            get_store(),
            starting_balance=get_settings().starting_balance,
        )
    return _services["user_service"]


def get_transaction_service() -> TransactionService:
    """Get TransactionService instance."""
    if "transaction_service" not in _services:
        _services["transaction_service"] = TransactionService(
            get_store(),
            locks=get_locks(),
            on_event=get_event_publisher(),
        )
    return _services["transaction_service"]


def get_watchlist_service() -> WatchlistService:
    """Get WatchlistService instance."""
    if "watchlist_service" not in _services:
        _services["watchlist_service"] = WatchlistService(get_store(), locks=get_locks())
    return _services["watchlist_service"]


def get_market_data() -> MarketDataProvider:
    """Get the configured MarketDataProvider."""
    if "market_data" not in _services:
        _services["market_data"] = create_provider(get_settings())
    return _services["market_data"]


def get_service(name: str) -> Any | None:
    """Get a service instance if it has been created."""
    return _services.get(name)


def set_service(name: str, service: Any) -> None:
    """Set a service instance (for testing/configuration)."""
    _services[name] = service


def clear_services() -> None:
    """Clear all service instances (for testing)."""
    global _last_sweep
    _services.clear()
    _rate_limits.clear()
    _last_sweep = 0.0


# =============================================================================
# Authentication Dependencies
# =============================================================================

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", auto_error=False)


def get_current_user(
    token: Annotated[str | None, Depends(oauth2_scheme)] = None,
) -> User:
    """
    Get current authenticated user from the bearer token.

    The token only carries the user ID; the user is re-read on every request
    so role and activation changes apply immediately.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not token:
        raise credentials_exception

    token_data = decode_access_token(token, get_settings())
    if token_data is None:
        raise credentials_exception

    try:
        return get_user_service().get(token_data.user_id)
    except NotFoundError:
        raise credentials_exception from None


def get_current_active_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Get current user and verify they are active."""
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Inactive user",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current_user


def require_admin(
    current_user: Annotated[User, Depends(get_current_active_user)],
) -> User:
    """
    Admin-only authorization.

    Usage:
        @router.put("/{id}/approve")
        def approve(admin: Annotated[User, Depends(require_admin)]): ...
    """
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized as admin",
        )
    return current_user


def authenticate_token(token: str | None) -> User | None:
    """
    Resolve a bearer token to an active user, or None.

    Used where no HTTP error can be raised, e.g. the WebSocket handshake.
    """
    if not token:
        return None
    token_data = decode_access_token(token, get_settings())
    if token_data is None:
        return None
    try:
        user = get_user_service().get(token_data.user_id)
    except NotFoundError:
        return None
    return user if user.is_active else None


CurrentUser = Annotated[User, Depends(get_current_active_user)]
AdminUser = Annotated[User, Depends(require_admin)]


# =============================================================================
# Rate Limiting
# =============================================================================

# In-memory rate limit tracking
_rate_limits: dict[str, list[float]] = defaultdict(list)
_rate_limit_window = 60  # seconds
_last_sweep = 0.0


def _sweep_rate_limits(window_start: float) -> None:
    """Forget clients with no requests inside the window."""
    for ip, hits in list(_rate_limits.items()):
        if not hits or hits[-1] <= window_start:
            _rate_limits.pop(ip, None)


def check_rate_limit(
    request: Request,
    x_forwarded_for: Annotated[str | None, Header()] = None,
    x_real_ip: Annotated[str | None, Header()] = None,
) -> None:
    """
    Sliding-window rate limiting per client IP.

    The limit (requests per minute) comes from ``Settings.rate_limit``.
    X-Forwarded-For / X-Real-IP are only honoured when the direct peer is
    listed in ``Settings.trusted_proxies``.
    """
    global _last_sweep
    settings = get_settings()

    client_ip = request.client.host if request.client else "unknown"
    if client_ip in settings.trusted_proxies:
        forwarded = x_forwarded_for or x_real_ip
        if forwarded:
            client_ip = forwarded.split(",")[0].strip()

    current_time = time.time()
    window_start = current_time - _rate_limit_window

    if current_time - _last_sweep >= _rate_limit_window:
        _sweep_rate_limits(window_start)
        _last_sweep = current_time

    # Clean old entries
    _rate_limits[client_ip] = [t for t in _rate_limits[client_ip] if t > window_start]

    if len(_rate_limits[client_ip]) >= settings.rate_limit:
        logger.warning("Rate limit exceeded for %s", client_ip)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Try again later.",
            headers={"Retry-After": str(_rate_limit_window)},
        )

    _rate_limits[client_ip].append(current_time)
