"""
FastAPI application for StockDash.

Main entry point for the REST API server.

Usage:
    uvicorn stockdash.api.main:app --reload
    # or
    stockdash-api
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stockdash import __version__
from stockdash.api.deps import (
    authenticate_token,
    check_rate_limit,
    get_connection_manager,
    get_current_active_user,
    get_event_publisher,
    get_service,
    get_settings,
    get_store,
    set_service,
)
from stockdash.api.routers import (
    auth_router,
    stocks_router,
    system_router,
    transactions_router,
    watchlist_router,
)
from stockdash.api.schemas import ErrorResponse, TransactionResponse
from stockdash.config import Settings
from stockdash.core.errors import (
    AffordabilityError,
    AlreadyProcessedError,
    AuthenticationError,
    NotFoundError,
    PersistenceError,
    StockDashError,
    ValidationError,
)
from stockdash.log_config import configure_logging
from stockdash.market import MarketDataError


logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 1

# OpenAPI documentation of the domain error body
ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Validation or affordability error"},
    404: {"model": ErrorResponse, "description": "Not found"},
    409: {"model": ErrorResponse, "description": "Already processed"},
    503: {"model": ErrorResponse, "description": "Store unavailable, retry later"},
}
MARKET_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    404: {"model": ErrorResponse, "description": "Unknown symbol"},
    502: {"model": ErrorResponse, "description": "Market data provider failed"},
}


# =============================================================================
# Error Mapping
# =============================================================================


def status_for(exc: StockDashError) -> int:
    """HTTP status for a domain error (most specific class first)."""
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, MarketDataError):
        return 502
    if isinstance(exc, AuthenticationError):
        return 401
    if isinstance(exc, AlreadyProcessedError):
        return 409
    if isinstance(exc, PersistenceError):
        return 503
    if isinstance(exc, (ValidationError, AffordabilityError)):
        return 400
    return 500


async def stockdash_error_handler(request: Request, exc: StockDashError) -> JSONResponse:
    """Render a domain error as ``{"detail", "code"}``."""
    status_code = status_for(exc)
    content: dict[str, Any] = {"detail": str(exc), "code": exc.code}
    headers: dict[str, str] = {}

    if isinstance(exc, AffordabilityError) and exc.transaction is not None:
        content["transaction"] = TransactionResponse.model_validate(exc.transaction).model_dump(
            mode="json"
        )
    if status_code == 401:
        headers["WWW-Authenticate"] = "Bearer"
    if status_code == 503:
        headers["Retry-After"] = str(RETRY_AFTER_SECONDS)

    if status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content=content, headers=headers or None)


# =============================================================================
# Application Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the store, bind event broadcasting, and clean up on shutdown."""
    settings = get_settings()
    logger.info(
        "StockDash API starting up (storage=%s, market_data=%s)",
        settings.storage,
        settings.market_source,
    )

    get_store()
    publisher = get_event_publisher()
    publisher.bind(asyncio.get_running_loop())

    yield

    publisher.bind(None)

    market = get_service("market_data")
    if market is not None:
        await market.close()

    store = get_service("store")
    if store is not None:
        store.close()

    logger.info("StockDash API shutting down...")


# =============================================================================
# Create FastAPI Application
# =============================================================================


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Use these settings instead of Settings.load()
    """
    if settings is not None:
        set_service("settings", settings)

    app = FastAPI(
        title="StockDash API",
        description="""
## StockDash REST API

Paper-trading dashboard with admin-approved trades.

### Features
- **Stocks**: Quotes, daily history and symbol search
- **Watchlist**: Follow symbols
- **Transactions**: Submit buy/sell requests; admins approve or reject
- **Authentication**: JWT bearer tokens

### Authentication

Get a token via POST /api/v1/auth/login (or the OAuth2 form at
/api/v1/auth/token) and send it as `Authorization: Bearer <token>`.
        """,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StockDashError, stockdash_error_handler)

    # Include routers
    app.include_router(
        auth_router,
        prefix="/api/v1/auth",
        tags=["Authentication"],
        responses=ERROR_RESPONSES,
        dependencies=[Depends(check_rate_limit)],
    )

    app.include_router(
        stocks_router,
        prefix="/api/v1/stocks",
        tags=["Stocks"],
        responses=MARKET_ERROR_RESPONSES,
        dependencies=[Depends(check_rate_limit), Depends(get_current_active_user)],
    )

    app.include_router(
        watchlist_router,
        prefix="/api/v1/watchlist",
        tags=["Watchlist"],
        responses=ERROR_RESPONSES,
        dependencies=[Depends(check_rate_limit)],
    )

    app.include_router(
        transactions_router,
        prefix="/api/v1/transactions",
        tags=["Transactions"],
        responses=ERROR_RESPONSES,
        dependencies=[Depends(check_rate_limit)],
    )

    app.include_router(
        system_router,
        prefix="/api/v1/system",
        tags=["System"],
    )

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root():
        return JSONResponse(
            {
                "name": "StockDash API",
                "version": __version__,
                "docs": "/docs",
                "health": "/api/v1/system/health",
            }
        )

    # WebSocket endpoint
    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket, token: str | None = None):
        """
        WebSocket endpoint for real-time updates.

        Connect with ``/ws?token=<access token>``; connections without a valid
        token are closed with code 1008.

        **Subscription format:**
        ```json
        {"action": "subscribe", "channels": ["transactions"]}
        {"action": "unsubscribe", "channels": ["transactions"]}
        {"action": "ping"}
        ```

        **Available channels:**
        - transactions - Your submitted, approved and rejected trade requests
          (every user's for admins)
        """
        user = await run_in_threadpool(authenticate_token, token)
        if user is None:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        manager = get_connection_manager()
        await manager.connect(websocket, user)

        try:
            await websocket.send_json(
                {
                    "type": "connected",
                    "message": "Connected to StockDash WebSocket",
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                }
            )

            while True:
                data = await websocket.receive_json()

                action = data.get("action")
                channels = data.get("channels", [])

                if action == "subscribe":
                    await manager.subscribe(websocket, channels)
                    await websocket.send_json(
                        {
                            "type": "subscribed",
                            "channels": channels,
                            "timestamp": datetime.now(timezone.utc).isoformat(),
                        }
                    )

                elif action == "unsubscribe":
                    await manager.unsubscribe(websocket, channels)
                    await websocket.send_json(
                        {
                            "type": "unsubscribed",
                            "channels": channels,
                            "timestamp": datetime.now(timezone.utc).isoformat(),
                        }
                    )

                elif action == "ping":
                    await websocket.send_json(
                        {
                            "type": "pong",
                            "timestamp": datetime.now(timezone.utc).isoformat(),
                        }
                    )

        except WebSocketDisconnect:
            manager.disconnect(websocket)
        except Exception:
            logger.exception("WebSocket connection failed")
            manager.disconnect(websocket)

    return app


# Create the app instance
app = create_app()


# =============================================================================
# CLI Entry Point
# =============================================================================


def run() -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    settings = Settings.load()
    settings.paths.ensure_dirs()
    configure_logging(settings.log_level, settings.paths.logs)

    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
