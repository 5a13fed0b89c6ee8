"""
WebSocket fan-out for transaction events.

Clients connect to ``/ws?token=<jwt>`` and subscribe to channels. The
``transactions`` channel carries TransactionEvents emitted by settlement; a
connection only receives events for its own user, admins receive all of them.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any

import msgspec
from fastapi import WebSocket

from stockdash.core.transactions import TransactionEvent
from stockdash.core.users import User


logger = logging.getLogger(__name__)

TRANSACTIONS_CHANNEL = "transactions"


class ConnectionManager:
    """Manage WebSocket connections and subscriptions."""

    def __init__(self) -> None:
        self.active_connections: list[WebSocket] = []
        self.subscriptions: dict[WebSocket, set[str]] = {}
        self.viewers: dict[WebSocket, User] = {}

    async def connect(self, websocket: WebSocket, user: User) -> None:
        """Accept and register a WebSocket connection for ``user``."""
        await websocket.accept()
        self.active_connections.append(websocket)
        self.subscriptions[websocket] = set()
        self.viewers[websocket] = user

    def disconnect(self, websocket: WebSocket) -> None:
        """Remove a WebSocket connection."""
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
        self.subscriptions.pop(websocket, None)
        self.viewers.pop(websocket, None)

    async def subscribe(self, websocket: WebSocket, channels: list[str]) -> None:
        """Subscribe a connection to channels."""
        if websocket in self.subscriptions:
            self.subscriptions[websocket].update(channels)

    async def unsubscribe(self, websocket: WebSocket, channels: list[str]) -> None:
        """Unsubscribe a connection from channels."""
        if websocket in self.subscriptions:
            self.subscriptions[websocket].difference_update(channels)

    def _can_see(self, websocket: WebSocket, owner_id: str) -> bool:
        viewer = self.viewers.get(websocket)
        return viewer is not None and (viewer.id == owner_id or viewer.is_admin)

    async def broadcast(
        self,
        channel: str,
        data: dict[str, Any],
        owner_id: str | None = None,
    ) -> None:
        """
        Broadcast message to all connections subscribed to channel.

        With ``owner_id``, only that user's connections and admins receive it.
        """
        message = json.dumps(
            {
                "type": "update",
                "channel": channel,
                "data": data,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )

        for ws, channels in list(self.subscriptions.items()):
            if channel not in channels:
                continue
            if owner_id is not None and not self._can_see(ws, owner_id):
                continue
            try:
                await ws.send_text(message)
            except Exception:
                logger.debug("Dropping dead WebSocket connection", exc_info=True)
                self.disconnect(ws)


class TransactionEventPublisher:
    """
    Bridge from settlement's synchronous callback to the async broadcaster.

    Settlement runs in worker threads, so events are handed to the event loop
    bound at startup with run_coroutine_threadsafe. Before a loop is bound,
    events are only logged.
    """

    def __init__(self, manager: ConnectionManager) -> None:
        self.manager = manager
        self._loop: asyncio.AbstractEventLoop | None = None

    def bind(self, loop: asyncio.AbstractEventLoop | None) -> None:
        """Attach to (or, with None, detach from) the server's event loop."""
        self._loop = loop

    def __call__(self, event: TransactionEvent) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("No event loop bound, %s not broadcast", event.event_type)
            return

        payload = msgspec.to_builtins(event)
        asyncio.run_coroutine_threadsafe(
            self.manager.broadcast(TRANSACTIONS_CHANNEL, payload, owner_id=event.user_id),
            loop,
        )
