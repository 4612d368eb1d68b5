"""WebSocket fan-out for game events.

Events arrive from PostgreSQL NOTIFY (see ``shared.pg_listener``) after the
engine commits, and are forwarded unchanged to every connected client as
``{"type": <event>, "data": <payload>}``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks open sockets and broadcasts messages to all of them."""

    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)
        logger.debug(f"WebSocket connected ({len(self._connections)} open)")

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._connections.discard(websocket)
        logger.debug(f"WebSocket disconnected ({len(self._connections)} open)")

    async def send_personal_message(self, message: dict, websocket: WebSocket) -> None:
        await websocket.send_text(json.dumps(message, default=str))

    async def broadcast(self, message: dict) -> int:
        """Send ``message`` to every open socket. Returns how many received it."""
        if not self._connections:
            return 0

        text = json.dumps(message, default=str)
        dead: set[WebSocket] = set()
        sent = 0
        async with self._lock:
            for websocket in self._connections:
                if websocket.client_state != WebSocketState.CONNECTED:
                    dead.add(websocket)
                    continue
                try:
                    await websocket.send_text(text)
                    sent += 1
                except Exception as e:
                    logger.debug(f"Dropping WebSocket after send failure: {type(e).__name__}: {e}")
                    dead.add(websocket)
            self._connections -= dead
        return sent

    async def handle_notification(self, _conn: Any, _pid: int, _channel: str, payload: str) -> None:
        """``pg_listen`` callback: decode the NOTIFY payload and broadcast it."""
        try:
            event = json.loads(payload)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring malformed game event payload: {payload[:200]!r}")
            return
        await self.broadcast({"type": event.get("event"), "data": event.get("data")})

    @property
    def connection_count(self) -> int:
        return len(self._connections)
