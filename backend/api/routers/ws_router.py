"""Live game events over WebSocket."""

import json
import logging
from collections.abc import Callable

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect

from core.dependencies import get_connection_manager, get_db_pool, get_roulette_service
from services.broadcaster import ConnectionManager
from services.game_service import RouletteService
from shared.game.errors import GameError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["roulette-ws"])


def get_service_provider() -> Callable[[], RouletteService]:
    """Resolve the roulette service lazily, per message"""
    return lambda: get_roulette_service(get_db_pool())


async def _send_state(
    websocket: WebSocket,
    manager: ConnectionManager,
    provider: Callable[[], RouletteService],
) -> None:
    try:
        state = await provider().get_state()
    except HTTPException:
        error = {"code": "STORE_UNAVAILABLE", "message": "Database not ready"}
        await manager.send_personal_message({"type": "error", "data": error}, websocket)
        return
    except GameError as e:
        await manager.send_personal_message({"type": "error", "data": e.to_dict()}, websocket)
        return
    await manager.send_personal_message({"type": "game-state-update", "data": state}, websocket)


@router.websocket("/ws/roulette")
async def roulette_socket(
    websocket: WebSocket,
    manager: ConnectionManager = Depends(get_connection_manager),
    provider: Callable[[], RouletteService] = Depends(get_service_provider),
) -> None:
    """Send the current state, then relay every committed game event."""
    await manager.connect(websocket)
    try:
        await _send_state(websocket, manager, provider)
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                message = None
            if isinstance(message, dict) and message.get("type") == "request-game-state":
                await _send_state(websocket, manager, provider)
            else:
                await manager.send_personal_message(
                    {
                        "type": "error",
                        "data": {"code": "WS_INVALID_MESSAGE", "message": "Unknown message"},
                    },
                    websocket,
                )
    except WebSocketDisconnect:
        logger.debug("Roulette WebSocket closed by client")
    finally:
        await manager.disconnect(websocket)
