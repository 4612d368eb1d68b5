"""Dependency injection utilities for FastAPI"""

import logging

import asyncpg
from fastapi import Depends, Header, HTTPException

from core.config import get_settings
from core.database import get_database_manager
from services.broadcaster import ConnectionManager
from services.game_service import RouletteService

logger = logging.getLogger(__name__)


# ============================================
# Infrastructure Dependencies
# ============================================


def get_db_pool() -> asyncpg.Pool:
    db_manager = get_database_manager()
    if not db_manager.is_connected:
        raise HTTPException(
            status_code=503,
            detail={"code": "STORE_UNAVAILABLE", "message": "Database not ready"},
        )
    return db_manager.pool


_connection_manager = ConnectionManager()


def get_connection_manager() -> ConnectionManager:
    """Process-wide WebSocket hub"""
    return _connection_manager


# ============================================
# Service Dependencies
# ============================================

_roulette_service: RouletteService | None = None


def get_roulette_service(pool: asyncpg.Pool = Depends(get_db_pool)) -> RouletteService:
    """Shared RouletteService bound to the current pool"""
    global _roulette_service
    if _roulette_service is None or _roulette_service.engine.store.pool is not pool:
        settings = get_settings()
        _roulette_service = RouletteService.from_pool(
            pool,
            settings.game_config(),
            events_channel=settings.events_channel,
        )
    return _roulette_service


def reset_roulette_service() -> None:
    """Drop the shared service. Call on app shutdown."""
    global _roulette_service
    _roulette_service = None


# ============================================
# Authentication Dependencies
# ============================================


async def get_current_user_id(x_user_id: str | None = Header(None)) -> int:
    """Return users.id of the caller.

    Identity is established by the gateway in front of this service, which
    forwards it in the ``X-User-Id`` header.
    """
    if not x_user_id:
        logger.warning("No user id header provided")
        raise HTTPException(status_code=401, detail="Not logged in")
    try:
        user_id = int(x_user_id)
    except ValueError:
        logger.warning(f"Malformed user id header: {x_user_id!r}")
        raise HTTPException(status_code=401, detail="Invalid user id") from None
    if user_id <= 0:
        raise HTTPException(status_code=401, detail="Invalid user id")
    return user_id
