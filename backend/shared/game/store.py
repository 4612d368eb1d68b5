"""Transactional access to the game tables.

Every mutating engine operation runs inside ``PostgresGameStore.transaction()``:
one connection, one transaction, and a transaction-scoped advisory lock taken
before anything is read. Joins, admissions, spins and settlements are therefore
serialised against each other across all API workers, and nothing is written
unless the whole operation commits.

Events published through ``GameSession.publish`` use ``pg_notify`` inside the
same transaction, so observers only hear about changes that were committed.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import asyncpg

from shared.database import CONNECTION_ERRORS
from shared.game.errors import StoreUnavailable
from shared.models.roulette import GameRound
from shared.repositories.game_queue import GameQueueRepository
from shared.repositories.roulette import (
    ActivePlayerRepository,
    GameStateRepository,
    RoundRepository,
    invalidate_round_history,
)
from shared.repositories.users import LedgerRepository, UserRepository

logger = logging.getLogger(__name__)

# Arbitrary constant shared by every process that mutates the game
GAME_LOCK_KEY = 0x524F554C  # "ROUL"

DEFAULT_EVENTS_CHANNEL = "roulette_events"


class GameSession:
    """Repositories bound to a single open connection."""

    def __init__(self, conn: asyncpg.Connection, events_channel: str) -> None:
        self.conn = conn
        self.events_channel = events_channel
        self.users = UserRepository(conn)
        self.ledger = LedgerRepository(conn)
        self.queue = GameQueueRepository(conn)
        self.state = GameStateRepository(conn)
        self.players = ActivePlayerRepository(conn)
        self.rounds = RoundRepository(conn)

    async def publish(self, event: str, data: Any) -> None:
        """Queue an event for observers; delivered by PostgreSQL on commit."""
        payload = json.dumps({"event": event, "data": data}, default=str)
        await self.conn.execute("SELECT pg_notify($1, $2)", self.events_channel, payload)


class PostgresGameStore:
    """Opens game sessions on an asyncpg pool."""

    def __init__(
        self,
        pool: asyncpg.Pool,
        events_channel: str = DEFAULT_EVENTS_CHANNEL,
        lock_key: int = GAME_LOCK_KEY,
    ) -> None:
        self.pool = pool
        self.events_channel = events_channel
        self.lock_key = lock_key

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[GameSession]:
        """Exclusive read-write session. Rolls back on any exception."""
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute("SELECT pg_advisory_xact_lock($1)", self.lock_key)
                    yield GameSession(conn, self.events_channel)
        except CONNECTION_ERRORS as e:
            logger.exception(f"Game store unavailable: {type(e).__name__}: {e}")
            raise StoreUnavailable() from e
        # Only reached after commit
        invalidate_round_history()

    @asynccontextmanager
    async def snapshot(self) -> AsyncIterator[GameSession]:
        """Read-only session with a consistent view; takes no game lock."""
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction(isolation="repeatable_read", readonly=True):
                    yield GameSession(conn, self.events_channel)
        except CONNECTION_ERRORS as e:
            logger.exception(f"Game store unavailable: {type(e).__name__}: {e}")
            raise StoreUnavailable() from e

    async def round_history(self, limit: int = 20) -> list[GameRound]:
        """Recent rounds, newest first.

        Read straight from the pool rather than a snapshot so a failed acquire
        lands inside the cached query and can fall back to the last good value.
        """
        try:
            return await RoundRepository(self.pool).list_recent(limit)
        except CONNECTION_ERRORS as e:
            logger.exception(f"Game store unavailable: {type(e).__name__}: {e}")
            raise StoreUnavailable() from e
