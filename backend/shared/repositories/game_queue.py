"""Repository for the game_queue_entries table (durable FIFO admission queue)."""

from __future__ import annotations

import logging

import asyncpg

from shared.models.game_queue import GameQueueEntry

logger = logging.getLogger(__name__)

_ENTRY_COLUMNS = "id, user_id, entry_amount, enqueued_at, removed_at, removal_reason"


class GameQueueRepository:
    """Pure SQL operations for game_queue_entries.

    Order is strictly ``enqueued_at`` then ``id``; rows are never reordered and
    leave the queue only by being dequeued.
    """

    def __init__(self, conn: asyncpg.Connection | asyncpg.Pool) -> None:
        self.conn = conn

    async def enqueue(self, user_id: int, entry_amount: int) -> GameQueueEntry:
        """Append a join request to the tail of the queue."""
        row = await self.conn.fetchrow(
            f"""
            INSERT INTO game_queue_entries (user_id, entry_amount)
            VALUES ($1, $2)
            RETURNING {_ENTRY_COLUMNS}
            """,
            user_id,
            entry_amount,
        )
        return GameQueueEntry(**dict(row))

    async def dequeue_head(self) -> GameQueueEntry | None:
        """Remove and return the oldest waiting entry, or None if the queue is empty."""
        row = await self.conn.fetchrow(
            f"""
            UPDATE game_queue_entries
            SET removed_at = NOW(), removal_reason = 'admitted'
            WHERE id = (
                SELECT id FROM game_queue_entries
                WHERE removed_at IS NULL
                ORDER BY enqueued_at ASC, id ASC
                LIMIT 1
                FOR UPDATE SKIP LOCKED
            )
            RETURNING {_ENTRY_COLUMNS}
            """
        )
        if not row:
            return None
        return GameQueueEntry(**dict(row))

    async def peek(self, limit: int = 10) -> list[GameQueueEntry]:
        """First ``limit`` waiting entries with user names, without removing them."""
        rows = await self.conn.fetch(
            """
            SELECT q.id, q.user_id, q.entry_amount, q.enqueued_at,
                   q.removed_at, q.removal_reason, u.name AS user_name
            FROM game_queue_entries q
            JOIN users u ON u.id = q.user_id
            WHERE q.removed_at IS NULL
            ORDER BY q.enqueued_at ASC, q.id ASC
            LIMIT $1
            """,
            limit,
        )
        return [GameQueueEntry(**dict(row)) for row in rows]

    async def length(self) -> int:
        """Number of entries still waiting."""
        return await self.conn.fetchval(
            "SELECT COUNT(*) FROM game_queue_entries WHERE removed_at IS NULL"
        )
