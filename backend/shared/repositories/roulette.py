"""Repository for game_state, active_players and game_rounds tables."""

from __future__ import annotations

import logging

import asyncpg

from shared.cache import AsyncTTLCache, cached
from shared.database import CONNECTION_ERRORS
from shared.game.states import GameStatus
from shared.models.roulette import ActivePlayer, GameRound, GameState

logger = logging.getLogger(__name__)

GAME_STATE_ID = 1

_STATE_COLUMNS = "id, status, pot, last_winner_id, created_at, updated_at"

_ROUND_COLUMNS = (
    "id, winner_id, winner_entry_amount, prize_amount, house_commission, pot_at_time, completed_at"
)

# Round history is append-only. The committing process clears it after each
# settlement; other workers, or a read that raced the commit, may serve the
# previous history until the TTL runs out.
_rounds_cache = AsyncTTLCache(maxsize=16, ttl=10)


def invalidate_round_history() -> None:
    _rounds_cache.clear()


class GameStateRepository:
    """SQL operations for the game_state singleton row."""

    def __init__(self, conn: asyncpg.Connection | asyncpg.Pool) -> None:
        self.conn = conn

    async def get(self) -> GameState | None:
        """Read the singleton row without creating or locking it."""
        row = await self.conn.fetchrow(
            f"SELECT {_STATE_COLUMNS} FROM game_state WHERE id = $1",
            GAME_STATE_ID,
        )
        if not row:
            return None
        return GameState(**dict(row))

    async def get_or_create(self, *, for_update: bool = False) -> GameState:
        """Return the singleton row, creating it on first use."""
        await self.conn.execute(
            """
            INSERT INTO game_state (id, status, pot)
            VALUES ($1, $2, 0)
            ON CONFLICT (id) DO NOTHING
            """,
            GAME_STATE_ID,
            GameStatus.WAITING_FOR_PLAYERS.value,
        )
        lock = " FOR UPDATE" if for_update else ""
        row = await self.conn.fetchrow(
            f"SELECT {_STATE_COLUMNS} FROM game_state WHERE id = $1{lock}",
            GAME_STATE_ID,
        )
        return GameState(**dict(row))

    async def save(self, state: GameState) -> None:
        """Persist pot, status and last winner of ``state``."""
        await self.conn.execute(
            """
            UPDATE game_state
            SET pot            = $2,
                status         = $3,
                last_winner_id = $4,
                updated_at     = NOW()
            WHERE id = $1
            """,
            state.id,
            state.pot,
            state.status,
            state.last_winner_id,
        )


class ActivePlayerRepository:
    """SQL operations for the active_players table (the seats of the table)."""

    def __init__(self, conn: asyncpg.Connection | asyncpg.Pool) -> None:
        self.conn = conn

    async def list_active(self) -> list[ActivePlayer]:
        """All seated players with their names, in position order."""
        rows = await self.conn.fetch(
            """
            SELECT ap.id, ap.user_id, ap.entry_amount, ap.position, ap.joined_at,
                   u.name AS user_name
            FROM active_players ap
            JOIN users u ON u.id = ap.user_id
            ORDER BY ap.position ASC
            """
        )
        return [ActivePlayer(**dict(row)) for row in rows]

    async def count(self) -> int:
        return await self.conn.fetchval("SELECT COUNT(*) FROM active_players")

    async def add(self, user_id: int, entry_amount: int, position: int) -> ActivePlayer:
        row = await self.conn.fetchrow(
            """
            INSERT INTO active_players (user_id, entry_amount, position)
            VALUES ($1, $2, $3)
            RETURNING id, user_id, entry_amount, position, joined_at
            """,
            user_id,
            entry_amount,
            position,
        )
        return ActivePlayer(**dict(row))

    async def remove(self, player_id: int) -> bool:
        """Free a seat. Returns True if a row was deleted."""
        result = await self.conn.execute("DELETE FROM active_players WHERE id = $1", player_id)
        return result == "DELETE 1"


class RoundRepository:
    """SQL operations for the game_rounds history table."""

    def __init__(self, conn: asyncpg.Connection | asyncpg.Pool) -> None:
        self.conn = conn

    async def record(
        self,
        winner_id: int,
        winner_entry_amount: int,
        prize_amount: int,
        house_commission: int,
        pot_at_time: int,
    ) -> GameRound:
        row = await self.conn.fetchrow(
            f"""
            INSERT INTO game_rounds
                (winner_id, winner_entry_amount, prize_amount, house_commission, pot_at_time)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING {_ROUND_COLUMNS}
            """,
            winner_id,
            winner_entry_amount,
            prize_amount,
            house_commission,
            pot_at_time,
        )
        return GameRound(**dict(row))

    @cached(
        cache=_rounds_cache,
        key_func=lambda self, limit=20: f"rounds:{limit}",
        fallback_on=CONNECTION_ERRORS,
    )
    async def list_recent(self, limit: int = 20) -> list[GameRound]:
        """Most recent settled rounds with winner names, newest first."""
        rows = await self.conn.fetch(
            """
            SELECT r.id, r.winner_id, r.winner_entry_amount, r.prize_amount,
                   r.house_commission, r.pot_at_time, r.completed_at,
                   u.name AS winner_name
            FROM game_rounds r
            JOIN users u ON u.id = r.winner_id
            ORDER BY r.completed_at DESC, r.id DESC
            LIMIT $1
            """,
            limit,
        )
        return [GameRound(**dict(row)) for row in rows]
