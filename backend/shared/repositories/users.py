"""Repository for users and transactions tables."""

from __future__ import annotations

import logging

import asyncpg

from shared.game.states import LedgerKind, UserStatus
from shared.models.user import LedgerEntry, User

logger = logging.getLogger(__name__)

_USER_COLUMNS = (
    "id, name, email, balance, status, games_played, total_winnings, created_at, updated_at"
)

_LEDGER_COLUMNS = (
    "id, user_id, kind, amount, balance_before, balance_after, description, created_at"
)

_CREDIT_KINDS = {LedgerKind.DEPOSIT.value, LedgerKind.PRIZE_WON.value}


class UserRepository:
    """Pure SQL operations for the users table.

    ``conn`` may be a pool or a connection; pass the connection of an open
    transaction to take part in it.
    """

    def __init__(self, conn: asyncpg.Connection | asyncpg.Pool) -> None:
        self.conn = conn

    async def get(self, user_id: int, *, for_update: bool = False) -> User | None:
        """Get a user by id, optionally locking the row until commit."""
        lock = " FOR UPDATE" if for_update else ""
        row = await self.conn.fetchrow(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1{lock}",
            user_id,
        )
        if not row:
            return None
        return User(**dict(row))

    async def update_balance(self, user_id: int, balance: int, status: str | None = None) -> None:
        """Write a new balance, and optionally a new game status."""
        await self.conn.execute(
            """
            UPDATE users
            SET balance    = $2,
                status     = COALESCE($3, status),
                updated_at = NOW()
            WHERE id = $1
            """,
            user_id,
            balance,
            status,
        )

    async def set_status(self, user_id: int, status: str) -> None:
        await self.conn.execute(
            "UPDATE users SET status = $2, updated_at = NOW() WHERE id = $1",
            user_id,
            status,
        )

    async def record_win(self, user_id: int, balance: int, prize: int) -> None:
        """Credit a round win: new balance, counters, and back to idle."""
        await self.conn.execute(
            """
            UPDATE users
            SET balance        = $2,
                games_played   = games_played + 1,
                total_winnings = total_winnings + $3,
                status         = $4,
                updated_at     = NOW()
            WHERE id = $1
            """,
            user_id,
            balance,
            prize,
            UserStatus.INACTIVE.value,
        )


class LedgerRepository:
    """Append-only SQL operations for the transactions table."""

    def __init__(self, conn: asyncpg.Connection | asyncpg.Pool) -> None:
        self.conn = conn

    async def append(
        self,
        user_id: int,
        kind: LedgerKind,
        amount: int,
        balance_before: int,
        description: str | None = None,
    ) -> LedgerEntry:
        """Record a balance change. Returns the entry with ``balance_after`` filled in."""
        kind_value = LedgerKind(kind).value
        sign = 1 if kind_value in _CREDIT_KINDS else -1
        balance_after = balance_before + sign * amount
        row = await self.conn.fetchrow(
            f"""
            INSERT INTO transactions
                (user_id, kind, amount, balance_before, balance_after, description)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING {_LEDGER_COLUMNS}
            """,
            user_id,
            kind_value,
            amount,
            balance_before,
            balance_after,
            description,
        )
        return LedgerEntry(**dict(row))

    async def history(self, user_id: int, limit: int = 50) -> list[LedgerEntry]:
        """Most recent ledger entries for a user, newest first."""
        rows = await self.conn.fetch(
            f"SELECT {_LEDGER_COLUMNS} FROM transactions "
            "WHERE user_id = $1 ORDER BY created_at DESC, id DESC LIMIT $2",
            user_id,
            limit,
        )
        return [LedgerEntry(**dict(row)) for row in rows]
