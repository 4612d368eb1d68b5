"""Roulette service: API-facing wrapper around the settlement engine."""

from __future__ import annotations

import logging
import random

import asyncpg

from shared.game.config import GameConfig
from shared.game.engine import RouletteEngine
from shared.game.selection import RandomSource
from shared.game.store import PostgresGameStore

logger = logging.getLogger(__name__)


class RouletteService:
    """API-facing roulette operations. Every method returns plain dicts."""

    def __init__(self, engine: RouletteEngine) -> None:
        self.engine = engine

    @classmethod
    def from_pool(
        cls,
        pool: asyncpg.Pool,
        config: GameConfig,
        *,
        events_channel: str,
        rng: RandomSource | None = None,
    ) -> RouletteService:
        store = PostgresGameStore(pool, events_channel=events_channel)
        return cls(RouletteEngine(store, config, rng or random.SystemRandom()))

    @property
    def config(self) -> GameConfig:
        return self.engine.config

    # ---------------- table ----------------

    async def get_state(self) -> dict:
        return await self.engine.get_full_state()

    async def get_queue(self, limit: int = 10) -> dict:
        entries = await self.engine.get_queue(limit)
        return {"entries": entries, "count": len(entries)}

    async def get_odds(self) -> dict:
        return await self.engine.get_odds()

    async def get_rounds(self, limit: int = 20) -> dict:
        return {"rounds": await self.engine.get_round_history(limit)}

    async def trigger_spin(self) -> dict:
        return (await self.engine.trigger_spin()).to_dict()

    async def finish_spin(self) -> dict:
        return (await self.engine.finish_spin()).to_dict()

    async def admit(self) -> dict:
        admitted = await self.engine.admit_from_queue()
        return {"admitted": [p.to_dict() for p in admitted]}

    # ---------------- player ----------------

    async def join(self, user_id: int, entry_amount: int) -> dict:
        return (await self.engine.join_queue(user_id, entry_amount)).to_dict()

    async def deposit(self, user_id: int, amount: int) -> dict:
        return {"new_balance": await self.engine.deposit(user_id, amount)}

    async def get_balance(self, user_id: int) -> dict:
        return {"balance": await self.engine.get_balance(user_id)}

    async def get_stats(self, user_id: int) -> dict:
        return await self.engine.get_user_stats(user_id)

    async def get_transactions(self, user_id: int, limit: int = 50) -> dict:
        return {"transactions": await self.engine.get_transaction_history(user_id, limit)}
