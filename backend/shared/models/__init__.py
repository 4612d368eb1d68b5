"""Dataclass records for the roulette tables."""

from .game_queue import GameQueueEntry
from .roulette import ActivePlayer, GameRound, GameState
from .user import LedgerEntry, User

__all__ = [
    "ActivePlayer",
    "GameQueueEntry",
    "GameRound",
    "GameState",
    "LedgerEntry",
    "User",
]
