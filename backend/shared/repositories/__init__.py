"""Pure SQL repositories for the roulette tables."""

from .game_queue import GameQueueRepository
from .roulette import ActivePlayerRepository, GameStateRepository, RoundRepository
from .users import LedgerRepository, UserRepository

__all__ = [
    "ActivePlayerRepository",
    "GameQueueRepository",
    "GameStateRepository",
    "LedgerRepository",
    "RoundRepository",
    "UserRepository",
]
