"""Roulette pool rules: configuration, prizes, selection and statuses.

The settlement engine (``shared.game.engine``) and its PostgreSQL store
(``shared.game.store``) are imported from their own modules.
"""

from .config import DEFAULT_GAME_CONFIG, GameConfig, floor_fraction
from .errors import GameError
from .prize import calculate_prize, split_prize
from .selection import calculate_win_probabilities, select_weighted_winner
from .states import GameStatus, LedgerKind, UserStatus

__all__ = [
    "DEFAULT_GAME_CONFIG",
    "GameConfig",
    "GameError",
    "GameStatus",
    "LedgerKind",
    "UserStatus",
    "calculate_prize",
    "calculate_win_probabilities",
    "floor_fraction",
    "select_weighted_winner",
    "split_prize",
]
