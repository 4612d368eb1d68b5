"""Services layer: API-facing wrappers over the shared game engine."""

from .broadcaster import ConnectionManager
from .game_service import RouletteService

__all__ = [
    "ConnectionManager",
    "RouletteService",
]
