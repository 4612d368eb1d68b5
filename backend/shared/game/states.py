"""Coarse game status and the rules that move between statuses."""

from __future__ import annotations

from enum import Enum

from shared.game.config import DEFAULT_GAME_CONFIG, GameConfig


class GameStatus(str, Enum):
    WAITING_FOR_PLAYERS = "WAITING_FOR_PLAYERS"
    READY_TO_SPIN = "READY_TO_SPIN"
    SPINNING = "SPINNING"
    # Reported with a settlement result; never left persisted
    FINISHED = "FINISHED"


class UserStatus(str, Enum):
    INACTIVE = "inactive"
    WAITING = "waiting"
    PLAYING = "playing"


class LedgerKind(str, Enum):
    DEPOSIT = "deposit"
    ENTRY_FEE = "entry_fee"
    PRIZE_WON = "prize_won"
    WITHDRAWAL = "withdrawal"


def can_spin(active_count: int, config: GameConfig = DEFAULT_GAME_CONFIG) -> bool:
    return active_count >= config.min_players_to_spin


def status_for_active_count(
    active_count: int, config: GameConfig = DEFAULT_GAME_CONFIG
) -> GameStatus:
    """Resting status for a table with ``active_count`` seats taken."""
    if can_spin(active_count, config):
        return GameStatus.READY_TO_SPIN
    return GameStatus.WAITING_FOR_PLAYERS


def status_after_admission(
    current: GameStatus, active_count: int, config: GameConfig = DEFAULT_GAME_CONFIG
) -> GameStatus:
    """Admissions never interrupt a spin; otherwise recompute from the seat count."""
    if current == GameStatus.SPINNING:
        return current
    return status_for_active_count(active_count, config)
