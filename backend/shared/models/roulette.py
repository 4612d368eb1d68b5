"""Data models for game_state, active_players and game_rounds tables."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class GameState:
    """The single row describing the current round."""

    id: int
    status: str
    pot: int
    last_winner_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class ActivePlayer:
    """A seat at the table for the current round."""

    id: int
    user_id: int
    entry_amount: int
    position: int
    joined_at: datetime | None = None
    user_name: str | None = None


@dataclass
class GameRound:
    """Immutable history entry for a settled round."""

    id: int
    winner_id: int
    winner_entry_amount: int
    prize_amount: int
    house_commission: int
    pot_at_time: int
    completed_at: datetime | None = None
    winner_name: str | None = None
