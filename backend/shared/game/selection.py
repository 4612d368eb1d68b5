"""Weighted winner selection (roulette-wheel sampling).

Each seat's weight is ``entry_amount ** weight_exponent``. With the default
exponent of 1.2 the weights are roughly:

    entry 5  -> 6.9
    entry 10 -> 15.8
    entry 15 -> 25.8
    entry 20 -> 36.4

so a larger entry always wins more often, but sub-quadratically.
"""

from __future__ import annotations

import bisect
import random
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, TypeVar

from shared.game.config import DEFAULT_GAME_CONFIG, GameConfig
from shared.game.errors import NoPlayers


class Seat(Protocol):
    """Anything that occupies an active seat."""

    user_id: int
    entry_amount: int


class RandomSource(Protocol):
    def random(self) -> float: ...


S = TypeVar("S", bound=Seat)

# Real-money draws use the OS entropy source unless a caller injects one
_system_random = random.SystemRandom()


@dataclass(frozen=True)
class WeightedSeat:
    """A seat with its own weight and the running total up to and including it."""

    seat: Seat
    weight: float
    cumulative_weight: float


def player_weight(entry_amount: int, config: GameConfig = DEFAULT_GAME_CONFIG) -> float:
    """Selection weight for a single entry amount."""
    if not config.use_weighted_selection:
        return 1.0
    return float(entry_amount) ** config.weight_exponent


def prepare_weighted_players(
    players: Sequence[Seat], config: GameConfig = DEFAULT_GAME_CONFIG
) -> list[WeightedSeat]:
    """Attach weights and cumulative weights, preserving the given order."""
    weighted: list[WeightedSeat] = []
    cumulative = 0.0
    for player in players:
        weight = player_weight(player.entry_amount, config)
        cumulative += weight
        weighted.append(WeightedSeat(seat=player, weight=weight, cumulative_weight=cumulative))
    return weighted


def pick_index(cumulative_weights: Sequence[float], draw: float) -> int:
    """Map a draw in ``[0, total)`` to the seat whose interval contains it.

    A draw landing exactly on a boundary belongs to the lower-indexed seat.
    """
    index = bisect.bisect_left(cumulative_weights, draw)
    # draw * total can round up to total itself
    return min(index, len(cumulative_weights) - 1)


def select_weighted_winner(
    players: Sequence[S],
    config: GameConfig = DEFAULT_GAME_CONFIG,
    rng: RandomSource | None = None,
) -> S:
    """Pick one winner from ``players`` with probability proportional to weight."""
    if not players:
        raise NoPlayers()
    if len(players) == 1:
        return players[0]

    weighted = prepare_weighted_players(players, config)
    cumulative = [w.cumulative_weight for w in weighted]
    total = cumulative[-1]

    draw = (rng or _system_random).random() * total
    return players[pick_index(cumulative, draw)]


def calculate_win_probabilities(
    players: Sequence[Seat], config: GameConfig = DEFAULT_GAME_CONFIG
) -> dict[int, float]:
    """Map each seat's user id to its chance of winning the next draw."""
    if not players:
        return {}

    weighted = prepare_weighted_players(players, config)
    total = weighted[-1].cumulative_weight
    return {w.seat.user_id: w.weight / total for w in weighted}


def selection_stats(players: Sequence[Seat], config: GameConfig = DEFAULT_GAME_CONFIG) -> dict:
    """Summarise the probability distribution of the current table."""
    probabilities = calculate_win_probabilities(players, config)
    values = list(probabilities.values())

    by_entry: dict[int, float] = {}
    for player in players:
        by_entry[player.entry_amount] = by_entry.get(player.entry_amount, 0.0) + probabilities.get(
            player.user_id, 0.0
        )

    return {
        "total_players": len(players),
        "total_entries": sum(p.entry_amount for p in players),
        "average_probability": sum(values) / len(values) if values else 0.0,
        "min_probability": min(values) if values else 0.0,
        "max_probability": max(values) if values else 0.0,
        "probability_by_entry": dict(sorted(by_entry.items())),
    }
