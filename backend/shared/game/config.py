"""Economic and fairness parameters for the roulette pool."""

from __future__ import annotations

import math
from dataclasses import dataclass
from fractions import Fraction


def floor_fraction(amount: int, rate: float) -> int:
    """Return floor(amount * rate) using exact rational arithmetic.

    ``rate`` is read through its decimal string so that values such as 0.3 are
    treated as 3/10 instead of the nearest binary float.
    """
    return math.floor(Fraction(str(rate)) * amount)


@dataclass(frozen=True)
class GameConfig:
    """Immutable game configuration.

    Every formula in the engine reads from an instance of this class, so a
    parameter change never requires touching calculation code.
    """

    allowed_entry_amounts: tuple[int, ...] = (5, 10, 15, 20)
    max_active_players: int = 10
    max_prize_multiplier: int = 3
    max_pot_percentage: float = 0.30
    min_prize_amount: int = 5
    house_edge: float = 0.05
    use_weighted_selection: bool = True
    weight_exponent: float = 1.2
    min_players_to_spin: int = 2
    min_deposit_amount: int = 1
    max_deposit_amount: int = 10000

    def __post_init__(self) -> None:
        # Normalise lists coming from settings into a hashable, ordered tuple
        object.__setattr__(
            self, "allowed_entry_amounts", tuple(sorted(set(self.allowed_entry_amounts)))
        )
        if not self.allowed_entry_amounts:
            raise ValueError("allowed_entry_amounts must not be empty")
        if any(amount <= 0 for amount in self.allowed_entry_amounts):
            raise ValueError("entry amounts must be positive")
        if self.max_active_players < 1:
            raise ValueError("max_active_players must be at least 1")
        if self.max_prize_multiplier < 0:
            raise ValueError("max_prize_multiplier must not be negative")
        if not 0 < self.max_pot_percentage <= 1:
            raise ValueError("max_pot_percentage must be in (0, 1]")
        if self.min_prize_amount < 0:
            raise ValueError("min_prize_amount must not be negative")
        if not 0 <= self.house_edge < 1:
            raise ValueError("house_edge must be in [0, 1)")
        if self.weight_exponent <= 0:
            raise ValueError("weight_exponent must be positive")
        if self.min_players_to_spin < 1:
            raise ValueError("min_players_to_spin must be at least 1")
        if not 0 < self.min_deposit_amount <= self.max_deposit_amount:
            raise ValueError("deposit bounds are inconsistent")

    def is_valid_entry_amount(self, amount: object) -> bool:
        """True when ``amount`` is an integer in the allowed entry set."""
        if isinstance(amount, bool) or not isinstance(amount, int):
            return False
        return amount in self.allowed_entry_amounts

    def house_commission(self, amount: int) -> int:
        """Commission retained by the house on ``amount``, rounded down."""
        return floor_fraction(amount, self.house_edge)

    def net_amount(self, amount: int) -> int:
        """``amount`` after the house commission."""
        return amount - self.house_commission(amount)


DEFAULT_GAME_CONFIG = GameConfig()
