"""Prize calculation for a round winner."""

from __future__ import annotations

from shared.game.config import DEFAULT_GAME_CONFIG, GameConfig, floor_fraction
from shared.game.errors import InvalidEntryAmount, InvalidPotAmount


def calculate_prize(entry_amount: int, pot: int, config: GameConfig = DEFAULT_GAME_CONFIG) -> int:
    """Gross prize for a winner who entered with ``entry_amount``.

    The prize is the smaller of ``entry * max_prize_multiplier`` and
    ``floor(pot * max_pot_percentage)``. When the pot can cover the minimum prize
    but the cap falls below it, the prize is raised to ``min(min_prize, pot)``.
    """
    if not config.is_valid_entry_amount(entry_amount):
        raise InvalidEntryAmount(f"Invalid entry amount: {entry_amount}")
    if isinstance(pot, bool) or not isinstance(pot, int) or pot < 0:
        raise InvalidPotAmount(f"Invalid pot amount: {pot}")

    max_by_multiplier = entry_amount * config.max_prize_multiplier
    max_by_pot = floor_fraction(pot, config.max_pot_percentage)
    prize = min(max_by_multiplier, max_by_pot)

    if pot >= config.min_prize_amount and prize < config.min_prize_amount:
        prize = min(config.min_prize_amount, pot)

    return max(0, prize)


def split_prize(gross_prize: int, config: GameConfig = DEFAULT_GAME_CONFIG) -> tuple[int, int]:
    """Return ``(net_prize, house_commission)`` for a gross prize."""
    commission = config.house_commission(gross_prize)
    return gross_prize - commission, commission
