"""Game configuration, status rules and settings."""

import unittest

from core.config import Settings
from shared.game.config import DEFAULT_GAME_CONFIG, GameConfig, floor_fraction
from shared.game.states import (
    GameStatus,
    can_spin,
    status_after_admission,
    status_for_active_count,
)


class TestFloorFraction(unittest.TestCase):
    def test_exact_decimal_rates(self):
        self.assertEqual(floor_fraction(125, 0.3), 37)
        self.assertEqual(floor_fraction(100, 0.29), 29)
        self.assertEqual(floor_fraction(19, 0.05), 0)
        self.assertEqual(floor_fraction(20, 0.05), 1)

    def test_zero(self):
        self.assertEqual(floor_fraction(0, 0.3), 0)


class TestGameConfig(unittest.TestCase):
    def test_defaults(self):
        config = GameConfig()
        self.assertEqual(config.allowed_entry_amounts, (5, 10, 15, 20))
        self.assertEqual(config.max_active_players, 10)
        self.assertEqual(config.max_prize_multiplier, 3)
        self.assertEqual(config.min_prize_amount, 5)
        self.assertTrue(config.use_weighted_selection)
        self.assertEqual(config, DEFAULT_GAME_CONFIG)

    def test_entry_amounts_are_normalised(self):
        config = GameConfig(allowed_entry_amounts=[20, 5, 5, 10])
        self.assertEqual(config.allowed_entry_amounts, (5, 10, 20))

    def test_entry_amount_validation(self):
        config = GameConfig()
        self.assertTrue(config.is_valid_entry_amount(15))
        for bad in (7, 0, -5, 10.0, True, "10", None):
            with self.subTest(amount=bad):
                self.assertFalse(config.is_valid_entry_amount(bad))

    def test_commission_and_net(self):
        config = GameConfig()
        self.assertEqual(config.house_commission(10), 0)
        self.assertEqual(config.net_amount(10), 10)
        self.assertEqual(config.house_commission(20), 1)
        self.assertEqual(config.net_amount(20), 19)

    def test_frozen(self):
        with self.assertRaises(AttributeError):
            DEFAULT_GAME_CONFIG.house_edge = 0.5  # type: ignore[misc]

    def test_rejects_inconsistent_values(self):
        bad_values = [
            {"allowed_entry_amounts": ()},
            {"allowed_entry_amounts": (0, 5)},
            {"max_active_players": 0},
            {"max_pot_percentage": 0},
            {"max_pot_percentage": 1.5},
            {"house_edge": 1},
            {"weight_exponent": 0},
            {"min_players_to_spin": 0},
            {"min_deposit_amount": 50, "max_deposit_amount": 10},
        ]
        for kwargs in bad_values:
            with self.subTest(**kwargs):
                with self.assertRaises(ValueError):
                    GameConfig(**kwargs)


class TestStatusRules(unittest.TestCase):
    def test_can_spin(self):
        self.assertFalse(can_spin(0))
        self.assertFalse(can_spin(1))
        self.assertTrue(can_spin(2))
        self.assertTrue(can_spin(1, GameConfig(min_players_to_spin=1)))

    def test_resting_status(self):
        self.assertEqual(status_for_active_count(0), GameStatus.WAITING_FOR_PLAYERS)
        self.assertEqual(status_for_active_count(1), GameStatus.WAITING_FOR_PLAYERS)
        self.assertEqual(status_for_active_count(2), GameStatus.READY_TO_SPIN)
        self.assertEqual(status_for_active_count(10), GameStatus.READY_TO_SPIN)

    def test_admission_keeps_spinning(self):
        self.assertEqual(status_after_admission(GameStatus.SPINNING, 1), GameStatus.SPINNING)
        self.assertEqual(
            status_after_admission(GameStatus.WAITING_FOR_PLAYERS, 2), GameStatus.READY_TO_SPIN
        )

    def test_status_values_are_strings(self):
        self.assertEqual(GameStatus.READY_TO_SPIN.value, "READY_TO_SPIN")
        self.assertEqual(GameStatus("SPINNING"), GameStatus.SPINNING)


class TestSettings(unittest.TestCase):
    def test_game_config_from_defaults(self):
        settings = Settings(database_url="postgresql://localhost/roulette")
        self.assertEqual(settings.game_config(), GameConfig())
        self.assertEqual(settings.events_channel, "roulette_events")

    def test_game_config_overrides(self):
        settings = Settings(
            database_url="postgresql://localhost/roulette",
            game_allowed_entry_amounts=[1, 2],
            game_max_active_players=4,
            game_house_edge=0.1,
        )
        config = settings.game_config()
        self.assertEqual(config.allowed_entry_amounts, (1, 2))
        self.assertEqual(config.max_active_players, 4)
        self.assertEqual(config.house_edge, 0.1)

    def test_log_level_is_normalised(self):
        settings = Settings(database_url="postgresql://localhost/roulette", log_level="debug")
        self.assertEqual(settings.log_level, "DEBUG")
        settings = Settings(database_url="postgresql://localhost/roulette", log_level="loud")
        self.assertEqual(settings.log_level, "INFO")


if __name__ == "__main__":
    unittest.main()
