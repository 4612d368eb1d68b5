"""Prize calculation and prize split."""

import unittest

from shared.game.config import GameConfig
from shared.game.errors import InvalidEntryAmount, InvalidInput, InvalidPotAmount
from shared.game.prize import calculate_prize, split_prize


class TestCalculatePrize(unittest.TestCase):
    def test_multiplier_and_pot_caps(self):
        self.assertEqual(calculate_prize(5, 50), 15)
        self.assertEqual(calculate_prize(20, 100), 30)
        self.assertEqual(calculate_prize(10, 200), 30)

    def test_pot_of_125_for_every_entry(self):
        prizes = {entry: calculate_prize(entry, 125) for entry in (5, 10, 15, 20)}
        self.assertEqual(prizes, {5: 15, 10: 30, 15: 37, 20: 37})

    def test_empty_pot_pays_nothing(self):
        for entry in (5, 10, 15, 20):
            self.assertEqual(calculate_prize(entry, 0), 0)

    def test_minimum_prize_when_pot_covers_it(self):
        # floor(10 * 0.3) = 3 is raised to the minimum of 5
        self.assertEqual(calculate_prize(5, 10), 5)
        self.assertEqual(calculate_prize(20, 5), 5)

    def test_no_minimum_when_pot_is_below_it(self):
        self.assertEqual(calculate_prize(5, 4), 1)
        self.assertEqual(calculate_prize(20, 3), 0)

    def test_prize_bounds(self):
        for entry in (5, 10, 15, 20):
            for pot in range(0, 600, 7):
                prize = calculate_prize(entry, pot)
                self.assertGreaterEqual(prize, 0)
                self.assertLessEqual(prize, 3 * entry)
                self.assertLessEqual(prize, pot)

    def test_deterministic(self):
        self.assertEqual(calculate_prize(15, 333), calculate_prize(15, 333))

    def test_exact_percentage_floor(self):
        config = GameConfig(max_pot_percentage=0.29, max_prize_multiplier=10)
        # 100 * 0.29 is 28.999999999999996 in binary floating point
        self.assertEqual(calculate_prize(5, 100, config), 29)

    def test_custom_config(self):
        config = GameConfig(max_prize_multiplier=2, allowed_entry_amounts=(10, 50))
        self.assertEqual(calculate_prize(10, 200, config), 20)
        self.assertEqual(calculate_prize(50, 1000, config), 100)

    def test_invalid_entry_amount(self):
        for bad in (0, 7, -5, 25, 10.0, True, "10", None):
            with self.subTest(entry=bad):
                with self.assertRaises(InvalidEntryAmount):
                    calculate_prize(bad, 100)

    def test_invalid_pot(self):
        for bad in (-1, 10.5, None, False):
            with self.subTest(pot=bad):
                with self.assertRaises(InvalidPotAmount):
                    calculate_prize(10, bad)

    def test_errors_are_invalid_input(self):
        with self.assertRaises(InvalidInput) as ctx:
            calculate_prize(7, 100)
        self.assertEqual(ctx.exception.code, "INVALID_ENTRY_AMOUNT")


class TestSplitPrize(unittest.TestCase):
    def test_commission_is_floored(self):
        self.assertEqual(split_prize(37), (36, 1))
        self.assertEqual(split_prize(30), (29, 1))
        self.assertEqual(split_prize(15), (15, 0))
        self.assertEqual(split_prize(100), (95, 5))

    def test_zero(self):
        self.assertEqual(split_prize(0), (0, 0))

    def test_parts_add_up(self):
        for gross in range(0, 200):
            net, commission = split_prize(gross)
            self.assertEqual(net + commission, gross)

    def test_no_house_edge(self):
        self.assertEqual(split_prize(37, GameConfig(house_edge=0)), (37, 0))


if __name__ == "__main__":
    unittest.main()
