import unittest
from decimal import Decimal

from storefront.psp.money import from_minor_units, to_decimal, to_minor_units


class TestMinorUnits(unittest.TestCase):
    def test_round_trip_keeps_two_decimals(self):
        for amount in ["499.99", "0.01", "1", "1.10", "10000.00", "123456.78"]:
            with self.subTest(amount=amount):
                self.assertEqual(from_minor_units(to_minor_units(amount)), Decimal(amount).quantize(Decimal("0.01")))

    def test_float_input_uses_shortest_repr(self):
        self.assertEqual(to_minor_units(499.99), 49999)
        self.assertEqual(to_minor_units(0.29), 29)

    def test_rounds_half_up(self):
        self.assertEqual(to_minor_units("0.005"), 1)
        self.assertEqual(to_minor_units("2.675"), 268)
        self.assertEqual(to_minor_units("2.674"), 267)

    def test_integer_rupees(self):
        self.assertEqual(to_minor_units(1), 100)
        self.assertEqual(from_minor_units(100), Decimal("1.00"))

    def test_rejects_bad_input(self):
        for bad in ["-1", "abc", "NaN", True, None]:
            with self.subTest(value=bad):
                with self.assertRaises(ValueError):
                    to_minor_units(bad)
        with self.assertRaises(ValueError):
            from_minor_units(1.5)

    def test_to_decimal_quantizes(self):
        self.assertEqual(to_decimal("10"), Decimal("10.00"))


if __name__ == "__main__":
    unittest.main()
