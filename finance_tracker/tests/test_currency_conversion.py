import unittest
from decimal import Decimal

from finance_tracker.currency_conversion import (
    SUPPORTED_CURRENCIES,
    StaticRateProvider,
    convert_amount,
    convert_amount_safe,
    normalize_amounts,
)


class CurrencyConversionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.provider = StaticRateProvider(
            rates={
                "USD": {"USD": Decimal("1"), "EUR": Decimal("2")},
                "EUR": {"EUR": Decimal("1"), "USD": Decimal("0.5")},
            }
        )

    def test_same_currency_returns_original_amount(self) -> None:
        for currency in SUPPORTED_CURRENCIES:
            amount = convert_amount(Decimal("12.50"), currency, currency)

            self.assertEqual(amount, Decimal("12.50"))

    def test_conversion_multiplies_by_pair_rate(self) -> None:
        amount = convert_amount(Decimal("10"), "USD", "INR")

        self.assertEqual(amount, Decimal("831.50"))

    def test_round_trip_is_only_approximate(self) -> None:
        there = convert_amount(Decimal("100"), "USD", "EUR")
        back = convert_amount(there, "EUR", "USD")

        self.assertAlmostEqual(back, Decimal("100"), delta=Decimal("1"))

    def test_normalizes_currency_codes(self) -> None:
        amount = convert_amount(
            Decimal("6"),
            " usd ",
            "eur",
            rate_provider=self.provider,
        )

        self.assertEqual(amount, Decimal("12"))

    def test_missing_pair_raises(self) -> None:
        with self.assertRaises(ValueError):
            convert_amount(
                Decimal("5"),
                "USD",
                "INR",
                rate_provider=self.provider,
            )

    def test_non_numeric_amount_raises(self) -> None:
        with self.assertRaises(ValueError):
            convert_amount("lots", "USD", "EUR")

    def test_safe_conversion_falls_back_to_static_table(self) -> None:
        amount = convert_amount_safe(
            Decimal("10"),
            "USD",
            "INR",
            rate_provider=self.provider,
        )

        self.assertEqual(amount, Decimal("831.50"))

    def test_safe_conversion_keeps_amount_for_unknown_currency(self) -> None:
        with self.assertLogs("finance_tracker", level="WARNING"):
            amount = convert_amount_safe(Decimal("10"), "GBP", "USD")

        self.assertEqual(amount, Decimal("10"))


class NormalizeAmountsTests(unittest.TestCase):
    def test_annotates_records_and_keeps_other_fields(self) -> None:
        records = [
            {"id": "a", "amount": Decimal("10"), "currency": "USD", "category": "Food"},
            {"id": "b", "amount": "5", "currency": "EUR", "category": "Rent"},
        ]

        normalized = normalize_amounts(records, "USD")

        self.assertEqual(len(normalized), 2)
        self.assertEqual(normalized[0]["normalized_amount"], Decimal("10"))
        self.assertEqual(normalized[0]["category"], "Food")
        self.assertEqual(normalized[1]["normalized_amount"], Decimal("5.45"))
        self.assertEqual(normalized[1]["normalized_currency"], "USD")
        self.assertEqual(normalized[1]["amount"], "5")
        self.assertNotIn("normalized_amount", records[0])

    def test_skips_records_without_usable_amount(self) -> None:
        records = [
            {"id": "a", "amount": Decimal("10"), "currency": "USD"},
            {"id": "b", "amount": "abc", "currency": "USD"},
            {"id": "c", "currency": "EUR"},
            {"id": "d", "amount": Decimal("3"), "currency": None},
        ]

        with self.assertLogs("finance_tracker", level="ERROR"):
            normalized = normalize_amounts(records, "EUR")

        self.assertEqual([record["id"] for record in normalized], ["a"])
        self.assertEqual(normalized[0]["normalized_amount"], Decimal("9.20"))

    def test_unconvertible_record_is_kept_without_normalization(self) -> None:
        records = [{"id": "a", "amount": Decimal("10"), "currency": "GBP"}]

        with self.assertLogs("finance_tracker", level="WARNING"):
            normalized = normalize_amounts(records, "USD")

        self.assertEqual(len(normalized), 1)
        self.assertNotIn("normalized_amount", normalized[0])


if __name__ == "__main__":
    unittest.main()
