import unittest
from datetime import date
from decimal import Decimal

from finance_tracker.budget_engine import (
    STATUS_EXCEEDED,
    STATUS_GOOD,
    STATUS_NO_BUDGET,
    STATUS_WARNING,
    Budget,
    Transaction,
    evaluate_budget_status,
    month_range,
    month_token,
    summarize_transactions,
)


def expense(amount: str, category: str, currency: str = "USD", day: int = 10) -> Transaction:
    return Transaction(
        amount=Decimal(amount),
        type="expense",
        date=date(2024, 5, day),
        category=category,
        currency=currency,
    )


class BudgetStatusTests(unittest.TestCase):
    def setUp(self) -> None:
        self.food_budget = Budget(
            category="Food",
            limit=Decimal("100"),
            month="2024-05",
            currency="USD",
            budget_id="b1",
        )

    def test_eighty_percent_is_warning(self) -> None:
        result = evaluate_budget_status(
            [self.food_budget],
            [expense("50", "Food"), expense("30", "Food", day=12)],
            default_currency="USD",
        )

        self.assertEqual(len(result), 1)
        self.assertEqual(result[0].spent, Decimal("80"))
        self.assertEqual(result[0].remaining, Decimal("20"))
        self.assertEqual(result[0].percentage, Decimal("80.0"))
        self.assertEqual(result[0].status, STATUS_WARNING)
        self.assertEqual(result[0].budget_id, "b1")

    def test_full_spend_is_exceeded(self) -> None:
        result = evaluate_budget_status(
            [self.food_budget], [expense("100", "Food")], default_currency="USD"
        )

        self.assertEqual(result[0].percentage, Decimal("100"))
        self.assertEqual(result[0].remaining, Decimal("0"))
        self.assertEqual(result[0].status, STATUS_EXCEEDED)

    def test_low_spend_is_good_and_income_ignored(self) -> None:
        income = Transaction(
            amount=Decimal("500"),
            type="income",
            date=date(2024, 5, 1),
            category="Food",
            currency="USD",
        )

        result = evaluate_budget_status(
            [self.food_budget], [expense("12.345", "Food"), income], default_currency="USD"
        )

        self.assertEqual(result[0].percentage, Decimal("12.35"))
        self.assertEqual(result[0].status, STATUS_GOOD)

    def test_expenses_convert_into_budget_currency(self) -> None:
        budget = Budget(category="Food", limit=Decimal("100"), month="2024-05", currency="EUR")

        result = evaluate_budget_status(
            [budget], [expense("50", "Food", currency="USD")], default_currency="USD"
        )

        self.assertEqual(result[0].spent, Decimal("46.00"))
        self.assertEqual(result[0].currency, "EUR")
        self.assertEqual(result[0].status, STATUS_GOOD)

    def test_unbudgeted_category_is_reported_with_unbounded_percentage(self) -> None:
        result = evaluate_budget_status(
            [self.food_budget],
            [expense("10", "Food"), expense("1", "Travel", currency="EUR")],
            default_currency="USD",
        )

        self.assertEqual([line.category for line in result], ["Food", "Travel"])
        travel = result[1]
        self.assertEqual(travel.status, STATUS_NO_BUDGET)
        self.assertTrue(travel.percentage.is_infinite())
        self.assertEqual(travel.limit, Decimal("0"))
        self.assertEqual(travel.spent, Decimal("1.09"))
        self.assertEqual(travel.remaining, Decimal("-1.09"))
        self.assertEqual(travel.currency, "USD")
        self.assertIsNone(travel.budget_id)

    def test_budget_without_spending_is_good(self) -> None:
        result = evaluate_budget_status([self.food_budget], [], default_currency="USD")

        self.assertEqual(result[0].spent, Decimal("0"))
        self.assertEqual(result[0].status, STATUS_GOOD)


class MonthRangeTests(unittest.TestCase):
    def test_returns_first_and_last_day(self) -> None:
        self.assertEqual(month_range("2024-02"), (date(2024, 2, 1), date(2024, 2, 29)))
        self.assertEqual(month_range("2023-12"), (date(2023, 12, 1), date(2023, 12, 31)))

    def test_rejects_bad_tokens(self) -> None:
        for token in ("2024-13", "May 2024", ""):
            with self.assertRaises(ValueError):
                month_range(token)

    def test_month_token_is_zero_padded(self) -> None:
        self.assertEqual(month_token("2024-1"), "2024-01")
        self.assertEqual(month_token(" 2024-01 "), "2024-01")
        self.assertEqual(month_token("2024-12"), "2024-12")
        with self.assertRaises(ValueError):
            month_token("2024-13")


class TransactionSummaryTests(unittest.TestCase):
    def test_income_expense_and_net_cashflow(self) -> None:
        records = [
            {"type": "income", "category": "Salary", "amount": Decimal("100"), "currency": "USD"},
            {"type": "expense", "category": "Food", "amount": Decimal("40"), "currency": "USD"},
        ]

        summary = summarize_transactions(records, "USD")

        self.assertEqual(summary.income.total, Decimal("100"))
        self.assertEqual(summary.expense.total, Decimal("40"))
        self.assertEqual(summary.net_cashflow, Decimal("60"))
        self.assertEqual(summary.income.by_category, {"Salary": Decimal("100")})
        self.assertEqual(summary.expense.by_category, {"Food": Decimal("40")})

    def test_prefers_normalized_amounts(self) -> None:
        records = [
            {
                "type": "expense",
                "category": "Food",
                "amount": Decimal("10"),
                "currency": "EUR",
                "normalized_amount": Decimal("10.90"),
            },
            {"type": "expense", "category": "Food", "amount": Decimal("5"), "currency": "USD"},
        ]

        summary = summarize_transactions(records, "USD")

        self.assertEqual(summary.expense.total, Decimal("15.90"))
        self.assertEqual(summary.expense.by_category["Food"], Decimal("15.90"))
        self.assertEqual(summary.net_cashflow, Decimal("-15.90"))


if __name__ == "__main__":
    unittest.main()
