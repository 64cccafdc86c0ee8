from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping, Optional

from finance_tracker.currency_conversion import (
    StaticRateProvider,
    coerce_amount,
    convert_amount_safe,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
UNBOUNDED = Decimal("Infinity")

WARNING_THRESHOLD = Decimal("80")
EXCEEDED_THRESHOLD = Decimal("100")

STATUS_GOOD = "good"
STATUS_WARNING = "warning"
STATUS_EXCEEDED = "exceeded"
STATUS_NO_BUDGET = "no-budget"


@dataclass(frozen=True)
class Transaction:
    amount: Decimal
    type: str
    date: date
    category: str
    currency: str


@dataclass(frozen=True)
class Budget:
    category: str
    limit: Decimal
    month: str
    currency: str
    budget_id: Optional[str] = None


@dataclass(frozen=True)
class BudgetStatus:
    category: str
    limit: Decimal
    spent: Decimal
    remaining: Decimal
    percentage: Decimal
    currency: str
    status: str
    budget_id: Optional[str] = None


@dataclass
class CategoryTotals:
    total: Decimal = ZERO
    by_category: dict[str, Decimal] = field(default_factory=dict)

    def add(self, category: str, amount: Decimal) -> None:
        self.total += amount
        self.by_category[category] = self.by_category.get(category, ZERO) + amount


@dataclass
class TransactionSummary:
    currency: str
    income: CategoryTotals = field(default_factory=CategoryTotals)
    expense: CategoryTotals = field(default_factory=CategoryTotals)

    @property
    def net_cashflow(self) -> Decimal:
        return self.income.total - self.expense.total


def month_range(month: str) -> tuple[date, date]:
    """Return the first and last day of a ``YYYY-MM`` month token."""
    try:
        first_day = datetime.strptime(month.strip(), "%Y-%m").date()
    except (AttributeError, ValueError) as exc:
        raise ValueError("Invalid month format. Use YYYY-MM.") from exc
    last_day = calendar.monthrange(first_day.year, first_day.month)[1]
    return first_day, first_day.replace(day=last_day)


def month_token(month: str) -> str:
    """Canonical ``YYYY-MM`` spelling, so ``2024-1`` and ``2024-01`` are one month."""
    first_day, _ = month_range(month)
    return f"{first_day.year:04d}-{first_day.month:02d}"


def budget_status_for(spent: Decimal, limit: Decimal) -> tuple[Decimal, str]:
    if limit <= ZERO:
        raise ValueError("Budget limit must be greater than zero.")
    raw_percentage = spent / limit * HUNDRED
    if raw_percentage >= EXCEEDED_THRESHOLD:
        status = STATUS_EXCEEDED
    elif raw_percentage >= WARNING_THRESHOLD:
        status = STATUS_WARNING
    else:
        status = STATUS_GOOD
    return raw_percentage.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP), status


def evaluate_budget_status(
    budgets: Iterable[Budget],
    transactions: Iterable[Transaction],
    default_currency: str,
    rate_provider: StaticRateProvider | None = None,
) -> list[BudgetStatus]:
    """Compare a month's expenses against that month's category budgets.

    Expenses are converted into their budget's currency. Spending in a
    category with no budget is converted into ``default_currency`` and
    reported after the budgeted lines with an unbounded percentage.
    """
    budget_list = list(budgets)
    budgets_by_category = {budget.category: budget for budget in budget_list}

    spent_by_category: dict[str, Decimal] = {}
    for txn in transactions:
        if txn.type.strip().lower() != "expense":
            continue
        budget = budgets_by_category.get(txn.category)
        target_currency = budget.currency if budget else default_currency
        amount = coerce_amount(txn.amount)
        if txn.currency != target_currency:
            amount = convert_amount_safe(amount, txn.currency, target_currency, rate_provider)
        spent_by_category[txn.category] = spent_by_category.get(txn.category, ZERO) + amount

    results: list[BudgetStatus] = []
    for budget in budget_list:
        spent = spent_by_category.get(budget.category, ZERO)
        percentage, status = budget_status_for(spent, budget.limit)
        results.append(
            BudgetStatus(
                category=budget.category,
                limit=budget.limit,
                spent=spent,
                remaining=budget.limit - spent,
                percentage=percentage,
                currency=budget.currency,
                status=status,
                budget_id=budget.budget_id,
            )
        )

    for category, spent in spent_by_category.items():
        if category in budgets_by_category:
            continue
        results.append(
            BudgetStatus(
                category=category,
                limit=ZERO,
                spent=spent,
                remaining=-spent,
                percentage=UNBOUNDED,
                currency=default_currency,
                status=STATUS_NO_BUDGET,
            )
        )

    return results


def summarize_transactions(
    records: Iterable[Mapping[str, Any]],
    currency: str,
) -> TransactionSummary:
    """Total income and expenses, overall and per category.

    A record's ``normalized_amount`` is used when present, otherwise its
    recorded ``amount``.
    """
    summary = TransactionSummary(currency=currency)
    for record in records:
        amount = record.get("normalized_amount")
        if amount is None:
            amount = record.get("amount")
        amount = coerce_amount(amount)
        category = record.get("category") or "Uncategorized"
        if (record.get("type") or "").strip().lower() == "income":
            summary.income.add(category, amount)
        else:
            summary.expense.add(category, amount)
    return summary
