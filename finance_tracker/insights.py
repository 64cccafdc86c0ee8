"""AI-generated spending insights.

The route hands normalized transactions to ``generate_financial_insights``;
the text generation itself sits behind ``InsightProvider`` so the HTTP layer
never depends on a particular vendor SDK.

Failure policy: this module never raises to its caller. A missing API key
or any provider error becomes an explanatory message.
"""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from finance_tracker.budget_engine import summarize_transactions
from finance_tracker.currency_conversion import coerce_amount
from finance_tracker.log import logger

NOT_CONFIGURED_MESSAGE = (
    "AI insights are not available. The administrator needs to configure the API key."
)
KEY_ERROR_MESSAGE = (
    "AI insights are not available due to API key configuration issues. "
    "Please contact the administrator."
)
FAILURE_MESSAGE = "I couldn't analyze your finances at this time. Please try again later."

SUGGESTED_EXPENSE_CATEGORIES = [
    {"name": "Housing", "description": "Rent, mortgage, property taxes, home insurance"},
    {"name": "Utilities", "description": "Electricity, water, gas, internet, phone"},
    {"name": "Groceries", "description": "Food and household items from supermarkets"},
    {"name": "Transportation", "description": "Fuel, public transit, car maintenance, parking"},
    {"name": "Healthcare", "description": "Medical bills, medications, health insurance"},
    {"name": "Insurance", "description": "Life, health, auto, and other insurance premiums"},
    {"name": "Dining Out", "description": "Restaurants, cafes, food delivery"},
    {"name": "Entertainment", "description": "Movies, concerts, streaming services, hobbies"},
    {"name": "Shopping", "description": "Clothing, electronics, personal items"},
    {"name": "Education", "description": "Tuition, books, courses, student loans"},
    {"name": "Travel", "description": "Vacations, flights, hotels, tours"},
    {"name": "Debt Payments", "description": "Credit card payments, loan repayments"},
    {"name": "Gifts & Donations", "description": "Presents, charitable contributions"},
    {"name": "Subscriptions", "description": "Digital services, memberships, software"},
    {"name": "Personal Care", "description": "Haircuts, gym, spa, grooming products"},
    {"name": "Childcare", "description": "Daycare, babysitting, school expenses"},
    {"name": "Pet Care", "description": "Food, vet visits, pet supplies"},
    {"name": "Home Maintenance", "description": "Repairs, cleaning, furniture, appliances"},
    {"name": "Taxes", "description": "Income tax, property tax, other taxes"},
    {"name": "Miscellaneous", "description": "Other expenses that don't fit elsewhere"},
]

SUGGESTED_INCOME_CATEGORIES = [
    {"name": "Salary", "description": "Regular employment income"},
    {"name": "Freelance", "description": "Income from freelance or contract work"},
    {"name": "Business", "description": "Revenue from business ownership"},
    {"name": "Investments", "description": "Dividends, interest, capital gains"},
    {"name": "Rental Income", "description": "Money earned from property rentals"},
    {"name": "Gifts", "description": "Money received as gifts"},
    {"name": "Refunds", "description": "Money returned for returns or overpayments"},
    {"name": "Government Benefits", "description": "Social security, unemployment, etc."},
    {"name": "Other Income", "description": "Any other sources of income"},
]


class InsightProvider:
    """Turns a prompt into free text."""

    def generate(self, prompt: str) -> str:
        raise NotImplementedError


class OpenAIInsightProvider(InsightProvider):
    def __init__(self, api_key: Optional[str], model: str = "gpt-4.1-mini") -> None:
        self.api_key = api_key
        self.model = model
        self._client = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self):
        if self._client is None:
            from openai import OpenAI

            self._client = OpenAI(api_key=self.api_key)
        return self._client

    def generate(self, prompt: str) -> str:
        response = self._get_client().responses.create(model=self.model, input=prompt)
        return (getattr(response, "output_text", "") or "").strip()


def _format_amount(value: Decimal | str) -> str:
    return f"{coerce_amount(value):.2f}"


def build_prompt(transactions: Iterable[Mapping[str, Any]], currency: str) -> str:
    records = list(transactions)
    summary = summarize_transactions(records, currency)
    history = [
        {
            "type": record.get("type"),
            "category": record.get("category"),
            "amount": _format_amount(
                record.get("normalized_amount")
                if record.get("normalized_amount") is not None
                else record.get("amount")
            ),
            "currency": record.get("normalized_currency") or record.get("currency"),
            "date": str(record.get("date")),
            "notes": record.get("notes") or "",
        }
        for record in records
    ]
    expense_lines = "\n".join(
        f"- {category}: {_format_amount(amount)}"
        for category, amount in summary.expense.by_category.items()
    )
    return f"""
You are a personal finance advisor analyzing a user's recent financial activity.

Based on the following transaction data (amounts in {currency}):

Total Income: {_format_amount(summary.income.total)}
Total Expenses: {_format_amount(summary.expense.total)}
Net Cash Flow: {_format_amount(summary.net_cashflow)}

Expense Categories:
{expense_lines or "- none"}

Transaction History:
{json.dumps(history, indent=2)}

Provide a brief, actionable financial insight with these components:
1. Spending Pattern Analysis: Identify 1-2 key patterns from their transactions.
2. Budget Recommendation: Suggest 1 specific budget adjustment based on spending.
3. Savings Opportunity: Highlight 1 specific way they could increase savings.
4. Financial Health Score: Rate their financial health from 1-10 based on income/expense ratio, spending patterns, and category distribution.

Keep the entire response under 400 words, be specific, and personalized to their actual data.
""".strip()


def generate_financial_insights(
    transactions: Iterable[Mapping[str, Any]],
    currency: str,
    provider: Optional[InsightProvider],
) -> str:
    if provider is None or not getattr(provider, "configured", True):
        logger.error("Insight provider is not configured")
        return NOT_CONFIGURED_MESSAGE

    prompt = build_prompt(transactions, currency)
    try:
        text = provider.generate(prompt)
    except Exception as exc:
        logger.exception("Insight provider error")
        if "api key" in str(exc).lower():
            return KEY_ERROR_MESSAGE
        return FAILURE_MESSAGE
    return text or FAILURE_MESSAGE
