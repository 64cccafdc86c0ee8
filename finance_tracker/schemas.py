from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from finance_tracker.budget_engine import month_token
from finance_tracker.currency_conversion import SUPPORTED_CURRENCIES
from finance_tracker.reminder_engine import FREQUENCIES, REMINDER_TYPES
from finance_tracker.repositories import as_local_naive

OptionalDate = Optional[date]

TRANSACTION_TYPES = {"income", "expense"}


def validate_currency(value: str) -> str:
    normalized = value.strip().upper()
    if normalized not in SUPPORTED_CURRENCIES:
        raise ValueError(f"Currency must be one of {', '.join(SUPPORTED_CURRENCIES)}.")
    return normalized


def validate_text(value: str, label: str, max_length: int) -> str:
    value = value.strip()
    if not value:
        raise ValueError(f"{label} required.")
    if len(value) > max_length:
        raise ValueError(f"{label} cannot be more than {max_length} characters.")
    return value


def validate_optional_text(value: str | None, label: str, max_length: int) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if len(value) > max_length:
        raise ValueError(f"{label} cannot be more than {max_length} characters.")
    return value or None


def validate_month(value: str) -> str:
    return month_token(value)


class TransactionType:
    @classmethod
    def validate(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in TRANSACTION_TYPES:
            raise ValueError("Transaction type must be income or expense.")
        return normalized


class ReminderType:
    @classmethod
    def validate(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in REMINDER_TYPES:
            raise ValueError(f"Reminder type must be one of {', '.join(REMINDER_TYPES)}.")
        return normalized


class ReminderFrequency:
    @classmethod
    def validate(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in FREQUENCIES:
            raise ValueError(f"Frequency must be one of {', '.join(FREQUENCIES)}.")
        return normalized


def changes_from(payload: BaseModel) -> dict:
    """Fields the client actually sent, minus explicit nulls."""
    return {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None
    }


# Users


class RegisterPayload(BaseModel):
    name: str
    email: str
    password: str
    default_currency: str | None = None

    @classmethod
    def validate_payload(cls, payload: "RegisterPayload") -> "RegisterPayload":
        payload.name = validate_text(payload.name, "Name", 100)
        payload.email = validate_email(payload.email)
        if len(payload.password) < 6:
            raise ValueError("Password must be at least 6 characters.")
        payload.default_currency = validate_currency(payload.default_currency or "USD")
        return payload


class LoginPayload(BaseModel):
    email: str
    password: str


class UserDetailsPayload(BaseModel):
    name: str | None = None
    email: str | None = None
    default_currency: str | None = None

    @classmethod
    def validate_payload(cls, payload: "UserDetailsPayload") -> "UserDetailsPayload":
        if payload.name is not None:
            payload.name = validate_text(payload.name, "Name", 100)
        if payload.email is not None:
            payload.email = validate_email(payload.email)
        if payload.default_currency is not None:
            payload.default_currency = validate_currency(payload.default_currency)
        return payload


class PasswordPayload(BaseModel):
    current_password: str
    new_password: str

    @classmethod
    def validate_payload(cls, payload: "PasswordPayload") -> "PasswordPayload":
        if len(payload.new_password) < 6:
            raise ValueError("Password must be at least 6 characters.")
        return payload


def validate_email(value: str) -> str:
    email = value.strip().lower()
    local, _, domain = email.partition("@")
    if not local or "." not in domain:
        raise ValueError("Please add a valid email.")
    return email


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    default_currency: str
    created_at: datetime | None = None


class AuthResponse(BaseModel):
    token: str
    user: UserResponse


# Transactions


class TransactionPayload(BaseModel):
    type: str
    category: str
    amount: Decimal
    currency: str
    notes: str | None = None
    date: OptionalDate = None

    @classmethod
    def validate_payload(cls, payload: "TransactionPayload") -> "TransactionPayload":
        payload.type = TransactionType.validate(payload.type)
        payload.category = validate_text(payload.category, "Category", 100)
        if payload.amount <= 0:
            raise ValueError("Amount must be greater than zero.")
        payload.currency = validate_currency(payload.currency)
        payload.notes = validate_optional_text(payload.notes, "Notes", 500)
        return payload


class TransactionUpdatePayload(BaseModel):
    type: str | None = None
    category: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    notes: str | None = None
    date: OptionalDate = None

    @classmethod
    def validate_payload(cls, payload: "TransactionUpdatePayload") -> "TransactionUpdatePayload":
        if payload.type is not None:
            payload.type = TransactionType.validate(payload.type)
        if payload.category is not None:
            payload.category = validate_text(payload.category, "Category", 100)
        if payload.amount is not None and payload.amount <= 0:
            raise ValueError("Amount must be greater than zero.")
        if payload.currency is not None:
            payload.currency = validate_currency(payload.currency)
        if payload.notes is not None:
            payload.notes = validate_optional_text(payload.notes, "Notes", 500)
        return payload


class TransactionResponse(BaseModel):
    id: str
    user_id: str
    type: str
    category: str
    amount: Decimal
    currency: str
    notes: str | None = None
    created_at: datetime | None = None
    normalized_amount: Decimal | None = None
    normalized_currency: str | None = None
    date: date


class CategoryTotalsResponse(BaseModel):
    total: Decimal
    by_category: dict[str, Decimal]


class TransactionSummaryResponse(BaseModel):
    income: CategoryTotalsResponse
    expense: CategoryTotalsResponse
    net_cashflow: Decimal
    currency: str


# Budgets


class BudgetPayload(BaseModel):
    category: str
    limit: Decimal
    month: str
    currency: str

    @classmethod
    def validate_payload(cls, payload: "BudgetPayload") -> "BudgetPayload":
        payload.category = validate_text(payload.category, "Category", 100)
        if payload.limit <= 0:
            raise ValueError("Budget limit must be greater than zero.")
        payload.month = validate_month(payload.month)
        payload.currency = validate_currency(payload.currency)
        return payload


class BudgetUpdatePayload(BaseModel):
    category: str | None = None
    limit: Decimal | None = None
    month: str | None = None
    currency: str | None = None

    @classmethod
    def validate_payload(cls, payload: "BudgetUpdatePayload") -> "BudgetUpdatePayload":
        if payload.category is not None:
            payload.category = validate_text(payload.category, "Category", 100)
        if payload.limit is not None and payload.limit <= 0:
            raise ValueError("Budget limit must be greater than zero.")
        if payload.month is not None:
            payload.month = validate_month(payload.month)
        if payload.currency is not None:
            payload.currency = validate_currency(payload.currency)
        return payload


class BudgetResponse(BaseModel):
    id: str
    user_id: str
    category: str
    limit: Decimal
    month: str
    currency: str
    created_at: datetime | None = None


class BudgetStatusResponse(BaseModel):
    budget_id: str | None = None
    category: str
    limit: Decimal
    spent: Decimal
    remaining: Decimal
    # None when the category has no budget (unbounded percentage)
    percentage: Decimal | None = None
    currency: str
    status: str


class BudgetStatusReport(BaseModel):
    month: str
    data: list[BudgetStatusResponse]


# Goals


class GoalPayload(BaseModel):
    title: str
    description: str | None = None
    target_amount: Decimal
    current_amount: Decimal = Decimal("0")
    deadline: date
    currency: str

    @classmethod
    def validate_payload(cls, payload: "GoalPayload") -> "GoalPayload":
        payload.title = validate_text(payload.title, "Title", 100)
        payload.description = validate_optional_text(payload.description, "Description", 500)
        if payload.target_amount <= 0:
            raise ValueError("Target amount must be greater than zero.")
        if payload.current_amount < 0:
            raise ValueError("Current amount cannot be negative.")
        payload.currency = validate_currency(payload.currency)
        return payload


class GoalUpdatePayload(BaseModel):
    title: str | None = None
    description: str | None = None
    target_amount: Decimal | None = None
    current_amount: Decimal | None = None
    deadline: OptionalDate = None
    currency: str | None = None
    completed: bool | None = None

    @classmethod
    def validate_payload(cls, payload: "GoalUpdatePayload") -> "GoalUpdatePayload":
        if payload.title is not None:
            payload.title = validate_text(payload.title, "Title", 100)
        if payload.description is not None:
            payload.description = validate_optional_text(payload.description, "Description", 500)
        if payload.target_amount is not None and payload.target_amount <= 0:
            raise ValueError("Target amount must be greater than zero.")
        if payload.current_amount is not None and payload.current_amount < 0:
            raise ValueError("Current amount cannot be negative.")
        if payload.currency is not None:
            payload.currency = validate_currency(payload.currency)
        return payload


class GoalProgressPayload(BaseModel):
    amount: Decimal
    currency: str | None = None

    @classmethod
    def validate_payload(cls, payload: "GoalProgressPayload") -> "GoalProgressPayload":
        if payload.amount == 0:
            raise ValueError("Please provide an amount.")
        if payload.currency is not None:
            payload.currency = validate_currency(payload.currency)
        return payload


class GoalResponse(BaseModel):
    id: str
    user_id: str
    title: str
    description: str | None = None
    target_amount: Decimal
    current_amount: Decimal
    deadline: date
    currency: str
    completed: bool
    created_at: datetime | None = None


# Reminders


class ReminderPayload(BaseModel):
    type: str
    message: str
    date_time: datetime
    frequency: str = "once"
    is_active: bool = True

    @classmethod
    def validate_payload(cls, payload: "ReminderPayload") -> "ReminderPayload":
        payload.type = ReminderType.validate(payload.type)
        payload.message = validate_text(payload.message, "Message", 200)
        payload.date_time = as_local_naive(payload.date_time)
        payload.frequency = ReminderFrequency.validate(payload.frequency)
        return payload


class ReminderUpdatePayload(BaseModel):
    type: str | None = None
    message: str | None = None
    date_time: datetime | None = None
    frequency: str | None = None
    is_active: bool | None = None

    @classmethod
    def validate_payload(cls, payload: "ReminderUpdatePayload") -> "ReminderUpdatePayload":
        if payload.type is not None:
            payload.type = ReminderType.validate(payload.type)
        if payload.message is not None:
            payload.message = validate_text(payload.message, "Message", 200)
        if payload.date_time is not None:
            payload.date_time = as_local_naive(payload.date_time)
        if payload.frequency is not None:
            payload.frequency = ReminderFrequency.validate(payload.frequency)
        return payload


class ReminderResponse(BaseModel):
    id: str
    user_id: str
    type: str
    message: str
    date_time: datetime
    frequency: str
    is_active: bool
    created_at: datetime | None = None


# AI


class DateRange(BaseModel):
    start: datetime
    end: datetime


class AdviceResponse(BaseModel):
    insights: str
    transaction_count: int
    currency: str
    date_range: DateRange


class SuggestedCategory(BaseModel):
    name: str
    description: str


class SuggestedCategoriesResponse(BaseModel):
    expense: list[SuggestedCategory]
    income: list[SuggestedCategory]
