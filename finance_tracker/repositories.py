"""Storage-agnostic repository interface shared by the database and file stores.

Records are plain dicts keyed by field name. Every record carries a string
``id`` and a ``created_at`` timestamp in addition to the entity's fields.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping, Optional

Record = dict[str, Any]
Ranges = Mapping[str, tuple[Any, Any]]

SYSTEM_FIELDS = ("id", "created_at")


class StorageError(RuntimeError):
    """Raised when the underlying store cannot complete an operation."""


class DuplicateRecordError(StorageError):
    """Raised when a write would violate a unique key."""


@dataclass(frozen=True)
class EntitySpec:
    name: str
    fields: Mapping[str, type]
    unique: tuple[tuple[str, ...], ...] = ()

    def clean(self, values: Mapping[str, Any]) -> Record:
        record: Record = {}
        for key, value in values.items():
            if key not in self.fields:
                continue
            if self.fields[key] is datetime and isinstance(value, datetime):
                value = as_local_naive(value)
            record[key] = value
        return record


def as_local_naive(value: datetime) -> datetime:
    """Stored datetimes are naive local time; aware values are converted."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


USERS = EntitySpec(
    "users",
    {"name": str, "email": str, "password": str, "default_currency": str},
    unique=(("email",),),
)
TRANSACTIONS = EntitySpec(
    "transactions",
    {
        "user_id": str,
        "type": str,
        "category": str,
        "amount": Decimal,
        "currency": str,
        "date": date,
        "notes": str,
    },
)
BUDGETS = EntitySpec(
    "budgets",
    {
        "user_id": str,
        "category": str,
        "limit": Decimal,
        "month": str,
        "currency": str,
    },
    unique=(("user_id", "category", "month"),),
)
GOALS = EntitySpec(
    "goals",
    {
        "user_id": str,
        "title": str,
        "description": str,
        "target_amount": Decimal,
        "current_amount": Decimal,
        "deadline": date,
        "currency": str,
        "completed": bool,
    },
)
REMINDERS = EntitySpec(
    "reminders",
    {
        "user_id": str,
        "type": str,
        "message": str,
        "date_time": datetime,
        "frequency": str,
        "is_active": bool,
    },
)

ENTITIES = (USERS, TRANSACTIONS, BUDGETS, GOALS, REMINDERS)


class Repository:
    """CRUD over a single collection, independent of the storage engine."""

    spec: EntitySpec

    def create(self, values: Mapping[str, Any]) -> Record:
        raise NotImplementedError

    def get(self, record_id: str) -> Optional[Record]:
        raise NotImplementedError

    def find(
        self,
        equals: Optional[Mapping[str, Any]] = None,
        ranges: Optional[Ranges] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[Record]:
        """Return records matching every ``equals`` value and inclusive range.

        A range is a ``(low, high)`` pair; either end may be ``None``.
        """
        raise NotImplementedError

    def update(self, record_id: str, changes: Mapping[str, Any]) -> Optional[Record]:
        raise NotImplementedError

    def delete(self, record_id: str) -> bool:
        raise NotImplementedError


@dataclass
class Storage:
    backend: str
    users: Repository
    transactions: Repository
    budgets: Repository
    goals: Repository
    reminders: Repository

    def close(self) -> None:
        pass


def new_record_id() -> str:
    return uuid.uuid4().hex


def matches(record: Mapping[str, Any], equals: Optional[Mapping[str, Any]], ranges: Optional[Ranges]) -> bool:
    for key, expected in (equals or {}).items():
        if record.get(key) != expected:
            return False
    for key, (low, high) in (ranges or {}).items():
        value = record.get(key)
        if value is None:
            return False
        if low is not None and value < low:
            return False
        if high is not None and value > high:
            return False
    return True
