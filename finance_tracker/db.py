from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    MetaData,
    Numeric,
    String,
    Table,
    UniqueConstraint,
    create_engine,
    delete,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from finance_tracker.log import logger
from finance_tracker.repositories import (
    BUDGETS,
    GOALS,
    REMINDERS,
    TRANSACTIONS,
    USERS,
    DuplicateRecordError,
    EntitySpec,
    Ranges,
    Record,
    Repository,
    Storage,
    StorageError,
    new_record_id,
)

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), unique=True, nullable=False),
    Column("password", String(255), nullable=False),
    Column("default_currency", String(3), nullable=False),
    Column("created_at", DateTime, nullable=False),
)

transactions = Table(
    "transactions",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("user_id", String(32), nullable=False, index=True),
    Column("type", String(20), nullable=False),
    Column("category", String(255), nullable=False),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("currency", String(3), nullable=False),
    Column("date", Date, nullable=False),
    Column("notes", String(500)),
    Column("created_at", DateTime, nullable=False),
)

budgets = Table(
    "budgets",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("user_id", String(32), nullable=False),
    Column("category", String(255), nullable=False),
    Column("limit", Numeric(12, 2), nullable=False),
    Column("month", String(7), nullable=False),
    Column("currency", String(3), nullable=False),
    Column("created_at", DateTime, nullable=False),
    UniqueConstraint("user_id", "category", "month", name="uq_budgets_user_category_month"),
)

goals = Table(
    "goals",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("user_id", String(32), nullable=False, index=True),
    Column("title", String(100), nullable=False),
    Column("description", String(500)),
    Column("target_amount", Numeric(12, 2), nullable=False),
    Column("current_amount", Numeric(12, 2), nullable=False),
    Column("deadline", Date, nullable=False),
    Column("currency", String(3), nullable=False),
    Column("completed", Boolean, nullable=False, default=False),
    Column("created_at", DateTime, nullable=False),
)

reminders = Table(
    "reminders",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("user_id", String(32), nullable=False, index=True),
    Column("type", String(20), nullable=False),
    Column("message", String(200), nullable=False),
    Column("date_time", DateTime, nullable=False, index=True),
    Column("frequency", String(10), nullable=False),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime, nullable=False),
)


class SqlRepository(Repository):
    def __init__(self, engine: Engine, table: Table, spec: EntitySpec) -> None:
        self.engine = engine
        self.table = table
        self.spec = spec

    def create(self, values: Mapping[str, Any]) -> Record:
        row = self.spec.clean(values)
        row["id"] = new_record_id()
        row["created_at"] = datetime.now()
        try:
            with self.engine.begin() as conn:
                conn.execute(insert(self.table).values(**row))
                return self._fetch(conn, row["id"])
        except IntegrityError as exc:
            raise DuplicateRecordError(f"Duplicate {self.spec.name} record.") from exc
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to create {self.spec.name} record.") from exc

    def get(self, record_id: str) -> Optional[Record]:
        try:
            with self.engine.begin() as conn:
                return self._fetch(conn, record_id)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to read {self.spec.name} record.") from exc

    def find(
        self,
        equals: Optional[Mapping[str, Any]] = None,
        ranges: Optional[Ranges] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[Record]:
        stmt = select(self.table)
        for key, value in (equals or {}).items():
            stmt = stmt.where(self.table.c[key] == value)
        for key, (low, high) in (ranges or {}).items():
            if low is not None:
                stmt = stmt.where(self.table.c[key] >= low)
            if high is not None:
                stmt = stmt.where(self.table.c[key] <= high)
        if order_by:
            column = self.table.c[order_by]
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        try:
            with self.engine.begin() as conn:
                rows = conn.execute(stmt).mappings().all()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to query {self.spec.name} records.") from exc
        return [dict(row) for row in rows]

    def update(self, record_id: str, changes: Mapping[str, Any]) -> Optional[Record]:
        values = self.spec.clean(changes)
        try:
            with self.engine.begin() as conn:
                if values:
                    result = conn.execute(
                        update(self.table)
                        .where(self.table.c.id == record_id)
                        .values(**values)
                    )
                    if result.rowcount == 0:
                        return None
                return self._fetch(conn, record_id)
        except IntegrityError as exc:
            raise DuplicateRecordError(f"Duplicate {self.spec.name} record.") from exc
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to update {self.spec.name} record.") from exc

    def delete(self, record_id: str) -> bool:
        try:
            with self.engine.begin() as conn:
                result = conn.execute(delete(self.table).where(self.table.c.id == record_id))
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to delete {self.spec.name} record.") from exc
        return result.rowcount > 0

    def _fetch(self, conn, record_id: str) -> Optional[Record]:
        row = conn.execute(
            select(self.table).where(self.table.c.id == record_id)
        ).mappings().first()
        return dict(row) if row else None


@dataclass
class SqlStorage(Storage):
    engine: Engine = None

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()


def create_sql_storage(database_url: str) -> SqlStorage:
    """Connect to the database and create missing tables.

    Raises ``SQLAlchemyError`` when the database is unreachable.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    engine = create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)
    metadata.create_all(engine)
    logger.info("Database connected: %s", engine.url.render_as_string(hide_password=True))
    return SqlStorage(
        backend="database",
        users=SqlRepository(engine, users, USERS),
        transactions=SqlRepository(engine, transactions, TRANSACTIONS),
        budgets=SqlRepository(engine, budgets, BUDGETS),
        goals=SqlRepository(engine, goals, GOALS),
        reminders=SqlRepository(engine, reminders, REMINDERS),
        engine=engine,
    )
