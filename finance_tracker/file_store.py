"""Flat JSON-file persistence used when no database is reachable.

Each collection lives in ``<data_dir>/<collection>.json`` as a list of
objects. Decimals are stored as strings and dates/datetimes as ISO-8601.
"""

from __future__ import annotations

import json
import os
import threading
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Mapping, Optional

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
    as_local_naive,
    matches,
    new_record_id,
)


def encode_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def decode_value(value: Any, field_type: type) -> Any:
    if value is None:
        return None
    if field_type is Decimal:
        return Decimal(str(value))
    if field_type is datetime:
        return as_local_naive(datetime.fromisoformat(value))
    if field_type is date:
        return date.fromisoformat(value)
    return value


def _sort_key(value: Any) -> tuple[bool, Any]:
    # None sorts last when ascending
    return (value is None, value if value is not None else 0)


class FileRepository(Repository):
    def __init__(self, path: Path, spec: EntitySpec, lock: threading.RLock) -> None:
        self.path = path
        self.spec = spec
        self._lock = lock

    def create(self, values: Mapping[str, Any]) -> Record:
        record = self.spec.clean(values)
        record["id"] = new_record_id()
        record["created_at"] = datetime.now()
        with self._lock:
            records = self._load()
            self._check_unique(records, record)
            records.append(record)
            self._save(records)
        return dict(record)

    def get(self, record_id: str) -> Optional[Record]:
        with self._lock:
            for record in self._load():
                if record["id"] == record_id:
                    return record
        return None

    def find(
        self,
        equals: Optional[Mapping[str, Any]] = None,
        ranges: Optional[Ranges] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[Record]:
        with self._lock:
            found = [record for record in self._load() if matches(record, equals, ranges)]
        if order_by:
            found.sort(key=lambda record: _sort_key(record.get(order_by)), reverse=descending)
        return found

    def update(self, record_id: str, changes: Mapping[str, Any]) -> Optional[Record]:
        values = self.spec.clean(changes)
        with self._lock:
            records = self._load()
            for index, record in enumerate(records):
                if record["id"] != record_id:
                    continue
                updated = {**record, **values}
                self._check_unique(records, updated)
                records[index] = updated
                self._save(records)
                return dict(updated)
        return None

    def delete(self, record_id: str) -> bool:
        with self._lock:
            records = self._load()
            remaining = [record for record in records if record["id"] != record_id]
            if len(remaining) == len(records):
                return False
            self._save(remaining)
        return True

    def _check_unique(self, records: list[Record], candidate: Record) -> None:
        for key_fields in self.spec.unique:
            key = tuple(candidate.get(name) for name in key_fields)
            for record in records:
                if record["id"] == candidate["id"]:
                    continue
                if tuple(record.get(name) for name in key_fields) == key:
                    raise DuplicateRecordError(
                        f"Duplicate {self.spec.name} record for {', '.join(key_fields)}."
                    )

    def _load(self) -> list[Record]:
        if not self.path.exists():
            return []
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"Failed to read {self.path}") from exc
        return [self._decode(item) for item in raw]

    def _save(self, records: list[Record]) -> None:
        payload = [
            {key: encode_value(value) for key, value in record.items()}
            for record in records
        ]
        tmp_path = self.path.with_suffix(".json.tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise StorageError(f"Failed to write {self.path}") from exc

    def _decode(self, item: Mapping[str, Any]) -> Record:
        record: Record = {"id": item["id"]}
        created_at = item.get("created_at")
        record["created_at"] = datetime.fromisoformat(created_at) if created_at else None
        for name, field_type in self.spec.fields.items():
            record[name] = decode_value(item.get(name), field_type)
        return record


def create_file_storage(data_dir: str | os.PathLike) -> Storage:
    directory = Path(data_dir)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageError(f"Cannot create data directory {directory}") from exc
    lock = threading.RLock()
    logger.info("Using file storage in %s", directory.resolve())
    return Storage(
        backend="file",
        users=FileRepository(directory / "users.json", USERS, lock),
        transactions=FileRepository(directory / "transactions.json", TRANSACTIONS, lock),
        budgets=FileRepository(directory / "budgets.json", BUDGETS, lock),
        goals=FileRepository(directory / "goals.json", GOALS, lock),
        reminders=FileRepository(directory / "reminders.json", REMINDERS, lock),
    )
