from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError

from finance_tracker.config import Settings
from finance_tracker.db import create_sql_storage
from finance_tracker.file_store import create_file_storage
from finance_tracker.log import logger
from finance_tracker.repositories import Storage


def open_storage(settings: Settings) -> Storage:
    """Pick the storage implementation once, at startup.

    ``auto`` tries the database first and degrades to the JSON file store
    when it cannot be reached.
    """
    if settings.storage_backend == "file":
        return create_file_storage(settings.data_dir)
    if settings.storage_backend == "database":
        return create_sql_storage(settings.database_url)

    try:
        return create_sql_storage(settings.database_url)
    except SQLAlchemyError as exc:
        logger.error("Database connection error, using file storage instead: %s", exc)
        return create_file_storage(settings.data_dir)
