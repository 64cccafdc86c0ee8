from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from finance_tracker.currency_conversion import SUPPORTED_CURRENCIES
from finance_tracker.log import logger

DEV_JWT_SECRET = "finance-tracker-dev-secret"
STORAGE_BACKENDS = {"auto", "database", "file"}


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./finance_tracker.db"
    storage_backend: str = "auto"
    data_dir: str = "./.data"
    jwt_secret: str = DEV_JWT_SECRET
    jwt_expire_days: int = 30
    reminder_poll_seconds: int = 60
    reminders_enabled: bool = True
    default_currency: str = "USD"
    frontend_origin: str = "http://localhost:3000"
    openai_api_key: str | None = None
    insights_model: str = "gpt-4.1-mini"
    log_level: str = "INFO"
    log_file: str | None = None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid integer for %s=%r, using %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("%s must be positive, using %s", name, default)
        return default
    return value


def _env_truthy(name: str, default: str = "1") -> bool:
    value = os.getenv(name, default)
    return str(value).strip().lower() in ("1", "true", "yes", "y", "on")


def _env_currency(name: str, default: str = "USD") -> str:
    raw = (os.getenv(name) or default).strip().upper()
    if raw not in SUPPORTED_CURRENCIES:
        logger.warning("Unsupported %s=%r, using %s", name, raw, default)
        return default
    return raw


def _env_backend(name: str, default: str = "auto") -> str:
    raw = (os.getenv(name) or default).strip().lower()
    if raw not in STORAGE_BACKENDS:
        logger.warning("Unknown %s=%r, using %s", name, raw, default)
        return default
    return raw


def load_settings() -> Settings:
    load_dotenv()

    jwt_secret = os.getenv("JWT_SECRET")
    if not jwt_secret:
        logger.warning("JWT_SECRET not set, using the development secret")
        jwt_secret = DEV_JWT_SECRET

    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./finance_tracker.db"),
        storage_backend=_env_backend("STORAGE_BACKEND"),
        data_dir=os.getenv("DATA_DIR", "./.data"),
        jwt_secret=jwt_secret,
        jwt_expire_days=_env_int("JWT_EXPIRE_DAYS", 30),
        reminder_poll_seconds=_env_int("REMINDER_POLL_SECONDS", 60),
        reminders_enabled=_env_truthy("REMINDERS_ENABLED"),
        default_currency=_env_currency("DEFAULT_CURRENCY"),
        frontend_origin=os.getenv("FRONTEND_ORIGIN", "http://localhost:3000"),
        openai_api_key=(os.getenv("OPENAI_API_KEY") or "").strip() or None,
        insights_model=os.getenv("INSIGHTS_MODEL", "gpt-4.1-mini"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_file=os.getenv("LOG_FILE") or None,
    )
