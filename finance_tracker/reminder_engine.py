from __future__ import annotations

import threading
from calendar import monthrange
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping, Optional

from finance_tracker.log import logger
from finance_tracker.repositories import Record, Repository, StorageError

FREQUENCIES = ("once", "daily", "weekly", "monthly")
REMINDER_TYPES = ("budget-check", "log-expense", "goal-update", "custom")

DEFAULT_POLL_SECONDS = 60
BUDGET_CHECK_DAY = 25
BUDGET_CHECK_HOUR = 10
EXPENSE_LOG_HOUR = 20

Notifier = Callable[[Mapping[str, Any]], None]


def is_due(reminder: Mapping[str, Any], now: datetime) -> bool:
    return bool(reminder.get("is_active")) and reminder["date_time"] <= now


def next_occurrence(date_time: datetime, frequency: str) -> datetime:
    if frequency == "daily":
        return date_time + timedelta(days=1)
    if frequency == "weekly":
        return date_time + timedelta(days=7)
    if frequency == "monthly":
        return add_months(date_time, 1)
    raise ValueError(f"Frequency {frequency!r} does not recur.")


def add_months(value: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping the day to the target month's end."""
    total_month = value.month - 1 + months
    year = value.year + total_month // 12
    month = total_month % 12 + 1
    day = min(value.day, monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def apply_firing(reminder: Mapping[str, Any]) -> dict[str, Any]:
    """Return the changes that follow a reminder firing."""
    frequency = reminder.get("frequency") or "once"
    if frequency == "once":
        return {"is_active": False}
    return {"date_time": next_occurrence(reminder["date_time"], frequency)}


def log_notification(reminder: Mapping[str, Any]) -> None:
    logger.info(
        "Reminder triggered: %s (user %s, %s)",
        reminder.get("message"),
        reminder.get("user_id"),
        reminder.get("type"),
    )


def find_due_reminders(repository: Repository, now: datetime) -> list[Record]:
    candidates = repository.find(
        equals={"is_active": True},
        ranges={"date_time": (None, now)},
        order_by="date_time",
    )
    return [reminder for reminder in candidates if is_due(reminder, now)]


def process_due_reminders(
    repository: Repository,
    now: Optional[datetime] = None,
    notify: Notifier = log_notification,
) -> list[Record]:
    """Fire every due reminder and persist its next state.

    A failure on one reminder is logged and does not stop the others.
    Returns the updated records that were fired successfully.
    """
    current = now or datetime.now()
    processed: list[Record] = []
    for reminder in find_due_reminders(repository, current):
        try:
            notify(reminder)
            updated = repository.update(reminder["id"], apply_firing(reminder))
        except StorageError:
            raise
        except Exception:
            logger.exception("Failed to process reminder %s", reminder.get("id"))
            continue
        if updated is not None:
            processed.append(updated)
    return processed


def budget_check_reminder(user: Mapping[str, Any], now: Optional[datetime] = None) -> dict[str, Any]:
    """Monthly budget review on the 25th at 10:00, next month once the 25th has passed."""
    current = now or datetime.now()
    scheduled = current.replace(
        day=BUDGET_CHECK_DAY, hour=BUDGET_CHECK_HOUR, minute=0, second=0, microsecond=0
    )
    if current.day > BUDGET_CHECK_DAY:
        scheduled = add_months(scheduled, 1)
    return {
        "user_id": user["id"],
        "type": "budget-check",
        "message": f"Time to review your monthly budget, {user.get('name') or 'there'}!",
        "date_time": scheduled,
        "frequency": "monthly",
        "is_active": True,
    }


def expense_log_reminder(user_id: str, now: Optional[datetime] = None) -> dict[str, Any]:
    current = now or datetime.now()
    scheduled = current.replace(hour=EXPENSE_LOG_HOUR, minute=0, second=0, microsecond=0)
    if scheduled <= current:
        scheduled += timedelta(days=1)
    return {
        "user_id": user_id,
        "type": "log-expense",
        "message": "Time to log today's expenses!",
        "date_time": scheduled,
        "frequency": "daily",
        "is_active": True,
    }


class ReminderPoller:
    """Runs ``process_due_reminders`` on a fixed interval in a daemon thread.

    When the primary repository raises ``StorageError`` and a fallback
    repository is configured, later cycles use the fallback.
    """

    def __init__(
        self,
        repository: Repository,
        interval: float = DEFAULT_POLL_SECONDS,
        fallback: Optional[Repository] = None,
        notify: Notifier = log_notification,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.repository = repository
        self.interval = interval
        self.fallback = fallback
        self.notify = notify
        self.clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> list[Record]:
        try:
            return process_due_reminders(self.repository, now=self.clock(), notify=self.notify)
        except StorageError:
            if self.fallback is not None and self.repository is not self.fallback:
                logger.exception("Reminder storage error, switching to fallback store")
                self.repository = self.fallback
            else:
                logger.exception("Reminder storage error")
        except Exception:
            logger.exception("Reminder poll cycle failed")
        return []

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="reminder-poller", daemon=True)
        self._thread.start()
        logger.info("Reminder poller scheduled every %s seconds", self.interval)

    def stop(self, timeout: Optional[float] = 5) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.run_once()
