import tempfile
import unittest
from datetime import datetime, timedelta, timezone

from finance_tracker.file_store import create_file_storage
from finance_tracker.reminder_engine import (
    ReminderPoller,
    add_months,
    apply_firing,
    budget_check_reminder,
    expense_log_reminder,
    find_due_reminders,
    is_due,
    next_occurrence,
    process_due_reminders,
)
from finance_tracker.repositories import Repository, StorageError


def reminder(date_time: datetime, frequency: str = "once", message: str = "Check budget") -> dict:
    return {
        "user_id": "u1",
        "type": "custom",
        "message": message,
        "date_time": date_time,
        "frequency": frequency,
        "is_active": True,
    }


class BrokenRepository(Repository):
    def find(self, equals=None, ranges=None, order_by=None, descending=False):
        raise StorageError("database is gone")


class RecurrenceTests(unittest.TestCase):
    def test_daily_and_weekly_advance_by_fixed_days(self) -> None:
        start = datetime(2024, 5, 1, 9, 30)

        self.assertEqual(next_occurrence(start, "daily"), datetime(2024, 5, 2, 9, 30))
        self.assertEqual(next_occurrence(start, "weekly"), datetime(2024, 5, 8, 9, 30))

    def test_monthly_keeps_day_of_month(self) -> None:
        self.assertEqual(
            next_occurrence(datetime(2024, 5, 25, 10), "monthly"), datetime(2024, 6, 25, 10)
        )
        self.assertEqual(
            next_occurrence(datetime(2024, 12, 25, 10), "monthly"), datetime(2025, 1, 25, 10)
        )

    def test_monthly_clamps_to_end_of_shorter_month(self) -> None:
        self.assertEqual(add_months(datetime(2024, 1, 31, 8), 1), datetime(2024, 2, 29, 8))
        self.assertEqual(add_months(datetime(2023, 1, 31, 8), 1), datetime(2023, 2, 28, 8))
        self.assertEqual(add_months(datetime(2024, 3, 31, 8), 1), datetime(2024, 4, 30, 8))

    def test_once_does_not_recur(self) -> None:
        with self.assertRaises(ValueError):
            next_occurrence(datetime(2024, 5, 1), "once")

    def test_apply_firing(self) -> None:
        at = datetime(2024, 5, 1, 9)

        self.assertEqual(apply_firing(reminder(at, "once")), {"is_active": False})
        self.assertEqual(
            apply_firing(reminder(at, "daily")), {"date_time": datetime(2024, 5, 2, 9)}
        )

    def test_is_due(self) -> None:
        now = datetime(2024, 5, 1, 12)

        self.assertTrue(is_due(reminder(now), now))
        self.assertTrue(is_due(reminder(now - timedelta(minutes=1)), now))
        self.assertFalse(is_due(reminder(now + timedelta(minutes=1)), now))
        inactive = {**reminder(now), "is_active": False}
        self.assertFalse(is_due(inactive, now))


class ProcessDueRemindersTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.repository = create_file_storage(self.tmp.name).reminders
        self.now = datetime(2024, 5, 1, 12, 0)
        self.notified = []

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def test_once_reminder_fires_exactly_once(self) -> None:
        created = self.repository.create(reminder(self.now - timedelta(minutes=1)))

        first = process_due_reminders(self.repository, now=self.now, notify=self.notified.append)
        second = process_due_reminders(
            self.repository, now=self.now + timedelta(minutes=1), notify=self.notified.append
        )

        self.assertEqual(len(first), 1)
        self.assertFalse(first[0]["is_active"])
        self.assertEqual(second, [])
        self.assertEqual([item["id"] for item in self.notified], [created["id"]])
        self.assertEqual(find_due_reminders(self.repository, self.now + timedelta(days=30)), [])

    def test_daily_reminder_advances_one_day_and_stays_active(self) -> None:
        due_at = datetime(2024, 5, 1, 9, 0)
        created = self.repository.create(reminder(due_at, "daily"))

        process_due_reminders(self.repository, now=self.now, notify=self.notified.append)

        stored = self.repository.get(created["id"])
        self.assertEqual(stored["date_time"], due_at + timedelta(days=1))
        self.assertTrue(stored["is_active"])

    def test_future_and_inactive_reminders_are_left_alone(self) -> None:
        future = self.repository.create(reminder(self.now + timedelta(hours=1)))
        inactive = self.repository.create(
            {**reminder(self.now - timedelta(hours=1)), "is_active": False}
        )

        processed = process_due_reminders(self.repository, now=self.now, notify=self.notified.append)

        self.assertEqual(processed, [])
        self.assertEqual(self.notified, [])
        self.assertTrue(self.repository.get(future["id"])["is_active"])
        self.assertFalse(self.repository.get(inactive["id"])["is_active"])

    def test_failure_on_one_reminder_does_not_stop_others(self) -> None:
        self.repository.create(reminder(self.now - timedelta(minutes=2), message="boom"))
        healthy = self.repository.create(reminder(self.now - timedelta(minutes=1)))

        def notify(item):
            if item["message"] == "boom":
                raise RuntimeError("notification channel down")
            self.notified.append(item)

        with self.assertLogs("finance_tracker", level="ERROR"):
            processed = process_due_reminders(self.repository, now=self.now, notify=notify)

        self.assertEqual([item["id"] for item in processed], [healthy["id"]])


class DefaultReminderTests(unittest.TestCase):
    def test_budget_check_on_the_25th_of_this_month(self) -> None:
        created = budget_check_reminder({"id": "u1", "name": "Sam"}, now=datetime(2024, 5, 10, 8))

        self.assertEqual(created["date_time"], datetime(2024, 5, 25, 10, 0))
        self.assertEqual(created["frequency"], "monthly")
        self.assertEqual(created["type"], "budget-check")
        self.assertEqual(created["message"], "Time to review your monthly budget, Sam!")

    def test_budget_check_on_the_25th_itself_stays_in_this_month(self) -> None:
        created = budget_check_reminder({"id": "u1", "name": "Sam"}, now=datetime(2024, 5, 25, 15))

        self.assertEqual(created["date_time"], datetime(2024, 5, 25, 10, 0))

    def test_budget_check_moves_to_next_month_after_the_25th(self) -> None:
        created = budget_check_reminder({"id": "u1", "name": "Sam"}, now=datetime(2024, 12, 28, 8))

        self.assertEqual(created["date_time"], datetime(2025, 1, 25, 10, 0))

    def test_expense_log_is_tonight_or_tomorrow(self) -> None:
        morning = expense_log_reminder("u1", now=datetime(2024, 5, 10, 8))
        late = expense_log_reminder("u1", now=datetime(2024, 5, 10, 21))

        self.assertEqual(morning["date_time"], datetime(2024, 5, 10, 20, 0))
        self.assertEqual(late["date_time"], datetime(2024, 5, 11, 20, 0))
        self.assertEqual(morning["frequency"], "daily")
        self.assertEqual(morning["type"], "log-expense")


class ReminderPollerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.fallback = create_file_storage(self.tmp.name).reminders
        self.now = datetime(2024, 5, 1, 12, 0)

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def test_run_once_processes_due_reminders(self) -> None:
        self.fallback.create(reminder(self.now - timedelta(minutes=1)))
        poller = ReminderPoller(self.fallback, interval=60, clock=lambda: self.now)

        with self.assertLogs("finance_tracker", level="INFO"):
            processed = poller.run_once()

        self.assertEqual(len(processed), 1)

    def test_storage_error_switches_to_fallback(self) -> None:
        self.fallback.create(reminder(self.now - timedelta(minutes=1)))
        poller = ReminderPoller(
            BrokenRepository(),
            interval=60,
            fallback=self.fallback,
            notify=lambda item: None,
            clock=lambda: self.now,
        )

        with self.assertLogs("finance_tracker", level="ERROR"):
            self.assertEqual(poller.run_once(), [])
        processed = poller.run_once()

        self.assertIs(poller.repository, self.fallback)
        self.assertEqual(len(processed), 1)

    def test_offset_and_naive_reminders_fire_in_one_cycle(self) -> None:
        self.fallback.create(reminder(self.now - timedelta(hours=1)))
        self.fallback.create(reminder(datetime(2024, 4, 30, 10, 0, tzinfo=timezone.utc)))
        poller = ReminderPoller(self.fallback, notify=lambda item: None, clock=lambda: self.now)

        processed = poller.run_once()

        self.assertEqual(len(processed), 2)
        self.assertTrue(all(item["date_time"].tzinfo is None for item in processed))

    def test_cycle_failure_without_fallback_is_logged(self) -> None:
        poller = ReminderPoller(BrokenRepository(), interval=60, clock=lambda: self.now)

        with self.assertLogs("finance_tracker", level="ERROR"):
            self.assertEqual(poller.run_once(), [])

    def test_start_and_stop(self) -> None:
        poller = ReminderPoller(self.fallback, interval=3600, clock=lambda: self.now)

        poller.start()
        poller.stop(timeout=1)

        self.assertIsNone(poller._thread)


if __name__ == "__main__":
    unittest.main()
