"""Tests for the SQLite database layer."""

import sqlite3
from unittest.mock import MagicMock, patch

import pytest

from routine_streaks.db import MAX_PINNED_HABITS, Database
from routine_streaks.milestones import STREAK_MILESTONES, MilestoneQueue
from routine_streaks.models import (
    DayMode,
    PushSubscription,
    Reminder,
    RoutineItem,
    TextNotes,
)

USER = "alice"


@pytest.fixture
def db(tmp_path):
    """Create a temporary database for testing."""
    db_path = tmp_path / "test.db"
    database = Database(db_path=db_path)
    yield database
    database.close()


@pytest.fixture
def broken_conn(db):
    """Swap in a connection whose every query fails."""
    real = db.conn
    mock_conn = MagicMock()
    mock_conn.execute.side_effect = sqlite3.OperationalError("disk I/O error")
    db.conn = mock_conn
    yield mock_conn
    db.conn = real


class TestDatabaseCreation:
    def test_creates_parent_directories(self, tmp_path):
        db_path = tmp_path / "a" / "b" / "test.db"
        database = Database(db_path=db_path)
        assert db_path.exists()
        database.close()

    def test_tables_exist(self, db):
        cursor = db.conn.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
        tables = {row["name"] for row in cursor.fetchall()}
        assert {
            "routine_items", "daily_checks", "daily_logs", "activity_logs",
            "achieved_milestones", "milestone_queue", "profile", "reminders",
            "push_subscriptions",
        } <= tables

    def test_wal_mode_enabled(self, db):
        result = db.conn.execute("PRAGMA journal_mode").fetchone()
        assert result[0] == "wal"

    def test_init_db_is_repeatable(self, db):
        db.init_db()
        db.upsert_routine_item(USER, RoutineItem("a", "A"))
        db.init_db()
        assert len(db.list_routine_items(USER)) == 1


class TestProfile:
    def test_get_nonexistent_key(self, db):
        assert db.get_profile(USER, "nonexistent") is None

    def test_upsert_overwrites(self, db):
        db.set_profile(USER, "k", "1")
        db.set_profile(USER, "k", "2")
        assert db.get_profile(USER, "k") == "2"

    def test_scoped_per_user(self, db):
        db.set_profile(USER, "k", "1")
        assert db.get_profile("bob", "k") is None
        assert db.get_all_profile(USER) == {"k": "1"}

    def test_rest_days(self, db):
        assert db.get_rest_days(USER) == frozenset()
        db.set_rest_days(USER, [7, 6, 9])
        assert db.get_rest_days(USER) == frozenset({6, 7})

    def test_rest_days_corrupt_value(self, db):
        db.set_profile(USER, "rest_days", "{oops")
        assert db.get_rest_days(USER) == frozenset()

    def test_pin_toggle(self, db):
        assert db.toggle_pin_habit(USER, "read") is True
        assert db.get_pinned_habits(USER) == ["read"]
        assert db.toggle_pin_habit(USER, "read") is True
        assert db.get_pinned_habits(USER) == []

    def test_pin_limit(self, db):
        for i in range(MAX_PINNED_HABITS):
            assert db.toggle_pin_habit(USER, f"h{i}") is True
        assert db.toggle_pin_habit(USER, "one-too-many") is False
        assert len(db.get_pinned_habits(USER)) == MAX_PINNED_HABITS


class TestRoutineItems:
    def test_upsert_and_list(self, db):
        db.upsert_routine_item(USER, RoutineItem("b", "Read", is_core=True, days_of_week=(1, 3), sort_order=2))
        db.upsert_routine_item(USER, RoutineItem("a", "Wake", emoji="⏰", sort_order=1))
        items = db.list_routine_items(USER)
        assert [i.id for i in items] == ["a", "b"]
        assert items[1].days_of_week == (1, 3)
        assert items[1].is_core is True
        assert items[0].emoji == "⏰"

    def test_upsert_updates(self, db):
        db.upsert_routine_item(USER, RoutineItem("a", "Wake"))
        db.upsert_routine_item(USER, RoutineItem("a", "Wake up early", is_core=True))
        (item,) = db.list_routine_items(USER)
        assert item.label == "Wake up early"
        assert item.is_core is True

    def test_deactivate_is_soft(self, db):
        db.upsert_routine_item(USER, RoutineItem("a", "Wake"))
        assert db.deactivate_routine_item(USER, "a") is True
        assert db.deactivate_routine_item(USER, "missing") is False
        (item,) = db.list_routine_items(USER)
        assert item.active is False

    def test_malformed_days_become_every_day(self, db):
        db.conn.execute(
            "INSERT INTO routine_items (user_id, id, label, days_of_week) VALUES (?, ?, ?, ?)",
            (USER, "x", "X", "garbage"),
        )
        (item,) = db.list_routine_items(USER)
        assert item.days_of_week is None

    def test_lookup_by_user_and_id(self, db):
        db.upsert_routine_item(USER, RoutineItem("meds", "Alice meds"))
        db.upsert_routine_item("bob", RoutineItem("meds", "Bob meds"))
        db.upsert_routine_item("bob", RoutineItem("read", "Read"))
        found = db.get_routine_items_by_keys([("bob", "meds"), (USER, "meds"), ("bob", "zzz")])
        assert set(found) == {("bob", "meds"), (USER, "meds")}
        assert found[("bob", "meds")].label == "Bob meds"
        assert found[(USER, "meds")].label == "Alice meds"
        assert db.get_routine_items_by_keys([]) == {}


class TestLoadRange:
    def test_returns_everything_in_range(self, db):
        db.upsert_routine_item(USER, RoutineItem("a", "Wake", is_core=True))
        db.set_check(USER, "2024-06-09", "a", True)
        db.set_check(USER, "2024-06-10", "a", True)
        db.set_check(USER, "2024-06-11", "a", False)
        db.set_day_mode(USER, "2024-06-11", DayMode.SICK)
        db.add_activity_log(USER, "2024-06-10", "rowing", 2000, "meters", "felt good")

        data = db.load_range(USER, "2024-06-10", "2024-06-16")
        assert [i.id for i in data.items] == ["a"]
        assert [(c.date, c.done) for c in data.checks] == [("2024-06-10", True), ("2024-06-11", False)]
        assert data.logs[0].day_mode == DayMode.SICK
        assert data.activities[0].value == 2000.0
        assert data.activities[0].notes == TextNotes(text="felt good")

    def test_check_upsert(self, db):
        db.set_check(USER, "2024-06-10", "a", True)
        db.set_check(USER, "2024-06-10", "a", False)
        data = db.load_range(USER, "2024-06-10", "2024-06-10")
        assert len(data.checks) == 1
        assert data.checks[0].done is False

    def test_unknown_day_mode_reads_as_normal(self, db):
        db.conn.execute(
            "INSERT INTO daily_logs (user_id, date, day_mode) VALUES (?, ?, ?)",
            (USER, "2024-06-10", "vacation"),
        )
        data = db.load_range(USER, "2024-06-10", "2024-06-10")
        assert data.logs[0].day_mode == DayMode.NORMAL

    def test_read_failure_degrades_to_empty(self, db, broken_conn):
        data = db.load_range(USER, "2024-06-10", "2024-06-16")
        assert data.items == []
        assert data.checks == []
        assert (data.start, data.end) == ("2024-06-10", "2024-06-16")

    def test_auxiliary_flags_pass_through(self, db):
        db.conn.execute(
            "INSERT INTO daily_logs (user_id, date, did_rowing, did_weights) VALUES (?, ?, 1, 0)",
            (USER, "2024-06-10"),
        )
        (log,) = db.load_range(USER, "2024-06-10", "2024-06-10").logs
        assert (log.did_rowing, log.did_weights) == (True, False)


class TestAccountStart:
    @pytest.fixture(autouse=True)
    def fixed_today(self):
        with patch("routine_streaks.db.today_key", return_value="2024-06-16"):
            yield

    def test_unknown_user_has_none(self, db):
        assert db.account_start(USER) is None

    def test_rest_days_mark_today(self, db):
        db.set_rest_days(USER, [6, 7])
        assert db.account_start(USER) == "2024-06-16"

    def test_item_and_activity_mark_today(self, db):
        db.upsert_routine_item(USER, RoutineItem("a", "Wake"))
        assert db.account_start(USER) == "2024-06-16"
        db.add_activity_log("bob", "2023-01-01", "rowing", 100, "meters")
        assert db.account_start("bob") == "2024-06-16"

    def test_backdated_checks_and_day_modes_move_it_earlier(self, db):
        db.set_rest_days(USER, [6, 7])
        db.set_check(USER, "2024-06-12", "a", True)
        assert db.account_start(USER) == "2024-06-12"
        db.set_day_mode(USER, "2024-06-03", DayMode.TRAVEL)
        assert db.account_start(USER) == "2024-06-03"
        db.set_check(USER, "2024-06-14", "a", True)
        assert db.account_start(USER) == "2024-06-03"

    def test_read_failure_degrades_to_none(self, db, broken_conn):
        assert db.account_start(USER) is None


class TestMilestonePersistence:
    def test_add_and_get(self, db):
        db.add_achieved(USER, ["streak-3", "green_total-1"])
        assert db.get_achieved(USER) == frozenset({"streak-3", "green_total-1"})
        assert db.get_achieved("bob") == frozenset()

    def test_first_timestamp_kept(self, db):
        db.add_achieved(USER, ["streak-3"], "2024-06-01T00:00:00+00:00")
        db.add_achieved(USER, ["streak-3"], "2024-06-20T00:00:00+00:00")
        rows = db.get_achieved_rows(USER)
        assert rows == [{"id": "streak-3", "achieved_at": "2024-06-01T00:00:00+00:00"}]

    def test_read_failure_degrades_to_empty(self, db, broken_conn):
        assert db.get_achieved(USER) == frozenset()

    def test_queue_round_trip(self, db):
        db.save_queue(USER, MilestoneQueue(STREAK_MILESTONES[:2]))
        queue = db.load_queue(USER)
        assert [m.id for m in (queue.pop_next(), queue.pop_next())] == ["streak-3", "streak-7"]

    def test_corrupt_queue_discarded(self, db):
        db.conn.execute("INSERT INTO milestone_queue (user_id, events) VALUES (?, ?)", (USER, "not json"))
        assert len(db.load_queue(USER)) == 0


class TestRemindersAndSubscriptions:
    def test_due_reminders_match_time_and_weekday(self, db):
        db.upsert_reminder(Reminder("r1", USER, "a", "07:30", (1, 2, 3, 4, 5)))
        db.upsert_reminder(Reminder("r2", USER, "b", "07:30", (6, 7)))
        db.upsert_reminder(Reminder("r3", USER, "c", "08:00"))
        db.upsert_reminder(Reminder("r4", USER, "d", "07:30", enabled=False))
        assert [r.id for r in db.get_due_reminders("07:30", 1)] == ["r1"]
        assert [r.id for r in db.get_due_reminders("07:30", 6)] == ["r2"]

    def test_reminder_upsert(self, db):
        db.upsert_reminder(Reminder("r1", USER, "a", "07:30"))
        db.upsert_reminder(Reminder("r1", USER, "a", "09:00"))
        assert db.get_due_reminders("07:30", 1) == []
        assert len(db.get_due_reminders("09:00", 1)) == 1

    def test_subscriptions(self, db):
        db.add_subscription(PushSubscription(USER, "https://push/1", "p", "a"))
        db.add_subscription(PushSubscription("bob", "https://push/2", "p", "a"))
        assert len(db.get_subscriptions()) == 2
        assert [s.endpoint for s in db.get_subscriptions([USER])] == ["https://push/1"]
        assert db.get_subscriptions([]) == []
        db.delete_subscription(USER, "https://push/1")
        assert [s.user_id for s in db.get_subscriptions()] == ["bob"]
