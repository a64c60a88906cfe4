"""SQLite database layer for routine-streaks.

Every read the engine needs for one recomputation is served by a single
load_range() call. Read failures degrade to empty data: the engine treats
missing data as empty days and zero sums.
"""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from routine_streaks.dates import today_key
from routine_streaks.milestones import MilestoneQueue
from routine_streaks.models import (
    ActivityLog,
    DailyCheck,
    DailyLog,
    DayMode,
    PushSubscription,
    RangeData,
    Reminder,
    RoutineItem,
    normalize_days_of_week,
    parse_activity_notes,
    parse_day_mode,
)

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path.home() / ".routine-streaks" / "data.db"
MAX_PINNED_HABITS = 5
ACCOUNT_START_KEY = "account_start"


def _now() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


class Database:
    """SQLite database manager with WAL mode."""

    def __init__(self, db_path: Path | None = None, tz: str | None = None) -> None:
        self.db_path = db_path or DEFAULT_DB_PATH
        self.tz = tz
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path))
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.init_db()

    def init_db(self) -> None:
        """Create tables if they do not exist."""
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS routine_items (
                user_id TEXT NOT NULL,
                id TEXT NOT NULL,
                label TEXT NOT NULL,
                emoji TEXT,
                section TEXT DEFAULT 'anytime',
                is_core BOOLEAN DEFAULT 0,
                days_of_week TEXT,
                active BOOLEAN DEFAULT 1,
                sort_order INTEGER DEFAULT 0,
                PRIMARY KEY (user_id, id)
            );

            CREATE TABLE IF NOT EXISTS daily_checks (
                user_id TEXT NOT NULL,
                date TEXT NOT NULL,
                routine_item_id TEXT NOT NULL,
                done BOOLEAN DEFAULT 0,
                PRIMARY KEY (user_id, date, routine_item_id)
            );

            CREATE TABLE IF NOT EXISTS daily_logs (
                user_id TEXT NOT NULL,
                date TEXT NOT NULL,
                day_mode TEXT DEFAULT 'normal',
                did_rowing BOOLEAN DEFAULT 0,
                did_weights BOOLEAN DEFAULT 0,
                PRIMARY KEY (user_id, date)
            );

            CREATE TABLE IF NOT EXISTS activity_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                date TEXT NOT NULL,
                activity_key TEXT NOT NULL,
                value REAL DEFAULT 0,
                unit TEXT NOT NULL,
                notes TEXT
            );

            CREATE TABLE IF NOT EXISTS achieved_milestones (
                user_id TEXT NOT NULL,
                id TEXT NOT NULL,
                achieved_at TEXT,
                PRIMARY KEY (user_id, id)
            );

            CREATE TABLE IF NOT EXISTS milestone_queue (
                user_id TEXT PRIMARY KEY,
                events TEXT NOT NULL DEFAULT '[]'
            );

            CREATE TABLE IF NOT EXISTS profile (
                user_id TEXT NOT NULL,
                key TEXT NOT NULL,
                value TEXT,
                PRIMARY KEY (user_id, key)
            );

            CREATE TABLE IF NOT EXISTS reminders (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                routine_item_id TEXT NOT NULL,
                time TEXT NOT NULL,
                days_of_week TEXT,
                enabled BOOLEAN DEFAULT 1
            );

            CREATE TABLE IF NOT EXISTS push_subscriptions (
                user_id TEXT NOT NULL,
                endpoint TEXT NOT NULL,
                p256dh TEXT NOT NULL,
                auth TEXT NOT NULL,
                PRIMARY KEY (user_id, endpoint)
            );

            CREATE INDEX IF NOT EXISTS idx_checks_user_date ON daily_checks (user_id, date);
            CREATE INDEX IF NOT EXISTS idx_activity_user_date ON activity_logs (user_id, date);
        """)
        self.conn.commit()

    # ── Profile (per-user settings) ──────────────────────────────────────────

    def get_profile(self, user_id: str, key: str) -> str | None:
        """Get a profile value by key."""
        row = self.conn.execute(
            "SELECT value FROM profile WHERE user_id = ? AND key = ?", (user_id, key)
        ).fetchone()
        return row["value"] if row else None

    def set_profile(self, user_id: str, key: str, value: str) -> None:
        """Set a profile value (upsert)."""
        self.conn.execute(
            "INSERT INTO profile (user_id, key, value) VALUES (?, ?, ?) "
            "ON CONFLICT(user_id, key) DO UPDATE SET value = excluded.value",
            (user_id, key, str(value)),
        )
        self.conn.commit()

    def get_all_profile(self, user_id: str) -> dict[str, str]:
        """Return all profile key-value pairs as a dict."""
        rows = self.conn.execute(
            "SELECT key, value FROM profile WHERE user_id = ?", (user_id,)
        ).fetchall()
        return {row["key"]: row["value"] for row in rows}

    def _get_json_list(self, user_id: str, key: str) -> list:
        raw = self.get_profile(user_id, key)
        if not raw:
            return []
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            return []
        return value if isinstance(value, list) else []

    def get_rest_days(self, user_id: str) -> frozenset[int]:
        """Configured rest weekdays (ISO 1..7)."""
        return frozenset(normalize_days_of_week(self._get_json_list(user_id, "rest_days")) or ())

    def set_rest_days(self, user_id: str, days: list[int]) -> None:
        normalized = normalize_days_of_week(days) or ()
        self._mark_account_start(user_id)
        self.set_profile(user_id, "rest_days", json.dumps(list(normalized)))

    def get_pinned_habits(self, user_id: str) -> list[str]:
        return [str(v) for v in self._get_json_list(user_id, "pinned_habits")]

    def toggle_pin_habit(self, user_id: str, item_id: str) -> bool:
        """Pin or unpin an item. Returns False if the pin limit is reached."""
        pinned = self.get_pinned_habits(user_id)
        if item_id in pinned:
            pinned.remove(item_id)
        else:
            if len(pinned) >= MAX_PINNED_HABITS:
                return False
            pinned.append(item_id)
        self.set_profile(user_id, "pinned_habits", json.dumps(pinned))
        return True

    # ── Routine items, checks, logs ──────────────────────────────────────────

    def upsert_routine_item(self, user_id: str, item: RoutineItem) -> None:
        """Insert or update a routine item."""
        days = json.dumps(list(item.days_of_week)) if item.days_of_week else None
        self.conn.execute(
            "INSERT INTO routine_items "
            "(user_id, id, label, emoji, section, is_core, days_of_week, active, sort_order) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(user_id, id) DO UPDATE SET label = excluded.label, "
            "emoji = excluded.emoji, section = excluded.section, is_core = excluded.is_core, "
            "days_of_week = excluded.days_of_week, active = excluded.active, "
            "sort_order = excluded.sort_order",
            (user_id, item.id, item.label, item.emoji, item.section, item.is_core,
             days, item.active, item.sort_order),
        )
        self._mark_account_start(user_id)
        self.conn.commit()

    def deactivate_routine_item(self, user_id: str, item_id: str) -> bool:
        """Soft-delete an item. Its rows and check history are kept."""
        cursor = self.conn.execute(
            "UPDATE routine_items SET active = 0 WHERE user_id = ? AND id = ?",
            (user_id, item_id),
        )
        self.conn.commit()
        return cursor.rowcount > 0

    def _item_from_row(self, row: sqlite3.Row) -> RoutineItem:
        return RoutineItem(
            id=row["id"],
            label=row["label"],
            emoji=row["emoji"],
            section=row["section"] or "anytime",
            is_core=bool(row["is_core"]),
            days_of_week=normalize_days_of_week(row["days_of_week"]),
            active=bool(row["active"]),
            sort_order=row["sort_order"] or 0,
        )

    def list_routine_items(self, user_id: str) -> list[RoutineItem]:
        rows = self.conn.execute(
            "SELECT * FROM routine_items WHERE user_id = ? ORDER BY sort_order, label",
            (user_id,),
        ).fetchall()
        return [self._item_from_row(row) for row in rows]

    def get_routine_items_by_keys(
        self, keys: list[tuple[str, str]]
    ) -> dict[tuple[str, str], RoutineItem]:
        """Look up items by (user_id, item_id); ids are only unique per user."""
        found: dict[tuple[str, str], RoutineItem] = {}
        if not keys:
            return found
        clauses = " OR ".join(["(user_id = ? AND id = ?)"] * len(keys))
        params = [value for key in keys for value in key]
        rows = self.conn.execute(
            f"SELECT * FROM routine_items WHERE {clauses}", params
        ).fetchall()
        for row in rows:
            found[(row["user_id"], row["id"])] = self._item_from_row(row)
        return found

    def set_check(self, user_id: str, date: str, routine_item_id: str, done: bool) -> None:
        """Record whether an item was done on a date (upsert)."""
        self.conn.execute(
            "INSERT INTO daily_checks (user_id, date, routine_item_id, done) VALUES (?, ?, ?, ?) "
            "ON CONFLICT(user_id, date, routine_item_id) DO UPDATE SET done = excluded.done",
            (user_id, date, routine_item_id, done),
        )
        self._mark_account_start(user_id, date)
        self.conn.commit()

    def set_day_mode(self, user_id: str, date: str, day_mode: DayMode) -> None:
        self.conn.execute(
            "INSERT INTO daily_logs (user_id, date, day_mode) VALUES (?, ?, ?) "
            "ON CONFLICT(user_id, date) DO UPDATE SET day_mode = excluded.day_mode",
            (user_id, date, day_mode.value),
        )
        self._mark_account_start(user_id, date)
        self.conn.commit()

    def add_activity_log(
        self,
        user_id: str,
        date: str,
        activity_key: str,
        value: float,
        unit: str,
        notes: str | None = None,
    ) -> int:
        """Insert an activity log row and return its id."""
        cursor = self.conn.execute(
            "INSERT INTO activity_logs (user_id, date, activity_key, value, unit, notes) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (user_id, date, activity_key, value, unit, notes),
        )
        self._mark_account_start(user_id)
        self.conn.commit()
        return int(cursor.lastrowid)

    def load_range(self, user_id: str, start: str, end: str) -> RangeData:
        """Fetch items, checks, logs and activities for [start, end] at once."""
        data = RangeData(start=start, end=end)
        try:
            data.items = self.list_routine_items(user_id)
            check_rows = self.conn.execute(
                "SELECT date, routine_item_id, done FROM daily_checks "
                "WHERE user_id = ? AND date >= ? AND date <= ? ORDER BY date",
                (user_id, start, end),
            ).fetchall()
            log_rows = self.conn.execute(
                "SELECT * FROM daily_logs WHERE user_id = ? AND date >= ? AND date <= ? ORDER BY date",
                (user_id, start, end),
            ).fetchall()
            activity_rows = self.conn.execute(
                "SELECT * FROM activity_logs WHERE user_id = ? AND date >= ? AND date <= ? "
                "ORDER BY date, id",
                (user_id, start, end),
            ).fetchall()
        except sqlite3.Error:
            logger.warning("Range read failed for user %s (%s..%s)", user_id, start, end, exc_info=True)
            return RangeData(start=start, end=end)

        data.checks = [
            DailyCheck(date=r["date"], routine_item_id=r["routine_item_id"], done=bool(r["done"]))
            for r in check_rows
        ]
        data.logs = [
            DailyLog(
                date=r["date"],
                day_mode=parse_day_mode(r["day_mode"]),
                did_rowing=bool(r["did_rowing"]),
                did_weights=bool(r["did_weights"]),
            )
            for r in log_rows
        ]
        data.activities = [
            ActivityLog(
                date=r["date"],
                activity_key=r["activity_key"],
                value=float(r["value"] or 0),
                unit=r["unit"],
                notes=parse_activity_notes(r["activity_key"], r["notes"]),
            )
            for r in activity_rows
        ]
        return data

    def account_start(self, user_id: str) -> str | None:
        """Date key of the user's first write, or None for an unknown user."""
        try:
            return self.get_profile(user_id, ACCOUNT_START_KEY)
        except sqlite3.Error:
            logger.warning("Could not read account start for user %s", user_id, exc_info=True)
            return None

    def _mark_account_start(self, user_id: str, date_key: str | None = None) -> None:
        """Record the account start, keeping the earliest date seen.

        Dated records (checks, day modes) may backfill history before the
        first write; everything else marks today. Callers commit.
        """
        self.conn.execute(
            "INSERT INTO profile (user_id, key, value) VALUES (?, ?, ?) "
            "ON CONFLICT(user_id, key) DO UPDATE SET value = MIN(value, excluded.value)",
            (user_id, ACCOUNT_START_KEY, date_key or today_key(self.tz)),
        )

    # ── Milestones ───────────────────────────────────────────────────────────

    def get_achieved(self, user_id: str) -> frozenset[str]:
        """Return the achieved milestone id set."""
        try:
            rows = self.conn.execute(
                "SELECT id FROM achieved_milestones WHERE user_id = ?", (user_id,)
            ).fetchall()
        except sqlite3.Error:
            logger.warning("Could not read achieved milestones for user %s", user_id, exc_info=True)
            return frozenset()
        return frozenset(row["id"] for row in rows)

    def get_achieved_rows(self, user_id: str) -> list[dict]:
        rows = self.conn.execute(
            "SELECT id, achieved_at FROM achieved_milestones WHERE user_id = ? "
            "ORDER BY achieved_at DESC, id",
            (user_id,),
        ).fetchall()
        return [dict(row) for row in rows]

    def add_achieved(self, user_id: str, milestone_ids: list[str], timestamp: str | None = None) -> None:
        """Add ids to the achieved set. Existing ids keep their first timestamp."""
        if not milestone_ids:
            return
        stamp = timestamp or _now()
        self.conn.executemany(
            "INSERT OR IGNORE INTO achieved_milestones (user_id, id, achieved_at) VALUES (?, ?, ?)",
            [(user_id, mid, stamp) for mid in milestone_ids],
        )
        self.conn.commit()

    def load_queue(self, user_id: str) -> MilestoneQueue:
        """Return the pending celebration queue (empty if unreadable)."""
        row = self.conn.execute(
            "SELECT events FROM milestone_queue WHERE user_id = ?", (user_id,)
        ).fetchone()
        if not row:
            return MilestoneQueue()
        try:
            return MilestoneQueue.from_list(json.loads(row["events"]))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError):
            logger.warning("Discarding unreadable milestone queue for user %s", user_id)
            return MilestoneQueue()

    def save_queue(self, user_id: str, queue: MilestoneQueue) -> None:
        self.conn.execute(
            "INSERT INTO milestone_queue (user_id, events) VALUES (?, ?) "
            "ON CONFLICT(user_id) DO UPDATE SET events = excluded.events",
            (user_id, json.dumps(queue.to_list(), ensure_ascii=False)),
        )
        self.conn.commit()

    # ── Reminders and push subscriptions ─────────────────────────────────────

    def upsert_reminder(self, reminder: Reminder) -> None:
        self.conn.execute(
            "INSERT INTO reminders (id, user_id, routine_item_id, time, days_of_week, enabled) "
            "VALUES (?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET time = excluded.time, "
            "days_of_week = excluded.days_of_week, enabled = excluded.enabled",
            (reminder.id, reminder.user_id, reminder.routine_item_id, reminder.time,
             json.dumps(list(reminder.days_of_week)), reminder.enabled),
        )
        self.conn.commit()

    def get_due_reminders(self, time_str: str, iso_day: int) -> list[Reminder]:
        """Enabled reminders set for time_str ("HH:MM") on iso_day."""
        try:
            rows = self.conn.execute(
                "SELECT * FROM reminders WHERE enabled = 1 AND time = ?", (time_str,)
            ).fetchall()
        except sqlite3.Error:
            logger.warning("Could not query reminders for %s", time_str, exc_info=True)
            return []
        due: list[Reminder] = []
        for row in rows:
            days = normalize_days_of_week(row["days_of_week"]) or (1, 2, 3, 4, 5, 6, 7)
            if iso_day not in days:
                continue
            due.append(Reminder(
                id=row["id"],
                user_id=row["user_id"],
                routine_item_id=row["routine_item_id"],
                time=row["time"],
                days_of_week=days,
                enabled=True,
            ))
        return due

    def add_subscription(self, sub: PushSubscription) -> None:
        self.conn.execute(
            "INSERT INTO push_subscriptions (user_id, endpoint, p256dh, auth) VALUES (?, ?, ?, ?) "
            "ON CONFLICT(user_id, endpoint) DO UPDATE SET p256dh = excluded.p256dh, auth = excluded.auth",
            (sub.user_id, sub.endpoint, sub.p256dh, sub.auth),
        )
        self.conn.commit()

    def get_subscriptions(self, user_ids: list[str] | None = None) -> list[PushSubscription]:
        """Subscriptions for the given users, or for everyone."""
        try:
            if user_ids is None:
                rows = self.conn.execute("SELECT * FROM push_subscriptions ORDER BY user_id").fetchall()
            elif not user_ids:
                return []
            else:
                placeholders = ", ".join(["?"] * len(user_ids))
                rows = self.conn.execute(
                    f"SELECT * FROM push_subscriptions WHERE user_id IN ({placeholders}) ORDER BY user_id",
                    user_ids,
                ).fetchall()
        except sqlite3.Error:
            logger.warning("Could not read push subscriptions", exc_info=True)
            return []
        return [
            PushSubscription(
                user_id=r["user_id"], endpoint=r["endpoint"], p256dh=r["p256dh"], auth=r["auth"]
            )
            for r in rows
        ]

    def delete_subscription(self, user_id: str, endpoint: str) -> None:
        self.conn.execute(
            "DELETE FROM push_subscriptions WHERE user_id = ? AND endpoint = ?",
            (user_id, endpoint),
        )
        self.conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()
