"""CLI commands for routine-streaks."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from zoneinfo import ZoneInfoNotFoundError

from routine_streaks import service
from routine_streaks.config import (
    get_db_path,
    get_lookback_days,
    get_timezone,
    set_timezone,
)
from routine_streaks.dates import to_date_key, today_key
from routine_streaks.db import MAX_PINNED_HABITS, Database
from routine_streaks.display import (
    console,
    print_celebration,
    print_digest,
    print_items,
    print_job_result,
    print_new_milestones,
    print_progress,
    print_today,
    print_trophies,
)
from routine_streaks.jobs import resolve_sender, run_reminders, run_weekly_digest
from routine_streaks.logging_config import configure_logging
from routine_streaks.models import DayMode, PushSubscription, Reminder, RoutineItem

DEFAULT_USER = "default"


def _date_arg(value: str) -> str:
    try:
        return to_date_key(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a YYYY-MM-DD date: {value!r}")


def _days_arg(value: str) -> list[int]:
    """Parse "1,2,3" into ISO weekdays."""
    try:
        days = [int(part) for part in value.split(",") if part.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"weekdays must be numbers 1-7: {value!r}")
    if any(d < 1 or d > 7 for d in days):
        raise argparse.ArgumentTypeError(f"weekdays must be numbers 1-7: {value!r}")
    return days


def _time_arg(value: str) -> str:
    parts = value.split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise argparse.ArgumentTypeError(f"time must be HH:MM: {value!r}")
    hour, minute = int(parts[0]), int(parts[1])
    if hour > 23 or minute > 59:
        raise argparse.ArgumentTypeError(f"time must be HH:MM: {value!r}")
    return f"{hour:02d}:{minute:02d}"


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="routine-streaks",
        description="Daily routine tracking with streaks and milestones",
    )
    parser.add_argument("--user", "-u", default=DEFAULT_USER, help="User id (default: %(default)s)")
    parser.add_argument("--db", default=None, help="Path to the SQLite database")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("today", help="Today's checklist and streak")
    subparsers.add_parser("progress", help="Streaks, rollups, habits and activity totals")
    subparsers.add_parser("trophies", help="Milestone trophy case")
    celebrate_p = subparsers.add_parser("celebrate", help="Show the next pending celebration")
    celebrate_p.add_argument("--peek", action="store_true", help="Show without dismissing")
    digest_p = subparsers.add_parser("digest", help="Weekly summary")
    digest_p.add_argument("--week-of", type=_date_arg, default=None, help="Any date in the week")

    item_p = subparsers.add_parser("item", help="Manage routine items")
    item_sub = item_p.add_subparsers(dest="item_command")
    item_add = item_sub.add_parser("add", help="Add or update an item")
    item_add.add_argument("item_id")
    item_add.add_argument("label")
    item_add.add_argument("--emoji", default=None)
    item_add.add_argument("--section", default="anytime", choices=["morning", "evening", "anytime"])
    item_add.add_argument("--core", action="store_true", help="Counts toward the day status")
    item_add.add_argument("--days", type=_days_arg, default=None, help="ISO weekdays, e.g. 1,3,5")
    item_add.add_argument("--order", type=int, default=0)
    item_sub.add_parser("list", help="List items")
    item_rm = item_sub.add_parser("remove", help="Deactivate an item")
    item_rm.add_argument("item_id")

    check_p = subparsers.add_parser("check", help="Mark an item done")
    check_p.add_argument("item_id")
    check_p.add_argument("--date", type=_date_arg, default=None)
    check_p.add_argument("--undo", action="store_true", help="Mark not done")

    mode_p = subparsers.add_parser("day-mode", help="Set travel / sick / normal for a day")
    mode_p.add_argument("mode", choices=[m.value for m in DayMode])
    mode_p.add_argument("--date", type=_date_arg, default=None)

    log_p = subparsers.add_parser("log", help="Log an activity amount")
    log_p.add_argument("activity_key")
    log_p.add_argument("value", type=float)
    log_p.add_argument("unit")
    log_p.add_argument("--date", type=_date_arg, default=None)
    log_p.add_argument("--notes", default=None, help="Free text or a JSON payload")

    rest_p = subparsers.add_parser("rest-days", help="Show or set rest weekdays")
    rest_p.add_argument("days", nargs="?", type=_days_arg, default=None)
    rest_p.add_argument("--clear", action="store_true")

    pin_p = subparsers.add_parser("pin", help=f"Pin or unpin a habit (max {MAX_PINNED_HABITS})")
    pin_p.add_argument("item_id")

    remind_p = subparsers.add_parser("remind", help="Set a push reminder for an item")
    remind_p.add_argument("item_id")
    remind_p.add_argument("time", type=_time_arg, help="HH:MM in the reference timezone")
    remind_p.add_argument("--days", type=_days_arg, default=None)
    remind_p.add_argument("--off", action="store_true", help="Disable the reminder")

    sub_p = subparsers.add_parser("subscribe", help="Register a Web Push subscription")
    sub_p.add_argument("endpoint")
    sub_p.add_argument("p256dh")
    sub_p.add_argument("auth")

    cron_p = subparsers.add_parser("cron", help="Scheduled jobs")
    cron_sub = cron_p.add_subparsers(dest="cron_command")
    cron_sub.add_parser("reminders", help="Send reminders due this minute")
    digest_job_p = cron_sub.add_parser(
        "weekly-digest",
        help="Send the weekly digest (schedule Monday morning; covers the previous Mon-Sun)",
    )
    digest_job_p.add_argument(
        "--week-of", type=_date_arg, default=None,
        help="Any date in the week to report instead, e.g. today for a Sunday evening run",
    )

    config_p = subparsers.add_parser("config", help="Settings")
    config_sub = config_p.add_subparsers(dest="config_command")
    tz_p = config_sub.add_parser("timezone", help="Show or set the reference timezone")
    tz_p.add_argument("name", nargs="?", default=None)
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for the CLI."""
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    command = args.command or "today"

    if command == "config":
        do_config_timezone(getattr(args, "name", None))
        return

    db = Database(Path(args.db).expanduser() if args.db else get_db_path(), tz=get_timezone())
    user = args.user
    try:
        if command == "today":
            do_today(db, user)
        elif command == "progress":
            do_progress(db, user)
        elif command == "trophies":
            do_trophies(db, user)
        elif command == "celebrate":
            do_celebrate(db, user, peek=args.peek)
        elif command == "digest":
            do_digest(db, user, week_of=args.week_of)
        elif command == "item":
            if args.item_command == "add":
                do_item_add(
                    db, user, args.item_id, args.label, emoji=args.emoji, section=args.section,
                    is_core=args.core, days=args.days, sort_order=args.order,
                )
            elif args.item_command == "remove":
                do_item_remove(db, user, args.item_id)
            else:
                do_item_list(db, user)
        elif command == "check":
            do_check(db, user, args.item_id, date=args.date, done=not args.undo)
        elif command == "day-mode":
            do_day_mode(db, user, DayMode(args.mode), date=args.date)
        elif command == "log":
            do_log_activity(
                db, user, args.activity_key, args.value, args.unit, date=args.date, notes=args.notes
            )
        elif command == "rest-days":
            do_rest_days(db, user, [] if args.clear else args.days)
        elif command == "pin":
            do_pin(db, user, args.item_id)
        elif command == "remind":
            do_remind(db, user, args.item_id, args.time, days=args.days, enabled=not args.off)
        elif command == "subscribe":
            do_subscribe(db, user, args.endpoint, args.p256dh, args.auth)
        elif command == "cron":
            if args.cron_command == "weekly-digest":
                result = do_cron_weekly_digest(db, week_of=args.week_of)
            else:
                result = do_cron_reminders(db)
            if not result.get("ok"):
                sys.exit(1)
    finally:
        db.close()


def _today() -> str:
    return today_key(get_timezone())


def do_today(db: Database, user_id: str) -> dict:
    """Show today's checklist."""
    view = service.today_view(db, user_id, _today(), get_lookback_days())
    print_today(view)
    return {
        "ok": True,
        "date": view.date,
        "status": view.status.value,
        "core_done": view.core_done,
        "core_total": view.core_total,
        "current_streak": view.current_streak,
        "streak_at_risk": view.streak_at_risk,
    }


def do_progress(db: Database, user_id: str) -> dict:
    view = service.progress_view(db, user_id, _today(), get_lookback_days())
    print_progress(view)
    return {
        "ok": True,
        "current_streak": view.current_streak,
        "best_streak": view.best_streak,
        "total_green_days": view.total_green_days,
        "habits": len(view.habits),
    }


def do_trophies(db: Database, user_id: str) -> dict:
    case = service.trophy_case(db, user_id, _today(), get_lookback_days())
    print_trophies(case)
    return {"ok": True, "achieved_count": case.achieved_count}


def do_celebrate(db: Database, user_id: str, peek: bool = False) -> dict:
    """Show the next queued milestone; dismisses it unless peek."""
    event = service.next_celebration(db, user_id, pop=not peek)
    print_celebration(event)
    return {"ok": True, "milestone": event.to_dict() if event else None}


def do_digest(db: Database, user_id: str, week_of: str | None = None) -> dict:
    today = _today()
    target = week_of or service.previous_week_of(today)
    digest = service.weekly_digest_for(db, user_id, target, today=today)
    print_digest(digest, target)
    return {"ok": True, "week_of": target, "headline": digest.headline, "green_pct": digest.green_pct}


def do_item_add(
    db: Database,
    user_id: str,
    item_id: str,
    label: str,
    emoji: str | None = None,
    section: str = "anytime",
    is_core: bool = False,
    days: list[int] | None = None,
    sort_order: int = 0,
) -> dict:
    item = RoutineItem(
        id=item_id,
        label=label,
        emoji=emoji,
        section=section,
        is_core=is_core,
        days_of_week=tuple(sorted(set(days))) if days else None,
        active=True,
        sort_order=sort_order,
    )
    db.upsert_routine_item(user_id, item)
    console.print(f"[green]Saved[/] {item.label} ({'core' if is_core else 'optional'})")
    return {"ok": True, "item_id": item_id}


def do_item_list(db: Database, user_id: str) -> dict:
    items = db.list_routine_items(user_id)
    if not items:
        console.print("[grey50]No items yet. Run: routine-streaks item add <id> <label>[/]")
        return {"ok": True, "count": 0}
    print_items(items)
    return {"ok": True, "count": len(items)}


def do_item_remove(db: Database, user_id: str, item_id: str) -> dict:
    if not db.deactivate_routine_item(user_id, item_id):
        console.print(f"[red]No item with id {item_id}[/]")
        return {"ok": False, "reason": "not_found"}
    console.print(f"Deactivated {item_id}")
    return {"ok": True}


def do_check(
    db: Database, user_id: str, item_id: str, date: str | None = None, done: bool = True
) -> dict:
    """Toggle a check, then evaluate milestones."""
    today = _today()
    events = service.record_check(
        db, user_id, date or today, item_id, done, today, get_lookback_days()
    )
    console.print(f"{'✅' if done else '⬜'} {item_id} on {date or today}")
    print_new_milestones(events)
    return {"ok": True, "new_milestones": [m.id for m in events]}


def do_day_mode(db: Database, user_id: str, mode: DayMode, date: str | None = None) -> dict:
    today = _today()
    events = service.record_day_mode(db, user_id, date or today, mode, today, get_lookback_days())
    console.print(f"Day mode for {date or today}: [bold]{mode.value}[/]")
    print_new_milestones(events)
    return {"ok": True, "new_milestones": [m.id for m in events]}


def do_log_activity(
    db: Database,
    user_id: str,
    activity_key: str,
    value: float,
    unit: str,
    date: str | None = None,
    notes: str | None = None,
) -> dict:
    today = _today()
    events = service.record_activity(
        db, user_id, date or today, activity_key, value, unit, today, get_lookback_days(), notes=notes
    )
    console.print(f"Logged {value:g} {unit} of {activity_key}")
    print_new_milestones(events)
    return {"ok": True, "new_milestones": [m.id for m in events]}


def do_rest_days(db: Database, user_id: str, days: list[int] | None = None) -> dict:
    """Set rest weekdays, or show them when days is None."""
    if days is not None:
        db.set_rest_days(user_id, days)
    current = sorted(db.get_rest_days(user_id))
    console.print(f"Rest days: {', '.join(str(d) for d in current) if current else 'none'}")
    return {"ok": True, "rest_days": current}


def do_pin(db: Database, user_id: str, item_id: str) -> dict:
    if not db.toggle_pin_habit(user_id, item_id):
        console.print(f"[red]At most {MAX_PINNED_HABITS} habits can be pinned[/]")
        return {"ok": False, "reason": "pin_limit"}
    pinned = db.get_pinned_habits(user_id)
    console.print(f"{'Pinned' if item_id in pinned else 'Unpinned'} {item_id}")
    return {"ok": True, "pinned": pinned}


def do_remind(
    db: Database,
    user_id: str,
    item_id: str,
    time: str,
    days: list[int] | None = None,
    enabled: bool = True,
) -> dict:
    reminder = Reminder(
        id=f"{user_id}:{item_id}:{time}",
        user_id=user_id,
        routine_item_id=item_id,
        time=time,
        days_of_week=tuple(sorted(set(days))) if days else (1, 2, 3, 4, 5, 6, 7),
        enabled=enabled,
    )
    db.upsert_reminder(reminder)
    console.print(f"Reminder for {item_id} at {time} {'on' if enabled else 'off'}")
    return {"ok": True, "reminder_id": reminder.id}


def do_subscribe(db: Database, user_id: str, endpoint: str, p256dh: str, auth: str) -> dict:
    db.add_subscription(PushSubscription(user_id=user_id, endpoint=endpoint, p256dh=p256dh, auth=auth))
    console.print("Push subscription saved")
    return {"ok": True}


def do_cron_reminders(db: Database) -> dict:
    result = run_reminders(db, resolve_sender())
    print_job_result("Reminders", result)
    return result


def do_cron_weekly_digest(db: Database, week_of: str | None = None) -> dict:
    result = run_weekly_digest(db, resolve_sender(), week_of=week_of)
    print_job_result("Weekly digest", result)
    return result


def do_config_timezone(name: str | None = None) -> dict:
    """Show the reference timezone, or set it when name is given."""
    if name:
        try:
            set_timezone(name)
        except (ZoneInfoNotFoundError, ValueError):
            console.print(f"[red]Unknown timezone: {name}[/]")
            return {"ok": False, "reason": "unknown_timezone"}
    current = get_timezone()
    console.print(f"Reference timezone: [bold]{current}[/]")
    return {"ok": True, "timezone": current}
