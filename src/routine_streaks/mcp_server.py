"""MCP server for routine-streaks.

Exposes streaks, progress and milestones as MCP tools so an assistant can
query them mid-conversation.
Run via: python3 -m routine_streaks.mcp_server
"""
from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP

from routine_streaks import service
from routine_streaks.config import get_db_path, get_lookback_days, get_timezone
from routine_streaks.dates import to_date_key, today_key
from routine_streaks.logging_config import configure_logging

mcp = FastMCP(name="routine-streaks")

DEFAULT_USER = "default"


def _get_db():
    from routine_streaks.db import Database
    return Database(get_db_path(), tz=get_timezone())


def _today() -> str:
    return today_key(get_timezone())


@mcp.tool()
def get_today(user_id: str = DEFAULT_USER) -> dict[str, Any]:
    """Get today's scheduled items, day status, and streak."""
    db = _get_db()
    try:
        view = service.today_view(db, user_id, _today(), get_lookback_days())
        return {
            "date": view.date,
            "status": view.status.value,
            "day_mode": view.day_mode.value,
            "is_rest_day": view.is_rest_day,
            "items": [
                {"id": item.id, "label": item.label, "emoji": item.emoji,
                 "section": item.section, "is_core": item.is_core, "done": done}
                for item, done in view.items
            ],
            "core_done": view.core_done,
            "core_total": view.core_total,
            "current_streak": view.current_streak,
            "active_streak": view.active_streak,
            "best_streak": view.best_streak,
            "streak_at_risk": view.streak_at_risk,
            "next_streak_milestone": (
                view.next_streak_milestone.to_dict() if view.next_streak_milestone else None
            ),
        }
    finally:
        db.close()


@mcp.tool()
def get_progress(user_id: str = DEFAULT_USER) -> dict[str, Any]:
    """Get streaks, weekly/monthly green counts, per-habit stats and activity totals."""
    db = _get_db()
    try:
        view = service.progress_view(db, user_id, _today(), get_lookback_days())
        return {
            "last7": [{"date": dk, "status": s.value} for dk, s in view.last7],
            "current_streak": view.current_streak,
            "best_streak": view.best_streak,
            "total_green_days": view.total_green_days,
            "days_since_last_green": view.days_since_last_green,
            "green_this_week": view.green_this_week,
            "green_last_week": view.green_last_week,
            "green_this_month": view.green_this_month,
            "core_hit_rate_this_week": view.core_hit_rate_this_week,
            "category_streaks": view.category_streaks,
            "habits": [
                {"id": h.id, "label": h.label, "current_streak": h.current_streak,
                 "best_streak": h.best_streak, "wtd": h.wtd, "mtd": h.mtd, "ytd": h.ytd,
                 "all_time": h.all_time, "completion_pct": h.completion_pct,
                 "next_milestone_at": h.next_milestone_at, "pinned": h.pinned}
                for h in view.habits
            ],
            "activity_totals": {
                key: {"wtd": t.wtd, "mtd": t.mtd, "ytd": t.ytd, "all_time": t.all_time}
                for key, t in view.activity_totals.items()
            },
        }
    finally:
        db.close()


@mcp.tool()
def get_trophies(user_id: str = DEFAULT_USER) -> dict[str, Any]:
    """Get every milestone with unlock status and progress."""
    db = _get_db()
    try:
        case = service.trophy_case(db, user_id, _today(), get_lookback_days())
        ladder = [
            {**s.definition.to_dict(), "unlocked": s.unlocked,
             "progress_pct": int(s.progress * 100)}
            for s in case.ladder
        ]
        return {
            "milestones": ladder,
            "unlocked_count": sum(1 for m in ladder if m["unlocked"]),
            "total_count": len(ladder),
            "habit_milestones": case.habit_ids,
        }
    finally:
        db.close()


@mcp.tool()
def get_weekly_digest(user_id: str = DEFAULT_USER, week_of: str = "") -> dict[str, Any]:
    """Get the weekly summary for the week containing week_of (default: last week)."""
    today = _today()
    if week_of:
        try:
            target = to_date_key(week_of)
        except ValueError:
            return {"error": "week_of must be a YYYY-MM-DD date"}
    else:
        target = service.previous_week_of(today)
    db = _get_db()
    try:
        digest = service.weekly_digest_for(db, user_id, target, today=today)
        return {
            "week_of": target,
            "green": digest.green_count,
            "yellow": digest.yellow_count,
            "red": digest.red_count,
            "tracked": digest.tracked_count,
            "green_pct": digest.green_pct,
            "headline": digest.headline,
            "glyphs": digest.glyph_line,
        }
    finally:
        db.close()


@mcp.tool()
def next_celebration(user_id: str = DEFAULT_USER, dismiss: bool = False) -> dict[str, Any]:
    """Get the next pending milestone celebration, optionally dismissing it."""
    db = _get_db()
    try:
        event = service.next_celebration(db, user_id, pop=dismiss)
        return {"milestone": event.to_dict() if event else None}
    finally:
        db.close()


def main() -> None:
    configure_logging()
    mcp.run()


if __name__ == "__main__":
    main()
