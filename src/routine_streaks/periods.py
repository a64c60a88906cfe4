"""Period rollups: week / month / year / all-time totals.

Pure functions over already-fetched records. No side effects, no DB access.
Period boundaries are calendar days in the reference timezone and every
period ends at today.
"""

from __future__ import annotations

import math
from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass, field

from routine_streaks.classifier import DayStatus
from routine_streaks.dates import month_start, shift_days, week_bounds, week_start, year_start
from routine_streaks.milestones import HABIT_THRESHOLDS
from routine_streaks.models import ActivityLog, RangeData
from routine_streaks.streaks import calculate_habit_streak

ALL_TIME_START = "0000-01-01"


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values: 62.5 -> 63."""
    return math.floor(value + 0.5)


def get_period_starts(today: str) -> dict[str, str]:
    """Return the start key of each period containing today."""
    return {
        "week": week_start(today),
        "month": month_start(today),
        "year": year_start(today),
        "all-time": ALL_TIME_START,
    }


def get_period_dates(period: str, today: str) -> tuple[str, str]:
    """Return (start_date, end_date) ISO strings for a period name.

    period: "week" | "month" | "year" | "all-time"
    """
    starts = get_period_starts(today)
    return (starts.get(period, ALL_TIME_START), today)


@dataclass
class ActivityTotals:
    wtd: float = 0
    mtd: float = 0
    ytd: float = 0
    all_time: float = 0


def activity_totals(
    logs: Iterable[ActivityLog], activity_key: str, unit: str, today: str
) -> ActivityTotals:
    """Sum value for one (activity_key, unit) pair into the four periods."""
    starts = get_period_starts(today)
    totals = ActivityTotals()
    for log in logs:
        if log.activity_key != activity_key or log.unit != unit or log.date > today:
            continue
        totals.all_time += log.value
        if log.date >= starts["year"]:
            totals.ytd += log.value
        if log.date >= starts["month"]:
            totals.mtd += log.value
        if log.date >= starts["week"]:
            totals.wtd += log.value
    return totals


def multi_activity_totals(
    logs: Iterable[ActivityLog], pairs: Iterable[tuple[str, str]], today: str
) -> dict[str, ActivityTotals]:
    """Totals for several pairs, keyed "activity_key:unit"."""
    log_list = list(logs)
    return {
        f"{key}:{unit}": activity_totals(log_list, key, unit, today)
        for key, unit in pairs
    }


@dataclass
class HabitStats:
    id: str
    label: str
    emoji: str | None
    is_core: bool
    current_streak: int
    best_streak: int
    wtd: int
    mtd: int
    ytd: int
    all_time: int
    total_tracked: int
    completion_pct: int
    last30: list[bool] = field(default_factory=list)
    next_milestone_at: int | None = None
    pinned: bool = False


def habit_stats(
    data: RangeData,
    today: str,
    lookback_days: int,
    pinned: Collection[str] = (),
) -> list[HabitStats]:
    """Per-item completion counts, streaks and completion rate.

    Only active items are reported. Pinned items sort first, then by
    current streak descending.
    """
    starts = get_period_starts(today)
    done_by_item: dict[str, set[str]] = {}
    tracked_by_item: dict[str, set[str]] = {}
    for check in data.checks:
        if check.date > today:
            continue
        tracked_by_item.setdefault(check.routine_item_id, set()).add(check.date)
        if check.done:
            done_by_item.setdefault(check.routine_item_id, set()).add(check.date)

    results: list[HabitStats] = []
    for item in data.items:
        if not item.active:
            continue
        done = done_by_item.get(item.id, set())
        tracked = tracked_by_item.get(item.id, set())
        streak = calculate_habit_streak(tracked, done, today, lookback_days)

        all_time = len(done)
        completion_pct = round_half_up(100 * all_time / len(tracked)) if tracked else 0

        results.append(
            HabitStats(
                id=item.id,
                label=item.label,
                emoji=item.emoji,
                is_core=item.is_core,
                current_streak=streak.current_streak,
                best_streak=streak.best_streak,
                wtd=sum(1 for dk in done if dk >= starts["week"]),
                mtd=sum(1 for dk in done if dk >= starts["month"]),
                ytd=sum(1 for dk in done if dk >= starts["year"]),
                all_time=all_time,
                total_tracked=len(tracked),
                completion_pct=completion_pct,
                last30=[shift_days(today, -i) in done for i in range(29, -1, -1)],
                next_milestone_at=next(
                    (t for t in HABIT_THRESHOLDS if t > streak.current_streak), None
                ),
                pinned=item.id in pinned,
            )
        )

    results.sort(key=lambda h: (0 if h.pinned else 1, -h.current_streak))
    return results


@dataclass
class StatusRollup:
    green_this_week: int
    green_last_week: int
    green_this_month: int
    core_hit_rate_this_week: int


def status_rollup(
    status_map: Mapping[str, DayStatus | str],
    today: str,
    data: RangeData | None = None,
) -> StatusRollup:
    """Green-day counts for the current/previous week and month.

    The CORE hit rate is done CORE check rows over all CORE check rows this
    week, as a percentage (0 without data).
    """
    week_from, week_to = week_bounds(today)
    last_from, last_to = week_bounds(shift_days(week_from, -1))
    month_from = month_start(today)

    def greens(start: str, end: str) -> int:
        return sum(
            1 for dk, s in status_map.items()
            if start <= dk <= min(end, today) and DayStatus(s) == DayStatus.GREEN
        )

    hit_rate = 0
    if data is not None:
        core_ids = {i.id for i in data.items if i.is_core}
        rows = [
            c for c in data.checks
            if week_from <= c.date <= week_to and c.routine_item_id in core_ids
        ]
        if rows:
            hit_rate = round_half_up(100 * sum(1 for c in rows if c.done) / len(rows))

    return StatusRollup(
        green_this_week=greens(week_from, week_to),
        green_last_week=greens(last_from, last_to),
        green_this_month=greens(month_from, today),
        core_hit_rate_this_week=hit_rate,
    )
