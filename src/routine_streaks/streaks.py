"""Streak tracking over a date -> day-status map."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date

from routine_streaks.classifier import DayStatus
from routine_streaks.dates import shift_days
from routine_streaks.models import RangeData


@dataclass
class StreakInfo:
    current_streak: int
    best_streak: int
    active_streak: int  # messaging only, never credited toward milestones
    previous_best_streak: int
    total_green_days: int
    days_since_last_green: int | None  # 0 = today is green
    last_active_date: str | None  # YYYY-MM-DD of the latest green day
    is_green_today: bool
    streak_at_risk: bool


@dataclass
class HabitStreak:
    current_streak: int
    best_streak: int


def _normalize(status_map: Mapping[str, DayStatus | str], today: str) -> dict[str, DayStatus]:
    return {dk: DayStatus(s) for dk, s in status_map.items() if dk <= today}


def _first_tracked(statuses: Mapping[str, DayStatus]) -> str | None:
    tracked = [dk for dk, s in statuses.items() if s != DayStatus.EMPTY]
    return min(tracked) if tracked else None


def get_run_ending(statuses: Mapping[str, DayStatus], end: str, first_tracked: str | None) -> int:
    """Count consecutive green days backwards from end.

    An empty day before tracking began is skipped; once history exists an
    empty day breaks the run, as does yellow or red.
    """
    streak = 0
    current = end
    while current in statuses:
        status = statuses[current]
        if status == DayStatus.GREEN:
            streak += 1
        elif status == DayStatus.EMPTY and (first_tracked is None or current < first_tracked):
            pass
        else:
            break
        current = shift_days(current, -1)
    return streak


def calculate_streaks(status_map: Mapping[str, DayStatus | str], today: str) -> StreakInfo:
    """Calculate current, best and active streaks from a status map.

    Rules:
    - Today counts only once it is green; otherwise the walk starts at
      yesterday, so an unresolved today never breaks the streak
    - Best streak: green increments, yellow/red reset, empty leaves it alone
    - Active streak also steps over an empty yesterday
    """
    statuses = _normalize(status_map, today)
    if not statuses:
        return StreakInfo(
            current_streak=0,
            best_streak=0,
            active_streak=0,
            previous_best_streak=0,
            total_green_days=0,
            days_since_last_green=None,
            last_active_date=None,
            is_green_today=False,
            streak_at_risk=False,
        )

    first_tracked = _first_tracked(statuses)
    yesterday = shift_days(today, -1)
    is_green_today = statuses.get(today) == DayStatus.GREEN
    today_credit = 1 if is_green_today else 0

    current_streak = today_credit + get_run_ending(statuses, yesterday, first_tracked)

    active_from = yesterday
    if statuses.get(yesterday) == DayStatus.EMPTY:
        active_from = shift_days(yesterday, -1)
    active_streak = today_credit + get_run_ending(statuses, active_from, first_tracked)

    best = 0
    run = 0
    completed: list[int] = []
    for dk in sorted(statuses):
        status = statuses[dk]
        if status == DayStatus.GREEN:
            run += 1
            best = max(best, run)
        elif status in (DayStatus.YELLOW, DayStatus.RED):
            if run > 0:
                completed.append(run)
            run = 0
    best = max(best, current_streak)

    if current_streak >= best:
        previous_best = max(completed, default=0)
    else:
        previous_best = best

    green_days = sorted(dk for dk, s in statuses.items() if s == DayStatus.GREEN)
    last_active = green_days[-1] if green_days else None
    days_since = None
    if last_active is not None:
        days_since = (date.fromisoformat(today) - date.fromisoformat(last_active)).days

    return StreakInfo(
        current_streak=current_streak,
        best_streak=best,
        active_streak=active_streak,
        previous_best_streak=previous_best,
        total_green_days=len(green_days),
        days_since_last_green=days_since,
        last_active_date=last_active,
        is_green_today=is_green_today,
        streak_at_risk=not is_green_today and active_streak > 0,
    )


def calculate_habit_streak(
    tracked_dates: set[str],
    done_dates: set[str],
    today: str,
    lookback_days: int,
) -> HabitStreak:
    """Current and best streak for one routine item.

    tracked_dates holds every date the item had a check row, done_dates the
    subset checked done. Today is skipped while not done. Days without a
    row are skipped until the run starts and end it afterwards.
    """
    current_streak = 0
    start = 0 if today in done_dates else 1
    for offset in range(start, lookback_days + 1):
        dk = shift_days(today, -offset)
        if dk not in tracked_dates:
            if current_streak == 0:
                continue
            break
        if dk in done_dates:
            current_streak += 1
        else:
            break

    best = 0
    run = 0
    previous: str | None = None
    for dk in sorted(tracked_dates):
        if previous is not None and shift_days(previous, 1) != dk:
            run = 0
        if dk in done_dates:
            run += 1
            best = max(best, run)
        else:
            run = 0
        previous = dk

    return HabitStreak(current_streak=current_streak, best_streak=max(best, current_streak))


# Lowercase label fragments; an item counts toward every category it matches.
CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "movement": (
        "walk", "workout", "exercise", "rowing", "stretch", "mobility",
        "move", "run", "swim", "bike", "hike", "yoga",
    ),
    "mind": ("breath", "meditat", "journal", "neuro", "mind", "read", "pray", "gratitude"),
    "sleep": ("sleep", "bedtime", "wind down"),
}


def calculate_category_streaks(
    data: RangeData,
    today: str,
    keywords: Mapping[str, tuple[str, ...]] | None = None,
) -> dict[str, int]:
    """Consecutive days, ending today, with a done item in each category.

    Categories are matched on item labels. As with the day streak, an
    unfinished today is skipped rather than breaking the run.
    """
    categories = CATEGORY_KEYWORDS if keywords is None else keywords
    labels = {item.id: item.label.lower() for item in data.items}
    done_by_date = data.done_ids_by_date()

    def hit(dk: str, words: tuple[str, ...]) -> bool:
        return any(
            any(word in labels.get(item_id, "") for word in words)
            for item_id in done_by_date.get(dk, ())
        )

    streaks: dict[str, int] = {}
    for name, words in categories.items():
        count = 0
        current = today if hit(today, words) else shift_days(today, -1)
        while current >= data.start and hit(current, words):
            count += 1
            current = shift_days(current, -1)
        streaks[name] = count
    return streaks
