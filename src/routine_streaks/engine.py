"""One-call pipelines over an already-fetched dataset.

Pure functions, no side effects, no DB access. Every surface (today,
progress, trophy case, weekly job) goes through build_snapshot() so the
numbers it shows are identical everywhere.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass

from routine_streaks.classifier import DayStatus, build_status_map
from routine_streaks.dates import shift_days, week_start
from routine_streaks.milestones import (
    HabitProgress,
    MilestoneEvaluation,
    MilestoneQueue,
    MilestoneStats,
    evaluate_milestones,
)
from routine_streaks.models import RangeData, RoutineItem
from routine_streaks.periods import HabitStats, StatusRollup, habit_stats, status_rollup
from routine_streaks.schedule import scheduled_items
from routine_streaks.streaks import StreakInfo, calculate_category_streaks, calculate_streaks


@dataclass
class Snapshot:
    today: str
    statuses: dict[str, DayStatus]
    streaks: StreakInfo
    rollup: StatusRollup
    habits: list[HabitStats]
    category_streaks: dict[str, int]
    rest_days: frozenset[int]

    def last_days(self, n: int) -> list[tuple[str, DayStatus]]:
        keys = [shift_days(self.today, -i) for i in range(n - 1, -1, -1)]
        return [(dk, self.statuses.get(dk, DayStatus.EMPTY)) for dk in keys]


def history_start(today: str, lookback_days: int) -> str:
    """First date of the lookback window ending at today."""
    return shift_days(today, -lookback_days)


def build_snapshot(
    data: RangeData,
    today: str,
    lookback_days: int,
    rest_days: Collection[int] = (),
    pinned: Collection[str] = (),
    account_start: str | None = None,
) -> Snapshot:
    """Classify the window, then derive streaks, rollups and habit stats."""
    statuses = build_status_map(
        data, rest_days, today=today, account_start=account_start, end=today
    )
    return Snapshot(
        today=today,
        statuses=statuses,
        streaks=calculate_streaks(statuses, today),
        rollup=status_rollup(statuses, today, data),
        habits=habit_stats(data, today, lookback_days, pinned),
        category_streaks=calculate_category_streaks(data, today),
        rest_days=frozenset(rest_days),
    )


def milestone_stats(snapshot: Snapshot) -> MilestoneStats:
    """Stats the milestone ladders are evaluated against.

    The global streak ladder uses the current streak, never the active one.
    """
    return MilestoneStats(
        current_streak=snapshot.streaks.current_streak,
        best_streak=snapshot.streaks.best_streak,
        total_green_days=snapshot.streaks.total_green_days,
        previous_best_streak=snapshot.streaks.previous_best_streak,
        habits=[
            HabitProgress(
                id=h.id,
                label=h.label,
                streak=max(h.current_streak, h.best_streak),
                emoji=h.emoji,
            )
            for h in snapshot.habits
        ],
    )


def apply_milestones(
    snapshot: Snapshot, achieved: Collection[str], queue: MilestoneQueue
) -> MilestoneEvaluation:
    """Evaluate milestones and queue any new celebrations."""
    evaluation = evaluate_milestones(milestone_stats(snapshot), achieved)
    queue.push_all(evaluation.events)
    return evaluation


def today_items(data: RangeData, today: str) -> list[tuple[RoutineItem, bool]]:
    """Items scheduled today, each with whether it is checked done."""
    done = data.done_ids_by_date().get(today, set())
    return [(item, item.id in done) for item in scheduled_items(data.items, today)]


def week_statuses(
    data: RangeData,
    week_of: str,
    rest_days: Collection[int] = (),
    today: str | None = None,
    account_start: str | None = None,
) -> list[DayStatus]:
    """Monday..Sunday statuses of the week containing week_of."""
    monday = week_start(week_of)
    statuses = build_status_map(
        data,
        rest_days,
        today=today,
        account_start=account_start,
        start=monday,
        end=shift_days(monday, 6),
    )
    return list(statuses.values())
