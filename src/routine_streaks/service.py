"""Surface-level operations: fetch once, run the engine, persist milestones.

Each function issues one batched range read and hands the result to the
pure pipelines in engine.py. Writes (check toggles, activity logs) are
followed by a milestone evaluation, which is safe to run redundantly.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from routine_streaks.classifier import DayStatus, is_rest_day
from routine_streaks.dates import shift_days, week_bounds
from routine_streaks.db import Database
from routine_streaks.digest import WeeklyDigest, build_weekly_digest
from routine_streaks.engine import (
    Snapshot,
    apply_milestones,
    build_snapshot,
    history_start,
    milestone_stats,
    today_items,
    week_statuses,
)
from routine_streaks.milestones import (
    Milestone,
    MilestoneStatus,
    earned_milestones,
    ladder_status,
    next_milestones,
)
from routine_streaks.models import DayMode, RangeData, RoutineItem
from routine_streaks.periods import ActivityTotals, HabitStats, multi_activity_totals

DEFAULT_ACTIVITY_PAIRS: list[tuple[str, str]] = [
    ("rowing", "meters"),
    ("walking", "steps"),
    ("running", "miles"),
    ("sauna", "sessions"),
    ("cold", "sessions"),
    ("meditation", "minutes"),
]


def load_snapshot(
    db: Database, user_id: str, today: str, lookback_days: int
) -> tuple[Snapshot, RangeData]:
    """One batched read of the lookback window, then the full pipeline.

    A user with no recorded account start has no history: every date
    before today is empty.
    """
    data = db.load_range(user_id, history_start(today, lookback_days), today)
    snapshot = build_snapshot(
        data,
        today,
        lookback_days,
        rest_days=db.get_rest_days(user_id),
        pinned=db.get_pinned_habits(user_id),
        account_start=db.account_start(user_id) or today,
    )
    return snapshot, data


@dataclass
class TodayView:
    date: str
    status: DayStatus
    day_mode: DayMode
    is_rest_day: bool
    items: list[tuple[RoutineItem, bool]]
    core_done: int
    core_total: int
    current_streak: int
    active_streak: int
    best_streak: int
    streak_at_risk: bool
    next_streak_milestone: Milestone | None
    next_green_milestone: Milestone | None
    pending_celebration: Milestone | None


def today_view(db: Database, user_id: str, today: str, lookback_days: int) -> TodayView:
    snapshot, data = load_snapshot(db, user_id, today, lookback_days)
    items = today_items(data, today)
    core = [(item, done) for item, done in items if item.is_core]
    log = data.log_by_date().get(today)
    streak_next, green_next = next_milestones(
        snapshot.streaks.current_streak, snapshot.streaks.total_green_days
    )
    return TodayView(
        date=today,
        status=snapshot.statuses.get(today, DayStatus.EMPTY),
        day_mode=log.day_mode if log else DayMode.NORMAL,
        is_rest_day=is_rest_day(today, snapshot.rest_days),
        items=items,
        core_done=sum(1 for _, done in core if done),
        core_total=len(core),
        current_streak=snapshot.streaks.current_streak,
        active_streak=snapshot.streaks.active_streak,
        best_streak=snapshot.streaks.best_streak,
        streak_at_risk=snapshot.streaks.streak_at_risk,
        next_streak_milestone=streak_next,
        next_green_milestone=green_next,
        pending_celebration=db.load_queue(user_id).peek(),
    )


@dataclass
class ProgressView:
    today: str
    last7: list[tuple[str, DayStatus]]
    current_streak: int
    best_streak: int
    total_green_days: int
    days_since_last_green: int | None
    green_this_week: int
    green_last_week: int
    green_this_month: int
    core_hit_rate_this_week: int
    category_streaks: dict[str, int] = field(default_factory=dict)
    habits: list[HabitStats] = field(default_factory=list)
    activity_totals: dict[str, ActivityTotals] = field(default_factory=dict)


def progress_view(
    db: Database,
    user_id: str,
    today: str,
    lookback_days: int,
    activity_pairs: list[tuple[str, str]] | None = None,
) -> ProgressView:
    snapshot, data = load_snapshot(db, user_id, today, lookback_days)
    pairs = DEFAULT_ACTIVITY_PAIRS if activity_pairs is None else activity_pairs
    return ProgressView(
        today=today,
        last7=snapshot.last_days(7),
        current_streak=snapshot.streaks.current_streak,
        best_streak=snapshot.streaks.best_streak,
        total_green_days=snapshot.streaks.total_green_days,
        days_since_last_green=snapshot.streaks.days_since_last_green,
        green_this_week=snapshot.rollup.green_this_week,
        green_last_week=snapshot.rollup.green_last_week,
        green_this_month=snapshot.rollup.green_this_month,
        core_hit_rate_this_week=snapshot.rollup.core_hit_rate_this_week,
        category_streaks=snapshot.category_streaks,
        habits=snapshot.habits,
        activity_totals=multi_activity_totals(data.activities, pairs, today),
    )


@dataclass
class TrophyCase:
    earned: list[Milestone]
    ladder: list[MilestoneStatus]
    habit_ids: list[str]
    achieved_count: int


def trophy_case(db: Database, user_id: str, today: str, lookback_days: int) -> TrophyCase:
    """Earned milestones plus every ladder rung with progress toward it.

    Unlock state comes from the achieved set only; the snapshot supplies
    progress for locked rungs.
    """
    snapshot, _ = load_snapshot(db, user_id, today, lookback_days)
    achieved = db.get_achieved(user_id)
    return TrophyCase(
        earned=earned_milestones(achieved),
        ladder=ladder_status(achieved, milestone_stats(snapshot)),
        habit_ids=sorted(mid for mid in achieved if mid.startswith("habit-")),
        achieved_count=len(achieved),
    )


def evaluate_user_milestones(
    db: Database, user_id: str, today: str, lookback_days: int
) -> list[Milestone]:
    """Read the achieved set, evaluate, write it back, queue new events.

    Returns the newly earned milestones (empty when nothing changed).
    """
    snapshot, _ = load_snapshot(db, user_id, today, lookback_days)
    achieved = db.get_achieved(user_id)
    queue = db.load_queue(user_id)
    evaluation = apply_milestones(snapshot, achieved, queue)
    if not evaluation.events and evaluation.achieved == achieved:
        return []
    db.add_achieved(user_id, sorted(evaluation.achieved - achieved))
    db.save_queue(user_id, queue)
    return evaluation.events


def record_check(
    db: Database,
    user_id: str,
    date: str,
    routine_item_id: str,
    done: bool,
    today: str,
    lookback_days: int,
) -> list[Milestone]:
    db.set_check(user_id, date, routine_item_id, done)
    return evaluate_user_milestones(db, user_id, today, lookback_days)


def record_day_mode(
    db: Database, user_id: str, date: str, day_mode: DayMode, today: str, lookback_days: int
) -> list[Milestone]:
    db.set_day_mode(user_id, date, day_mode)
    return evaluate_user_milestones(db, user_id, today, lookback_days)


def record_activity(
    db: Database,
    user_id: str,
    date: str,
    activity_key: str,
    value: float,
    unit: str,
    today: str,
    lookback_days: int,
    notes: str | None = None,
) -> list[Milestone]:
    db.add_activity_log(user_id, date, activity_key, value, unit, notes)
    return evaluate_user_milestones(db, user_id, today, lookback_days)


def next_celebration(db: Database, user_id: str, pop: bool = True) -> Milestone | None:
    """The next queued celebration; popping removes it from the store."""
    queue = db.load_queue(user_id)
    if not pop:
        return queue.peek()
    event = queue.pop_next()
    if event is not None:
        db.save_queue(user_id, queue)
    return event


def weekly_digest_for(
    db: Database, user_id: str, week_of: str, today: str | None = None
) -> WeeklyDigest:
    """Digest for the Monday..Sunday week containing week_of."""
    monday, sunday = week_bounds(week_of)
    data = db.load_range(user_id, monday, sunday)
    statuses = week_statuses(
        data,
        monday,
        db.get_rest_days(user_id),
        today=today,
        account_start=db.account_start(user_id) or today or shift_days(sunday, 1),
    )
    return build_weekly_digest(statuses)


def previous_week_of(today: str) -> str:
    return shift_days(week_bounds(today)[0], -7)

