"""Milestone ladders, idempotent evaluation, and the celebration queue."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, field
from enum import Enum


class MilestoneType(str, Enum):
    STREAK = "streak"
    GREEN_TOTAL = "green_total"
    PERSONAL_BEST = "personal_best"
    HABIT = "habit"


@dataclass(frozen=True)
class Milestone:
    id: str
    type: MilestoneType
    threshold: int
    title: str
    message: str
    emoji: str
    habit_id: str | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["type"] = self.type.value
        return data

    @classmethod
    def from_dict(cls, data: Mapping) -> Milestone:
        return cls(
            id=str(data["id"]),
            type=MilestoneType(data["type"]),
            threshold=int(data["threshold"]),
            title=str(data.get("title", "")),
            message=str(data.get("message", "")),
            emoji=str(data.get("emoji", "")),
            habit_id=data.get("habit_id"),
        )


def _streak(threshold: int, emoji: str, title: str, message: str) -> Milestone:
    return Milestone(f"streak-{threshold}", MilestoneType.STREAK, threshold, title, message, emoji)


def _green(threshold: int, emoji: str, title: str, message: str) -> Milestone:
    return Milestone(f"green_total-{threshold}", MilestoneType.GREEN_TOTAL, threshold, title, message, emoji)


STREAK_MILESTONES: list[Milestone] = [
    _streak(3, "🔥", "On Fire", "3 green days in a row. The habit is forming."),
    _streak(7, "⚡", "One Week", "A full week of consistency. That's rare."),
    _streak(14, "💪", "Two Weeks", "14 days. This is where habits start to stick."),
    _streak(21, "🧠", "Three Weeks", "21 days. This is who you are now."),
    _streak(30, "🏆", "One Month", "30 consecutive green days. Most people never get here."),
    _streak(50, "⭐", "Fifty Days", "50 days. You've built something most people only talk about."),
    _streak(75, "💎", "Seventy-Five", "75 days. Discipline is just who you are at this point."),
    _streak(100, "👑", "The Hundred", "100 consecutive days."),
    _streak(150, "🌟", "150 Days", "Half a year of consistency. Remarkable."),
    _streak(200, "🔱", "Two Hundred", "200 days. This isn't a streak anymore, it's a lifestyle."),
    _streak(365, "🎆", "One Full Year", "365 green days in a row."),
]

GREEN_TOTAL_MILESTONES: list[Milestone] = [
    _green(1, "🌱", "First Green Day", "Your journey started today. Remember this moment."),
    _green(10, "🌿", "Ten Green Days", "10 green days under your belt. You're building proof."),
    _green(25, "🌳", "Twenty-Five", "25 green days. The compound effect is working."),
    _green(50, "🏅", "Fifty Green", "50 days of showing up. That's character."),
    _green(100, "💯", "The Century", "100 green days total. You've earned every single one."),
    _green(200, "🏛️", "Two Hundred", "200 green days. A monument to consistency."),
    _green(365, "🎯", "Full Year", "365 total green days. A year of showing up."),
]

HABIT_THRESHOLDS: tuple[int, ...] = (3, 7, 14, 21, 30, 50, 75, 100, 150, 200, 365)

_STREAK_THRESHOLDS = frozenset(m.threshold for m in STREAK_MILESTONES)


def habit_milestone_id(habit_id: str, threshold: int) -> str:
    return f"habit-{habit_id}-{threshold}"


def habit_milestone(habit_id: str, label: str, threshold: int, emoji: str | None = None) -> Milestone:
    """Per-habit milestone definition for one item and threshold."""
    return Milestone(
        id=habit_milestone_id(habit_id, threshold),
        type=MilestoneType.HABIT,
        threshold=threshold,
        title=f"{label}: {threshold} days",
        message=f"{threshold} days in a row of {label}.",
        emoji=emoji or "✅",
        habit_id=habit_id,
    )


def personal_best_milestone(streak: int, previous_best: int) -> Milestone:
    return Milestone(
        id=f"pb-{streak}",
        type=MilestoneType.PERSONAL_BEST,
        threshold=streak,
        title="New Personal Best!",
        message=f"{streak}-day streak. You just beat your previous record of {previous_best}.",
        emoji="🏆",
    )


@dataclass(frozen=True)
class HabitProgress:
    id: str
    label: str
    streak: int
    emoji: str | None = None


@dataclass
class MilestoneStats:
    current_streak: int = 0
    best_streak: int = 0
    total_green_days: int = 0
    previous_best_streak: int = 0
    habits: list[HabitProgress] = field(default_factory=list)


@dataclass
class MilestoneEvaluation:
    achieved: frozenset[str]
    events: list[Milestone]


def evaluate_milestones(stats: MilestoneStats, achieved: Iterable[str]) -> MilestoneEvaluation:
    """Find newly crossed thresholds and add their ids to the achieved set.

    Every newly earned milestone is returned as an event, most important
    first: streak (highest threshold first), personal best, green total,
    then per-habit. Ids already in achieved never produce an event, so
    re-running with the same set is a no-op.
    """
    earned = set(achieved)

    streak_events = [
        m for m in STREAK_MILESTONES
        if stats.current_streak >= m.threshold and m.id not in earned
    ]
    green_events = [
        m for m in GREEN_TOTAL_MILESTONES
        if stats.total_green_days >= m.threshold and m.id not in earned
    ]

    pb_events: list[Milestone] = []
    if stats.previous_best_streak > 0 and stats.current_streak > stats.previous_best_streak:
        pb = personal_best_milestone(stats.current_streak, stats.previous_best_streak)
        if pb.id not in earned:
            earned.add(pb.id)
            if stats.current_streak not in _STREAK_THRESHOLDS:
                pb_events.append(pb)

    habit_events: list[Milestone] = []
    for habit in stats.habits:
        crossed = [
            habit_milestone(habit.id, habit.label, t, habit.emoji)
            for t in HABIT_THRESHOLDS
            if habit.streak >= t and habit_milestone_id(habit.id, t) not in earned
        ]
        habit_events.extend(reversed(crossed))

    events = [
        *reversed(streak_events),
        *pb_events,
        *reversed(green_events),
        *habit_events,
    ]
    earned.update(m.id for m in events)
    return MilestoneEvaluation(achieved=frozenset(earned), events=events)


class MilestoneQueue:
    """Pending celebrations, shown one at a time.

    The caller displays peek() or pop_next(), then fetches the next one
    after dismissal. Events already queued are not queued twice.
    """

    def __init__(self, events: Iterable[Milestone] = ()) -> None:
        self._events: deque[Milestone] = deque()
        self.push_all(events)

    def push_all(self, events: Iterable[Milestone]) -> int:
        queued = {m.id for m in self._events}
        added = 0
        for event in events:
            if event.id in queued:
                continue
            self._events.append(event)
            queued.add(event.id)
            added += 1
        return added

    def peek(self) -> Milestone | None:
        return self._events[0] if self._events else None

    def pop_next(self) -> Milestone | None:
        return self._events.popleft() if self._events else None

    def __len__(self) -> int:
        return len(self._events)

    def to_list(self) -> list[dict]:
        return [m.to_dict() for m in self._events]

    @classmethod
    def from_list(cls, raw: Iterable[Mapping]) -> MilestoneQueue:
        return cls(Milestone.from_dict(d) for d in raw)


@dataclass
class MilestoneStatus:
    definition: Milestone
    progress: float  # 0.0 to 1.0
    unlocked: bool


def ladder_status(achieved: Iterable[str], stats: MilestoneStats | None = None) -> list[MilestoneStatus]:
    """Every global milestone with unlock state and progress toward it.

    Unlock state comes only from the achieved set, so a milestone stays
    unlocked after its streak resets.
    """
    earned = set(achieved)
    stats = stats or MilestoneStats()
    results: list[MilestoneStatus] = []
    for ladder, value in (
        (STREAK_MILESTONES, stats.current_streak),
        (GREEN_TOTAL_MILESTONES, stats.total_green_days),
    ):
        for m in ladder:
            unlocked = m.id in earned
            progress = 1.0 if unlocked else min(value / m.threshold, 1.0)
            results.append(MilestoneStatus(definition=m, progress=progress, unlocked=unlocked))
    return results


def earned_milestones(achieved: Iterable[str]) -> list[Milestone]:
    """Earned global milestones for the trophy case, ladder order."""
    earned = set(achieved)
    return [m for m in (*STREAK_MILESTONES, *GREEN_TOTAL_MILESTONES) if m.id in earned]


def next_milestones(current_streak: int, total_green_days: int) -> tuple[Milestone | None, Milestone | None]:
    """Return the next (streak, green total) milestone still ahead."""
    streak_next = next((m for m in STREAK_MILESTONES if m.threshold > current_streak), None)
    green_next = next((m for m in GREEN_TOTAL_MILESTONES if m.threshold > total_green_days), None)
    return streak_next, green_next
