"""Record types passed into the engine.

These are plain dataclasses built at the I/O boundary (see db.py). The
parse helpers turn loosely-typed stored values into safe defaults so the
engine never has to validate anything itself.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum


class DayMode(str, Enum):
    NORMAL = "normal"
    TRAVEL = "travel"
    SICK = "sick"


OVERRIDE_MODES: frozenset[DayMode] = frozenset({DayMode.TRAVEL, DayMode.SICK})


def parse_day_mode(raw: object) -> DayMode:
    """Return the DayMode for a stored value. Unknown values mean normal."""
    if isinstance(raw, DayMode):
        return raw
    if not isinstance(raw, str):
        return DayMode.NORMAL
    try:
        return DayMode(raw.strip().lower())
    except ValueError:
        return DayMode.NORMAL


def normalize_days_of_week(raw: object) -> tuple[int, ...] | None:
    """Normalize a stored weekday allow-list.

    Accepts a list/tuple or a JSON string. Anything unusable, and an empty
    list, becomes None (every day). Out-of-range entries are dropped.
    """
    if raw is None:
        return None
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return None
    if not isinstance(raw, (list, tuple, set, frozenset)):
        return None
    days: list[int] = []
    for value in raw:
        try:
            day = int(value)
        except (TypeError, ValueError):
            continue
        if 1 <= day <= 7 and day not in days:
            days.append(day)
    if not days:
        return None
    return tuple(sorted(days))


@dataclass(frozen=True)
class RoutineItem:
    id: str
    label: str
    emoji: str | None = None
    section: str = "anytime"
    is_core: bool = False  # a.k.a. non-negotiable
    days_of_week: tuple[int, ...] | None = None  # None = every day
    active: bool = True
    sort_order: int = 0


@dataclass(frozen=True)
class DailyCheck:
    date: str
    routine_item_id: str
    done: bool


@dataclass(frozen=True)
class DailyLog:
    date: str
    day_mode: DayMode = DayMode.NORMAL
    # Auxiliary flags, stored and returned as-is. Classification ignores them.
    did_rowing: bool = False
    did_weights: bool = False


# ── Activity notes: one variant per activity kind ────────────────────────────


@dataclass(frozen=True)
class TextNotes:
    text: str
    kind: str = "text"


@dataclass(frozen=True)
class RaceNotes:
    division: str
    splits: dict[str, float]
    total_seconds: float
    kind: str = "race_log"


@dataclass(frozen=True)
class TrainingNotes:
    workout: str
    workout_name: str
    rx: bool = False
    time_seconds: float | None = None
    kind: str = "race_train"


@dataclass(frozen=True)
class PersonalRecordNotes:
    lift: str
    lift_name: str
    weight: float
    unit: str
    scheme: str
    kind: str = "pr"


@dataclass(frozen=True)
class WodNotes:
    wod: str
    wod_name: str
    wod_type: str
    rx: bool = False
    time_seconds: float | None = None
    rounds: int | None = None
    extra_reps: int | None = None
    kind: str = "wod"


ActivityNotes = TextNotes | RaceNotes | TrainingNotes | PersonalRecordNotes | WodNotes


def _opt_float(value: object) -> float | None:
    return float(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else None


def _opt_int(value: object) -> int | None:
    return int(value) if isinstance(value, int) and not isinstance(value, bool) else None


def parse_activity_notes(activity_key: str, raw: str | None) -> ActivityNotes | None:
    """Validate a stored notes payload into its tagged variant.

    Payloads that are not JSON, or that lack the fields of their kind, are
    kept as TextNotes holding the raw string. Never raises.
    """
    if raw is None or not str(raw).strip():
        return None
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return TextNotes(text=str(raw))
    if not isinstance(data, dict):
        return TextNotes(text=str(raw))

    try:
        if activity_key == "race_log":
            splits = {str(k): float(v) for k, v in (data.get("splits") or {}).items()}
            return RaceNotes(
                division=str(data["division"]),
                splits=splits,
                total_seconds=float(data["totalSeconds"]),
            )
        if activity_key == "race_train":
            return TrainingNotes(
                workout=str(data["workout"]),
                workout_name=str(data.get("workoutName", data["workout"])),
                rx=bool(data.get("rx", False)),
                time_seconds=_opt_float(data.get("timeSeconds")),
            )
        if activity_key == "pr":
            return PersonalRecordNotes(
                lift=str(data["lift"]),
                lift_name=str(data.get("liftName", data["lift"])),
                weight=float(data["weight"]),
                unit=str(data.get("unit", "pounds")),
                scheme=str(data.get("scheme", "")),
            )
        if activity_key == "wod":
            return WodNotes(
                wod=str(data["wod"]),
                wod_name=str(data.get("wodName", data["wod"])),
                wod_type=str(data.get("type", "")),
                rx=bool(data.get("rx", False)),
                time_seconds=_opt_float(data.get("timeSeconds")),
                rounds=_opt_int(data.get("rounds")),
                extra_reps=_opt_int(data.get("extraReps")),
            )
    except (KeyError, TypeError, ValueError, AttributeError):
        return TextNotes(text=str(raw))

    if data.get("mode") == "free" and isinstance(data.get("text"), str):
        return TextNotes(text=data["text"])
    return TextNotes(text=str(raw))


@dataclass(frozen=True)
class ActivityLog:
    date: str
    activity_key: str
    value: float
    unit: str
    notes: ActivityNotes | None = None


@dataclass(frozen=True)
class Reminder:
    id: str
    user_id: str
    routine_item_id: str
    time: str  # "HH:MM", 24h
    days_of_week: tuple[int, ...] = (1, 2, 3, 4, 5, 6, 7)
    enabled: bool = True


@dataclass(frozen=True)
class PushSubscription:
    user_id: str
    endpoint: str
    p256dh: str
    auth: str


@dataclass
class RangeData:
    """Everything one batched range read returns for a single user."""

    start: str
    end: str
    items: list[RoutineItem] = field(default_factory=list)
    checks: list[DailyCheck] = field(default_factory=list)
    logs: list[DailyLog] = field(default_factory=list)
    activities: list[ActivityLog] = field(default_factory=list)

    def done_ids_by_date(self) -> dict[str, set[str]]:
        """date -> ids of items checked done on that date."""
        result: dict[str, set[str]] = {}
        for check in self.checks:
            if check.done:
                result.setdefault(check.date, set()).add(check.routine_item_id)
        return result

    def log_by_date(self) -> dict[str, DailyLog]:
        return {log.date: log for log in self.logs}
