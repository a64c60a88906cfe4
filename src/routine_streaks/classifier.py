"""Day classification: one date's CORE results -> green / yellow / red / empty."""

from __future__ import annotations

from collections.abc import Collection, Iterable
from enum import Enum

from routine_streaks.dates import date_range, iso_weekday
from routine_streaks.models import OVERRIDE_MODES, DayMode, RangeData, RoutineItem, parse_day_mode
from routine_streaks.schedule import effective_core_set


class DayStatus(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"
    EMPTY = "empty"


def is_rest_day(date_key: str, rest_days: Collection[int]) -> bool:
    """True if date_key falls on a configured rest weekday (ISO 1..7)."""
    return bool(rest_days) and iso_weekday(date_key) in rest_days


def classify_day(
    date_key: str,
    core_items: Iterable[RoutineItem],
    done_ids: Collection[str],
    day_mode: DayMode | str | None = None,
    rest_days: Collection[int] = (),
) -> DayStatus:
    """Classify a single date.

    core_items must already be the effective CORE set for date_key.
    Rules in priority order: travel/sick mode, rest day, no CORE items,
    then the number of missed CORE items (0 green, 1 yellow, 2+ red).
    """
    if parse_day_mode(day_mode) in OVERRIDE_MODES:
        return DayStatus.GREEN
    if is_rest_day(date_key, rest_days):
        return DayStatus.GREEN

    core_ids = {item.id for item in core_items}
    if not core_ids:
        return DayStatus.EMPTY

    missed = len(core_ids - set(done_ids))
    if missed == 0:
        return DayStatus.GREEN
    if missed == 1:
        return DayStatus.YELLOW
    return DayStatus.RED


def build_status_map(
    data: RangeData,
    rest_days: Collection[int] = (),
    today: str | None = None,
    account_start: str | None = None,
    start: str | None = None,
    end: str | None = None,
) -> dict[str, DayStatus]:
    """Classify every date in [start, end] (default: data's range) from one batched read.

    Dates after today, and before the account existed, are empty so they
    neither show red nor count toward streaks.
    """
    done_by_date = data.done_ids_by_date()
    log_by_date = data.log_by_date()

    statuses: dict[str, DayStatus] = {}
    for dk in date_range(start or data.start, end or data.end):
        if (today and dk > today) or (account_start and dk < account_start):
            statuses[dk] = DayStatus.EMPTY
            continue
        log = log_by_date.get(dk)
        statuses[dk] = classify_day(
            dk,
            effective_core_set(data.items, dk),
            done_by_date.get(dk, set()),
            day_mode=log.day_mode if log else None,
            rest_days=rest_days,
        )
    return statuses
