"""Which routine items apply on a given date."""

from __future__ import annotations

from collections.abc import Iterable

from routine_streaks.dates import iso_weekday
from routine_streaks.models import RoutineItem


def in_scope(item: RoutineItem, date_key: str) -> bool:
    """True if the item is active and scheduled on date_key's weekday."""
    if not item.active:
        return False
    if not item.days_of_week:
        return True
    return iso_weekday(date_key) in item.days_of_week


def scheduled_items(items: Iterable[RoutineItem], date_key: str) -> list[RoutineItem]:
    """All in-scope items for a date, in sort order."""
    return sorted(
        (i for i in items if in_scope(i, date_key)),
        key=lambda i: (i.sort_order, i.label),
    )


def effective_core_set(items: Iterable[RoutineItem], date_key: str) -> list[RoutineItem]:
    """CORE items that count toward date_key's classification."""
    return [i for i in scheduled_items(items, date_key) if i.is_core]
