"""Tests for the schedule filter."""

from routine_streaks.models import RoutineItem
from routine_streaks.schedule import effective_core_set, in_scope, scheduled_items

MONDAY = "2024-06-10"
SATURDAY = "2024-06-15"


class TestInScope:
    def test_every_day_item(self):
        assert in_scope(RoutineItem("a", "A"), MONDAY)

    def test_weekend_only_item(self):
        item = RoutineItem("a", "A", days_of_week=(6, 7))
        assert not in_scope(item, MONDAY)
        assert in_scope(item, SATURDAY)

    def test_inactive_item_never_in_scope(self):
        assert not in_scope(RoutineItem("a", "A", active=False), MONDAY)

    def test_empty_allow_list_means_every_day(self):
        assert in_scope(RoutineItem("a", "A", days_of_week=()), MONDAY)


class TestScheduledItems:
    def test_sorted_by_order_then_label(self):
        items = [
            RoutineItem("c", "Stretch", sort_order=2),
            RoutineItem("b", "Read", sort_order=1),
            RoutineItem("a", "Journal", sort_order=1),
        ]
        assert [i.id for i in scheduled_items(items, MONDAY)] == ["a", "b", "c"]


class TestEffectiveCoreSet:
    def test_only_scheduled_core_items(self):
        items = [
            RoutineItem("core", "Core", is_core=True),
            RoutineItem("bonus", "Bonus"),
            RoutineItem("weekend", "Weekend", is_core=True, days_of_week=(6, 7)),
            RoutineItem("gone", "Gone", is_core=True, active=False),
        ]
        assert [i.id for i in effective_core_set(items, MONDAY)] == ["core"]
        assert {i.id for i in effective_core_set(items, SATURDAY)} == {"core", "weekend"}
