"""Tests for period rollups."""

from routine_streaks.classifier import DayStatus
from routine_streaks.models import ActivityLog, DailyCheck, RangeData, RoutineItem
from routine_streaks.periods import (
    activity_totals,
    get_period_dates,
    get_period_starts,
    habit_stats,
    multi_activity_totals,
    round_half_up,
    status_rollup,
)

TODAY = "2024-06-12"  # Wednesday


class TestRoundHalfUp:
    def test_half_rounds_up(self):
        assert round_half_up(62.5) == 63
        assert round_half_up(2.5) == 3

    def test_below_half_rounds_down(self):
        assert round_half_up(83.33) == 83


class TestPeriodStarts:
    def test_starts(self):
        assert get_period_starts(TODAY) == {
            "week": "2024-06-10",
            "month": "2024-06-01",
            "year": "2024-01-01",
            "all-time": "0000-01-01",
        }

    def test_period_dates_end_today(self):
        assert get_period_dates("month", TODAY) == ("2024-06-01", TODAY)

    def test_unknown_period_is_all_time(self):
        assert get_period_dates("decade", TODAY)[0] == "0000-01-01"


class TestActivityTotals:
    LOGS = [
        ActivityLog("2023-12-31", "rowing", 1000, "meters"),
        ActivityLog("2024-05-20", "rowing", 2000, "meters"),
        ActivityLog("2024-06-03", "rowing", 3000, "meters"),
        ActivityLog("2024-06-11", "rowing", 500, "meters"),
        ActivityLog("2024-06-11", "rowing", 10, "minutes"),
        ActivityLog("2024-06-11", "walking", 8000, "steps"),
        ActivityLog("2024-06-13", "rowing", 9999, "meters"),
    ]

    def test_period_sums(self):
        totals = activity_totals(self.LOGS, "rowing", "meters", TODAY)
        assert totals.wtd == 500
        assert totals.mtd == 3500
        assert totals.ytd == 5500
        assert totals.all_time == 6500

    def test_unit_must_match(self):
        assert activity_totals(self.LOGS, "rowing", "minutes", TODAY).all_time == 10

    def test_no_logs_is_zero(self):
        totals = activity_totals([], "sauna", "sessions", TODAY)
        assert (totals.wtd, totals.mtd, totals.ytd, totals.all_time) == (0, 0, 0, 0)

    def test_multi_pairs(self):
        result = multi_activity_totals(self.LOGS, [("rowing", "meters"), ("walking", "steps")], TODAY)
        assert set(result) == {"rowing:meters", "walking:steps"}
        assert result["walking:steps"].wtd == 8000


class TestHabitStats:
    def _data(self) -> RangeData:
        items = [
            RoutineItem("read", "Read", is_core=True),
            RoutineItem("stretch", "Stretch"),
            RoutineItem("old", "Old", active=False),
        ]
        checks = [
            DailyCheck("2024-06-09", "read", True),
            DailyCheck("2024-06-10", "read", True),
            DailyCheck("2024-06-11", "read", True),
            DailyCheck("2024-06-12", "read", False),
            DailyCheck("2024-06-12", "stretch", True),
            DailyCheck("2024-06-12", "old", True),
        ]
        return RangeData(start="2024-05-01", end=TODAY, items=items, checks=checks)

    def test_counts_and_rate(self):
        stats = {h.id: h for h in habit_stats(self._data(), TODAY, 90)}
        read = stats["read"]
        assert read.wtd == 2
        assert read.mtd == 3
        assert read.all_time == 3
        assert read.total_tracked == 4
        assert read.completion_pct == 75
        assert read.current_streak == 3
        assert read.next_milestone_at == 7

    def test_inactive_items_skipped(self):
        assert "old" not in {h.id for h in habit_stats(self._data(), TODAY, 90)}

    def test_last30_flags(self):
        stretch = next(h for h in habit_stats(self._data(), TODAY, 90) if h.id == "stretch")
        assert len(stretch.last30) == 30
        assert stretch.last30[-1] is True
        assert sum(stretch.last30) == 1

    def test_ordering_pinned_first_then_streak(self):
        ordered = habit_stats(self._data(), TODAY, 90)
        assert [h.id for h in ordered] == ["read", "stretch"]
        pinned = habit_stats(self._data(), TODAY, 90, pinned={"stretch"})
        assert [h.id for h in pinned] == ["stretch", "read"]
        assert pinned[0].pinned is True


class TestStatusRollup:
    def test_counts(self):
        statuses = {
            "2024-06-01": DayStatus.GREEN,
            "2024-06-04": DayStatus.GREEN,
            "2024-06-05": DayStatus.RED,
            "2024-06-10": DayStatus.GREEN,
            "2024-06-11": DayStatus.YELLOW,
            "2024-06-12": DayStatus.GREEN,
        }
        rollup = status_rollup(statuses, TODAY)
        assert rollup.green_this_week == 2
        assert rollup.green_last_week == 1
        assert rollup.green_this_month == 4
        assert rollup.core_hit_rate_this_week == 0

    def test_core_hit_rate(self):
        data = RangeData(
            start="2024-06-10",
            end=TODAY,
            items=[RoutineItem("a", "A", is_core=True), RoutineItem("b", "B")],
            checks=[
                DailyCheck("2024-06-10", "a", True),
                DailyCheck("2024-06-11", "a", True),
                DailyCheck("2024-06-12", "a", False),
                DailyCheck("2024-06-12", "b", False),
            ],
        )
        assert status_rollup({}, TODAY, data).core_hit_rate_this_week == 67
