"""Tests for the streak calculator."""

from routine_streaks.classifier import DayStatus
from routine_streaks.dates import shift_days
from routine_streaks.models import DailyCheck, RangeData, RoutineItem
from routine_streaks.streaks import (
    calculate_category_streaks,
    calculate_habit_streak,
    calculate_streaks,
)

G, Y, R, E = DayStatus.GREEN, DayStatus.YELLOW, DayStatus.RED, DayStatus.EMPTY
TODAY = "2024-06-16"


def _history(*statuses: DayStatus, today: str = TODAY) -> dict[str, DayStatus]:
    """Statuses oldest first, the last one being today."""
    n = len(statuses)
    return {shift_days(today, i - n + 1): s for i, s in enumerate(statuses)}


class TestCurrentStreak:
    def test_greens_through_today(self):
        info = calculate_streaks(_history(G, G, G, G, G), TODAY)
        assert info.current_streak == 5
        assert info.best_streak == 5
        assert info.is_green_today is True
        assert info.streak_at_risk is False

    def test_unresolved_today_does_not_break(self):
        info = calculate_streaks(_history(G, G, G, E), TODAY)
        assert info.current_streak == 3
        assert info.is_green_today is False

    def test_yellow_breaks(self):
        info = calculate_streaks(_history(G, G, Y, G, G), TODAY)
        assert info.current_streak == 2
        assert info.best_streak == 2

    def test_red_breaks(self):
        assert calculate_streaks(_history(G, R, G), TODAY).current_streak == 1

    def test_empty_before_tracking_is_skipped(self):
        assert calculate_streaks(_history(E, E, G, G), TODAY).current_streak == 2

    def test_empty_after_tracking_began_breaks(self):
        assert calculate_streaks(_history(G, E, G, G), TODAY).current_streak == 2

    def test_future_dates_ignored(self):
        history = _history(G, G, G)
        history[shift_days(TODAY, 1)] = R
        assert calculate_streaks(history, TODAY).current_streak == 3

    def test_empty_history(self):
        info = calculate_streaks({}, TODAY)
        assert info.current_streak == 0
        assert info.best_streak == 0
        assert info.days_since_last_green is None
        assert info.last_active_date is None


class TestActiveStreak:
    def test_at_risk_when_today_unresolved(self):
        info = calculate_streaks(_history(G, G, G, E), TODAY)
        assert info.active_streak == 3
        assert info.streak_at_risk is True

    def test_steps_over_empty_yesterday(self):
        info = calculate_streaks(_history(G, G, E, E), TODAY)
        assert info.current_streak == 0
        assert info.active_streak == 2
        assert info.streak_at_risk is True

    def test_nothing_at_risk_without_a_run(self):
        info = calculate_streaks(_history(R, E), TODAY)
        assert info.active_streak == 0
        assert info.streak_at_risk is False


class TestBestStreak:
    def test_best_from_earlier_run(self):
        info = calculate_streaks(_history(G, G, G, G, R, G), TODAY)
        assert info.best_streak == 4
        assert info.current_streak == 1
        assert info.previous_best_streak == 4

    def test_previous_best_excludes_current_run(self):
        info = calculate_streaks(_history(G, G, G, Y, G, G, G, G), TODAY)
        assert info.best_streak == 4
        assert info.previous_best_streak == 3

    def test_best_never_below_current(self):
        histories = [
            _history(G, E, G, G),
            _history(E, G, G, G),
            _history(G, Y, G, E, G, G),
            _history(R, R, G, G, G, E),
            _history(G, G, G, G, G, G, G),
        ]
        for history in histories:
            info = calculate_streaks(history, TODAY)
            assert info.best_streak >= info.current_streak


class TestTotals:
    def test_total_green_and_days_since(self):
        info = calculate_streaks(_history(G, G, R, Y, E), TODAY)
        assert info.total_green_days == 2
        assert info.last_active_date == shift_days(TODAY, -3)
        assert info.days_since_last_green == 3

    def test_days_since_is_zero_when_green_today(self):
        assert calculate_streaks(_history(R, G), TODAY).days_since_last_green == 0


class TestHabitStreak:
    def test_consecutive_done_days(self):
        days = {shift_days(TODAY, -i) for i in range(3)}
        streak = calculate_habit_streak(days, days, TODAY, 30)
        assert streak.current_streak == 3
        assert streak.best_streak == 3

    def test_today_not_done_is_skipped(self):
        tracked = {shift_days(TODAY, -i) for i in range(3)}
        done = tracked - {TODAY}
        streak = calculate_habit_streak(tracked, done, TODAY, 30)
        assert streak.current_streak == 2
        assert streak.best_streak == 2

    def test_untracked_day_ends_the_run(self):
        days = {shift_days(TODAY, -5), shift_days(TODAY, -4), shift_days(TODAY, -1)}
        streak = calculate_habit_streak(days, days, TODAY, 30)
        assert streak.current_streak == 1
        assert streak.best_streak == 2

    def test_untracked_days_before_run_are_skipped(self):
        days = {shift_days(TODAY, -3), shift_days(TODAY, -2)}
        streak = calculate_habit_streak(days, days, TODAY, 30)
        assert streak.current_streak == 2

    def test_lookback_limits_walk(self):
        days = {shift_days(TODAY, -i) for i in range(10)}
        assert calculate_habit_streak(days, days, TODAY, 4).current_streak == 5


class TestCategoryStreaks:
    ITEMS = [
        RoutineItem("walk", "Morning Walk"),
        RoutineItem("med", "Meditate"),
        RoutineItem("bed", "Bedtime by 10"),
    ]

    def _data(self, checks: list[tuple[str, str, bool]]) -> RangeData:
        return RangeData(
            start="2024-06-01",
            end=TODAY,
            items=self.ITEMS,
            checks=[DailyCheck(date=d, routine_item_id=i, done=done) for d, i, done in checks],
        )

    def test_counts_back_from_today(self):
        data = self._data([
            ("2024-06-14", "walk", True),
            ("2024-06-15", "walk", True),
            ("2024-06-16", "walk", True),
            ("2024-06-16", "med", True),
        ])
        assert calculate_category_streaks(data, TODAY) == {"movement": 3, "mind": 1, "sleep": 0}

    def test_open_today_is_skipped(self):
        data = self._data([("2024-06-14", "bed", True), ("2024-06-15", "bed", True)])
        assert calculate_category_streaks(data, TODAY)["sleep"] == 2

    def test_not_done_breaks(self):
        data = self._data([
            ("2024-06-13", "med", True),
            ("2024-06-14", "med", False),
            ("2024-06-15", "med", True),
        ])
        assert calculate_category_streaks(data, TODAY)["mind"] == 1

    def test_custom_keywords(self):
        data = self._data([("2024-06-16", "walk", True)])
        assert calculate_category_streaks(data, TODAY, {"outdoors": ("walk",)}) == {"outdoors": 1}

    def test_stops_at_window_start(self):
        data = self._data([(dk, "walk", True) for dk in ("2024-05-31", "2024-06-01", "2024-06-02")])
        assert calculate_category_streaks(data, "2024-06-02")["movement"] == 2
