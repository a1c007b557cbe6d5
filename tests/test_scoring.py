from datetime import date, datetime, timedelta
from types import SimpleNamespace

import pytest

from scoring import (
    IntervalState,
    calculate_daily_score,
    format_minutes,
    format_time_range,
    generate_intervals,
    interval_state,
    is_current_interval,
    logging_coverage,
)

DAY = date(2024, 1, 1)


def category(category_id, value, label=None, color="#000000"):
    return SimpleNamespace(id=category_id, label=label or category_id.title(), color=color, value=value)


def interval(text=None, cat=None):
    return SimpleNamespace(activity_text=text, category_id=cat.id if cat else None, category=cat)


class TestGenerateIntervals:
    def test_one_hour_in_quarters(self):
        result = generate_intervals(DAY, "09:00", "10:00", 15)

        assert [format_time_range(i.start_time, i.end_time) for i in result] == [
            "09:00 - 09:15",
            "09:15 - 09:30",
            "09:30 - 09:45",
            "09:45 - 10:00",
        ]

    def test_trailing_remainder_is_dropped(self):
        result = generate_intervals(DAY, "09:00", "09:50", 15)

        assert len(result) == 3
        assert result[-1].end_time == datetime(2024, 1, 1, 9, 45)

    @pytest.mark.parametrize("start,end", [("10:00", "10:00"), ("17:00", "09:00")])
    def test_empty_window(self, start, end):
        assert generate_intervals(DAY, start, end, 15) == []

    @pytest.mark.parametrize("minutes", [5, 10, 20, 30, 45, 60])
    def test_contiguous_fixed_length(self, minutes):
        result = generate_intervals(DAY, "06:00", "23:00", minutes)

        assert len(result) == (17 * 60) // minutes
        assert result[0].start_time == datetime(2024, 1, 1, 6, 0)
        for current, following in zip(result, result[1:]):
            assert current.end_time == following.start_time
        assert all(i.end_time - i.start_time == timedelta(minutes=minutes) for i in result)

    def test_time_of_day_on_date_is_ignored(self):
        from_datetime = generate_intervals(datetime(2024, 1, 1, 13, 37), "09:00", "10:00", 30)

        assert from_datetime == generate_intervals(DAY, "09:00", "10:00", 30)

    def test_deterministic(self):
        assert generate_intervals(DAY, "08:00", "12:00", 20) == generate_intervals(DAY, "08:00", "12:00", 20)


class TestCalculateDailyScore:
    def test_zero_logged_scores_zero(self):
        score = calculate_daily_score([interval(), interval()], 15, day=DAY)

        assert score.productivity_percentage == 0
        assert score.logged_intervals == 0
        assert score.total_intervals == 2
        assert score.category_breakdown == []

    def test_empty_collection(self):
        score = calculate_daily_score([], 15, day=DAY)

        assert score.total_intervals == 0
        assert score.productivity_percentage == 0
        assert score.coverage == 0

    def test_single_category_scores_its_value(self):
        productive = category("productive", 75)
        score = calculate_daily_score([interval("work", productive) for _ in range(4)], 15, day=DAY)

        assert score.productivity_percentage == 75
        assert len(score.category_breakdown) == 1
        entry = score.category_breakdown[0]
        assert entry.interval_count == 4
        assert entry.total_minutes == 60
        assert entry.label == "Productive"

    def test_text_without_category_is_not_counted(self):
        top = category("top", 100)
        intervals = [interval("deep work", top), interval("something"), interval()]

        score = calculate_daily_score(intervals, 30, day=DAY)

        assert score.logged_intervals == 1
        assert score.total_intervals == 3
        assert score.productivity_percentage == 100
        assert [b.category_id for b in score.category_breakdown] == ["top"]

    def test_category_without_text_is_not_counted(self):
        top = category("top", 100)

        score = calculate_daily_score([interval("", top), interval(None, top)], 15, day=DAY)

        assert score.logged_intervals == 0
        assert score.category_breakdown == []

    def test_weighted_average_rounded_to_one_decimal(self):
        top, low, none = category("top", 100), category("low", 25), category("none", 0)
        intervals = [interval("a", top), interval("b", low), interval("c", none)]

        score = calculate_daily_score(intervals, 15, day=DAY)

        # 125 / 300
        assert score.productivity_percentage == 41.7

    def test_breakdown_in_first_seen_order(self):
        top, low = category("top", 100), category("low", 25)
        intervals = [interval("a", low), interval("b", top), interval("c", low)]

        score = calculate_daily_score(intervals, 10, day=DAY)

        assert [b.category_id for b in score.category_breakdown] == ["low", "top"]
        assert score.category_breakdown[0].total_minutes == 20

    def test_order_independent_totals(self):
        top, low = category("top", 100), category("low", 25)
        intervals = [interval("a", low), interval("b", top), interval("c", low), interval("d")]

        forward = calculate_daily_score(intervals, 15, day=DAY)
        backward = calculate_daily_score(list(reversed(intervals)), 15, day=DAY)

        assert forward.productivity_percentage == backward.productivity_percentage
        assert {b.category_id: b.total_minutes for b in forward.category_breakdown} == {
            b.category_id: b.total_minutes for b in backward.category_breakdown
        }

    def test_out_of_range_values_are_clamped(self):
        corrupt_high, corrupt_low = category("high", 150), category("low", -20)

        score = calculate_daily_score([interval("a", corrupt_high), interval("b", corrupt_low)], 15, day=DAY)

        assert score.productivity_percentage == 50

    def test_generated_day_scores_zero(self):
        generated = generate_intervals(DAY, "09:00", "17:00", 15)
        intervals = [interval() for _ in generated]

        score = calculate_daily_score(intervals, 15, day=DAY)

        assert score.total_intervals == len(generated) == 32
        assert score.productivity_percentage == 0

    def test_repeated_calls_agree(self):
        intervals = [interval("a", category("top", 100)), interval("b", category("mid", 50))]

        assert calculate_daily_score(intervals, 15, day=DAY) == calculate_daily_score(intervals, 15, day=DAY)


def test_interval_states():
    top = category("top", 100)

    assert interval_state(interval()) is IntervalState.EMPTY
    assert interval_state(interval("reading")) is IntervalState.LOGGED
    assert interval_state(interval("reading", top)) is IntervalState.CATEGORIZED


def test_is_current_interval_half_open():
    start = datetime(2024, 1, 1, 9, 0)
    end = datetime(2024, 1, 1, 9, 15)

    assert is_current_interval(start, end, now=start)
    assert is_current_interval(start, end, now=datetime(2024, 1, 1, 9, 14, 59))
    assert not is_current_interval(start, end, now=end)
    assert not is_current_interval(start, end, now=datetime(2024, 1, 1, 8, 59))


def test_logging_coverage():
    assert logging_coverage(0, 0) == 0
    assert logging_coverage(1, 3) == 33
    assert logging_coverage(4, 4) == 100


def test_format_helpers():
    assert format_time_range(datetime(2024, 1, 1, 7, 5), datetime(2024, 1, 1, 19, 30)) == "07:05 - 19:30"
    assert format_minutes(135) == "2h 15m"
