"""Interval generation and productivity scoring.

Pure functions over data already loaded by the store layer. Nothing here
touches the database, so the same functions serve the dashboard, the
history calendar, analytics and the exporters.
"""

import enum
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta


@dataclass(frozen=True)
class IntervalBounds:
    start_time: datetime
    end_time: datetime


@dataclass
class CategoryBreakdown:
    category_id: str
    label: str
    color: str
    value: int
    interval_count: int = 0
    total_minutes: int = 0


@dataclass
class DailyScore:
    date: date
    productivity_percentage: float
    logged_intervals: int
    total_intervals: int
    category_breakdown: list[CategoryBreakdown] = field(default_factory=list)

    @property
    def coverage(self) -> int:
        return logging_coverage(self.logged_intervals, self.total_intervals)


class IntervalState(str, enum.Enum):
    EMPTY = "empty"
    LOGGED = "logged"  # text without a category, picked up by the review flow
    CATEGORIZED = "categorized"


def parse_time_of_day(value: str) -> time:
    """Parse a 24-hour "HH:MM" string"""
    hour, minute = value.split(":")
    return time(int(hour), int(minute))


def _day_of(day) -> date:
    return day.date() if isinstance(day, datetime) else day


def generate_intervals(day, start_time: str, end_time: str, interval_minutes: int) -> list[IntervalBounds]:
    """Partition [start_time, end_time) of a day into back-to-back intervals.

    A trailing period shorter than one interval is dropped rather than
    emitted truncated, so coverage ends at the last whole interval.
    """
    day = _day_of(day)
    cursor = datetime.combine(day, parse_time_of_day(start_time))
    day_end = datetime.combine(day, parse_time_of_day(end_time))
    step = timedelta(minutes=interval_minutes)

    intervals = []
    while cursor < day_end:
        interval_end = cursor + step
        if interval_end > day_end:
            break
        intervals.append(IntervalBounds(cursor, interval_end))
        cursor = interval_end
    return intervals


def interval_state(interval) -> IntervalState:
    if not interval.activity_text:
        return IntervalState.EMPTY
    if interval.category_id is None or interval.category is None:
        return IntervalState.LOGGED
    return IntervalState.CATEGORIZED


def _clamp(value) -> int:
    return max(0, min(100, value))


def calculate_daily_score(intervals, interval_minutes: int, day=None) -> DailyScore:
    """Reduce a collection of intervals into a score and category breakdown.

    Only categorized intervals (activity text and a resolved category) count.
    With none, the percentage is 0.
    """
    intervals = list(intervals)
    categorized = [i for i in intervals if interval_state(i) is IntervalState.CATEGORIZED]

    by_category: dict[str, CategoryBreakdown] = {}
    total_value = 0
    for interval in categorized:
        category = interval.category
        value = _clamp(category.value)
        total_value += value

        entry = by_category.get(interval.category_id)
        if entry is None:
            entry = by_category[interval.category_id] = CategoryBreakdown(
                category_id=interval.category_id,
                label=category.label,
                color=category.color,
                value=value,
            )
        entry.interval_count += 1
        entry.total_minutes += interval_minutes

    max_possible = len(categorized) * 100
    percentage = (total_value / max_possible) * 100 if max_possible else 0.0

    return DailyScore(
        date=_day_of(day) if day is not None else date.today(),
        productivity_percentage=round(percentage, 1),
        logged_intervals=len(categorized),
        total_intervals=len(intervals),
        category_breakdown=list(by_category.values()),
    )


def logging_coverage(logged_count: int, total_count: int) -> int:
    """Share of intervals logged, as a whole percentage"""
    if total_count == 0:
        return 0
    return round(logged_count / total_count * 100)


def is_current_interval(start: datetime, end: datetime, now: datetime | None = None) -> bool:
    now = now or datetime.now()
    return start <= now < end


def format_time(value: datetime) -> str:
    return value.strftime("%H:%M")


def format_time_range(start: datetime, end: datetime) -> str:
    return f"{format_time(start)} - {format_time(end)}"


def format_minutes(total_minutes: int) -> str:
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours}h {minutes}m"
