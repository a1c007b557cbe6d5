import calendar
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date

from scoring import CategoryBreakdown, DailyScore, calculate_daily_score

STREAK_COVERAGE_THRESHOLD = 50


@dataclass
class DayStat:
    date: date
    score: float
    logged: int
    total: int
    coverage: int
    logged_minutes: int
    breakdown: list[CategoryBreakdown]


@dataclass
class AnalyticsData:
    start: date | None
    end: date | None
    days: list[DayStat] = field(default_factory=list)
    average_score: float = 0.0
    trend: float = 0.0
    best_day: DayStat | None = None
    worst_day: DayStat | None = None
    total_logged_minutes: int = 0
    average_coverage: int = 0
    streak_days: int = 0
    category_totals: list[CategoryBreakdown] = field(default_factory=list)

    @property
    def total_hours(self):
        return round(self.total_logged_minutes / 60)


def score_log(daily_log) -> DailyScore:
    return calculate_daily_score(daily_log.intervals, daily_log.interval_minutes, day=daily_log.date)


def day_stat(daily_log) -> DayStat:
    score = score_log(daily_log)
    return DayStat(
        date=daily_log.date,
        score=score.productivity_percentage,
        logged=score.logged_intervals,
        total=score.total_intervals,
        coverage=score.coverage,
        logged_minutes=score.logged_intervals * daily_log.interval_minutes,
        breakdown=score.category_breakdown,
    )


def _mean(values):
    return sum(values) / len(values) if values else 0.0


def summarize(logs, start=None, end=None) -> AnalyticsData:
    """Aggregate per-day scores over a set of logs"""
    days = sorted((day_stat(log) for log in logs), key=lambda d: d.date)
    data = AnalyticsData(start=start, end=end, days=days)
    if not days:
        return data

    scores = [d.score for d in days]
    midpoint = len(scores) // 2
    data.average_score = round(_mean(scores), 1)
    data.trend = round(_mean(scores[midpoint:]) - _mean(scores[:midpoint]), 1)

    # First occurrence wins ties, oldest day first
    data.best_day = max(days, key=lambda d: d.score)
    data.worst_day = min(days, key=lambda d: d.score)

    data.total_logged_minutes = sum(d.logged_minutes for d in days)
    data.average_coverage = round(_mean([d.coverage for d in days]))

    for d in reversed(days):
        if d.coverage <= STREAK_COVERAGE_THRESHOLD:
            break
        data.streak_days += 1

    data.category_totals = category_totals(days)
    return data


def category_totals(days) -> list[CategoryBreakdown]:
    totals: dict[str, CategoryBreakdown] = OrderedDict()
    for d in days:
        for entry in d.breakdown:
            total = totals.get(entry.category_id)
            if total is None:
                total = totals[entry.category_id] = CategoryBreakdown(
                    category_id=entry.category_id,
                    label=entry.label,
                    color=entry.color,
                    value=entry.value,
                )
            total.interval_count += entry.interval_count
            total.total_minutes += entry.total_minutes
    return sorted(totals.values(), key=lambda t: t.total_minutes, reverse=True)


def monthly_calendar(logs, year, month):
    """Map each date of a month to its DayStat, or None when nothing was logged"""
    by_date = {log.date: log for log in logs}
    _, days_in_month = calendar.monthrange(year, month)
    cells = OrderedDict()
    for day_number in range(1, days_in_month + 1):
        day = date(year, month, day_number)
        log = by_date.get(day)
        cells[day] = day_stat(log) if log is not None else None
    return cells


def month_bounds(year, month):
    _, days_in_month = calendar.monthrange(year, month)
    return date(year, month, 1), date(year, month, days_in_month)
