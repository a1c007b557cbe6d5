import csv
import io
from datetime import date, datetime

import store
from export import CSV_HEADER, export_csv, export_markdown


def fill(db, day, entries):
    daily_log = store.get_or_create_daily_log(db, day, interval_minutes=30, start_time="09:00", end_time="10:30")
    for interval, (text, category_id) in zip(daily_log.intervals, entries):
        store.update_interval(db, interval.id, activity_text=text, category_id=category_id,
                              now=datetime(day.year, day.month, day.day, 12, 0))
    return daily_log


def test_csv_rows_per_interval(db):
    fill(db, date(2024, 1, 2), [('Wrote "plan", reviewed', "productive")])
    fill(db, date(2024, 1, 1), [("Email", None)])

    rows = list(csv.reader(io.StringIO(export_csv(db, date(2024, 1, 1), date(2024, 1, 2)))))

    assert rows[0] == CSV_HEADER
    assert len(rows) == 1 + 6
    # oldest day first
    assert rows[1] == ["2024-01-01", "09:00", "09:30", "Email", "", "", "2024-01-01 12:00:00"]
    assert rows[2] == ["2024-01-01", "09:30", "10:00", "", "", "", ""]
    assert rows[4] == [
        "2024-01-02", "09:00", "09:30", 'Wrote "plan", reviewed', "Productive", "75", "2024-01-02 12:00:00",
    ]


def test_csv_empty_range(db):
    assert export_csv(db, date(2024, 1, 1), date(2024, 1, 7)).splitlines() == [",".join(CSV_HEADER)]


def test_markdown_report(db):
    day_one = fill(db, date(2024, 1, 1), [("Deep work", "highly-productive"), ("Lunch", "neutral")])
    fill(db, date(2024, 1, 2), [("Planning", "productive")])
    store.update_day_summary(db, day_one.id, "Good start")

    report = export_markdown(db, date(2024, 1, 1), date(2024, 1, 7), now=datetime(2024, 1, 8, 15, 5))

    assert report.startswith("# Productivity Report\n")
    assert "**Period**: January 1, 2024 - January 7, 2024" in report
    assert "**Generated**: January 8, 2024 at 3:05 PM" in report
    assert "| Days Tracked | 2 |" in report
    # (75.0 + 75.0) / 2
    assert "| Average Score | 75.0% |" in report
    assert "| Total Intervals Logged | 3 |" in report
    assert "| Coverage | 50% |" in report
    assert "### Monday, January 1, 2024" in report
    assert "**Score**: 75.0% | **Logged**: 2/3 intervals" in report
    assert "> Good start" in report
    assert "| Highly Productive | 0h 30m | 1 |" in report
    assert "- 09:00: Deep work" in report
    # newest day first
    assert report.index("January 2, 2024") < report.index("### Monday, January 1, 2024")


def test_markdown_no_days(db):
    report = export_markdown(db, date(2024, 1, 1), date(2024, 1, 7), now=datetime(2024, 1, 8, 9, 0))

    assert "| Days Tracked | 0 |" in report
    assert "| Average Score | 0.0% |" in report
    assert "| Coverage | 0% |" in report
