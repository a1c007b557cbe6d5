import csv
import io
import logging
from datetime import datetime

from analytics import score_log
from scoring import format_minutes, format_time, logging_coverage
from store import get_daily_logs

logger = logging.getLogger(__name__)

CSV_HEADER = ["Date", "Interval Start", "Interval End", "Activity", "Category", "Category Value", "Logged At"]
MAX_MARKDOWN_ACTIVITIES = 5


def export_csv(db, start, end) -> str:
    """One row per interval for every day in [start, end], oldest day first"""
    logs = sorted(get_daily_logs(db, start, end), key=lambda log: log.date)

    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    rows = 0
    for log in logs:
        for interval in log.intervals:
            category = interval.category
            writer.writerow([
                log.date.isoformat(),
                format_time(interval.start_time),
                format_time(interval.end_time),
                interval.activity_text or "",
                category.label if category else "",
                category.value if category else "",
                interval.logged_at.strftime("%Y-%m-%d %H:%M:%S") if interval.logged_at else "",
            ])
            rows += 1

    logger.info("Exported %d intervals across %d days to CSV", rows, len(logs))
    return output.getvalue()


def _long_date(value):
    return f"{value:%B} {value.day}, {value.year}"


def export_markdown(db, start, end, now=None) -> str:
    """Productivity report for [start, end], newest day first"""
    now = now or datetime.now()
    logs = get_daily_logs(db, start, end)
    scores = [(log, score_log(log)) for log in logs]

    total_logged = sum(score.logged_intervals for _, score in scores)
    total_intervals = sum(score.total_intervals for _, score in scores)
    avg_score = sum(score.productivity_percentage for _, score in scores) / len(scores) if scores else 0.0

    lines = []
    lines.append("# Productivity Report")
    lines.append("")
    lines.append(f"**Period**: {_long_date(start)} - {_long_date(end)}")
    lines.append("")
    lines.append(f"**Generated**: {_long_date(now)} at {now.strftime('%I:%M %p').lstrip('0')}")
    lines.append("")
    lines.append("---")
    lines.append("")
    lines.append("## Summary")
    lines.append("")
    lines.append("| Metric | Value |")
    lines.append("|--------|-------|")
    lines.append(f"| Days Tracked | {len(logs)} |")
    lines.append(f"| Average Score | {avg_score:.1f}% |")
    lines.append(f"| Total Intervals Logged | {total_logged} |")
    lines.append(f"| Coverage | {logging_coverage(total_logged, total_intervals)}% |")
    lines.append("")
    lines.append("## Daily Breakdown")
    lines.append("")

    for log, score in scores:
        lines.append(f"### {log.date:%A}, {_long_date(log.date)}")
        lines.append("")
        lines.append(
            f"**Score**: {score.productivity_percentage:.1f}% | "
            f"**Logged**: {score.logged_intervals}/{score.total_intervals} intervals"
        )
        lines.append("")
        if log.day_summary:
            lines.append(f"> {log.day_summary}")
            lines.append("")

        if score.category_breakdown:
            lines.append("| Category | Time | Intervals |")
            lines.append("|----------|------|-----------|")
            for entry in score.category_breakdown:
                lines.append(f"| {entry.label} | {format_minutes(entry.total_minutes)} | {entry.interval_count} |")
            lines.append("")

        activities = [i for i in log.intervals if i.activity_text][:MAX_MARKDOWN_ACTIVITIES]
        if activities:
            lines.append("**Activities**:")
            for interval in activities:
                lines.append(f"- {format_time(interval.start_time)}: {interval.activity_text}")
            lines.append("")

        lines.append("---")
        lines.append("")

    logger.info("Exported %d days to Markdown", len(logs))
    return "\n".join(lines)
