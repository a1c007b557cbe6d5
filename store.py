"""Read/write access to categories, settings, templates, days and intervals.

Every function takes an open SQLAlchemy session and commits its own work.
Failures are raised as StoreError subclasses; nothing already committed is
touched when an operation is rejected.
"""

import logging
from datetime import date, datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import selectinload

from models import (
    MAX_ACTIVITY_CHARS,
    MIN_ACTIVE_CATEGORIES,
    ConfigurationTemplate,
    DailyLog,
    DayStatus,
    ProductivityCategory,
    TimeInterval,
    UserSettings,
)
from scoring import IntervalState, generate_intervals, interval_state, parse_time_of_day

logger = logging.getLogger(__name__)

UNSET = object()


class StoreError(Exception):
    """Base class for rejected store operations"""


class NotFoundError(StoreError):
    pass


class ValidationError(StoreError):
    pass


class CategoryFloorError(StoreError):
    pass


class DayClosedError(StoreError):
    pass


def _parse_hhmm(value, field):
    try:
        if len(value) != 5:
            raise ValueError(value)
        return parse_time_of_day(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be HH:MM, got {value!r}") from None


def validate_day_config(interval_minutes, start_time, end_time):
    """Reject configurations the interval generator must never see"""
    if not isinstance(interval_minutes, int) or interval_minutes <= 0:
        raise ValidationError(f"interval length must be a positive number of minutes, got {interval_minutes!r}")
    start = _parse_hhmm(start_time, "start time")
    end = _parse_hhmm(end_time, "end time")
    if end <= start:
        raise ValidationError(f"end time {end_time} must be after start time {start_time}")


def _validate_value(value):
    if not isinstance(value, int) or not 0 <= value <= 100:
        raise ValidationError(f"category value must be between 0 and 100, got {value!r}")


def get_user_settings(db) -> UserSettings:
    """Return the settings singleton, creating it on first access"""
    settings = db.query(UserSettings).order_by(UserSettings.id).first()
    if settings is None:
        settings = UserSettings()
        db.add(settings)
        db.commit()
        db.refresh(settings)
        logger.info("Created default user settings")
    return settings


def update_user_settings(db, interval_minutes=None, start_time=None, end_time=None) -> UserSettings:
    settings = get_user_settings(db)
    interval_minutes = interval_minutes if interval_minutes is not None else settings.default_interval_minutes
    start_time = start_time or settings.default_start_time
    end_time = end_time or settings.default_end_time
    validate_day_config(interval_minutes, start_time, end_time)

    settings.default_interval_minutes = interval_minutes
    settings.default_start_time = start_time
    settings.default_end_time = end_time
    db.commit()
    logger.info("Updated settings: %d min, %s-%s", interval_minutes, start_time, end_time)
    return settings


def get_categories(db) -> list[ProductivityCategory]:
    """Active categories in display order; the only valid assignment targets"""
    return (
        db.query(ProductivityCategory)
        .filter(ProductivityCategory.is_active.is_(True))
        .order_by(ProductivityCategory.sort_order.asc())
        .all()
    )


def get_category(db, category_id) -> ProductivityCategory:
    """Look up a category by id whether or not it is still active"""
    category = db.get(ProductivityCategory, category_id)
    if category is None:
        raise NotFoundError(f"category {category_id} not found")
    return category


def create_category(db, label, value, color, icon=None, description=None, sort_order=None):
    _validate_value(value)
    if sort_order is None:
        max_sort = db.query(func.max(ProductivityCategory.sort_order)).scalar()
        sort_order = (max_sort or 0) + 1

    category = ProductivityCategory(
        label=label,
        value=value,
        color=color,
        icon=icon,
        description=description,
        sort_order=sort_order,
    )
    db.add(category)
    db.commit()
    db.refresh(category)
    logger.info("Created category %s (%s=%d)", category.id, label, value)
    return category


def update_category(db, category_id, **patch):
    category = get_category(db, category_id)
    allowed = {"label", "value", "color", "icon", "description", "sort_order"}
    unknown = set(patch) - allowed
    if unknown:
        raise ValidationError(f"unknown category fields: {', '.join(sorted(unknown))}")
    if "value" in patch:
        _validate_value(patch["value"])

    for key, val in patch.items():
        setattr(category, key, val)
    db.commit()
    return category


def delete_category(db, category_id):
    """Retire a category, keeping its row for intervals that reference it"""
    category = get_category(db, category_id)
    if not category.is_active:
        return category

    active = db.query(ProductivityCategory).filter(ProductivityCategory.is_active.is_(True)).count()
    if active <= MIN_ACTIVE_CATEGORIES:
        logger.warning("Refused to delete category %s: %d active remain", category_id, active)
        raise CategoryFloorError(f"at least {MIN_ACTIVE_CATEGORIES} categories must remain active")

    category.is_active = False
    db.commit()
    logger.info("Soft-deleted category %s", category_id)
    return category


def get_templates(db):
    return db.query(ConfigurationTemplate).order_by(ConfigurationTemplate.name.asc()).all()


def get_template(db, template_id):
    template = db.get(ConfigurationTemplate, template_id)
    if template is None:
        raise NotFoundError(f"template {template_id} not found")
    return template


def create_template(db, name, interval_minutes, start_time, end_time):
    if not name or not name.strip():
        raise ValidationError("template name is required")
    validate_day_config(interval_minutes, start_time, end_time)

    template = ConfigurationTemplate(
        name=name.strip(),
        interval_minutes=interval_minutes,
        start_time=start_time,
        end_time=end_time,
    )
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


def delete_template(db, template_id):
    db.delete(get_template(db, template_id))
    db.commit()


def apply_template(db, template_id) -> UserSettings:
    """Copy a template into the default settings"""
    template = get_template(db, template_id)
    return update_user_settings(
        db,
        interval_minutes=template.interval_minutes,
        start_time=template.start_time,
        end_time=template.end_time,
    )


def _normalize(day) -> date:
    return day.date() if isinstance(day, datetime) else day


def _with_intervals(query):
    return query.options(selectinload(DailyLog.intervals).selectinload(TimeInterval.category))


def get_daily_log(db, day):
    return _with_intervals(db.query(DailyLog)).filter(DailyLog.date == _normalize(day)).first()


def get_daily_log_by_id(db, log_id) -> DailyLog:
    daily_log = db.get(DailyLog, log_id)
    if daily_log is None:
        raise NotFoundError(f"daily log {log_id} not found")
    return daily_log


def get_or_create_daily_log(db, day, interval_minutes=None, start_time=None, end_time=None) -> DailyLog:
    """Return the log for a day, materializing its intervals on first access.

    Explicit config wins over the user's default settings. Intervals are
    generated exactly once, here.
    """
    day = _normalize(day)
    daily_log = get_daily_log(db, day)
    if daily_log is not None:
        return daily_log

    settings = get_user_settings(db)
    interval_minutes = interval_minutes if interval_minutes is not None else settings.default_interval_minutes
    start_time = start_time or settings.default_start_time
    end_time = end_time or settings.default_end_time
    validate_day_config(interval_minutes, start_time, end_time)

    daily_log = DailyLog(
        date=day,
        interval_minutes=interval_minutes,
        start_time=start_time,
        end_time=end_time,
        status=DayStatus.ACTIVE,
    )
    daily_log.intervals = [
        TimeInterval(start_time=bounds.start_time, end_time=bounds.end_time)
        for bounds in generate_intervals(day, start_time, end_time, interval_minutes)
    ]
    db.add(daily_log)
    db.commit()
    logger.info(
        "Created daily log for %s with %d intervals (%s-%s every %d min)",
        day, len(daily_log.intervals), start_time, end_time, interval_minutes,
    )
    return get_daily_log(db, day)


def update_day_summary(db, log_id, day_summary):
    daily_log = get_daily_log_by_id(db, log_id)
    daily_log.day_summary = day_summary or None
    db.commit()
    return daily_log


def close_day(db, log_id, now=None):
    daily_log = get_daily_log_by_id(db, log_id)
    if daily_log.is_closed:
        raise ValidationError(f"day {daily_log.date} is already closed")
    daily_log.status = DayStatus.CLOSED
    daily_log.closed_at = now or datetime.now()
    db.commit()
    logger.info("Closed day %s", daily_log.date)
    return daily_log


def reopen_day(db, log_id):
    daily_log = get_daily_log_by_id(db, log_id)
    if not daily_log.is_closed:
        raise ValidationError(f"day {daily_log.date} is not closed")
    daily_log.status = DayStatus.REOPENED
    daily_log.closed_at = None
    db.commit()
    logger.info("Reopened day %s", daily_log.date)
    return daily_log


def mark_day_partial(db, log_id, is_partial):
    daily_log = get_daily_log_by_id(db, log_id)
    daily_log.is_partial = bool(is_partial)
    db.commit()
    return daily_log


def get_daily_logs(db, start, end):
    """Logs whose date falls in [start, end], newest first"""
    return (
        _with_intervals(db.query(DailyLog))
        .filter(DailyLog.date >= _normalize(start), DailyLog.date <= _normalize(end))
        .order_by(DailyLog.date.desc())
        .all()
    )


def get_recent_logs(db, days=7, today=None):
    today = _normalize(today) if today else date.today()
    return get_daily_logs(db, today - timedelta(days=days), today)


def get_interval(db, interval_id) -> TimeInterval:
    interval = db.get(TimeInterval, interval_id)
    if interval is None:
        raise NotFoundError(f"interval {interval_id} not found")
    return interval


def _ensure_editable(interval):
    if interval.daily_log.is_closed:
        raise DayClosedError(f"day {interval.daily_log.date} is closed")


def _assignable_category(db, category_id):
    category = get_category(db, category_id)
    if not category.is_active:
        raise ValidationError(f"category {category_id} is no longer active")
    return category


def update_interval(db, interval_id, activity_text=UNSET, category_id=UNSET, now=None) -> TimeInterval:
    """Apply a partial patch of activity text and/or category.

    logged_at is stamped the first time the text becomes non-empty. Passing
    category_id=None clears the category and returns the interval to the
    uncategorized state.
    """
    interval = get_interval(db, interval_id)
    _ensure_editable(interval)

    # Validate the whole patch before touching the row
    if activity_text is not UNSET:
        text = (activity_text or "").strip()
        if len(text) > MAX_ACTIVITY_CHARS:
            raise ValidationError(f"activity text is limited to {MAX_ACTIVITY_CHARS} characters")
    if category_id not in (UNSET, None):
        category = _assignable_category(db, category_id)

    if activity_text is not UNSET:
        interval.activity_text = text or None
        if text and interval.logged_at is None:
            interval.logged_at = now or datetime.now()
    if category_id is None:
        interval.category = None
    elif category_id is not UNSET:
        interval.category = category

    db.commit()
    db.refresh(interval)
    return interval


def bulk_update_categories(db, updates):
    """Assign categories interval by interval.

    Each update is committed on its own; a failure does not undo earlier
    successes. Returns (updated intervals, [(interval_id, error), ...]).
    """
    updated, failed = [], []
    for interval_id, category_id in updates:
        try:
            updated.append(update_interval(db, interval_id, category_id=category_id))
        except StoreError as exc:
            db.rollback()
            logger.warning("Bulk categorization skipped interval %s: %s", interval_id, exc)
            failed.append((interval_id, exc))
    return updated, failed


def get_uncategorized_intervals(db, day):
    """Intervals with activity text but no category, for the review flow"""
    daily_log = get_daily_log(db, day)
    if daily_log is None:
        return []
    return [i for i in daily_log.intervals if interval_state(i) is IntervalState.LOGGED]
