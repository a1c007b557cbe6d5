import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import date, datetime, timedelta
from pathlib import Path

from fastapi import Depends, FastAPI, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel

import store
from analytics import month_bounds, monthly_calendar, score_log, summarize
from config import configure_logging
from db import SessionLocal, init_db
from export import export_csv, export_markdown
from models import INTERVAL_DURATIONS, MAX_ACTIVITY_CHARS
from scoring import format_minutes, format_time_range, interval_state, is_current_interval

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
ANALYTICS_RANGES = (7, 14, 30)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and initialize database on startup"""
    configure_logging()
    init_db()
    yield


app = FastAPI(title="Interval Log", lifespan=lifespan)
templates = Jinja2Templates(directory=BASE_DIR / "templates")
templates.env.globals.update(
    format_time_range=format_time_range,
    format_minutes=format_minutes,
    interval_state=interval_state,
)
app.mount("/static", StaticFiles(directory=BASE_DIR / "static"), name="static")


STATUS_FOR_ERROR = {
    store.NotFoundError: 404,
    store.ValidationError: 400,
    store.CategoryFloorError: 409,
    store.DayClosedError: 409,
}


@app.exception_handler(store.StoreError)
async def store_error_handler(request: Request, exc: store.StoreError):
    status_code = STATUS_FOR_ERROR.get(type(exc), 400)
    logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def parse_day(day: str | None) -> date:
    if not day:
        return date.today()
    try:
        return date.fromisoformat(day)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"invalid date: {day}") from None


def day_redirect(log_date: date, path: str = "/") -> RedirectResponse:
    return RedirectResponse(url=f"{path}?day={log_date.isoformat()}", status_code=303)


@app.get("/health")
def health():
    """Health check endpoint for monitoring and CI"""
    return {"status": "ok"}


@app.get("/", response_class=HTMLResponse)
def home(request: Request, day: str = None, db=Depends(get_db)):
    log_date = parse_day(day)
    daily_log = store.get_or_create_daily_log(db, log_date)
    score = score_log(daily_log)
    now = datetime.now()
    current = next(
        (i.id for i in daily_log.intervals if is_current_interval(i.start_time, i.end_time, now)),
        None,
    )

    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "log_date": log_date,
            "daily_log": daily_log,
            "intervals": daily_log.intervals,
            "categories": store.get_categories(db),
            "score": score,
            "breakdown": sorted(score.category_breakdown, key=lambda b: b.total_minutes, reverse=True),
            "current_interval_id": current,
            "max_chars": MAX_ACTIVITY_CHARS,
            "prev_day": log_date - timedelta(days=1),
            "next_day": log_date + timedelta(days=1),
        },
    )


@app.post("/day")
def create_day(
    day: str = Form(None),
    interval_minutes: int = Form(None),
    start_time: str = Form(None),
    end_time: str = Form(None),
    template_id: str = Form(None),
    db=Depends(get_db),
):
    """Open a day with an explicit configuration or a saved template"""
    log_date = parse_day(day)
    if template_id:
        template = store.get_template(db, template_id)
        interval_minutes = template.interval_minutes
        start_time = template.start_time
        end_time = template.end_time

    store.get_or_create_daily_log(
        db, log_date, interval_minutes=interval_minutes, start_time=start_time, end_time=end_time
    )
    return day_redirect(log_date)


@app.post("/interval")
def update_interval(
    interval_id: str = Form(...),
    activity_text: str = Form(""),
    category_id: str = Form(""),
    db=Depends(get_db),
):
    interval = store.update_interval(
        db, interval_id, activity_text=activity_text, category_id=category_id or None
    )
    return day_redirect(interval.daily_log.date)


class IntervalPatch(BaseModel):
    activity_text: str | None = None
    category_id: str | None = None


@app.patch("/api/intervals/{interval_id}")
def patch_interval(interval_id: str, patch: IntervalPatch, db=Depends(get_db)):
    """Partial update: only fields present in the body are applied"""
    fields = patch.model_dump(include=patch.model_fields_set)
    interval = store.update_interval(db, interval_id, **fields)
    return {
        "id": interval.id,
        "activity_text": interval.activity_text,
        "category_id": interval.category_id,
        "logged_at": interval.logged_at.isoformat() if interval.logged_at else None,
        "state": interval_state(interval).value,
    }


@app.post("/intervals/bulk")
def bulk_categorize(
    day: str = Form(None),
    interval_id: list[str] = Form(...),
    category_id: list[str] = Form(...),
    db=Depends(get_db),
):
    if len(interval_id) != len(category_id):
        raise HTTPException(status_code=400, detail="interval_id and category_id must pair up")

    updates = [(i, c) for i, c in zip(interval_id, category_id) if c]
    _, failed = store.bulk_update_categories(db, updates)
    if failed:
        logger.warning("Bulk categorization: %d of %d updates failed", len(failed), len(updates))
    return day_redirect(parse_day(day), "/review")


@app.get("/review", response_class=HTMLResponse)
def review(request: Request, day: str = None, db=Depends(get_db)):
    log_date = parse_day(day)
    return templates.TemplateResponse(
        request,
        "review.html",
        {
            "log_date": log_date,
            "daily_log": store.get_daily_log(db, log_date),
            "intervals": store.get_uncategorized_intervals(db, log_date),
            "categories": store.get_categories(db),
        },
    )


@app.post("/day/{log_id}/summary")
def save_day_summary(log_id: str, day_summary: str = Form(""), db=Depends(get_db)):
    daily_log = store.update_day_summary(db, log_id, day_summary.strip())
    return day_redirect(daily_log.date)


@app.post("/day/{log_id}/close")
def close_day(log_id: str, db=Depends(get_db)):
    daily_log = store.close_day(db, log_id)
    return day_redirect(daily_log.date)


@app.post("/day/{log_id}/reopen")
def reopen_day(log_id: str, db=Depends(get_db)):
    daily_log = store.reopen_day(db, log_id)
    return day_redirect(daily_log.date)


@app.post("/day/{log_id}/partial")
def mark_partial(log_id: str, is_partial: bool = Form(False), db=Depends(get_db)):
    daily_log = store.mark_day_partial(db, log_id, is_partial)
    return day_redirect(daily_log.date)


@app.get("/api/day/{day}/score")
def day_score(day: str, db=Depends(get_db)):
    daily_log = store.get_daily_log(db, parse_day(day))
    if daily_log is None:
        raise HTTPException(status_code=404, detail=f"no log for {day}")
    score = score_log(daily_log)
    payload = asdict(score)
    payload["date"] = score.date.isoformat()
    payload["coverage"] = score.coverage
    payload["status"] = daily_log.status.value
    return payload


@app.get("/history", response_class=HTMLResponse)
def history(request: Request, year: int = None, month: int = None, db=Depends(get_db)):
    today = date.today()
    year = today.year if year is None else year
    month = today.month if month is None else month
    try:
        start, end = month_bounds(year, month)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"invalid month: {year}-{month}") from None

    logs = store.get_daily_logs(db, start, end)
    return templates.TemplateResponse(
        request,
        "history.html",
        {
            "year": year,
            "month": month,
            "month_start": start,
            "cells": monthly_calendar(logs, year, month),
            "stats": summarize(logs, start, end),
        },
    )


@app.get("/analytics", response_class=HTMLResponse)
def analytics(request: Request, days: int = 7, db=Depends(get_db)):
    if days not in ANALYTICS_RANGES:
        raise HTTPException(status_code=400, detail=f"days must be one of {ANALYTICS_RANGES}")
    end = date.today()
    start = end - timedelta(days=days)
    return templates.TemplateResponse(
        request,
        "analytics.html",
        {
            "days": days,
            "ranges": ANALYTICS_RANGES,
            "stats": summarize(store.get_daily_logs(db, start, end), start, end),
        },
    )


@app.get("/settings", response_class=HTMLResponse)
def settings_page(request: Request, db=Depends(get_db)):
    return templates.TemplateResponse(
        request,
        "settings.html",
        {
            "settings": store.get_user_settings(db),
            "categories": store.get_categories(db),
            "templates": store.get_templates(db),
            "durations": INTERVAL_DURATIONS,
        },
    )


@app.post("/settings")
def save_settings(
    interval_minutes: int = Form(...),
    start_time: str = Form(...),
    end_time: str = Form(...),
    db=Depends(get_db),
):
    store.update_user_settings(db, interval_minutes=interval_minutes, start_time=start_time, end_time=end_time)
    return RedirectResponse(url="/settings", status_code=303)


@app.post("/categories")
def add_category(
    label: str = Form(...),
    value: int = Form(...),
    color: str = Form(...),
    icon: str = Form(None),
    description: str = Form(None),
    db=Depends(get_db),
):
    store.create_category(db, label=label, value=value, color=color, icon=icon, description=description)
    return RedirectResponse(url="/settings", status_code=303)


@app.post("/categories/{category_id}/update")
def edit_category(
    category_id: str,
    label: str = Form(None),
    value: int = Form(None),
    color: str = Form(None),
    icon: str = Form(None),
    description: str = Form(None),
    sort_order: int = Form(None),
    db=Depends(get_db),
):
    fields = {
        "label": label,
        "value": value,
        "color": color,
        "icon": icon,
        "description": description,
        "sort_order": sort_order,
    }
    store.update_category(db, category_id, **{k: v for k, v in fields.items() if v is not None})
    return RedirectResponse(url="/settings", status_code=303)


@app.post("/categories/{category_id}/delete")
def remove_category(category_id: str, db=Depends(get_db)):
    store.delete_category(db, category_id)
    return RedirectResponse(url="/settings", status_code=303)


@app.post("/templates")
def add_template(
    name: str = Form(...),
    interval_minutes: int = Form(...),
    start_time: str = Form(...),
    end_time: str = Form(...),
    db=Depends(get_db),
):
    store.create_template(db, name, interval_minutes, start_time, end_time)
    return RedirectResponse(url="/settings", status_code=303)


@app.post("/templates/{template_id}/apply")
def use_template(template_id: str, db=Depends(get_db)):
    store.apply_template(db, template_id)
    return RedirectResponse(url="/settings", status_code=303)


@app.post("/templates/{template_id}/delete")
def remove_template(template_id: str, db=Depends(get_db)):
    store.delete_template(db, template_id)
    return RedirectResponse(url="/settings", status_code=303)


def export_range(start: str | None, end: str | None):
    end_day = parse_day(end)
    start_day = parse_day(start) if start else end_day - timedelta(days=7)
    if start_day > end_day:
        raise HTTPException(status_code=400, detail="start must not be after end")
    return start_day, end_day


@app.get("/export/csv")
def download_csv(start: str = None, end: str = None, db=Depends(get_db)):
    """Export every interval in a date range as CSV"""
    start_day, end_day = export_range(start, end)
    content = export_csv(db, start_day, end_day)
    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=interval_log_{start_day}_{end_day}.csv"},
    )


@app.get("/export/markdown", response_class=PlainTextResponse)
def download_markdown(start: str = None, end: str = None, db=Depends(get_db)):
    """Export a productivity report as Markdown"""
    start_day, end_day = export_range(start, end)
    return export_markdown(db, start_day, end_day)
