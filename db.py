import logging

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from config import DATABASE_URL
from models import Base, ProductivityCategory
from store import get_user_settings

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    {
        "id": "highly-productive",
        "label": "Highly Productive",
        "value": 100,
        "color": "#22c55e",
        "icon": "zap",
        "description": "Core goal advancement, deep work, high-impact tasks",
        "sort_order": 1,
    },
    {
        "id": "productive",
        "label": "Productive",
        "value": 75,
        "color": "#3b82f6",
        "icon": "briefcase",
        "description": "Maintenance tasks, planning, necessary work",
        "sort_order": 2,
    },
    {
        "id": "neutral",
        "label": "Neutral",
        "value": 50,
        "color": "#eab308",
        "icon": "coffee",
        "description": "Breaks, meals, transitions between activities",
        "sort_order": 3,
    },
    {
        "id": "low-productivity",
        "label": "Low Productivity",
        "value": 25,
        "color": "#f97316",
        "icon": "clock",
        "description": "Aware procrastination, low-priority activities",
        "sort_order": 4,
    },
    {
        "id": "non-productive",
        "label": "Non-Productive",
        "value": 0,
        "color": "#ef4444",
        "icon": "x-circle",
        "description": "Distractions, time-wasting, unproductive activities",
        "sort_order": 5,
    },
]


def make_engine(url):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    engine = create_engine(url, connect_args=connect_args)

    if url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_conn, _record):
            dbapi_conn.execute("PRAGMA foreign_keys = ON")

    return engine


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def seed_defaults(db):
    """Insert the default categories and the settings row if missing"""
    created = 0
    for data in DEFAULT_CATEGORIES:
        if db.get(ProductivityCategory, data["id"]) is None:
            db.add(ProductivityCategory(is_default=True, **data))
            created += 1
    if created:
        db.commit()
        logger.info("Seeded %d default categories", created)
    get_user_settings(db)


def init_db(bind=None, session_factory=None):
    Base.metadata.create_all(bind=bind or engine)
    db = (session_factory or SessionLocal)()
    try:
        seed_defaults(db)
    finally:
        db.close()
