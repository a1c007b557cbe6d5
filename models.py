import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

INTERVAL_DURATIONS = (5, 10, 15, 20, 30, 45, 60)
MAX_ACTIVITY_CHARS = 100
MIN_ACTIVE_CATEGORIES = 2

DEFAULT_INTERVAL_MINUTES = 15
DEFAULT_START_TIME = "09:00"
DEFAULT_END_TIME = "17:00"


def new_id() -> str:
    return uuid.uuid4().hex


class DayStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    REOPENED = "REOPENED"


class ProductivityCategory(Base):
    __tablename__ = "productivity_categories"
    __table_args__ = (
        CheckConstraint("value >= 0 AND value <= 100", name="ck_category_value_range"),
    )

    id = Column(String(64), primary_key=True, default=new_id)
    label = Column(String(50), nullable=False)
    value = Column(Integer, nullable=False)
    color = Column(String(20), nullable=False, default="#6b7280")
    icon = Column(String(30))
    description = Column(Text)
    sort_order = Column(Integer, default=0, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)

    def __repr__(self):
        return f"<ProductivityCategory {self.id} {self.label}={self.value}>"


class DailyLog(Base):
    __tablename__ = "daily_logs"
    id = Column(String(32), primary_key=True, default=new_id)
    date = Column(Date, unique=True, nullable=False, index=True)
    interval_minutes = Column(Integer, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    status = Column(Enum(DayStatus), default=DayStatus.ACTIVE, nullable=False)
    day_summary = Column(Text)
    closed_at = Column(DateTime)
    is_partial = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.now)

    intervals = relationship(
        "TimeInterval",
        back_populates="daily_log",
        cascade="all, delete-orphan",
        order_by="TimeInterval.start_time",
    )

    @property
    def is_closed(self):
        return self.status == DayStatus.CLOSED


class TimeInterval(Base):
    __tablename__ = "time_intervals"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_interval_order"),
    )

    id = Column(String(32), primary_key=True, default=new_id)
    daily_log_id = Column(
        String(32), ForeignKey("daily_logs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)
    activity_text = Column(String(MAX_ACTIVITY_CHARS))
    category_id = Column(String(64), ForeignKey("productivity_categories.id"), index=True)
    logged_at = Column(DateTime)

    daily_log = relationship("DailyLog", back_populates="intervals")
    # Non-owning: retired categories still resolve for historical intervals
    category = relationship("ProductivityCategory")

    @property
    def is_logged(self):
        return bool(self.activity_text)

    @property
    def is_categorized(self):
        return self.is_logged and self.category_id is not None


class UserSettings(Base):
    __tablename__ = "user_settings"
    id = Column(Integer, primary_key=True)
    default_interval_minutes = Column(Integer, default=DEFAULT_INTERVAL_MINUTES, nullable=False)
    default_start_time = Column(String(5), default=DEFAULT_START_TIME, nullable=False)
    default_end_time = Column(String(5), default=DEFAULT_END_TIME, nullable=False)


class ConfigurationTemplate(Base):
    __tablename__ = "configuration_templates"
    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String(100), nullable=False)
    interval_minutes = Column(Integer, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
