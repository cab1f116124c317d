"""
SQLAlchemy Database Models

These models define the schema for the practice engine. They hold the
learner's durable state (profile, per-item and per-category progress),
the sessions awaiting completion, and the append-only history that feeds
the stats endpoint.

Tables:
- learner_profiles: XP, streak, hearts and settings per learner
- item_progress: Per-item ease/streak/due-date scheduling state
- category_progress: Per-(language, category) mastery
- active_sessions: Generated sessions awaiting completion
- session_history: One row per completed session
- attempt_history: One row per evaluated attempt
- daily_xp: XP earned per learner, language and UTC day

ARCHITECTURE NOTE:
    This file contains SQLALCHEMY models for database persistence.
    There is a corresponding Pydantic file: app/models/learning.py

    Data flows: Service Layer → Pydantic → Repository → SQLAlchemy → Database
"""

from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


# ===========================================
# Learner
# ===========================================


class LearnerProfile(Base):
    """
    Learner profile and settings.

    Attributes:
        learner_id: Opaque identifier supplied by the client.
        total_xp: Lifetime XP. Never decreases.
        streak_days: Consecutive UTC days with a completed session.
        hearts: Lives remaining; lost on sessions with mistakes.
        learner_level: Derived from total_xp.
        last_completed_date: UTC date of the most recent completion.
        daily_goal .. focus_area: Learner-editable settings.
    """

    __tablename__ = "learner_profiles"

    learner_id: Mapped[str] = mapped_column(String(100), primary_key=True)

    total_xp: Mapped[int] = mapped_column(Integer, default=0)
    streak_days: Mapped[int] = mapped_column(Integer, default=0)
    hearts: Mapped[int] = mapped_column(Integer, default=5)
    learner_level: Mapped[int] = mapped_column(Integer, default=1)
    last_completed_date: Mapped[Optional[date]] = mapped_column(Date)

    # Settings
    learner_name: Mapped[Optional[str]] = mapped_column(String(100))
    native_language: Mapped[Optional[str]] = mapped_column(String(50))
    target_language: Mapped[Optional[str]] = mapped_column(String(50))
    daily_goal: Mapped[int] = mapped_column(Integer, default=30)
    daily_minutes: Mapped[int] = mapped_column(Integer, default=20)
    weekly_goal_sessions: Mapped[int] = mapped_column(Integer, default=5)
    self_rated_level: Mapped[str] = mapped_column(String(10), default="a1")
    learner_bio: Mapped[str] = mapped_column(Text, default="")
    focus_area: Mapped[str] = mapped_column(String(200), default="")

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )


# ===========================================
# Progress
# ===========================================


class ItemProgress(Base):
    """
    Scheduling state for one course item.

    Keyed by (learner, language, category, item). Rows are created on the
    first evaluated attempt and updated on every later one.
    """

    __tablename__ = "item_progress"
    __table_args__ = (
        UniqueConstraint(
            "learner_id", "language", "category", "item_id", name="uq_item_progress"
        ),
        Index("ix_item_progress_due", "learner_id", "language", "category", "next_due_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    learner_id: Mapped[str] = mapped_column(String(100), nullable=False)
    language: Mapped[str] = mapped_column(String(50), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    item_id: Mapped[str] = mapped_column(String(100), nullable=False)
    objective: Mapped[str] = mapped_column(String(100), nullable=False)

    ease: Mapped[float] = mapped_column(Float, default=1.8)
    streak: Mapped[int] = mapped_column(Integer, default=0)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    correct: Mapped[int] = mapped_column(Integer, default=0)
    error_count: Mapped[int] = mapped_column(Integer, default=0)
    last_error_type: Mapped[str] = mapped_column(String(50), default="")
    last_seen_date: Mapped[Optional[date]] = mapped_column(Date)
    next_due_date: Mapped[Optional[date]] = mapped_column(Date)


class CategoryProgress(Base):
    """Mastery and unlocked level for one (learner, language, category)."""

    __tablename__ = "category_progress"
    __table_args__ = (
        UniqueConstraint(
            "learner_id", "language", "category", name="uq_category_progress"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    learner_id: Mapped[str] = mapped_column(String(100), nullable=False)
    language: Mapped[str] = mapped_column(String(50), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)

    mastery: Mapped[float] = mapped_column(Float, default=0.0)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    total_answers: Mapped[int] = mapped_column(Integer, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, default=0)
    level_unlocked: Mapped[str] = mapped_column(String(10), default="a1")
    last_practiced_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True)
    )


# ===========================================
# Sessions
# ===========================================


class ActiveSession(Base):
    """
    A generated session awaiting completion.

    The question list is stored as JSON together with the schema version
    it was written with. `completed` flips exactly once; the flip is a
    conditional UPDATE so concurrent completions cannot both succeed.
    """

    __tablename__ = "active_sessions"
    __table_args__ = (Index("ix_active_sessions_expires_on", "expires_on"),)

    session_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    learner_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    language: Mapped[str] = mapped_column(String(50), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    difficulty_level: Mapped[str] = mapped_column(String(10), nullable=False)
    difficulty_multiplier: Mapped[float] = mapped_column(Float, default=1.0)

    questions: Mapped[list] = mapped_column(JSON, nullable=False)
    schema_version: Mapped[int] = mapped_column(Integer, default=1)

    expires_on: Mapped[date] = mapped_column(Date, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


# ===========================================
# History
# ===========================================


class SessionHistory(Base):
    """One row per successfully completed session."""

    __tablename__ = "session_history"
    __table_args__ = (
        Index("ix_session_history_learner", "learner_id", "language", "category"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    session_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)
    learner_id: Mapped[str] = mapped_column(String(100), nullable=False)
    language: Mapped[str] = mapped_column(String(50), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)

    score: Mapped[int] = mapped_column(Integer, default=0)
    max_score: Mapped[int] = mapped_column(Integer, default=0)
    mistakes: Mapped[int] = mapped_column(Integer, default=0)
    accuracy: Mapped[float] = mapped_column(Float, default=0.0)
    xp_gained: Mapped[int] = mapped_column(Integer, default=0)
    hints_used: Mapped[int] = mapped_column(Integer, default=0)
    revealed_answers: Mapped[int] = mapped_column(Integer, default=0)
    difficulty_level: Mapped[str] = mapped_column(String(10), default="a1")
    completed_on: Mapped[date] = mapped_column(Date, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


class AttemptHistory(Base):
    """One row per evaluated attempt of a completed session."""

    __tablename__ = "attempt_history"
    __table_args__ = (
        Index("ix_attempt_history_learner_day", "learner_id", "created_on"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    session_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    learner_id: Mapped[str] = mapped_column(String(100), nullable=False)
    language: Mapped[str] = mapped_column(String(50), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    item_id: Mapped[str] = mapped_column(String(100), nullable=False)
    question_type: Mapped[str] = mapped_column(String(50), nullable=False)
    objective: Mapped[str] = mapped_column(String(100), nullable=False)
    correct: Mapped[bool] = mapped_column(Boolean, default=False)
    error_type: Mapped[str] = mapped_column(String(50), default="none")
    created_on: Mapped[date] = mapped_column(Date, nullable=False)


class DailyXp(Base):
    """XP earned by a learner in one language on one UTC day."""

    __tablename__ = "daily_xp"
    __table_args__ = (UniqueConstraint("learner_id", "language", "day", name="uq_daily_xp"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    learner_id: Mapped[str] = mapped_column(String(100), nullable=False)
    language: Mapped[str] = mapped_column(String(50), nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False)
    xp: Mapped[int] = mapped_column(Integer, default=0)
