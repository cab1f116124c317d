"""
Learning Repository

Persistence contract for the practice engine plus two implementations:

- SqlAlchemyLearningRepository: async SQLAlchemy over the tables in
  app/db/models.py (PostgreSQL in production, SQLite in tests)
- InMemoryLearningRepository: dict-backed, for unit tests and local runs

Atomicity:
    Everything a session completion writes happens inside
    ``async with repo.transaction():``. An exception anywhere in the block
    discards every write made inside it. ``claim_active_session`` is a
    compare-and-set on the ``completed`` flag; exactly one caller wins.

    Completions for one learner are serialized by ``lock_learner``, which
    creates the profile row if needed and holds a row lock on it until the
    transaction ends. Every progress row a completion rewrites belongs to
    that learner, so two sessions finishing together cannot overwrite each
    other. Daily XP is an upsert that adds to the stored total.

Usage:
    repo = SqlAlchemyLearningRepository(db)

    async with repo.transaction():
        if not await repo.claim_active_session(session_id, learner_id, now):
            raise ConflictError("Session already completed")
        await repo.save_item_progress(items)
"""

import asyncio
import copy
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import date, datetime
from typing import Optional, Protocol

from pydantic import ValidationError
from sqlalchemy import delete, desc, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import (
    ActiveSession,
    AttemptHistory,
    CategoryProgress,
    DailyXp,
    ItemProgress,
    LearnerProfile,
    SessionHistory,
)
from app.middleware.error_handling import SessionPayloadError
from app.models.learning import (
    QUESTION_LIST_ADAPTER,
    QUESTION_SCHEMA_VERSION,
    ActiveSessionRecord,
    AttemptHistoryEntry,
    CategoryProgressState,
    ItemProgressState,
    LearnerProfileState,
    LearnerSettingsState,
    SessionHistoryEntry,
)
from app.rounding import round_fixed

logger = logging.getLogger(__name__)


# =============================================================================
# Contract
# =============================================================================


class LearningRepository(Protocol):
    """Storage operations the practice engine depends on."""

    def transaction(self) -> AbstractAsyncContextManager["LearningRepository"]: ...

    # Learner
    async def lock_learner(self, learner_id: str) -> None: ...
    async def get_profile(self, learner_id: str) -> LearnerProfileState: ...
    async def save_profile(self, profile: LearnerProfileState) -> None: ...
    async def get_settings(self, learner_id: str) -> Optional[LearnerSettingsState]: ...
    async def save_settings(self, learner_settings: LearnerSettingsState) -> None: ...

    # Progress
    async def list_item_progress(
        self, learner_id: str, language: str, category: str
    ) -> list[ItemProgressState]: ...
    async def save_item_progress(self, states: list[ItemProgressState]) -> None: ...
    async def get_category_progress(
        self, learner_id: str, language: str, category: str
    ) -> Optional[CategoryProgressState]: ...
    async def list_category_progress(
        self, learner_id: str, language: str
    ) -> list[CategoryProgressState]: ...
    async def save_category_progress(self, state: CategoryProgressState) -> None: ...
    async def recent_session_accuracy(
        self, learner_id: str, language: str, category: str, limit: int
    ) -> Optional[float]: ...

    # Active sessions
    async def create_active_session(self, record: ActiveSessionRecord) -> None: ...
    async def get_active_session(
        self, session_id: str, learner_id: str
    ) -> Optional[ActiveSessionRecord]: ...
    async def claim_active_session(
        self, session_id: str, learner_id: str, now: datetime
    ) -> bool: ...
    async def prune_active_sessions(self, learner_id: str, today: date) -> int: ...

    # History
    async def add_session_history(self, entry: SessionHistoryEntry) -> None: ...
    async def list_session_history(
        self, learner_id: str, language: str
    ) -> list[SessionHistoryEntry]: ...
    async def add_attempt_history(self, entries: list[AttemptHistoryEntry]) -> None: ...
    async def list_attempt_history(
        self, learner_id: str, language: str, since: Optional[date] = None
    ) -> list[AttemptHistoryEntry]: ...

    # Daily XP
    async def add_daily_xp(
        self, learner_id: str, language: str, day: date, xp: int
    ) -> None: ...
    async def get_daily_xp(self, learner_id: str, language: str, day: date) -> int: ...


def _mean_accuracy(entries: list[SessionHistoryEntry]) -> Optional[float]:
    if not entries:
        return None
    return round_fixed(sum(entry.accuracy for entry in entries) / len(entries), 4)


def decode_questions(payload: list, schema_version: int) -> tuple:
    """
    Decode a stored question payload.

    Raises:
        SessionPayloadError: If the payload was written with a different
            schema version or no longer validates
    """
    if schema_version != QUESTION_SCHEMA_VERSION:
        raise SessionPayloadError(
            f"Unsupported question schema version {schema_version}",
            details={"expected": QUESTION_SCHEMA_VERSION, "found": schema_version},
        )
    try:
        return tuple(QUESTION_LIST_ADAPTER.validate_python(payload))
    except ValidationError as e:
        raise SessionPayloadError(
            "Stored session questions could not be decoded",
            details={"errors": e.error_count()},
        ) from e


def encode_questions(record: ActiveSessionRecord) -> list:
    return QUESTION_LIST_ADAPTER.dump_python(list(record.questions), mode="json")


# Dialects with INSERT ... ON CONFLICT support
UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def dialect_insert(dialect_name: str, model):
    """
    Dialect-specific INSERT construct for ``model``.

    Raises:
        ValueError: If the dialect has no ON CONFLICT support here
    """
    try:
        return UPSERT_INSERTS[dialect_name](model)
    except KeyError:
        raise ValueError(f"Upserts are not supported on {dialect_name}") from None


def profile_lock_query(learner_id: str):
    """SELECT ... FOR UPDATE on one learner's profile row."""
    return (
        select(LearnerProfile)
        .where(LearnerProfile.learner_id == learner_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def ensure_profile_statement(dialect_name: str, learner_id: str, hearts: int):
    """Insert a default profile row unless one already exists."""
    return (
        dialect_insert(dialect_name, LearnerProfile)
        .values(learner_id=learner_id, hearts=hearts)
        .on_conflict_do_nothing(index_elements=["learner_id"])
    )


def daily_xp_upsert(dialect_name: str, learner_id: str, language: str, day: date, xp: int):
    """Insert the day's XP row, or add ``xp`` to the stored total."""
    statement = dialect_insert(dialect_name, DailyXp).values(
        learner_id=learner_id, language=language, day=day, xp=max(0, xp)
    )
    return statement.on_conflict_do_update(
        index_elements=["learner_id", "language", "day"],
        set_={"xp": DailyXp.xp + statement.excluded.xp},
    )


# =============================================================================
# SQLAlchemy Implementation
# =============================================================================


class SqlAlchemyLearningRepository:
    """
    Repository backed by an async SQLAlchemy session.

    The session is owned by the caller (usually the get_db dependency);
    ``transaction()`` commits on success and rolls back on error.
    """

    def __init__(self, db: AsyncSession, initial_hearts: int = 5):
        """
        Args:
            db: Database session
            initial_hearts: Hearts for a learner with no stored profile
        """
        self.db = db
        self.initial_hearts = initial_hearts

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SqlAlchemyLearningRepository"]:
        try:
            yield self
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

    # -------------------------------------------------------------------------
    # Learner
    # -------------------------------------------------------------------------

    async def _get_profile_row(self, learner_id: str) -> Optional[LearnerProfile]:
        result = await self.db.execute(
            select(LearnerProfile).where(LearnerProfile.learner_id == learner_id)
        )
        return result.scalar_one_or_none()

    @property
    def dialect_name(self) -> str:
        return self.db.get_bind().dialect.name

    async def _get_or_create_profile_row(self, learner_id: str) -> LearnerProfile:
        await self.db.execute(
            ensure_profile_statement(self.dialect_name, learner_id, self.initial_hearts)
        )
        result = await self.db.execute(profile_lock_query(learner_id))
        return result.scalar_one()

    async def lock_learner(self, learner_id: str) -> None:
        """
        Lock the learner's profile row until the transaction ends.

        The row is created with defaults first so there is always something
        to lock. On SQLite, where FOR UPDATE is not rendered, writers are
        already serialized by the database lock.
        """
        await self._get_or_create_profile_row(learner_id)

    async def get_profile(self, learner_id: str) -> LearnerProfileState:
        row = await self._get_profile_row(learner_id)
        if row is None:
            return LearnerProfileState(learner_id=learner_id, hearts=self.initial_hearts)
        return LearnerProfileState(
            learner_id=row.learner_id,
            total_xp=row.total_xp,
            streak_days=row.streak_days,
            hearts=row.hearts,
            learner_level=row.learner_level,
            last_completed_date=row.last_completed_date,
        )

    async def save_profile(self, profile: LearnerProfileState) -> None:
        row = await self._get_or_create_profile_row(profile.learner_id)
        row.total_xp = profile.total_xp
        row.streak_days = profile.streak_days
        row.hearts = profile.hearts
        row.learner_level = profile.learner_level
        row.last_completed_date = profile.last_completed_date
        await self.db.flush()

    async def get_settings(self, learner_id: str) -> Optional[LearnerSettingsState]:
        row = await self._get_profile_row(learner_id)
        if row is None:
            return None
        defaults = LearnerSettingsState(learner_id=learner_id)
        return LearnerSettingsState(
            learner_id=row.learner_id,
            learner_name=row.learner_name or defaults.learner_name,
            native_language=row.native_language or defaults.native_language,
            target_language=row.target_language or defaults.target_language,
            daily_goal=row.daily_goal,
            daily_minutes=row.daily_minutes,
            weekly_goal_sessions=row.weekly_goal_sessions,
            self_rated_level=row.self_rated_level,
            learner_bio=row.learner_bio or "",
            focus_area=row.focus_area or "",
        )

    async def save_settings(self, learner_settings: LearnerSettingsState) -> None:
        row = await self._get_or_create_profile_row(learner_settings.learner_id)
        row.learner_name = learner_settings.learner_name
        row.native_language = learner_settings.native_language
        row.target_language = learner_settings.target_language
        row.daily_goal = learner_settings.daily_goal
        row.daily_minutes = learner_settings.daily_minutes
        row.weekly_goal_sessions = learner_settings.weekly_goal_sessions
        row.self_rated_level = learner_settings.self_rated_level.value
        row.learner_bio = learner_settings.learner_bio
        row.focus_area = learner_settings.focus_area
        await self.db.flush()

    # -------------------------------------------------------------------------
    # Progress
    # -------------------------------------------------------------------------

    async def list_item_progress(
        self, learner_id: str, language: str, category: str
    ) -> list[ItemProgressState]:
        result = await self.db.execute(
            select(ItemProgress).where(
                ItemProgress.learner_id == learner_id,
                ItemProgress.language == language,
                ItemProgress.category == category,
            )
        )
        return [
            ItemProgressState.model_validate(row, from_attributes=True)
            for row in result.scalars().all()
        ]

    async def save_item_progress(self, states: list[ItemProgressState]) -> None:
        if not states:
            return

        first = states[0]
        result = await self.db.execute(
            select(ItemProgress).where(
                ItemProgress.learner_id == first.learner_id,
                ItemProgress.language == first.language,
                ItemProgress.category == first.category,
                ItemProgress.item_id.in_([state.item_id for state in states]),
            )
        )
        existing = {row.item_id: row for row in result.scalars().all()}

        for state in states:
            row = existing.get(state.item_id)
            if row is None:
                row = ItemProgress(
                    learner_id=state.learner_id,
                    language=state.language,
                    category=state.category,
                    item_id=state.item_id,
                )
                self.db.add(row)
            row.objective = state.objective
            row.ease = state.ease
            row.streak = state.streak
            row.attempts = state.attempts
            row.correct = state.correct
            row.error_count = state.error_count
            row.last_error_type = state.last_error_type
            row.last_seen_date = state.last_seen_date
            row.next_due_date = state.next_due_date

        await self.db.flush()

    async def _get_category_row(
        self, learner_id: str, language: str, category: str
    ) -> Optional[CategoryProgress]:
        result = await self.db.execute(
            select(CategoryProgress).where(
                CategoryProgress.learner_id == learner_id,
                CategoryProgress.language == language,
                CategoryProgress.category == category,
            )
        )
        return result.scalar_one_or_none()

    async def get_category_progress(
        self, learner_id: str, language: str, category: str
    ) -> Optional[CategoryProgressState]:
        row = await self._get_category_row(learner_id, language, category)
        if row is None:
            return None
        return CategoryProgressState.model_validate(row, from_attributes=True)

    async def list_category_progress(
        self, learner_id: str, language: str
    ) -> list[CategoryProgressState]:
        result = await self.db.execute(
            select(CategoryProgress)
            .where(
                CategoryProgress.learner_id == learner_id,
                CategoryProgress.language == language,
            )
            .order_by(CategoryProgress.id)
        )
        return [
            CategoryProgressState.model_validate(row, from_attributes=True)
            for row in result.scalars().all()
        ]

    async def save_category_progress(self, state: CategoryProgressState) -> None:
        row = await self._get_category_row(state.learner_id, state.language, state.category)
        if row is None:
            row = CategoryProgress(
                learner_id=state.learner_id,
                language=state.language,
                category=state.category,
            )
            self.db.add(row)
        row.mastery = state.mastery
        row.attempts = state.attempts
        row.total_answers = state.total_answers
        row.correct_answers = state.correct_answers
        row.level_unlocked = state.level_unlocked.value
        row.last_practiced_at = state.last_practiced_at
        await self.db.flush()

    async def recent_session_accuracy(
        self, learner_id: str, language: str, category: str, limit: int
    ) -> Optional[float]:
        result = await self.db.execute(
            select(SessionHistory)
            .where(
                SessionHistory.learner_id == learner_id,
                SessionHistory.language == language,
                SessionHistory.category == category,
            )
            .order_by(desc(SessionHistory.completed_at), desc(SessionHistory.id))
            .limit(limit)
        )
        entries = [
            SessionHistoryEntry.model_validate(row, from_attributes=True)
            for row in result.scalars().all()
        ]
        return _mean_accuracy(entries)

    # -------------------------------------------------------------------------
    # Active sessions
    # -------------------------------------------------------------------------

    async def create_active_session(self, record: ActiveSessionRecord) -> None:
        row = ActiveSession(
            session_id=record.session_id,
            learner_id=record.learner_id,
            language=record.language,
            category=record.category,
            difficulty_level=record.difficulty_level.value,
            difficulty_multiplier=record.difficulty_multiplier,
            questions=encode_questions(record),
            schema_version=QUESTION_SCHEMA_VERSION,
            expires_on=record.expires_on,
            completed=record.completed,
        )
        if record.created_at is not None:
            row.created_at = record.created_at
        self.db.add(row)
        await self.db.flush()

    async def get_active_session(
        self, session_id: str, learner_id: str
    ) -> Optional[ActiveSessionRecord]:
        # populate_existing: claims are bulk UPDATEs that bypass the identity map
        result = await self.db.execute(
            select(ActiveSession)
            .where(
                ActiveSession.session_id == session_id,
                ActiveSession.learner_id == learner_id,
            )
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None

        return ActiveSessionRecord(
            session_id=row.session_id,
            learner_id=row.learner_id,
            language=row.language,
            category=row.category,
            difficulty_level=row.difficulty_level,
            difficulty_multiplier=row.difficulty_multiplier,
            questions=decode_questions(row.questions, row.schema_version),
            expires_on=row.expires_on,
            completed=row.completed,
            created_at=row.created_at,
        )

    async def claim_active_session(
        self, session_id: str, learner_id: str, now: datetime
    ) -> bool:
        result = await self.db.execute(
            update(ActiveSession)
            .where(
                ActiveSession.session_id == session_id,
                ActiveSession.learner_id == learner_id,
                ActiveSession.completed == False,  # noqa: E712
            )
            .values(completed=True, completed_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def prune_active_sessions(self, learner_id: str, today: date) -> int:
        result = await self.db.execute(
            delete(ActiveSession)
            .where(
                ActiveSession.learner_id == learner_id,
                ActiveSession.expires_on < today,
            )
            .execution_options(synchronize_session=False)
        )
        pruned = result.rowcount or 0
        if pruned:
            logger.debug(f"Pruned {pruned} expired sessions for learner {learner_id}")
        return pruned

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    async def add_session_history(self, entry: SessionHistoryEntry) -> None:
        data = entry.model_dump(exclude_none=True)
        data["difficulty_level"] = entry.difficulty_level.value
        self.db.add(SessionHistory(**data))
        await self.db.flush()

    async def list_session_history(
        self, learner_id: str, language: str
    ) -> list[SessionHistoryEntry]:
        result = await self.db.execute(
            select(SessionHistory)
            .where(
                SessionHistory.learner_id == learner_id,
                SessionHistory.language == language,
            )
            .order_by(SessionHistory.completed_at, SessionHistory.id)
        )
        return [
            SessionHistoryEntry.model_validate(row, from_attributes=True)
            for row in result.scalars().all()
        ]

    async def add_attempt_history(self, entries: list[AttemptHistoryEntry]) -> None:
        for entry in entries:
            data = entry.model_dump()
            data["question_type"] = entry.question_type.value
            data["error_type"] = entry.error_type.value
            self.db.add(AttemptHistory(**data))
        await self.db.flush()

    async def list_attempt_history(
        self, learner_id: str, language: str, since: Optional[date] = None
    ) -> list[AttemptHistoryEntry]:
        query = select(AttemptHistory).where(
            AttemptHistory.learner_id == learner_id,
            AttemptHistory.language == language,
        )
        if since is not None:
            query = query.where(AttemptHistory.created_on >= since)

        result = await self.db.execute(query.order_by(AttemptHistory.id))
        return [
            AttemptHistoryEntry.model_validate(row, from_attributes=True)
            for row in result.scalars().all()
        ]

    # -------------------------------------------------------------------------
    # Daily XP
    # -------------------------------------------------------------------------

    async def add_daily_xp(self, learner_id: str, language: str, day: date, xp: int) -> None:
        await self.db.execute(daily_xp_upsert(self.dialect_name, learner_id, language, day, xp))

    async def get_daily_xp(self, learner_id: str, language: str, day: date) -> int:
        result = await self.db.execute(
            select(DailyXp.xp).where(
                DailyXp.learner_id == learner_id,
                DailyXp.language == language,
                DailyXp.day == day,
            )
        )
        return result.scalar_one_or_none() or 0


# =============================================================================
# In-Memory Implementation
# =============================================================================


class InMemoryLearningRepository:
    """
    Dict-backed repository.

    Transactions are serialized by an asyncio.Lock; each one snapshots the
    state on entry and restores it if the block raises.
    """

    def __init__(self, initial_hearts: int = 5):
        self.initial_hearts = initial_hearts
        self._lock = asyncio.Lock()
        self._state: dict[str, dict] = {
            "profiles": {},
            "settings": {},
            "items": {},
            "categories": {},
            "sessions": {},
            "session_history": [],
            "attempt_history": [],
            "daily_xp": {},
        }

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["InMemoryLearningRepository"]:
        async with self._lock:
            snapshot = copy.deepcopy(self._state)
            try:
                yield self
            except Exception:
                self._state = snapshot
                raise

    # Learner

    async def lock_learner(self, learner_id: str) -> None:
        # transaction() already holds the repository-wide lock
        return None

    async def get_profile(self, learner_id: str) -> LearnerProfileState:
        profile = self._state["profiles"].get(learner_id)
        if profile is None:
            return LearnerProfileState(learner_id=learner_id, hearts=self.initial_hearts)
        return profile

    async def save_profile(self, profile: LearnerProfileState) -> None:
        self._state["profiles"][profile.learner_id] = profile

    async def get_settings(self, learner_id: str) -> Optional[LearnerSettingsState]:
        return self._state["settings"].get(learner_id)

    async def save_settings(self, learner_settings: LearnerSettingsState) -> None:
        self._state["settings"][learner_settings.learner_id] = learner_settings

    # Progress

    async def list_item_progress(
        self, learner_id: str, language: str, category: str
    ) -> list[ItemProgressState]:
        return [
            state
            for (learner, lang, cat, _), state in self._state["items"].items()
            if (learner, lang, cat) == (learner_id, language, category)
        ]

    async def save_item_progress(self, states: list[ItemProgressState]) -> None:
        for state in states:
            key = (state.learner_id, state.language, state.category, state.item_id)
            self._state["items"][key] = state

    async def get_category_progress(
        self, learner_id: str, language: str, category: str
    ) -> Optional[CategoryProgressState]:
        return self._state["categories"].get((learner_id, language, category))

    async def list_category_progress(
        self, learner_id: str, language: str
    ) -> list[CategoryProgressState]:
        return [
            state
            for (learner, lang, _), state in self._state["categories"].items()
            if (learner, lang) == (learner_id, language)
        ]

    async def save_category_progress(self, state: CategoryProgressState) -> None:
        self._state["categories"][(state.learner_id, state.language, state.category)] = state

    async def recent_session_accuracy(
        self, learner_id: str, language: str, category: str, limit: int
    ) -> Optional[float]:
        matching = [
            entry
            for entry in self._state["session_history"]
            if (entry.learner_id, entry.language, entry.category)
            == (learner_id, language, category)
        ]
        return _mean_accuracy(list(reversed(matching))[:limit])

    # Active sessions

    async def create_active_session(self, record: ActiveSessionRecord) -> None:
        self._state["sessions"][record.session_id] = {
            "record": record.model_copy(update={"questions": ()}),
            "questions": encode_questions(record),
            "schema_version": QUESTION_SCHEMA_VERSION,
        }

    async def get_active_session(
        self, session_id: str, learner_id: str
    ) -> Optional[ActiveSessionRecord]:
        stored = self._state["sessions"].get(session_id)
        if stored is None or stored["record"].learner_id != learner_id:
            return None
        questions = decode_questions(stored["questions"], stored["schema_version"])
        return stored["record"].model_copy(update={"questions": questions})

    async def claim_active_session(
        self, session_id: str, learner_id: str, now: datetime
    ) -> bool:
        stored = self._state["sessions"].get(session_id)
        if stored is None:
            return False
        record = stored["record"]
        if record.learner_id != learner_id or record.completed:
            return False
        stored["record"] = record.model_copy(update={"completed": True})
        return True

    async def prune_active_sessions(self, learner_id: str, today: date) -> int:
        expired = [
            session_id
            for session_id, stored in self._state["sessions"].items()
            if stored["record"].learner_id == learner_id
            and stored["record"].expires_on < today
        ]
        for session_id in expired:
            del self._state["sessions"][session_id]
        return len(expired)

    # History

    async def add_session_history(self, entry: SessionHistoryEntry) -> None:
        self._state["session_history"].append(entry)

    async def list_session_history(
        self, learner_id: str, language: str
    ) -> list[SessionHistoryEntry]:
        return [
            entry
            for entry in self._state["session_history"]
            if entry.learner_id == learner_id and entry.language == language
        ]

    async def add_attempt_history(self, entries: list[AttemptHistoryEntry]) -> None:
        self._state["attempt_history"].extend(entries)

    async def list_attempt_history(
        self, learner_id: str, language: str, since: Optional[date] = None
    ) -> list[AttemptHistoryEntry]:
        return [
            entry
            for entry in self._state["attempt_history"]
            if entry.learner_id == learner_id
            and entry.language == language
            and (since is None or entry.created_on >= since)
        ]

    # Daily XP

    async def add_daily_xp(self, learner_id: str, language: str, day: date, xp: int) -> None:
        key = (learner_id, language, day)
        self._state["daily_xp"][key] = self._state["daily_xp"].get(key, 0) + max(0, xp)

    async def get_daily_xp(self, learner_id: str, language: str, day: date) -> int:
        return self._state["daily_xp"].get((learner_id, language, day), 0)
