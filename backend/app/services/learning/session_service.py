"""
Practice Session Service

Orchestrates the two session operations:

start_session:
    corpus lookup → lazy prune of expired sessions → difficulty inputs
    (mastery, recent accuracy, self-rated level) → due/weak hints →
    question generation → persisted ActiveSession

complete_session (one repository transaction):
    learner lock → session lookup → lifecycle checks → batch evaluation → claim
    (compare-and-set) → item/category/profile updates → history and
    daily XP → response snapshot

Lifecycle check order on completion:
    1. unknown session (or another learner's)  → NotFoundError
    2. already completed                        → ConflictError
    3. language/category mismatch               → InvalidRequestError
    4. past expiry date                         → GoneError
    5. attempt for a question not in session    → UnknownQuestionError

Usage:
    from app.services.learning.session_service import PracticeSessionService

    service = PracticeSessionService(repo, catalog)
    started = await service.start_session("learner-1", SessionStartRequest(...))
    result = await service.complete_session("learner-1", SessionCompleteRequest(...))
"""

import logging
import random
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from app.config import Settings, settings as app_settings
from app.enums.learning import Level, SessionState
from app.middleware.error_handling import (
    ConflictError,
    GoneError,
    InvalidRequestError,
    NotFoundError,
    UnknownQuestionError,
)
from app.models.learning import (
    ActiveSessionRecord,
    AttemptHistoryEntry,
    CategoryProgressState,
    EvaluationSummary,
    SessionCompleteRequest,
    SessionCompleteResponse,
    SessionHistoryEntry,
    SessionStartRequest,
    SessionStartResponse,
)
from app.rounding import round_fixed
from app.services.course_catalog import CourseCatalog
from app.services.learning.answer_evaluator import evaluate_batch
from app.services.learning.item_scheduler import select_hints
from app.services.learning.progression import apply_session
from app.services.learning.repository import LearningRepository
from app.services.learning.session_generator import SessionGenerator

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PracticeSessionService:
    """
    Practice session orchestration service.

    Collaborators are injected so tests can pin randomness and time:
    - repository: persistence (SQL or in-memory)
    - catalog: read-only course corpus
    - rng: random source for selection and shuffles
    - clock: returns the current UTC datetime; its date is "today"
    """

    def __init__(
        self,
        repository: LearningRepository,
        catalog: CourseCatalog,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utc_now,
        config: Optional[Settings] = None,
    ):
        """
        Initialize session service.

        Args:
            repository: Learning repository
            catalog: Course catalog
            rng: Random source (defaults to an unseeded Random)
            clock: Current-time provider
            config: Settings (defaults to the application settings)
        """
        self.repo = repository
        self.catalog = catalog
        self.generator = SessionGenerator(rng=rng)
        self.clock = clock
        self.config = config or app_settings

    # =========================================================================
    # Start
    # =========================================================================

    def _resolve_count(self, requested: Optional[int]) -> int:
        if requested is None:
            return self.config.SESSION_DEFAULT_QUESTIONS
        return max(
            self.config.SESSION_MIN_QUESTIONS,
            min(self.config.SESSION_MAX_QUESTIONS, requested),
        )

    async def start_session(
        self, learner_id: str, request: SessionStartRequest
    ) -> SessionStartResponse:
        """
        Generate and persist a new practice session.

        Args:
            learner_id: Caller identity
            request: Language, category and requested question count

        Returns:
            SessionStartResponse with the generated questions

        Raises:
            NotFoundError: If the language/category has no course items
        """
        items = self.catalog.get_items(request.language, request.category)
        if not items:
            raise NotFoundError(
                f"No course items for {request.language}/{request.category}",
                details={"language": request.language, "category": request.category},
            )

        count = self._resolve_count(request.count)
        now = self.clock()
        today = now.date()

        async with self.repo.transaction():
            await self.repo.prune_active_sessions(learner_id, today)

            category = await self.repo.get_category_progress(
                learner_id, request.language, request.category
            )
            recent_accuracy = await self.repo.recent_session_accuracy(
                learner_id,
                request.language,
                request.category,
                self.config.RECENT_ACCURACY_WINDOW,
            )
            learner_settings = await self.repo.get_settings(learner_id)
            progress = await self.repo.list_item_progress(
                learner_id, request.language, request.category
            )
            hints = select_hints(progress, today, self.config.SELECTION_HINT_LIMIT)

            generated = self.generator.generate(
                items,
                category=request.category,
                count=count,
                mastery=category.mastery if category else 0.0,
                recent_accuracy=recent_accuracy,
                self_rated_level=(
                    learner_settings.self_rated_level if learner_settings else Level.A1
                ),
                hints=hints,
            )

            record = ActiveSessionRecord(
                session_id=str(uuid.uuid4()),
                learner_id=learner_id,
                language=request.language,
                category=request.category,
                difficulty_level=generated.recommended_level,
                difficulty_multiplier=generated.difficulty_multiplier,
                questions=tuple(generated.questions),
                expires_on=today + timedelta(days=self.config.SESSION_TTL_DAYS),
                created_at=now,
            )
            await self.repo.create_active_session(record)

        logger.info(
            f"Session {record.session_id} started for {learner_id}: "
            f"{request.language}/{request.category} at {record.difficulty_level.value}, "
            f"{len(record.questions)} questions"
        )

        return SessionStartResponse(
            session_id=record.session_id,
            language=record.language,
            category=record.category,
            recommended_level=record.difficulty_level,
            difficulty_multiplier=record.difficulty_multiplier,
            expires_on=record.expires_on,
            questions=list(record.questions),
        )

    # =========================================================================
    # Complete
    # =========================================================================

    def _validate_batch(self, request: SessionCompleteRequest) -> None:
        if not request.attempts:
            raise InvalidRequestError("At least one attempt is required")
        if len(request.attempts) > self.config.MAX_ATTEMPTS_PER_COMPLETION:
            raise InvalidRequestError(
                "Too many attempts in one completion",
                details={
                    "attempts": len(request.attempts),
                    "limit": self.config.MAX_ATTEMPTS_PER_COMPLETION,
                },
            )

    def _check_session(
        self,
        session: Optional[ActiveSessionRecord],
        request: SessionCompleteRequest,
        learner_id: str,
        now: datetime,
    ) -> ActiveSessionRecord:
        if session is None:
            raise NotFoundError(
                "Session not found", details={"session_id": request.session_id}
            )

        state = session.state(now.date())
        if state == SessionState.COMPLETED:
            logger.warning(f"Rejected repeat completion of {session.session_id} by {learner_id}")
            raise ConflictError(
                "Session already completed", details={"session_id": session.session_id}
            )
        if session.language != request.language or session.category != request.category:
            raise InvalidRequestError(
                "Session language/category mismatch",
                details={
                    "expected": [session.language, session.category],
                    "received": [request.language, request.category],
                },
            )
        if state == SessionState.EXPIRED:
            logger.warning(f"Rejected completion of expired session {session.session_id}")
            raise GoneError(
                "Session expired",
                details={"session_id": session.session_id, "expires_on": str(session.expires_on)},
            )
        return session

    async def complete_session(
        self, learner_id: str, request: SessionCompleteRequest
    ) -> SessionCompleteResponse:
        """
        Score a session and apply progression, all or nothing.

        Args:
            learner_id: Caller identity
            request: Session id, metadata echo, attempts and hint counters

        Returns:
            SessionCompleteResponse with evaluation and updated progression

        Raises:
            InvalidRequestError: Empty/oversized batch or metadata mismatch
            UnknownQuestionError: Attempt for a question not in the session
            NotFoundError: Unknown session
            ConflictError: Session already completed (including lost races)
            GoneError: Session expired
        """
        self._validate_batch(request)

        now = self.clock()
        today = now.date()

        async with self.repo.transaction():
            # Serializes completions of this learner's sessions; released on
            # commit or rollback
            await self.repo.lock_learner(learner_id)

            session = self._check_session(
                await self.repo.get_active_session(request.session_id, learner_id),
                request,
                learner_id,
                now,
            )

            try:
                evaluation = evaluate_batch(request.attempts, session.questions)
            except UnknownQuestionError:
                logger.warning(f"Rejected completion of {session.session_id}: unknown question id")
                raise

            if not await self.repo.claim_active_session(session.session_id, learner_id, now):
                logger.warning(f"Lost completion race for {session.session_id}")
                raise ConflictError(
                    "Session already completed", details={"session_id": session.session_id}
                )

            existing_items = {
                state.item_id: state
                for state in await self.repo.list_item_progress(
                    learner_id, session.language, session.category
                )
            }
            category = await self.repo.get_category_progress(
                learner_id, session.language, session.category
            ) or CategoryProgressState(
                learner_id=learner_id,
                language=session.language,
                category=session.category,
            )
            profile = await self.repo.get_profile(learner_id)

            progression = apply_session(
                evaluation=evaluation,
                difficulty=session.difficulty_level,
                item_states=existing_items,
                category=category,
                profile=profile,
                hints_used=request.hints_used,
                revealed_answers=request.revealed_answers,
                today=today,
                now=now,
                xp_per_level=self.config.XP_PER_LEARNER_LEVEL,
            )

            await self.repo.save_item_progress(progression.items)
            await self.repo.save_category_progress(progression.category)
            await self.repo.add_session_history(
                SessionHistoryEntry(
                    learner_id=learner_id,
                    session_id=session.session_id,
                    language=session.language,
                    category=session.category,
                    score=evaluation.score,
                    max_score=evaluation.effective_max_score,
                    mistakes=evaluation.mistakes,
                    accuracy=evaluation.accuracy,
                    xp_gained=progression.xp_gained,
                    hints_used=request.hints_used,
                    revealed_answers=request.revealed_answers,
                    difficulty_level=session.difficulty_level,
                    completed_on=today,
                    completed_at=now,
                )
            )
            await self.repo.add_attempt_history(
                [
                    AttemptHistoryEntry(
                        learner_id=learner_id,
                        session_id=session.session_id,
                        language=session.language,
                        category=session.category,
                        item_id=attempt.question_id,
                        objective=attempt.objective,
                        question_type=attempt.question_type,
                        correct=attempt.correct,
                        error_type=attempt.error_type,
                        created_on=today,
                    )
                    for attempt in evaluation.attempts
                ]
            )
            await self.repo.save_profile(progression.profile)
            await self.repo.add_daily_xp(
                learner_id, session.language, today, progression.xp_gained
            )

        logger.info(
            f"Session {session.session_id} completed by {learner_id}: "
            f"{evaluation.score}/{evaluation.effective_max_score}, +{progression.xp_gained} XP"
        )

        return SessionCompleteResponse(
            session_id=session.session_id,
            evaluated=EvaluationSummary(
                score=evaluation.score,
                max_score=evaluation.effective_max_score,
                mistakes=evaluation.mistakes,
                accuracy_percent=round_fixed(evaluation.accuracy * 100),
            ),
            xp_gained=progression.xp_gained,
            total_xp=progression.profile.total_xp,
            streak_days=progression.profile.streak_days,
            hearts=progression.profile.hearts,
            learner_level=progression.profile.learner_level,
            mastery=round_fixed(progression.category.mastery),
            level_unlocked=progression.category.level_unlocked,
        )
