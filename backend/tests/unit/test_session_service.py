"""
Unit tests for PracticeSessionService.

Tests the start/complete orchestration against the in-memory repository:
- Session generation and question count clamping
- Completion scoring and progression
- Lifecycle checks (not found, conflict, gone, mismatch, unknown question)
- All-or-nothing completion and the single-winner claim under concurrency
"""

import asyncio
from datetime import timedelta

import pytest

from app.enums.learning import Level
from app.middleware.error_handling import (
    ConflictError,
    GoneError,
    InvalidRequestError,
    NotFoundError,
    UnknownQuestionError,
)
from app.models.learning import (
    Attempt,
    LearnerSettingsState,
    SessionCompleteRequest,
    SessionStartRequest,
)
from app.services.learning.session_service import PracticeSessionService

LEARNER = "learner-1"


@pytest.fixture
def service(memory_repo, catalog, rng, clock):
    return PracticeSessionService(memory_repo, catalog, rng=rng, clock=clock)


async def start(service, learner_id=LEARNER, category="essentials", count=None):
    return await service.start_session(
        learner_id,
        SessionStartRequest(language="spanish", category=category, count=count),
    )


def complete_request(started, attempts, **overrides) -> SessionCompleteRequest:
    data = {
        "session_id": started.session_id,
        "language": started.language,
        "category": started.category,
        "attempts": attempts,
    }
    data.update(overrides)
    return SessionCompleteRequest(**data)


class TestStartSession:
    """Tests for start_session()."""

    @pytest.mark.asyncio
    async def test_default_count(self, service):
        """Test that an omitted count gives the default ten questions."""
        started = await start(service)

        assert len(started.questions) == 10
        assert started.recommended_level == Level.A1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("requested,expected", [(1, 6), (7, 7), (50, 8)])
    async def test_count_is_clamped(self, service, requested, expected):
        """Test clamping into [6, 15], bounded by the eight travel items."""
        started = await start(service, category="travel", count=requested)

        assert len(started.questions) == expected

    @pytest.mark.asyncio
    async def test_expiry_and_persistence(self, service, memory_repo, clock):
        """Test that the session is stored with a two-day lifetime."""
        started = await start(service)

        stored = await memory_repo.get_active_session(started.session_id, LEARNER)

        assert started.expires_on == clock().date() + timedelta(days=2)
        assert stored is not None
        assert stored.questions == tuple(started.questions)
        assert stored.completed is False

    @pytest.mark.asyncio
    async def test_unknown_category(self, service):
        """Test that a category without items is not found."""
        with pytest.raises(NotFoundError):
            await start(service, category="cooking")

    @pytest.mark.asyncio
    async def test_self_rated_level_raises_difficulty(self, service, memory_repo):
        """Test that the self-rated level feeds difficulty resolution."""
        await memory_repo.save_settings(
            LearnerSettingsState(learner_id=LEARNER, self_rated_level=Level.B2)
        )

        started = await start(service)

        assert started.recommended_level == Level.B1
        assert started.difficulty_multiplier == 1.6


class TestCompleteSession:
    """Tests for complete_session() scoring and progression."""

    @pytest.mark.asyncio
    async def test_perfect_session(self, service, memory_repo, clock, make_attempts):
        """Test score, XP and learner state after a perfect session."""
        started = await start(service)

        result = await service.complete_session(
            LEARNER, complete_request(started, make_attempts(started.questions))
        )

        assert result.evaluated.score == 10
        assert result.evaluated.max_score == 10
        assert result.evaluated.mistakes == 0
        assert result.evaluated.accuracy_percent == 100.0
        assert result.xp_gained == 44
        assert result.total_xp == 44
        assert result.streak_days == 1
        assert result.hearts == 5
        assert result.learner_level == 1
        assert result.mastery == 11.2
        assert result.level_unlocked == Level.A1

        today = clock().date()
        assert await memory_repo.get_daily_xp(LEARNER, "spanish", today) == 44
        assert len(await memory_repo.list_item_progress(LEARNER, "spanish", "essentials")) == 10
        assert len(await memory_repo.list_attempt_history(LEARNER, "spanish")) == 10
        history = await memory_repo.list_session_history(LEARNER, "spanish")
        assert [entry.session_id for entry in history] == [started.session_id]

    @pytest.mark.asyncio
    async def test_mistakes_cost_hearts(self, service, make_attempts):
        """Test that every three mistakes cost a heart."""
        started = await start(service)

        result = await service.complete_session(
            LEARNER, complete_request(started, make_attempts(started.questions, correct=False))
        )

        assert result.evaluated.mistakes == 10
        assert result.hearts == 2
        assert result.mastery == 0.0

    @pytest.mark.asyncio
    async def test_partial_batch_uses_session_length(self, service, make_attempts):
        """Test that unanswered questions still count toward the max score."""
        started = await start(service)

        result = await service.complete_session(
            LEARNER, complete_request(started, make_attempts(started.questions[:5]))
        )

        assert result.evaluated.score == 5
        assert result.evaluated.max_score == 10
        assert result.evaluated.accuracy_percent == 50.0

    @pytest.mark.asyncio
    async def test_streak_across_days(self, service, clock, make_attempts):
        """Test that sessions on consecutive days extend the streak."""
        for _ in range(3):
            started = await start(service)
            result = await service.complete_session(
                LEARNER, complete_request(started, make_attempts(started.questions))
            )
            clock.advance(days=1)

        assert result.streak_days == 3

    @pytest.mark.asyncio
    async def test_learners_are_independent(self, service, memory_repo, make_attempts):
        """Test that one learner's completion leaves another untouched."""
        first = await start(service, learner_id="alice")
        second = await start(service, learner_id="bob")

        await service.complete_session("alice", complete_request(first, make_attempts(first.questions)))

        bob = await memory_repo.get_profile("bob")
        assert bob.total_xp == 0
        assert (await memory_repo.get_active_session(second.session_id, "bob")).completed is False


class TestCompletionChecks:
    """Tests for completion lifecycle checks and atomicity."""

    @pytest.mark.asyncio
    async def test_second_completion_conflicts(self, service, memory_repo, make_attempts):
        """Test that a repeat completion is rejected without crediting XP again."""
        started = await start(service)
        request = complete_request(started, make_attempts(started.questions))
        await service.complete_session(LEARNER, request)

        with pytest.raises(ConflictError):
            await service.complete_session(LEARNER, request)

        profile = await memory_repo.get_profile(LEARNER)
        assert profile.total_xp == 44
        assert len(await memory_repo.list_session_history(LEARNER, "spanish")) == 1

    @pytest.mark.asyncio
    async def test_unknown_session(self, service, make_attempts):
        """Test that an unknown session id is not found."""
        started = await start(service)

        with pytest.raises(NotFoundError):
            await service.complete_session(
                LEARNER,
                complete_request(started, make_attempts(started.questions), session_id="missing"),
            )

    @pytest.mark.asyncio
    async def test_other_learners_session_is_not_found(self, service, make_attempts):
        """Test that a session cannot be completed by another learner."""
        started = await start(service, learner_id="alice")

        with pytest.raises(NotFoundError):
            await service.complete_session(
                "mallory", complete_request(started, make_attempts(started.questions))
            )

    @pytest.mark.asyncio
    async def test_expired_session_is_gone(self, service, memory_repo, clock, make_attempts):
        """Test that a session past its expiry date cannot be completed."""
        started = await start(service)
        clock.advance(days=3)

        with pytest.raises(GoneError):
            await service.complete_session(
                LEARNER, complete_request(started, make_attempts(started.questions))
            )

        assert (await memory_repo.get_profile(LEARNER)).total_xp == 0

    @pytest.mark.asyncio
    async def test_session_usable_until_expiry_date(self, service, clock, make_attempts):
        """Test that the expiry day itself is still valid."""
        started = await start(service)
        clock.advance(days=2)

        result = await service.complete_session(
            LEARNER, complete_request(started, make_attempts(started.questions))
        )

        assert result.evaluated.score == 10

    @pytest.mark.asyncio
    async def test_expired_sessions_are_pruned_on_start(self, service, clock, make_attempts):
        """Test that starting a session deletes expired ones."""
        old = await start(service)
        clock.advance(days=3)
        await start(service)

        with pytest.raises(NotFoundError):
            await service.complete_session(
                LEARNER, complete_request(old, make_attempts(old.questions))
            )

    @pytest.mark.asyncio
    async def test_metadata_mismatch(self, service, make_attempts):
        """Test that language/category must match the stored session."""
        started = await start(service)

        with pytest.raises(InvalidRequestError):
            await service.complete_session(
                LEARNER,
                complete_request(started, make_attempts(started.questions), category="travel"),
            )

    @pytest.mark.asyncio
    async def test_mismatch_reported_before_expiry(self, service, clock, make_attempts):
        """Test that an expired session with the wrong category is a bad request."""
        started = await start(service)
        clock.advance(days=3)

        with pytest.raises(InvalidRequestError):
            await service.complete_session(
                LEARNER,
                complete_request(started, make_attempts(started.questions), category="travel"),
            )

    @pytest.mark.asyncio
    async def test_unknown_question_changes_nothing(self, service, memory_repo, make_attempts):
        """Test that an unknown question id rejects the batch and keeps the session open."""
        started = await start(service)
        attempts = make_attempts(started.questions) + [
            {"question_id": "ghost", "selected_option": "x"}
        ]

        with pytest.raises(UnknownQuestionError):
            await service.complete_session(LEARNER, complete_request(started, attempts))

        assert (await memory_repo.get_profile(LEARNER)).total_xp == 0
        assert await memory_repo.list_item_progress(LEARNER, "spanish", "essentials") == []
        stored = await memory_repo.get_active_session(started.session_id, LEARNER)
        assert stored.completed is False

        result = await service.complete_session(
            LEARNER, complete_request(started, make_attempts(started.questions))
        )
        assert result.xp_gained == 44

    @pytest.mark.asyncio
    async def test_empty_batch(self, service):
        """Test that a completion needs at least one attempt."""
        started = await start(service)

        with pytest.raises(InvalidRequestError):
            await service.complete_session(LEARNER, complete_request(started, []))

    @pytest.mark.asyncio
    async def test_oversized_batch(self, service):
        """Test that more than 400 attempts are rejected."""
        started = await start(service)
        question_id = started.questions[0].id
        attempts = [Attempt(question_id=question_id, selected_option="x")] * 401

        with pytest.raises(InvalidRequestError):
            await service.complete_session(LEARNER, complete_request(started, attempts))

    @pytest.mark.asyncio
    async def test_concurrent_completions_single_winner(self, service, memory_repo, make_attempts):
        """Test that racing completions credit the session exactly once."""
        started = await start(service)
        request = complete_request(started, make_attempts(started.questions))

        results = await asyncio.gather(
            *(service.complete_session(LEARNER, request) for _ in range(5)),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        conflicts = [r for r in results if isinstance(r, ConflictError)]
        assert len(successes) == 1
        assert len(conflicts) == 4
        assert (await memory_repo.get_profile(LEARNER)).total_xp == 44
