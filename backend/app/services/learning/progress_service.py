"""
Progress Service

Read models over the learner's stored state:

- Progress snapshot (XP, daily goal, streak, hearts, per-category mastery)
- Course overview (catalog categories with unlock state)
- Stats (session aggregates, error trend, weak objectives, goals)

Usage:
    from app.services.learning.progress_service import ProgressService

    service = ProgressService(repo, catalog)
    stats = await service.get_stats("learner-1", "spanish")
"""

import logging
from collections import Counter, defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

from app.config import Settings, settings as app_settings
from app.enums.learning import LEVEL_ORDER, Level
from app.middleware.error_handling import NotFoundError
from app.models.learning import (
    CategoryProgressResponse,
    CategoryProgressState,
    CategorySessionStats,
    CourseCategoryOverview,
    ErrorTypeCount,
    ObjectiveStats,
    ProgressResponse,
    StatsResponse,
)
from app.rounding import round_fixed, round_half_up
from app.services.course_catalog import CourseCatalog
from app.services.learning.repository import LearningRepository
from app.services.learning.settings_service import LearnerSettingsService

logger = logging.getLogger(__name__)

MASTERED_THRESHOLD = 75.0
ERROR_TREND_DAYS = 14
ERROR_TREND_LIMIT = 6
OBJECTIVE_LIMIT = 8
WEAKEST_CATEGORY_LIMIT = 2
RECENT_SESSION_DAYS = 7


def calculate_longest_streak(practice_dates: list[date]) -> int:
    """
    Longest run of consecutive practice days.

    Args:
        practice_dates: Dates with at least one completed session (any order,
            duplicates allowed)

    Returns:
        Length of the longest consecutive run, 0 when empty
    """
    if not practice_dates:
        return 0

    sorted_dates = sorted(set(practice_dates))

    longest = 1
    current = 1

    for i in range(1, len(sorted_dates)):
        if sorted_dates[i] == sorted_dates[i - 1] + timedelta(days=1):
            current += 1
            longest = max(longest, current)
        else:
            current = 1

    return longest


class ProgressService:
    """Builds progress, course and stats views for a learner."""

    def __init__(
        self,
        repository: LearningRepository,
        catalog: CourseCatalog,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        config: Optional[Settings] = None,
    ):
        self.repo = repository
        self.catalog = catalog
        self.clock = clock
        self.config = config or app_settings
        self.settings_service = LearnerSettingsService(repository, self.config)

    def _require_language(self, language: str) -> None:
        if not self.catalog.has_language(language):
            raise NotFoundError(f"Unknown language: {language}", details={"language": language})

    # =========================================================================
    # Progress
    # =========================================================================

    async def get_progress(self, learner_id: str, language: Optional[str] = None) -> ProgressResponse:
        """
        Progress snapshot, optionally scoped to a language.

        Without a language, today's XP and category breakdown are empty.
        """
        today = self.clock().date()
        profile = await self.repo.get_profile(learner_id)
        learner_settings = await self.settings_service.get_settings(learner_id)

        today_xp = 0
        categories: list[CategoryProgressResponse] = []
        if language:
            today_xp = await self.repo.get_daily_xp(learner_id, language, today)
            categories = [
                CategoryProgressResponse.from_state(state)
                for state in await self.repo.list_category_progress(learner_id, language)
            ]

        daily_goal = learner_settings.daily_goal
        goal_percent = (
            min(100, round_half_up(today_xp / daily_goal * 100)) if daily_goal > 0 else 0
        )

        return ProgressResponse(
            total_xp=profile.total_xp,
            today_xp=today_xp,
            daily_goal=daily_goal,
            daily_goal_percent=goal_percent,
            streak_days=profile.streak_days,
            hearts=profile.hearts,
            learner_level=profile.learner_level,
            last_completed_date=profile.last_completed_date,
            categories=categories,
        )

    # =========================================================================
    # Course Overview
    # =========================================================================

    def _is_unlocked(self, previous: Optional[CategoryProgressState]) -> bool:
        if previous is None:
            return False
        return (
            previous.mastery >= self.config.UNLOCK_MASTERY_THRESHOLD
            or previous.attempts >= self.config.UNLOCK_SESSION_THRESHOLD
        )

    async def get_course_overview(
        self, learner_id: str, language: str
    ) -> list[CourseCategoryOverview]:
        """
        Catalog categories in declaration order with learner progress.

        The first category is always open; each later one opens once the
        previous category reaches the mastery or session threshold.
        """
        self._require_language(language)

        progress = {
            state.category: state
            for state in await self.repo.list_category_progress(learner_id, language)
        }

        overview: list[CourseCategoryOverview] = []
        previous_id: Optional[str] = None
        previous_label = ""

        for category in self.catalog.categories:
            items = self.catalog.get_items(language, category.id)
            levels = sorted({item.level for item in items}, key=LEVEL_ORDER.index)
            state = progress.get(category.id)

            unlocked = previous_id is None or self._is_unlocked(progress.get(previous_id))
            lock_reason = ""
            if not unlocked:
                lock_reason = (
                    f"Reach {self.config.UNLOCK_MASTERY_THRESHOLD:.0f} mastery or complete "
                    f"{self.config.UNLOCK_SESSION_THRESHOLD} sessions in {previous_label}"
                )

            overview.append(
                CourseCategoryOverview(
                    id=category.id,
                    label=category.label,
                    description=category.description,
                    total_items=len(items),
                    levels=levels,
                    mastery=round_fixed(state.mastery) if state else 0.0,
                    attempts=state.attempts if state else 0,
                    accuracy=state.accuracy_percent if state else 0.0,
                    level_unlocked=state.level_unlocked if state else Level.A1,
                    unlocked=unlocked,
                    lock_reason=lock_reason,
                )
            )
            previous_id = category.id
            previous_label = category.label

        return overview

    # =========================================================================
    # Stats
    # =========================================================================

    async def get_stats(self, learner_id: str, language: str) -> StatsResponse:
        """
        Aggregate practice statistics for one language.

        Args:
            learner_id: Learner identity
            language: Language to report on

        Returns:
            StatsResponse
        """
        self._require_language(language)

        today = self.clock().date()
        profile = await self.repo.get_profile(learner_id)
        learner_settings = await self.settings_service.get_settings(learner_id)
        categories = await self.repo.list_category_progress(learner_id, language)
        history = await self.repo.list_session_history(learner_id, language)
        attempts = await self.repo.list_attempt_history(learner_id, language)

        # Session aggregates
        recent_cutoff = today - timedelta(days=RECENT_SESSION_DAYS - 1)
        sessions_last_7 = sum(1 for entry in history if entry.completed_on >= recent_cutoff)
        avg_accuracy = (
            sum(entry.accuracy for entry in history) / len(history) if history else 0.0
        )

        by_category: dict[str, list] = defaultdict(list)
        for entry in history:
            by_category[entry.category].append(entry)

        category_stats = [
            CategorySessionStats(
                category=category,
                sessions=len(entries),
                accuracy=round_fixed(sum(e.accuracy for e in entries) / len(entries) * 100),
                last_completed_at=max(
                    (e.completed_at for e in entries if e.completed_at), default=None
                ),
            )
            for category, entries in by_category.items()
        ]
        category_stats.sort(key=lambda s: (-s.sessions, -s.accuracy))

        # Attempt aggregates
        trend_cutoff = today - timedelta(days=ERROR_TREND_DAYS - 1)
        error_counts = Counter(
            entry.error_type
            for entry in attempts
            if not entry.correct and entry.created_on >= trend_cutoff
        )
        error_trend = [
            ErrorTypeCount(error_type=error_type, count=count)
            for error_type, count in error_counts.most_common(ERROR_TREND_LIMIT)
        ]

        objective_totals: dict[str, list[int]] = defaultdict(lambda: [0, 0])
        for entry in attempts:
            if not entry.objective:
                continue
            objective_totals[entry.objective][0] += 1
            objective_totals[entry.objective][1] += 1 if entry.correct else 0

        ranked_objectives = sorted(
            objective_totals.items(),
            key=lambda item: (item[1][1] / item[1][0], -item[1][0]),
        )
        objective_stats = [
            ObjectiveStats(
                objective=objective,
                attempts=total,
                accuracy=round_fixed(correct / total * 100),
            )
            for objective, (total, correct) in ranked_objectives[:OBJECTIVE_LIMIT]
        ]

        # Category aggregates
        completion_percent = (
            round_half_up(sum(c.mastery for c in categories) / len(categories))
            if categories
            else 0
        )
        accuracy_percent = (
            round_half_up(sum(c.accuracy_percent for c in categories) / len(categories))
            if categories
            else 0
        )
        weakest = sorted(
            (c for c in categories if c.attempts > 0),
            key=lambda c: (c.accuracy_percent, c.mastery),
        )[:WEAKEST_CATEGORY_LIMIT]

        weekly_goal = learner_settings.weekly_goal_sessions
        weekly_progress = (
            min(100, round_half_up(sessions_last_7 / weekly_goal * 100)) if weekly_goal > 0 else 0
        )

        longest_streak = max(
            calculate_longest_streak([entry.completed_on for entry in history]),
            profile.streak_days,
        )

        return StatsResponse(
            sessions_completed=len(history),
            sessions_last_7_days=sessions_last_7,
            avg_session_accuracy=round_fixed(avg_accuracy * 100),
            total_xp_from_sessions=sum(entry.xp_gained for entry in history),
            completion_percent=completion_percent,
            accuracy_percent=accuracy_percent,
            mastered_count=sum(1 for c in categories if c.mastery >= MASTERED_THRESHOLD),
            category_count=len(categories),
            streak_days=profile.streak_days,
            longest_streak_days=longest_streak,
            weekly_goal_sessions=weekly_goal,
            weekly_goal_progress=weekly_progress,
            weakest_categories=[c.category for c in weakest],
            category_stats=category_stats,
            error_type_trend=error_trend,
            objective_stats=objective_stats,
        )
