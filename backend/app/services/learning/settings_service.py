"""
Learner settings: read with defaults, partial update with clamping.
"""

import logging
from typing import Optional

from app.config import Settings, settings as app_settings
from app.enums.learning import Level
from app.models.learning import LearnerSettingsState, LearnerSettingsUpdate
from app.services.learning.repository import LearningRepository

logger = logging.getLogger(__name__)

DAILY_MINUTES_RANGE = (5, 240)
WEEKLY_SESSIONS_RANGE = (1, 21)
MAX_NAME_LENGTH = 60
MAX_BIO_LENGTH = 500
MAX_FOCUS_AREA_LENGTH = 200


def _clamp(value: int, bounds: tuple[int, int]) -> int:
    low, high = bounds
    return max(low, min(high, value))


def parse_level(value: Optional[str]) -> Level:
    """Parse a self-rated level, falling back to a1 for anything unknown."""
    try:
        return Level((value or "").strip().lower())
    except ValueError:
        return Level.A1


class LearnerSettingsService:
    """Reads and updates per-learner preferences."""

    def __init__(self, repository: LearningRepository, config: Optional[Settings] = None):
        self.repo = repository
        self.config = config or app_settings

    def defaults(self, learner_id: str) -> LearnerSettingsState:
        return LearnerSettingsState(
            learner_id=learner_id,
            daily_goal=self.config.DEFAULT_DAILY_GOAL,
            daily_minutes=self.config.DEFAULT_DAILY_MINUTES,
            weekly_goal_sessions=self.config.DEFAULT_WEEKLY_GOAL_SESSIONS,
        )

    async def get_settings(self, learner_id: str) -> LearnerSettingsState:
        stored = await self.repo.get_settings(learner_id)
        return stored or self.defaults(learner_id)

    async def update_settings(
        self, learner_id: str, update: LearnerSettingsUpdate
    ) -> LearnerSettingsState:
        """
        Apply a partial update.

        Omitted fields keep their value. Minutes and weekly goal are clamped,
        the daily goal is floored at 1 and unknown levels become a1. A blank
        name or language keeps the current value; bio and focus area may be
        cleared with an empty string.
        """
        async with self.repo.transaction():
            current = await self.get_settings(learner_id)
            changes = update.model_dump(exclude_unset=True, exclude_none=True)

            if "learner_name" in changes:
                changes["learner_name"] = (
                    changes["learner_name"][:MAX_NAME_LENGTH] or current.learner_name
                )
            # Free text; an empty string clears it
            if "learner_bio" in changes:
                changes["learner_bio"] = changes["learner_bio"][:MAX_BIO_LENGTH]
            if "focus_area" in changes:
                changes["focus_area"] = changes["focus_area"][:MAX_FOCUS_AREA_LENGTH]
            for field in ("native_language", "target_language"):
                if field in changes:
                    changes[field] = changes[field].lower() or getattr(current, field)
            if "daily_goal" in changes:
                changes["daily_goal"] = max(1, changes["daily_goal"])
            if "daily_minutes" in changes:
                changes["daily_minutes"] = _clamp(changes["daily_minutes"], DAILY_MINUTES_RANGE)
            if "weekly_goal_sessions" in changes:
                changes["weekly_goal_sessions"] = _clamp(
                    changes["weekly_goal_sessions"], WEEKLY_SESSIONS_RANGE
                )
            if "self_rated_level" in changes:
                changes["self_rated_level"] = parse_level(changes["self_rated_level"])

            updated = current.model_copy(update=changes)
            await self.repo.save_settings(updated)

        logger.info(f"Settings updated for {learner_id}: {sorted(changes)}")
        return updated
