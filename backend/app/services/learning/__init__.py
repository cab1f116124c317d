"""
Learning System Services

Services for adaptive sentence practice: session generation, answer
evaluation, progression and the read models built on top of them.

Modules:
- text: answer normalization helpers
- session_generator: difficulty resolution and question builders
- item_scheduler: due/weak selection hints
- answer_evaluator: attempt scoring and error classification
- progression: ease, mastery, XP, streak and hearts rules
- repository: persistence contract (SQL and in-memory)
- session_service: start/complete orchestration
- progress_service: progress, course overview and stats
- settings_service: learner preferences

Usage:
    from app.services.learning import (
        PracticeSessionService,
        ProgressService,
        LearnerSettingsService,
    )
"""

from app.services.learning.answer_evaluator import evaluate_attempt, evaluate_batch
from app.services.learning.item_scheduler import compose_selection, select_hints
from app.services.learning.progress_service import ProgressService
from app.services.learning.repository import (
    InMemoryLearningRepository,
    LearningRepository,
    SqlAlchemyLearningRepository,
)
from app.services.learning.session_generator import SessionGenerator, resolve_difficulty
from app.services.learning.session_service import PracticeSessionService
from app.services.learning.settings_service import LearnerSettingsService

__all__ = [
    # Pure rules
    "evaluate_attempt",
    "evaluate_batch",
    "compose_selection",
    "select_hints",
    "SessionGenerator",
    "resolve_difficulty",
    # Persistence
    "LearningRepository",
    "SqlAlchemyLearningRepository",
    "InMemoryLearningRepository",
    # Services
    "PracticeSessionService",
    "ProgressService",
    "LearnerSettingsService",
]
