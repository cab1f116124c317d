"""
Learning System API Models (Pydantic)

Request/response schemas and service-layer state for the practice engine:
- Course items and catalog metadata
- Generated questions (tagged union, one variant per question type)
- Attempts, evaluations and session start/complete payloads
- Per-learner progress state (items, categories, profile, settings)
- Progress, course overview and stats read models

ARCHITECTURE NOTE:
    This file contains PYDANTIC models for API validation and for the
    repository contract. There is a corresponding SQLAlchemy file:
    app/db/models.py

    Data flows: API Request → Pydantic → Service → Repository → Database

API Contract:
    Request models use StrictRequest (extra="forbid") to reject unknown fields.
    Questions are frozen once built; the stored session payload is exactly
    what the learner was shown.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from app.enums.learning import ErrorType, Level, QuestionType, SessionState
from app.models.base import StrictRequest, StrictResponse
from app.rounding import round_fixed


# Bumped whenever a question variant changes shape; stored next to every
# active session payload.
QUESTION_SCHEMA_VERSION = 1


# ===========================================
# Course Catalog Models
# ===========================================


class CourseItem(BaseModel):
    """A single sentence exercise from the static course catalog."""

    model_config = ConfigDict(frozen=True)

    id: str
    level: Level
    prompt: str = Field(..., description="Instruction shown to the learner")
    target: str = Field(..., description="Correct sentence in the target language")
    category: str
    language: str


class LanguageInfo(StrictResponse):
    id: str
    label: str
    flag: str = ""


class CourseCategory(StrictResponse):
    id: str
    label: str
    description: str = ""


# ===========================================
# Question Models (tagged union)
# ===========================================


class QuestionBase(BaseModel):
    """
    Fields shared by every generated question.

    ``id`` is the source course item id, so evaluation and scheduling can map
    an attempt back to the item it exercised.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    level: Level
    prompt: str
    answer: str = Field(..., description="Canonical correct answer")
    accepted_answers: tuple[str, ...] = Field(
        default=(), description="Alternative spellings accepted as correct"
    )
    objective: str = Field(..., description="Learning objective tag for reporting")

    @property
    def question_type(self) -> QuestionType:
        return QuestionType(self.type)


class MultipleChoiceQuestion(QuestionBase):
    type: Literal["mc_sentence"] = "mc_sentence"
    options: tuple[str, ...]


class DialogueQuestion(QuestionBase):
    type: Literal["dialogue_turn"] = "dialogue_turn"
    options: tuple[str, ...]


class ClozeQuestion(QuestionBase):
    type: Literal["cloze_sentence"] = "cloze_sentence"
    cloze_text: str = Field(..., description="Sentence with the masked token")
    cloze_answer: str
    cloze_options: tuple[str, ...]


class SentenceBuildQuestion(QuestionBase):
    type: Literal["build_sentence"] = "build_sentence"
    tokens: tuple[str, ...] = Field(..., description="Shuffled answer tokens plus noise")


class DictationQuestion(QuestionBase):
    type: Literal["dictation_sentence"] = "dictation_sentence"
    tokens: tuple[str, ...]
    audio_text: str = Field(..., description="Text for external text-to-speech playback")


Question = Annotated[
    Union[
        MultipleChoiceQuestion,
        SentenceBuildQuestion,
        ClozeQuestion,
        DictationQuestion,
        DialogueQuestion,
    ],
    Field(discriminator="type"),
]

QUESTION_LIST_ADAPTER: TypeAdapter[list[Question]] = TypeAdapter(list[Question])


# ===========================================
# Session Start / Complete Models
# ===========================================


class SessionStartRequest(StrictRequest):
    """
    Request to start a practice session.

    ``count`` is clamped into the configured range; omitted means the default.
    """

    language: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    count: Optional[int] = Field(None, description="Requested number of questions")


class SessionStartResponse(StrictResponse):
    session_id: str
    language: str
    category: str
    recommended_level: Level
    difficulty_multiplier: float
    expires_on: date
    questions: list[Question]


class Attempt(StrictRequest):
    """
    A learner's answer to one question.

    Which field is populated depends on the question type: choice-based
    questions use ``selected_option``, build/dictation use ``built_sentence``.
    Dictation additionally accepts a typed ``text_answer``.
    """

    question_id: str
    selected_option: Optional[str] = None
    built_sentence: Optional[str] = None
    text_answer: Optional[str] = None


class SessionCompleteRequest(StrictRequest):
    """
    Request to complete (score) a practice session.

    Batch size limits are enforced by the service so that empty and oversized
    batches surface as bad-request errors rather than schema errors.
    """

    session_id: str = Field(..., min_length=1)
    language: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    attempts: list[Attempt] = Field(default_factory=list)
    hints_used: int = Field(0, ge=0)
    revealed_answers: int = Field(0, ge=0)


class EvaluationSummary(StrictResponse):
    score: int
    max_score: int
    mistakes: int
    accuracy_percent: float


class SessionCompleteResponse(StrictResponse):
    """Evaluation summary plus the learner's updated progression snapshot."""

    session_id: str
    evaluated: EvaluationSummary
    xp_gained: int
    total_xp: int
    streak_days: int
    hearts: int
    learner_level: int
    mastery: float
    level_unlocked: Level


# ===========================================
# Evaluation Models
# ===========================================


class AttemptEvaluation(BaseModel):
    """Outcome of scoring one attempt against its stored question."""

    model_config = ConfigDict(frozen=True)

    question_id: str
    question_type: QuestionType
    objective: str
    correct: bool
    error_type: ErrorType
    submitted: str = ""


class SessionEvaluation(BaseModel):
    """
    Outcome of scoring a full attempt batch.

    ``question_count`` is the length of the stored session; the effective
    maximum score tolerates batches that re-queue questions client-side.
    """

    model_config = ConfigDict(frozen=True)

    attempts: tuple[AttemptEvaluation, ...]
    question_count: int

    @property
    def score(self) -> int:
        return sum(1 for attempt in self.attempts if attempt.correct)

    @property
    def mistakes(self) -> int:
        return sum(1 for attempt in self.attempts if not attempt.correct)

    @property
    def effective_max_score(self) -> int:
        return max(self.question_count, self.score + self.mistakes)

    @property
    def accuracy(self) -> float:
        max_score = self.effective_max_score
        return self.score / max_score if max_score > 0 else 0.0


# ===========================================
# Learner State Models (repository contract)
# ===========================================


class ItemProgressState(BaseModel):
    """
    Scheduling state for one course item, per learner/language/category.

    Ease is bounded to [1.3, 2.5]; ``next_due_date`` is never earlier than
    the day it was computed on.
    """

    learner_id: str
    language: str
    category: str
    item_id: str
    objective: str = ""
    ease: float = 1.8
    streak: int = 0
    attempts: int = 0
    correct: int = 0
    error_count: int = 0
    last_error_type: str = ""
    last_seen_date: Optional[date] = None
    next_due_date: Optional[date] = None

    @property
    def accuracy(self) -> float:
        return self.correct / self.attempts if self.attempts > 0 else 0.0


class CategoryProgressState(BaseModel):
    """Mastery state for one learner/language/category."""

    learner_id: str
    language: str
    category: str
    mastery: float = Field(0.0, ge=0.0, le=100.0)
    attempts: int = 0
    total_answers: int = 0
    correct_answers: int = 0
    level_unlocked: Level = Level.A1
    last_practiced_at: Optional[datetime] = None

    @property
    def accuracy_percent(self) -> float:
        if not self.total_answers:
            return 0.0
        return round_fixed(self.correct_answers / self.total_answers * 100)


class LearnerProfileState(BaseModel):
    """Aggregate XP/streak/hearts state for a learner."""

    learner_id: str
    total_xp: int = 0
    streak_days: int = 0
    hearts: int = 5
    learner_level: int = 1
    last_completed_date: Optional[date] = None


class LearnerSettingsState(StrictResponse):
    """Learner preferences that influence session generation and goals."""

    learner_id: str
    learner_name: str = "Learner"
    native_language: str = "english"
    target_language: str = "spanish"
    daily_goal: int = 30
    daily_minutes: int = 20
    weekly_goal_sessions: int = 5
    self_rated_level: Level = Level.A1
    learner_bio: str = ""
    focus_area: str = ""


class LearnerSettingsUpdate(StrictRequest):
    """
    Partial settings update. Omitted fields keep their current value.

    Numeric fields are clamped and unknown levels fall back to a1 by the
    settings service rather than rejected.
    """

    learner_name: Optional[str] = None
    native_language: Optional[str] = None
    target_language: Optional[str] = None
    daily_goal: Optional[int] = None
    daily_minutes: Optional[int] = None
    weekly_goal_sessions: Optional[int] = None
    self_rated_level: Optional[str] = None
    learner_bio: Optional[str] = None
    focus_area: Optional[str] = None


class ActiveSessionRecord(BaseModel):
    """
    A generated session awaiting completion.

    The question tuple is frozen at creation; ``completed`` flips to True
    exactly once via the repository's claim operation.
    """

    model_config = ConfigDict(frozen=True)

    session_id: str
    learner_id: str
    language: str
    category: str
    difficulty_level: Level
    difficulty_multiplier: float = 1.0
    questions: tuple[Question, ...]
    expires_on: date
    completed: bool = False
    created_at: Optional[datetime] = None

    def state(self, today: date) -> SessionState:
        if self.completed:
            return SessionState.COMPLETED
        if self.expires_on < today:
            return SessionState.EXPIRED
        return SessionState.CREATED


class SessionHistoryEntry(BaseModel):
    learner_id: str
    session_id: str
    language: str
    category: str
    score: int
    max_score: int
    mistakes: int = 0
    accuracy: float
    xp_gained: int
    hints_used: int = 0
    revealed_answers: int = 0
    difficulty_level: Level
    completed_on: date
    completed_at: Optional[datetime] = None


class AttemptHistoryEntry(BaseModel):
    learner_id: str
    session_id: str
    language: str
    category: str
    item_id: str
    objective: str
    question_type: QuestionType
    correct: bool
    error_type: ErrorType
    created_on: date


class SelectionHints(BaseModel):
    """Ranked item ids that bias session selection."""

    due_item_ids: list[str] = Field(default_factory=list)
    weak_item_ids: list[str] = Field(default_factory=list)


# ===========================================
# Progress / Course / Stats Read Models
# ===========================================


class CategoryProgressResponse(StrictResponse):
    category: str
    mastery: float
    attempts: int
    total_answers: int
    correct_answers: int
    accuracy: float
    level_unlocked: Level
    last_practiced_at: Optional[datetime] = None

    @classmethod
    def from_state(cls, state: CategoryProgressState) -> CategoryProgressResponse:
        return cls(
            category=state.category,
            mastery=round_fixed(state.mastery),
            attempts=state.attempts,
            total_answers=state.total_answers,
            correct_answers=state.correct_answers,
            accuracy=state.accuracy_percent,
            level_unlocked=state.level_unlocked,
            last_practiced_at=state.last_practiced_at,
        )


class ProgressResponse(StrictResponse):
    total_xp: int
    today_xp: int
    daily_goal: int
    daily_goal_percent: int
    streak_days: int
    hearts: int
    learner_level: int
    last_completed_date: Optional[date] = None
    categories: list[CategoryProgressResponse] = Field(default_factory=list)


class CourseCategoryOverview(StrictResponse):
    id: str
    label: str
    description: str = ""
    total_items: int
    levels: list[Level]
    mastery: float = 0.0
    attempts: int = 0
    accuracy: float = 0.0
    level_unlocked: Level = Level.A1
    unlocked: bool
    lock_reason: str = ""


class CategorySessionStats(StrictResponse):
    category: str
    sessions: int
    accuracy: float
    last_completed_at: Optional[datetime] = None


class ErrorTypeCount(StrictResponse):
    error_type: ErrorType
    count: int


class ObjectiveStats(StrictResponse):
    objective: str
    attempts: int
    accuracy: float


class StatsResponse(StrictResponse):
    sessions_completed: int
    sessions_last_7_days: int
    avg_session_accuracy: float
    total_xp_from_sessions: int
    completion_percent: int
    accuracy_percent: int
    mastered_count: int
    category_count: int
    streak_days: int
    longest_streak_days: int
    weekly_goal_sessions: int
    weekly_goal_progress: int
    weakest_categories: list[str] = Field(default_factory=list)
    category_stats: list[CategorySessionStats] = Field(default_factory=list)
    error_type_trend: list[ErrorTypeCount] = Field(default_factory=list)
    objective_stats: list[ObjectiveStats] = Field(default_factory=list)
