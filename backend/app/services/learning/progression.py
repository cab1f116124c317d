"""
Progression Engine

Turns an evaluated session into learner state updates:

- Per-item scheduling (SM-2 inspired ease/streak/interval)
- Per-category mastery and unlocked level
- XP with level multiplier, challenge bonus and penalties
- Day streak, hearts and learner level

Everything in this module is pure: callers pass the current state and get
new state back. Persistence happens in the session service, inside the
completion transaction.

The numeric constants below are tuning values that existing learner data
depends on. Change them only together with a data migration.

Usage:
    from app.services.learning.progression import calculate_xp, update_item_progress

    xp = calculate_xp(evaluation, Level.B1, hints_used=1, revealed_answers=0)
    state = update_item_progress(state, attempt, today)
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from app.enums.learning import Level
from app.models.learning import (
    AttemptEvaluation,
    CategoryProgressState,
    ItemProgressState,
    LearnerProfileState,
    SessionEvaluation,
)
from app.rounding import round_fixed, round_half_up

# =============================================================================
# Constants
# =============================================================================

# Item scheduling
DEFAULT_EASE = 1.8
MIN_EASE = 1.3
MAX_EASE = 2.5
EASE_STEP_CORRECT = 0.05
EASE_STEP_INCORRECT = 0.2

# Category mastery
MASTERY_PIVOT_ACCURACY = 0.6
MASTERY_ACCURACY_WEIGHT = 28
MASTERY_LEVEL_BONUS = {Level.B1: 2, Level.B2: 4}
MASTERY_UNLOCK_THRESHOLDS = (
    (75.0, Level.B2),
    (50.0, Level.B1),
    (25.0, Level.A2),
)

# XP
XP_BASE = 16
XP_PER_QUESTION = 2
XP_MINIMUM = 4
LEVEL_XP_MULTIPLIER = {
    Level.A1: 1.0,
    Level.A2: 1.25,
    Level.B1: 1.6,
    Level.B2: 2.0,
}
CHALLENGE_BONUSES = ((0.9, 8), (0.75, 4))
LOW_ACCURACY_THRESHOLD = 0.5
LOW_ACCURACY_PENALTY = 6
MISTAKE_PENALTY = 2
HINT_PENALTY = 1
REVEAL_PENALTY = 3

# Hearts
MISTAKES_PER_HEART = 3


# =============================================================================
# Item Scheduling
# =============================================================================


def update_item_progress(
    current: ItemProgressState,
    attempt: AttemptEvaluation,
    today: date,
) -> ItemProgressState:
    """
    Apply one evaluated attempt to an item's scheduling state.

    Correct answers grow ease and streak and push the next review out by
    ``streak * ease`` days (rounded half up); misses shrink ease, reset the streak and
    schedule the item for tomorrow.

    Args:
        current: Existing state (use a fresh ItemProgressState for new items)
        attempt: Evaluated attempt for this item
        today: Date the session is being completed on

    Returns:
        New ItemProgressState
    """
    if attempt.correct:
        ease = min(MAX_EASE, round_fixed(current.ease + EASE_STEP_CORRECT, 2))
        streak = current.streak + 1
        interval = max(1, round_half_up(streak * ease))
    else:
        ease = max(MIN_EASE, round_fixed(current.ease - EASE_STEP_INCORRECT, 2))
        streak = 0
        interval = 1

    return current.model_copy(
        update={
            "objective": attempt.objective or current.objective,
            "ease": ease,
            "streak": streak,
            "attempts": current.attempts + 1,
            "correct": current.correct + (1 if attempt.correct else 0),
            "error_count": current.error_count + (0 if attempt.correct else 1),
            "last_error_type": "" if attempt.correct else attempt.error_type.value,
            "last_seen_date": today,
            "next_due_date": today + timedelta(days=interval),
        }
    )


# =============================================================================
# Category Mastery
# =============================================================================


def level_from_mastery(mastery: float) -> Level:
    """Highest level unlocked by a mastery score."""
    for threshold, level in MASTERY_UNLOCK_THRESHOLDS:
        if mastery >= threshold:
            return level
    return Level.A1


def mastery_delta(accuracy: float, difficulty: Level) -> float:
    return (accuracy - MASTERY_PIVOT_ACCURACY) * MASTERY_ACCURACY_WEIGHT + MASTERY_LEVEL_BONUS.get(
        difficulty, 0
    )


def update_category_progress(
    current: CategoryProgressState,
    evaluation: SessionEvaluation,
    difficulty: Level,
    now: datetime,
) -> CategoryProgressState:
    """
    Fold one completed session into category mastery.

    Mastery is clamped to [0, 100]; the unlocked level is recomputed from
    the new mastery every time.
    """
    mastery = current.mastery + mastery_delta(evaluation.accuracy, difficulty)
    mastery = max(0.0, min(100.0, mastery))

    return current.model_copy(
        update={
            "mastery": mastery,
            "attempts": current.attempts + 1,
            "total_answers": current.total_answers + evaluation.effective_max_score,
            "correct_answers": current.correct_answers + evaluation.score,
            "level_unlocked": level_from_mastery(mastery),
            "last_practiced_at": now,
        }
    )


# =============================================================================
# XP
# =============================================================================


def challenge_bonus(accuracy: float) -> int:
    for threshold, bonus in CHALLENGE_BONUSES:
        if accuracy >= threshold:
            return bonus
    return 0


def calculate_xp(
    evaluation: SessionEvaluation,
    difficulty: Level,
    hints_used: int = 0,
    revealed_answers: int = 0,
) -> int:
    """
    XP awarded for a completed session.

    Args:
        evaluation: Scored attempt batch
        difficulty: Recommended level the session was generated at
        hints_used: Hints the learner opened
        revealed_answers: Answers the learner revealed

    Returns:
        XP gained, never below XP_MINIMUM
    """
    accuracy = evaluation.accuracy
    base = XP_BASE + evaluation.effective_max_score * XP_PER_QUESTION

    penalty = (
        (LOW_ACCURACY_PENALTY if accuracy < LOW_ACCURACY_THRESHOLD else 0)
        + evaluation.mistakes * MISTAKE_PENALTY
        + hints_used * HINT_PENALTY
        + revealed_answers * REVEAL_PENALTY
    )

    raw = base * LEVEL_XP_MULTIPLIER[difficulty] + challenge_bonus(accuracy) - penalty
    return max(XP_MINIMUM, round_half_up(raw))


# =============================================================================
# Learner Aggregate
# =============================================================================


def next_streak_days(
    current_streak: int, last_completed: Optional[date], today: date
) -> int:
    """
    Day streak after completing a session today.

    The day after the last completion extends the streak, a gap resets it
    to 1 and a second session on the same day leaves it unchanged.
    """
    if last_completed is None:
        return 1

    diff_days = (today - last_completed).days
    if diff_days == 1:
        return current_streak + 1
    if diff_days > 1:
        return 1
    return current_streak


def hearts_after(hearts: int, mistakes: int) -> int:
    lost = max(0, mistakes) // MISTAKES_PER_HEART
    return max(0, hearts - lost)


def learner_level_from_xp(total_xp: int, xp_per_level: int = 150) -> int:
    return max(1, 1 + total_xp // xp_per_level)


@dataclass(frozen=True)
class SessionProgression:
    """Everything a completed session changes, computed in one pass."""

    items: list[ItemProgressState]
    category: CategoryProgressState
    profile: LearnerProfileState
    xp_gained: int


def apply_session(
    *,
    evaluation: SessionEvaluation,
    difficulty: Level,
    item_states: dict[str, ItemProgressState],
    category: CategoryProgressState,
    profile: LearnerProfileState,
    hints_used: int,
    revealed_answers: int,
    today: date,
    now: datetime,
    xp_per_level: int = 150,
) -> SessionProgression:
    """
    Compute the full set of state changes for a completed session.

    Args:
        evaluation: Scored attempt batch
        difficulty: Recommended level the session was generated at
        item_states: Existing item progress keyed by item id; items missing
            from the map start from defaults
        category: Existing category progress
        profile: Existing learner profile
        hints_used: Hints opened during the session
        revealed_answers: Answers revealed during the session
        today: Completion date (UTC)
        now: Completion timestamp
        xp_per_level: XP needed per learner level

    Returns:
        SessionProgression with the new states and XP gained
    """
    updated: dict[str, ItemProgressState] = {}
    for attempt in evaluation.attempts:
        state = updated.get(attempt.question_id) or item_states.get(attempt.question_id)
        if state is None:
            state = ItemProgressState(
                learner_id=category.learner_id,
                language=category.language,
                category=category.category,
                item_id=attempt.question_id,
                objective=attempt.objective,
                ease=DEFAULT_EASE,
            )
        updated[attempt.question_id] = update_item_progress(state, attempt, today)

    xp_gained = calculate_xp(evaluation, difficulty, hints_used, revealed_answers)
    total_xp = profile.total_xp + xp_gained

    new_profile = profile.model_copy(
        update={
            "total_xp": total_xp,
            "streak_days": next_streak_days(
                profile.streak_days, profile.last_completed_date, today
            ),
            "hearts": hearts_after(profile.hearts, evaluation.mistakes),
            "learner_level": learner_level_from_xp(total_xp, xp_per_level),
            "last_completed_date": today,
        }
    )

    return SessionProgression(
        items=list(updated.values()),
        category=update_category_progress(category, evaluation, difficulty, now),
        profile=new_profile,
        xp_gained=xp_gained,
    )
