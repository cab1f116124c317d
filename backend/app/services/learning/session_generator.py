"""
Session Generator

Builds the immutable question list for a practice session:

1. Difficulty resolution: category mastery sets a baseline level, recent
   session accuracy nudges it up or down, and the learner's self-rated
   level sets a floor one band below it.
2. Candidate pool: items at most one level above the recommendation,
   falling back to the whole category when that pool is too small.
3. Selection: due/weak/random composition (see item_scheduler).
4. Question synthesis: types rotate through QUESTION_TYPE_CYCLE in
   selection order; distractors and noise tokens come from the pool.

All randomness flows through an injected ``random.Random`` so a seeded
generator produces identical sessions.

Usage:
    from app.services.learning.session_generator import SessionGenerator

    generator = SessionGenerator(rng=random.Random(42))
    plan = generator.generate(
        items, category="travel", count=10, mastery=30.0,
        recent_accuracy=0.9, self_rated_level=Level.A1, hints=hints,
    )
"""

import logging
import random
from dataclasses import dataclass
from typing import Callable, Optional

from app.enums.learning import LEVEL_ORDER, QUESTION_TYPE_CYCLE, Level, QuestionType
from app.models.learning import (
    ClozeQuestion,
    CourseItem,
    DialogueQuestion,
    DictationQuestion,
    MultipleChoiceQuestion,
    Question,
    SelectionHints,
    SentenceBuildQuestion,
)
from app.services.learning.item_scheduler import compose_selection
from app.services.learning.progression import LEVEL_XP_MULTIPLIER
from app.services.learning.text import accepted_answers, normalize, tokenize

logger = logging.getLogger(__name__)

# Mastery upper bounds for the baseline level (b2 above the last bound)
MASTERY_LEVEL_BANDS = ((20.0, Level.A1), (45.0, Level.A2), (70.0, Level.B1))

RECENT_ACCURACY_RAISE = 0.88
RECENT_ACCURACY_LOWER = 0.55

CHOICE_DISTRACTORS = 3
CLOZE_DISTRACTORS = 3
CLOZE_MIN_MASK_LENGTH = 4
DISTRACTOR_TOKEN_MIN_LENGTH = 3
NOISE_TOKENS = 2
CLOZE_BLANK = "____"

GRAMMAR_CATEGORY = "grammar"
GRAMMAR_OBJECTIVES = {
    Level.A1: "present-and-past-basics",
    Level.A2: "future-and-conditionals",
    Level.B1: "perfect-and-hypothetical",
    Level.B2: "advanced-complex-tenses",
}

DIALOGUE_PROMPT = "Choose the best response. {prompt}"
DICTATION_PROMPT = "Listen and build sentence. {prompt}"


# =============================================================================
# Difficulty
# =============================================================================


def baseline_level(mastery: float) -> Level:
    """Baseline recommendation for a category mastery score."""
    for upper_bound, level in MASTERY_LEVEL_BANDS:
        if mastery < upper_bound:
            return level
    return Level.B2


def resolve_difficulty(
    mastery: float,
    recent_accuracy: Optional[float],
    self_rated_level: Optional[Level],
) -> Level:
    """
    Recommended level for the next session.

    Args:
        mastery: Category mastery (0-100)
        recent_accuracy: Mean accuracy over recent sessions, None if none
        self_rated_level: Learner's own level estimate

    Returns:
        Level clamped to the valid range
    """
    rank = baseline_level(mastery).rank

    if recent_accuracy is not None:
        if recent_accuracy >= RECENT_ACCURACY_RAISE:
            rank += 1
        elif recent_accuracy <= RECENT_ACCURACY_LOWER:
            rank -= 1

    if self_rated_level is not None:
        rank = max(rank, self_rated_level.rank - 1)

    return Level.from_rank(rank)


def candidate_pool(items: list[CourseItem], level: Level, count: int) -> list[CourseItem]:
    """Items within one level above the recommendation, or all items if too few."""
    max_rank = min(level.rank + 1, len(LEVEL_ORDER) - 1)
    pool = [item for item in items if item.level.rank <= max_rank]
    return pool if len(pool) >= count else list(items)


def derive_objective(category: str, level: Level) -> str:
    if category == GRAMMAR_CATEGORY:
        return GRAMMAR_OBJECTIVES[level]
    return f"{category}-{level.value}-communication"


# =============================================================================
# Question Builders
# =============================================================================


@dataclass(frozen=True)
class GeneratedSession:
    """Output of a generation run, before persistence."""

    recommended_level: Level
    difficulty_multiplier: float
    questions: list[Question]


class SessionGenerator:
    """
    Turns course items into a typed, shuffled question list.

    Builders are registered per QuestionType; generation fails loudly if
    the rotation ever contains a type without a builder.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self._builders: dict[
            QuestionType, Callable[[CourseItem, list[CourseItem], dict], Question]
        ] = {
            QuestionType.MULTIPLE_CHOICE: self._build_multiple_choice,
            QuestionType.SENTENCE_BUILD: self._build_sentence_build,
            QuestionType.CLOZE: self._build_cloze,
            QuestionType.DICTATION: self._build_dictation,
            QuestionType.DIALOGUE: self._build_dialogue,
        }

    @property
    def supported_types(self) -> frozenset[QuestionType]:
        return frozenset(self._builders)

    def generate(
        self,
        items: list[CourseItem],
        *,
        category: str,
        count: int,
        mastery: float = 0.0,
        recent_accuracy: Optional[float] = None,
        self_rated_level: Optional[Level] = None,
        hints: Optional[SelectionHints] = None,
    ) -> GeneratedSession:
        """
        Generate a session from the category's items.

        Args:
            items: All course items for the language/category (non-empty)
            category: Category id (drives objective tags)
            count: Requested question count (already clamped by the caller)
            mastery: Learner's category mastery
            recent_accuracy: Mean accuracy over recent sessions
            self_rated_level: Learner's self-rated level
            hints: Due/weak item rankings

        Returns:
            GeneratedSession with the recommended level and questions
        """
        level = resolve_difficulty(mastery, recent_accuracy, self_rated_level)
        pool = candidate_pool(items, level, count)
        selected = compose_selection(pool, hints or SelectionHints(), count, self.rng)

        questions = [
            self.build_question(
                item,
                QUESTION_TYPE_CYCLE[index % len(QUESTION_TYPE_CYCLE)],
                pool,
                category,
            )
            for index, item in enumerate(selected)
        ]

        logger.debug(
            f"Generated {len(questions)} questions for {category} at {level.value} "
            f"(pool={len(pool)}, mastery={mastery:.1f}, recent={recent_accuracy})"
        )

        return GeneratedSession(
            recommended_level=level,
            difficulty_multiplier=LEVEL_XP_MULTIPLIER[level],
            questions=questions,
        )

    def build_question(
        self,
        item: CourseItem,
        question_type: QuestionType,
        pool: list[CourseItem],
        category: str,
    ) -> Question:
        builder = self._builders.get(question_type)
        if builder is None:
            raise ValueError(f"No question builder registered for {question_type}")

        base = {
            "id": item.id,
            "level": item.level,
            "prompt": item.prompt,
            "answer": item.target,
            "accepted_answers": accepted_answers(item.target),
            "objective": derive_objective(category, item.level),
        }
        return builder(item, pool, base)

    # -------------------------------------------------------------------------
    # Per-type builders
    # -------------------------------------------------------------------------

    def _build_multiple_choice(
        self, item: CourseItem, pool: list[CourseItem], base: dict
    ) -> MultipleChoiceQuestion:
        return MultipleChoiceQuestion(**base, options=self._choice_options(item, pool))

    def _build_dialogue(
        self, item: CourseItem, pool: list[CourseItem], base: dict
    ) -> DialogueQuestion:
        base["prompt"] = DIALOGUE_PROMPT.format(prompt=item.prompt)
        return DialogueQuestion(**base, options=self._choice_options(item, pool))

    def _build_cloze(
        self, item: CourseItem, pool: list[CourseItem], base: dict
    ) -> ClozeQuestion:
        tokens = tokenize(item.target)
        mask_index = next(
            (i for i, token in enumerate(tokens) if len(token) >= CLOZE_MIN_MASK_LENGTH),
            0,
        )
        cloze_answer = tokens[mask_index] if tokens else ""

        # Options are compared normalized, so "gracias" and "gracias." are one option
        seen = {normalize(cloze_answer)}
        distractors = []
        for token in self._pool_tokens(item, pool):
            key = normalize(token)
            if key and key not in seen:
                seen.add(key)
                distractors.append(token)
        options = [cloze_answer, *self._shuffle(distractors)[:CLOZE_DISTRACTORS]]

        masked = list(tokens)
        if masked:
            masked[mask_index] = CLOZE_BLANK

        return ClozeQuestion(
            **base,
            cloze_text=" ".join(masked),
            cloze_answer=cloze_answer,
            cloze_options=tuple(self._shuffle(options)),
        )

    def _build_sentence_build(
        self, item: CourseItem, pool: list[CourseItem], base: dict
    ) -> SentenceBuildQuestion:
        return SentenceBuildQuestion(**base, tokens=self._build_tokens(item, pool))

    def _build_dictation(
        self, item: CourseItem, pool: list[CourseItem], base: dict
    ) -> DictationQuestion:
        base["prompt"] = DICTATION_PROMPT.format(prompt=item.prompt)
        return DictationQuestion(
            **base,
            tokens=self._build_tokens(item, pool),
            audio_text=item.target,
        )

    # -------------------------------------------------------------------------
    # Distractors and noise
    # -------------------------------------------------------------------------

    def _shuffle(self, values: list) -> list:
        copy = list(values)
        self.rng.shuffle(copy)
        return copy

    def _choice_options(self, item: CourseItem, pool: list[CourseItem]) -> tuple[str, ...]:
        """
        Correct sentence plus up to 3 distractor sentences.

        Distractors prefer items within one level of the answer and fall back
        to the whole pool when that band is too thin.
        """
        others = list(
            dict.fromkeys(c.target for c in pool if c.target != item.target)
        )
        same_band = list(
            dict.fromkeys(
                c.target
                for c in pool
                if c.target != item.target and abs(c.level.rank - item.level.rank) <= 1
            )
        )
        source = same_band if len(same_band) >= CHOICE_DISTRACTORS else others
        distractors = self._shuffle(source)[:CHOICE_DISTRACTORS]
        return tuple(self._shuffle([item.target, *distractors]))

    def _pool_tokens(self, item: CourseItem, pool: list[CourseItem]) -> list[str]:
        """Distinct tokens of other pool items long enough to be plausible."""
        tokens = (
            token
            for other in pool
            if other.id != item.id
            for token in tokenize(other.target)
            if len(token) >= DISTRACTOR_TOKEN_MIN_LENGTH
        )
        return list(dict.fromkeys(tokens))

    def _build_tokens(self, item: CourseItem, pool: list[CourseItem]) -> tuple[str, ...]:
        answer_tokens = tokenize(item.target)
        present = set(answer_tokens)
        candidates = [t for t in self._pool_tokens(item, pool) if t not in present]
        noise = self._shuffle(candidates)[:NOISE_TOKENS]
        return tuple(self._shuffle([*answer_tokens, *noise]))
