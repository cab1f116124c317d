"""
Learning System Enums

Defines enums for course levels, generated question types, answer error
classification, and practice session lifecycle states.
"""

from enum import Enum


class Level(str, Enum):
    """
    CEFR-style proficiency bands used to tag course items and sessions.

    Ordering matters: ``Level.rank`` is the position in LEVEL_ORDER and is used
    for difficulty arithmetic (raise/lower by one, clamp to the valid range).
    """

    A1 = "a1"
    A2 = "a2"
    B1 = "b1"
    B2 = "b2"

    @property
    def rank(self) -> int:
        return LEVEL_ORDER.index(self)

    @classmethod
    def from_rank(cls, rank: int) -> "Level":
        """Return the level at ``rank``, clamped into the valid range."""
        clamped = max(0, min(rank, len(LEVEL_ORDER) - 1))
        return LEVEL_ORDER[clamped]


LEVEL_ORDER: tuple[Level, ...] = (Level.A1, Level.A2, Level.B1, Level.B2)


class QuestionType(str, Enum):
    """
    Question formats synthesized from a course item.

    Sessions cycle through the types in declaration order:
    - MULTIPLE_CHOICE: Pick the target sentence among distractor sentences
    - SENTENCE_BUILD: Arrange shuffled tokens (plus noise) into the sentence
    - CLOZE: Pick the masked word of the sentence
    - DICTATION: Listen to the sentence, then build it from tokens
    - DIALOGUE: Pick the best response in a conversational framing
    """

    MULTIPLE_CHOICE = "mc_sentence"
    SENTENCE_BUILD = "build_sentence"
    CLOZE = "cloze_sentence"
    DICTATION = "dictation_sentence"
    DIALOGUE = "dialogue_turn"


QUESTION_TYPE_CYCLE: tuple[QuestionType, ...] = tuple(QuestionType)


class ErrorType(str, Enum):
    """
    Diagnostic classification of an incorrect attempt.

    Sentence-build errors are refined by comparing token multisets;
    every other type maps to a single fixed error.
    """

    NONE = "none"
    MISSING_ANSWER = "missing_answer"
    WORD_ORDER = "word_order"
    MISSING_WORD = "missing_word"
    GRAMMAR_OR_VOCAB = "grammar_or_vocab"
    DICTATION_MISMATCH = "dictation_mismatch"
    CLOZE_CHOICE = "cloze_choice"
    WRONG_OPTION = "wrong_option"


class SessionState(str, Enum):
    """
    Practice session lifecycle states.

    State transitions:
    - CREATED → COMPLETED (attempts submitted and scored, terminal)
    - CREATED → EXPIRED (TTL elapsed without completion, terminal)
    """

    CREATED = "created"
    COMPLETED = "completed"
    EXPIRED = "expired"
