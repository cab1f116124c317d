"""
Answer Evaluator

Scores submitted attempts against the questions stored with a session and
classifies mistakes. Pure: nothing here touches persistence.

Matching is lexical on normalized strings (see text.normalize):
- Choice questions compare the selected option with the answer or any
  accepted variant
- Cloze compares the selected option with the masked word
- Build and dictation compare the assembled sentence with the answer

Error classification on a miss:
    build_sentence      missing_answer | word_order | missing_word | grammar_or_vocab
    dictation_sentence  dictation_mismatch
    cloze_sentence      cloze_choice
    mc / dialogue       wrong_option
"""

from collections import Counter
from typing import Callable, Iterable

from app.enums.learning import ErrorType, QuestionType
from app.middleware.error_handling import UnknownQuestionError
from app.models.learning import (
    Attempt,
    AttemptEvaluation,
    ClozeQuestion,
    Question,
    SessionEvaluation,
)
from app.services.learning.text import normalize


def _submitted_choice(attempt: Attempt) -> str:
    return attempt.selected_option or ""


def _submitted_sentence(attempt: Attempt) -> str:
    return attempt.built_sentence or ""


def _submitted_dictation(attempt: Attempt) -> str:
    return attempt.built_sentence or attempt.text_answer or ""


def _classify_build_error(submitted: str, question: Question) -> ErrorType:
    submitted_tokens = normalize(submitted).split()
    expected_tokens = normalize(question.answer).split()

    if not submitted_tokens:
        return ErrorType.MISSING_ANSWER
    if (
        Counter(submitted_tokens) == Counter(expected_tokens)
        and submitted_tokens != expected_tokens
    ):
        return ErrorType.WORD_ORDER
    if len(submitted_tokens) < len(expected_tokens):
        return ErrorType.MISSING_WORD
    return ErrorType.GRAMMAR_OR_VOCAB


def _fixed_error(error_type: ErrorType) -> Callable[[str, Question], ErrorType]:
    return lambda submitted, question: error_type


# Per-type (submitted value extractor, error classifier)
ATTEMPT_HANDLERS: dict[
    QuestionType,
    tuple[Callable[[Attempt], str], Callable[[str, Question], ErrorType]],
] = {
    QuestionType.MULTIPLE_CHOICE: (_submitted_choice, _fixed_error(ErrorType.WRONG_OPTION)),
    QuestionType.DIALOGUE: (_submitted_choice, _fixed_error(ErrorType.WRONG_OPTION)),
    QuestionType.CLOZE: (_submitted_choice, _fixed_error(ErrorType.CLOZE_CHOICE)),
    QuestionType.SENTENCE_BUILD: (_submitted_sentence, _classify_build_error),
    QuestionType.DICTATION: (_submitted_dictation, _fixed_error(ErrorType.DICTATION_MISMATCH)),
}


def is_correct(submitted: str, question: Question) -> bool:
    normalized = normalize(submitted)
    if not normalized:
        return False

    if isinstance(question, ClozeQuestion):
        return normalized == normalize(question.cloze_answer)

    expected = {normalize(question.answer)}
    expected.update(normalize(variant) for variant in question.accepted_answers)
    return normalized in expected


def evaluate_attempt(attempt: Attempt, question: Question) -> AttemptEvaluation:
    """
    Score a single attempt.

    Args:
        attempt: Learner submission
        question: Stored question the attempt answers

    Returns:
        AttemptEvaluation with correctness and error type
    """
    extract, classify = ATTEMPT_HANDLERS[question.question_type]
    submitted = extract(attempt)
    correct = is_correct(submitted, question)

    return AttemptEvaluation(
        question_id=question.id,
        question_type=question.question_type,
        objective=question.objective,
        correct=correct,
        error_type=ErrorType.NONE if correct else classify(submitted, question),
        submitted=submitted,
    )


def evaluate_batch(
    attempts: Iterable[Attempt], questions: Iterable[Question]
) -> SessionEvaluation:
    """
    Score a batch of attempts against a session's questions.

    Every attempt must reference a stored question; a single unknown id
    rejects the whole batch before anything is scored.

    Args:
        attempts: Submitted attempts (may repeat a question)
        questions: The session's stored questions

    Returns:
        SessionEvaluation over all attempts

    Raises:
        UnknownQuestionError: If any attempt references an unknown question
    """
    questions = list(questions)
    attempts = list(attempts)
    by_id = {question.id: question for question in questions}

    unknown = sorted({a.question_id for a in attempts if a.question_id not in by_id})
    if unknown:
        raise UnknownQuestionError(
            "Attempt references a question that is not part of this session",
            details={"unknown_question_ids": unknown},
        )

    evaluations = tuple(
        evaluate_attempt(attempt, by_id[attempt.question_id]) for attempt in attempts
    )
    return SessionEvaluation(attempts=evaluations, question_count=len(questions))
