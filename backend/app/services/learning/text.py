"""
Sentence normalization helpers shared by generation and evaluation.

Matching is lexical: two answers are equal when their normalized forms
are equal.
"""

import re

# Punctuation ignored when comparing answers, including Spanish ¿ and ¡
_IGNORED_PUNCTUATION = re.compile(r"[.,!?;:¿¡]")
_WHITESPACE = re.compile(r"\s+")
_TRAILING_TERMINATORS = re.compile(r"[.!?]+$")


def normalize(text: str) -> str:
    """
    Normalize a sentence for comparison.

    Lowercases, strips the ignored punctuation set, collapses runs of
    whitespace and trims. Idempotent.

    Example:
        >>> normalize("Hola,  ¿Cómo estás? ")
        'hola cómo estás'
    """
    lowered = (text or "").lower()
    stripped = _IGNORED_PUNCTUATION.sub("", lowered)
    return _WHITESPACE.sub(" ", stripped).strip()


def tokenize(sentence: str) -> list[str]:
    """Split a sentence on whitespace, keeping punctuation attached."""
    return [token for token in _WHITESPACE.split((sentence or "").strip()) if token]


def accepted_answers(answer: str) -> tuple[str, ...]:
    """Answer variants accepted besides the canonical one."""
    trimmed = _TRAILING_TERMINATORS.sub("", answer.strip()).strip()
    if trimmed and trimmed != answer:
        return (trimmed,)
    return ()
