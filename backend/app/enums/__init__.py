"""
Centralized enum definitions for the application.

Usage:
    from app.enums import Level, QuestionType, ErrorType

    # Or import from the specific module
    from app.enums.learning import QUESTION_TYPE_CYCLE
"""

from app.enums.learning import (
    LEVEL_ORDER,
    QUESTION_TYPE_CYCLE,
    ErrorType,
    Level,
    QuestionType,
    SessionState,
)

__all__ = [
    "LEVEL_ORDER",
    "QUESTION_TYPE_CYCLE",
    "ErrorType",
    "Level",
    "QuestionType",
    "SessionState",
]
