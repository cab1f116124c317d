"""
Request/Response Base Models

Shared pydantic configuration for the API boundary.

MOTIVATION:
    The practice client echoes session ids, languages and categories back
    to the server. A misspelled key (``sessionId`` for ``session_id``) that
    pydantic silently dropped would turn into a confusing 400 from the
    session service instead of a clear 422 naming the field.

Classes:
    - StrictRequest: request bodies; unknown fields are rejected
    - StrictResponse: response bodies and stored state; extra attributes
      from ORM rows are ignored
    - ErrorDetail: the JSON error body, used to document 4xx responses

Usage:
    class SessionStartRequest(StrictRequest):
        language: str
        category: str

    class LearnerSettingsState(StrictResponse):
        learner_id: str
        daily_goal: int = 30

Architecture:
    HTTP body → StrictRequest (extra="forbid") → router → service
    ORM row / domain state → StrictResponse (extra="ignore") → HTTP body
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class StrictRequest(BaseModel):
    """
    Base model for request bodies.

    Features:
        - extra="forbid": Unknown keys fail validation (422)
        - validate_default=True: Defaults go through the same validators
        - str_strip_whitespace=True: " spanish " arrives as "spanish", so a
          blank display name is "" and can be detected by the service
        - from_attributes=True: Can be built from objects as well as dicts

    Example:
        >>> class Start(StrictRequest):
        ...     language: str
        >>> Start(language=" spanish ").language
        'spanish'
        >>> Start(language="spanish", lang="es")  # Raises ValidationError
    """

    model_config = ConfigDict(
        extra="forbid",
        validate_default=True,
        str_strip_whitespace=True,
        from_attributes=True,
    )


class StrictResponse(BaseModel):
    """
    Base model for response bodies and stored learner state.

    Types are still validated, but attributes the model does not declare
    are dropped. ``from_attributes`` lets repository code validate ORM rows
    directly, e.g. ``CategoryProgressState.model_validate(row)``, even
    though the row carries columns such as ``id`` that the API never shows.

    Features:
        - extra="ignore": Undeclared attributes are dropped
        - validate_default=True: Defaults go through the same validators
        - from_attributes=True: ORM rows validate directly
    """

    model_config = ConfigDict(
        extra="ignore",
        validate_default=True,
        from_attributes=True,
    )


# =============================================================================
# Error Responses
# =============================================================================


class ErrorDetail(StrictResponse):
    """
    JSON body of every error response.

    Rendered by app.middleware.error_handling for ServiceError subclasses
    and unexpected exceptions. Routers list it under ``responses=`` so the
    OpenAPI schema documents the 400/404/409/410 bodies of the session
    endpoints.

    Attributes:
        error: Machine-readable code, e.g. "conflict", "gone",
            "unknown_question"
        message: Human-readable summary
        error_id: Short correlation id, also written to the server log
        details: Extra context such as the offending session id; only
            populated when DEBUG is on
        timestamp: When the error was rendered (UTC)
    """

    error: str
    message: str
    error_id: str
    details: Optional[dict] = None
    timestamp: datetime
