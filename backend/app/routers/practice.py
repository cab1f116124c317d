"""
Practice API Router

Endpoints for starting and completing adaptive practice sessions.

Endpoints:
- POST /api/session/start - Generate a practice session
- POST /api/session/complete - Score a session and apply progression

Errors raised by the session service (not found, conflict, gone, bad
request) are rendered by the error handling middleware.
"""

import logging

from fastapi import APIRouter, Depends

from app.dependencies import get_learner_id, get_session_service
from app.models.base import ErrorDetail
from app.models.learning import (
    SessionCompleteRequest,
    SessionCompleteResponse,
    SessionStartRequest,
    SessionStartResponse,
)
from app.services.learning import PracticeSessionService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/session", tags=["practice"])

START_ERRORS = {404: {"model": ErrorDetail}}
COMPLETE_ERRORS = {
    400: {"model": ErrorDetail},
    404: {"model": ErrorDetail},
    409: {"model": ErrorDetail},
    410: {"model": ErrorDetail},
}


# ===========================================
# Session Endpoints
# ===========================================


@router.post("/start", response_model=SessionStartResponse, responses=START_ERRORS)
async def start_session(
    request: SessionStartRequest,
    learner_id: str = Depends(get_learner_id),
    service: PracticeSessionService = Depends(get_session_service),
) -> SessionStartResponse:
    """
    Start a new practice session.

    Difficulty is resolved from category mastery, recent session accuracy
    and the learner's self-rated level. Due and weak items are favoured
    when picking the questions.
    """
    return await service.start_session(learner_id, request)


@router.post(
    "/complete", response_model=SessionCompleteResponse, responses=COMPLETE_ERRORS
)
async def complete_session(
    request: SessionCompleteRequest,
    learner_id: str = Depends(get_learner_id),
    service: PracticeSessionService = Depends(get_session_service),
) -> SessionCompleteResponse:
    """
    Complete a practice session.

    Attempts are scored against the questions stored with the session.
    A session can be completed once; a repeat returns 409 and an expired
    session returns 410.
    """
    return await service.complete_session(learner_id, request)
