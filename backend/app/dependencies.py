"""
FastAPI Dependencies

Common dependencies for learner identity, the learning repository and the
practice services.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.base import get_db
from app.services.course_catalog import CourseCatalog, get_course_catalog
from app.services.learning import (
    LearnerSettingsService,
    LearningRepository,
    PracticeSessionService,
    ProgressService,
    SqlAlchemyLearningRepository,
)

MAX_LEARNER_ID_LENGTH = 64


async def get_learner_id(
    x_learner_id: Optional[str] = Header(None, alias="X-Learner-Id"),
) -> str:
    """
    Resolve the calling learner from the X-Learner-Id header.

    Authentication happens upstream; this only checks that an identity
    was forwarded.

    Raises:
        HTTPException: 400 if the header is missing, blank or too long
    """
    learner_id = (x_learner_id or "").strip()

    if not learner_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing learner id. Provide X-Learner-Id header.",
        )

    if len(learner_id) > MAX_LEARNER_ID_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Learner id longer than {MAX_LEARNER_ID_LENGTH} characters",
        )

    return learner_id


async def get_repository(db: AsyncSession = Depends(get_db)) -> LearningRepository:
    """Get the SQL-backed learning repository bound to the request session."""
    return SqlAlchemyLearningRepository(db, initial_hearts=settings.INITIAL_HEARTS)


def get_catalog() -> CourseCatalog:
    """Get the shared course catalog."""
    return get_course_catalog()


async def get_session_service(
    repo: LearningRepository = Depends(get_repository),
    catalog: CourseCatalog = Depends(get_catalog),
) -> PracticeSessionService:
    return PracticeSessionService(repo, catalog)


async def get_progress_service(
    repo: LearningRepository = Depends(get_repository),
    catalog: CourseCatalog = Depends(get_catalog),
) -> ProgressService:
    return ProgressService(repo, catalog)


async def get_settings_service(
    repo: LearningRepository = Depends(get_repository),
) -> LearnerSettingsService:
    return LearnerSettingsService(repo)


# Dependency that can be used in routers
RequireLearner = Depends(get_learner_id)
