"""
Progress API Router

Read endpoints over learner progress plus the learner settings resource.

Endpoints:
- GET /api/languages - Languages in the course catalog
- GET /api/course - Categories with unlock state for a language
- GET /api/progress - XP, daily goal, streak, hearts and category mastery
- GET /api/stats - Session, error and objective statistics
- GET /api/settings - Learner settings (defaults when never saved)
- PUT /api/settings - Partial settings update

When ``language`` is omitted, the learner's target language is used.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.dependencies import (
    get_catalog,
    get_learner_id,
    get_progress_service,
    get_settings_service,
)
from app.models.learning import (
    CourseCategoryOverview,
    LanguageInfo,
    LearnerSettingsState,
    LearnerSettingsUpdate,
    ProgressResponse,
    StatsResponse,
)
from app.services.course_catalog import CourseCatalog
from app.services.learning import LearnerSettingsService, ProgressService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["progress"])


async def _resolve_language(
    language: Optional[str], learner_id: str, settings_service: LearnerSettingsService
) -> str:
    if language:
        return language.strip().lower()
    learner_settings = await settings_service.get_settings(learner_id)
    return learner_settings.target_language


# ===========================================
# Catalog Endpoints
# ===========================================


@router.get("/languages", response_model=list[LanguageInfo])
async def list_languages(
    catalog: CourseCatalog = Depends(get_catalog),
) -> list[LanguageInfo]:
    """List the languages available in the course catalog."""
    return catalog.languages


@router.get("/course", response_model=list[CourseCategoryOverview])
async def get_course(
    language: Optional[str] = Query(None, description="Course language"),
    learner_id: str = Depends(get_learner_id),
    service: ProgressService = Depends(get_progress_service),
    settings_service: LearnerSettingsService = Depends(get_settings_service),
) -> list[CourseCategoryOverview]:
    """
    Course overview for a language.

    The first category is always unlocked; later categories unlock as the
    learner progresses through the previous one.
    """
    resolved = await _resolve_language(language, learner_id, settings_service)
    return await service.get_course_overview(learner_id, resolved)


# ===========================================
# Progress Endpoints
# ===========================================


@router.get("/progress", response_model=ProgressResponse)
async def get_progress(
    language: Optional[str] = Query(None, description="Scope today's XP and categories"),
    learner_id: str = Depends(get_learner_id),
    service: ProgressService = Depends(get_progress_service),
    settings_service: LearnerSettingsService = Depends(get_settings_service),
) -> ProgressResponse:
    """Get the learner's progress snapshot."""
    resolved = await _resolve_language(language, learner_id, settings_service)
    return await service.get_progress(learner_id, resolved)


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    language: Optional[str] = Query(None, description="Course language"),
    learner_id: str = Depends(get_learner_id),
    service: ProgressService = Depends(get_progress_service),
    settings_service: LearnerSettingsService = Depends(get_settings_service),
) -> StatsResponse:
    """
    Get practice statistics.

    Includes session counts, weekly goal progress, longest streak, weakest
    categories, the recent error-type trend and the weakest objectives.
    """
    resolved = await _resolve_language(language, learner_id, settings_service)
    return await service.get_stats(learner_id, resolved)


# ===========================================
# Settings Endpoints
# ===========================================


@router.get("/settings", response_model=LearnerSettingsState)
async def get_settings(
    learner_id: str = Depends(get_learner_id),
    service: LearnerSettingsService = Depends(get_settings_service),
) -> LearnerSettingsState:
    """Get learner settings."""
    return await service.get_settings(learner_id)


@router.put("/settings", response_model=LearnerSettingsState)
async def update_settings(
    update: LearnerSettingsUpdate,
    learner_id: str = Depends(get_learner_id),
    service: LearnerSettingsService = Depends(get_settings_service),
) -> LearnerSettingsState:
    """
    Update learner settings.

    Only provided fields change. Out-of-range values are clamped and an
    unknown self-rated level falls back to a1.
    """
    return await service.update_settings(learner_id, update)
