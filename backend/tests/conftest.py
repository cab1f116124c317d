"""
Shared Test Fixtures and Configuration

This module provides pytest fixtures used across unit and integration tests.
"""

import os
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

# Add the backend directory to the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Settings are read at import time, so the test environment has to be in place
# before anything under app/ is imported.
os.environ.update(
    {
        "DATABASE_URL": "sqlite+aiosqlite:///./lingoflow-test.db",
        "AUTO_CREATE_TABLES": "false",
        "RATE_LIMIT_ENABLED": "false",
        "DEBUG": "true",
        "LOG_LEVEL": "WARNING",
    }
)

from app.services.course_catalog import CourseCatalog  # noqa: E402
from app.services.learning.repository import InMemoryLearningRepository  # noqa: E402


# ============================================================================
# Course Catalog
# ============================================================================


def _items(prefix: str, entries: list[tuple[str, str]]) -> list[dict[str, str]]:
    return [
        {"id": f"{prefix}-{index}", "level": level, "prompt": f"Say: {target}", "target": target}
        for index, (level, target) in enumerate(entries, start=1)
    ]


SAMPLE_CATALOG: dict[str, Any] = {
    "languages": [
        {"id": "spanish", "label": "Spanish", "flag": "ES"},
        {"id": "english", "label": "English", "flag": "US"},
    ],
    "categories": [
        {"id": "essentials", "label": "Essentials", "description": "Core phrases"},
        {"id": "travel", "label": "Travel", "description": "Getting around"},
        {"id": "grammar", "label": "Grammar", "description": "Tenses"},
    ],
    "items": {
        "spanish": {
            "essentials": _items(
                "es",
                [
                    ("a1", "Hola, ¿cómo estás?"),
                    ("a1", "Muchas gracias por tu ayuda."),
                    ("a1", "No entiendo esta oración."),
                    ("a1", "Me llamo Alex."),
                    ("a2", "¿Podrías hablar más despacio, por favor?"),
                    ("a2", "Estoy aprendiendo español todos los días."),
                    ("a2", "Necesito practicar más."),
                    ("b1", "Cometí un error, pero lo intentaré de nuevo."),
                    ("b1", "Me gustaría mejorar mi pronunciación."),
                    ("b2", "Puedo explicar mi opinión con argumentos claros."),
                ],
            ),
            "travel": _items(
                "tr",
                [
                    ("a1", "¿Dónde está la estación de tren?"),
                    ("a1", "¿Cuánto cuesta este billete?"),
                    ("a2", "Necesito una habitación para dos noches."),
                    ("a2", "¿Este autobús va al centro?"),
                    ("b1", "Mi vuelo se retrasó por el mal tiempo."),
                    ("b1", "¿Puede recomendarme un restaurante local?"),
                    ("b2", "Perdí mi pasaporte y necesito ayuda."),
                    ("b2", "Quisiera cambiar mi reserva para mañana."),
                ],
            ),
            "grammar": _items(
                "gr",
                [
                    ("a1", "Yo como pan todos los días."),
                    ("a1", "Ayer hablé con mi madre."),
                    ("a2", "Mañana iré al mercado."),
                    ("a2", "Si tengo tiempo, te llamaré."),
                    ("b1", "He vivido aquí durante años."),
                    ("b2", "Si hubiera sabido, habría venido."),
                ],
            ),
        },
        "english": {
            "essentials": _items(
                "en",
                [
                    ("a1", "Hello, how are you?"),
                    ("a1", "Thank you very much."),
                    ("a2", "Could you speak more slowly?"),
                    ("a2", "I am learning every day."),
                    ("b1", "I made a mistake, but I will try again."),
                    ("b2", "I can explain my opinion clearly."),
                ],
            ),
        },
    },
}


@pytest.fixture
def sample_catalog_data() -> dict[str, Any]:
    """Raw catalog mapping, shaped like app/data/course_catalog.yaml."""
    return SAMPLE_CATALOG


@pytest.fixture
def catalog() -> CourseCatalog:
    """Small course catalog with mixed-level items."""
    return CourseCatalog.from_dict(SAMPLE_CATALOG)


# ============================================================================
# Determinism
# ============================================================================


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, hours: int = 0) -> None:
        self.now = self.now + timedelta(days=days, hours=hours)


@pytest.fixture
def clock() -> FixedClock:
    """Clock pinned to 2026-03-02 10:00 UTC."""
    return FixedClock(datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source."""
    return random.Random(1234)


# ============================================================================
# Repositories
# ============================================================================


@pytest.fixture
def memory_repo() -> InMemoryLearningRepository:
    """Fresh in-memory learning repository."""
    return InMemoryLearningRepository(initial_hearts=5)


# ============================================================================
# Attempt Builders
# ============================================================================


def build_attempt(question: Any, correct: bool = True) -> dict[str, str]:
    """
    Attempt payload answering ``question`` right or wrong.

    Works on Question models and on their JSON form as returned by the API.
    """
    data = question if isinstance(question, dict) else question.model_dump(mode="json")
    qtype = data["type"]
    answer = data["cloze_answer"] if qtype == "cloze_sentence" else data["answer"]
    submitted = answer if correct else "zzz"

    if qtype in ("mc_sentence", "dialogue_turn", "cloze_sentence"):
        return {"question_id": data["id"], "selected_option": submitted}
    return {"question_id": data["id"], "built_sentence": submitted}


@pytest.fixture
def make_attempts():
    """Return a helper that answers every question (optionally wrong)."""

    def _make(questions: list, correct: bool = True) -> list[dict[str, str]]:
        return [build_attempt(question, correct) for question in questions]

    return _make
