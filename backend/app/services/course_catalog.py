"""
Course Catalog

Read-only provider for the static sentence corpus. Items are grouped by
language and category in a YAML file (packaged at app/data/course_catalog.yaml,
overridable via COURSE_CATALOG_PATH).

Usage:
    from app.services.course_catalog import get_course_catalog

    catalog = get_course_catalog()
    items = catalog.get_items("spanish", "travel")
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml

from app.config import settings
from app.enums.learning import Level
from app.models.learning import CourseCategory, CourseItem, LanguageInfo

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).parent.parent / "data" / "course_catalog.yaml"


class CourseCatalog:
    """
    In-memory course corpus keyed by (language, category).

    Item order is the file order; categories are reported in the order
    they are declared, which also drives the unlock sequence.
    """

    def __init__(
        self,
        languages: list[LanguageInfo],
        categories: list[CourseCategory],
        items: dict[tuple[str, str], list[CourseItem]],
    ):
        self.languages = languages
        self.categories = categories
        self._items = items

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CourseCatalog":
        """
        Build a catalog from the parsed YAML structure.

        Args:
            data: Mapping with ``languages``, ``categories`` and
                ``items[language][category]`` lists.

        Returns:
            CourseCatalog instance
        """
        languages = [LanguageInfo(**entry) for entry in data.get("languages") or []]
        categories = [CourseCategory(**entry) for entry in data.get("categories") or []]

        items: dict[tuple[str, str], list[CourseItem]] = {}
        for language, by_category in (data.get("items") or {}).items():
            for category, entries in (by_category or {}).items():
                items[(language, category)] = [
                    CourseItem(
                        id=str(entry["id"]),
                        level=Level(entry["level"]),
                        prompt=entry["prompt"],
                        target=entry["target"],
                        category=category,
                        language=language,
                    )
                    for entry in entries or []
                ]

        return cls(languages, categories, items)

    @classmethod
    def from_path(cls, path: Path) -> "CourseCatalog":
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        catalog = cls.from_dict(data)
        logger.info(
            f"Loaded course catalog from {path}: "
            f"{len(catalog.languages)} languages, {catalog.item_count} items"
        )
        return catalog

    @property
    def item_count(self) -> int:
        return sum(len(items) for items in self._items.values())

    def get_items(self, language: str, category: str) -> list[CourseItem]:
        """Return the items for a language/category (empty if unknown)."""
        return list(self._items.get((language, category), []))

    def get_category(self, category_id: str) -> Optional[CourseCategory]:
        return next((c for c in self.categories if c.id == category_id), None)

    def has_language(self, language: str) -> bool:
        return any(entry.id == language for entry in self.languages)


@lru_cache()
def get_course_catalog() -> CourseCatalog:
    """Get the cached course catalog."""
    path = Path(settings.COURSE_CATALOG_PATH) if settings.COURSE_CATALOG_PATH else DEFAULT_CATALOG_PATH
    return CourseCatalog.from_path(path)
