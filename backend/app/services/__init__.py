"""Services package: course catalog and the learning engine."""

from app.services.course_catalog import CourseCatalog, get_course_catalog

__all__ = [
    "CourseCatalog",
    "get_course_catalog",
]
