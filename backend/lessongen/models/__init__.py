"""SQLAlchemy ORM models."""

from lessongen.models.lesson import Lesson, LessonStatus

__all__ = [
    "Lesson",
    "LessonStatus",
]
