"""Shared fixtures: a throwaway SQLite lesson store and provider keys cleared."""

import sys
import os
from datetime import datetime, timedelta, timezone

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from lessongen.config import settings
from lessongen.models.lesson import Lesson
from lessongen.services.lesson_store import LessonStore


@pytest.fixture(autouse=True)
def no_provider_keys(monkeypatch):
    """Start every test with no AI credentials, whatever the local .env says."""
    monkeypatch.setattr(settings, "GEMINI_API_KEY", "")
    monkeypatch.setattr(settings, "HELICONE_API_KEY", "")


@pytest.fixture()
def store(tmp_path):
    return LessonStore.from_url(f"sqlite:///{tmp_path / 'lessons.db'}")


@pytest.fixture()
def backdate(store):
    """Move a lesson's created_at into the past by the given number of minutes."""
    def _backdate(lesson_id: str, minutes: int) -> None:
        db = store._session_factory()
        try:
            lesson = db.query(Lesson).filter(Lesson.id == lesson_id).first()
            lesson.created_at = datetime.now(timezone.utc) - timedelta(minutes=minutes)
            db.commit()
        finally:
            db.close()
    return _backdate
