"""Lesson persistence and the row-level change feed.

A single LessonStore is created at startup and handed to routers through the
``get_store`` dependency; the orchestrator receives it as an argument.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from lessongen.database import Base, create_db_engine, create_session_factory
from lessongen.models.lesson import Lesson, LessonStatus

logger = logging.getLogger(__name__)

STALE_GENERATION_ERROR = "Generation interrupted before completion"

_UPDATABLE_FIELDS = {"title", "content", "status", "trace"}


class StoreError(Exception):
    """Raised when the lesson table cannot be read or written."""


class LessonFeed:
    """Fan-out of "lessons changed" notifications to asyncio subscribers.

    Every subscriber owns a queue bound to its event loop. ``publish`` may be
    called from any thread.
    """

    def __init__(self):
        self._subscribers: dict[asyncio.Queue, asyncio.AbstractEventLoop] = {}
        self._lock = threading.Lock()

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        with self._lock:
            self._subscribers[queue] = asyncio.get_running_loop()
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        with self._lock:
            self._subscribers.pop(queue, None)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: dict[str, Any]) -> None:
        with self._lock:
            targets = list(self._subscribers.items())
        for queue, loop in targets:
            if loop.is_closed():
                self.unsubscribe(queue)
                continue
            try:
                loop.call_soon_threadsafe(queue.put_nowait, event)
            except RuntimeError:
                # Loop closed after the check above
                logger.debug("Dropping lesson feed subscriber on a closed loop")
                self.unsubscribe(queue)


class LessonStore:
    """CRUD over the ``lessons`` table plus change notifications."""

    def __init__(self, session_factory: sessionmaker, feed: Optional[LessonFeed] = None):
        self._session_factory = session_factory
        self.feed = feed or LessonFeed()

    @classmethod
    def from_url(cls, database_url: str) -> "LessonStore":
        engine = create_db_engine(database_url)
        Base.metadata.create_all(bind=engine)
        return cls(create_session_factory(engine))

    # ── Writes ──────────────────────────────────────────────────────────────

    def insert(self, outline: str, title: Optional[str]) -> Lesson:
        db = self._session_factory()
        try:
            lesson = Lesson(
                outline=outline,
                title=title,
                status=LessonStatus.GENERATING.value,
            )
            db.add(lesson)
            db.commit()
            db.refresh(lesson)
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError(f"Failed to insert lesson: {e}") from e
        finally:
            db.close()

        self.feed.publish({"type": "INSERT", "id": lesson.id})
        return lesson

    def update(self, lesson_id: str, **fields: Any) -> None:
        """Update the mutable columns of one lesson.

        ``trace`` is accepted as a dict (or None) and stored as JSON.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update lesson fields: {sorted(unknown)}")

        db = self._session_factory()
        try:
            lesson = db.query(Lesson).filter(Lesson.id == lesson_id).first()
            if not lesson:
                raise StoreError(f"Lesson {lesson_id} not found")

            for name, value in fields.items():
                if name == "trace":
                    lesson.trace_json = json.dumps(value) if value is not None else None
                elif name == "status":
                    lesson.status = LessonStatus(value).value
                else:
                    setattr(lesson, name, value)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError(f"Failed to update lesson {lesson_id}: {e}") from e
        finally:
            db.close()

        self.feed.publish({"type": "UPDATE", "id": lesson_id})

    def fail_stale_generating(self, max_age: timedelta) -> int:
        """Mark lessons stuck in Generating for longer than ``max_age`` as Failed.

        Returns the number of lessons changed.
        """
        now = datetime.now(timezone.utc)
        # SQLite hands back naive datetimes; compare in naive UTC
        cutoff = (now - max_age).replace(tzinfo=None)
        trace = json.dumps({"error": STALE_GENERATION_ERROR, "timestamp": now.isoformat()})

        db = self._session_factory()
        try:
            stale = (
                db.query(Lesson)
                .filter(
                    Lesson.status == LessonStatus.GENERATING.value,
                    Lesson.created_at < cutoff,
                )
                .all()
            )
            for lesson in stale:
                lesson.status = LessonStatus.FAILED.value
                lesson.content = None
                lesson.trace_json = trace
            db.commit()
            stale_ids = [lesson.id for lesson in stale]
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError(f"Failed to sweep stale lessons: {e}") from e
        finally:
            db.close()

        for lesson_id in stale_ids:
            self.feed.publish({"type": "UPDATE", "id": lesson_id})
        if stale_ids:
            logger.warning("Marked %d stale lesson(s) as Failed", len(stale_ids))
        return len(stale_ids)

    # ── Reads ───────────────────────────────────────────────────────────────

    def select_all(self) -> list[Lesson]:
        db = self._session_factory()
        try:
            return db.query(Lesson).order_by(Lesson.created_at.desc()).all()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to list lessons: {e}") from e
        finally:
            db.close()

    def select_by_id(self, lesson_id: str) -> Optional[Lesson]:
        db = self._session_factory()
        try:
            return db.query(Lesson).filter(Lesson.id == lesson_id).first()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load lesson {lesson_id}: {e}") from e
        finally:
            db.close()
