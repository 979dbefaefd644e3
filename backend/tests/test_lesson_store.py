"""Tests for the SQLite-backed lesson store and its change feed."""

import asyncio
from datetime import timedelta

import pytest

from lessongen.database import create_db_engine, create_session_factory
from lessongen.models.lesson import LessonStatus
from lessongen.services.lesson_store import (
    STALE_GENERATION_ERROR,
    LessonStore,
    StoreError,
)


class TestInsertAndRead:
    def test_insert_creates_generating_lesson(self, store):
        """A new lesson starts Generating with no content or trace."""
        lesson = store.insert(outline="Fractions for kids", title="Fractions for kids")

        assert lesson.id
        assert lesson.status == LessonStatus.GENERATING.value
        assert lesson.content is None
        assert lesson.trace is None
        assert lesson.created_at is not None

        loaded = store.select_by_id(lesson.id)
        assert loaded.outline == "Fractions for kids"
        assert loaded.title == "Fractions for kids"

    def test_ids_are_unique(self, store):
        """Every insert gets its own id."""
        ids = {store.insert(outline=f"o{i}", title=None).id for i in range(5)}
        assert len(ids) == 5

    def test_missing_lesson(self, store):
        """Unknown ids read back as None."""
        assert store.select_by_id("does-not-exist") is None

    def test_select_all_newest_first(self, store, backdate):
        """select_all orders by created_at, newest first."""
        old = store.insert(outline="old", title=None)
        new = store.insert(outline="new", title=None)
        backdate(old.id, minutes=5)

        assert [l.id for l in store.select_all()] == [new.id, old.id]


class TestUpdate:
    def test_update_content_status_and_trace(self, store):
        """Content, status and trace are written together."""
        lesson = store.insert(outline="o", title="o")

        store.update(
            lesson.id,
            content="const a = 1;",
            status=LessonStatus.GENERATED,
            trace={"prompt": "p", "mock": True},
        )

        saved = store.select_by_id(lesson.id)
        assert saved.status == "Generated"
        assert saved.content == "const a = 1;"
        assert saved.trace == {"prompt": "p", "mock": True}

    def test_outline_is_not_updatable(self, store):
        """Outline is fixed once inserted."""
        lesson = store.insert(outline="o", title="o")
        with pytest.raises(ValueError):
            store.update(lesson.id, outline="changed")

    def test_unknown_status_rejected(self, store):
        """Status values outside the enum are rejected."""
        lesson = store.insert(outline="o", title="o")
        with pytest.raises(ValueError):
            store.update(lesson.id, status="Done")

    def test_update_missing_lesson(self, store):
        """Updating an unknown id raises StoreError."""
        with pytest.raises(StoreError):
            store.update("nope", status=LessonStatus.FAILED)


class TestStoreErrors:
    """SQLAlchemy failures surface as StoreError."""

    @pytest.fixture()
    def broken_store(self, tmp_path):
        # No create_all: the lessons table does not exist
        engine = create_db_engine(f"sqlite:///{tmp_path / 'empty.db'}")
        return LessonStore(create_session_factory(engine))

    def test_insert(self, broken_store):
        """Insert into a missing table raises StoreError."""
        with pytest.raises(StoreError):
            broken_store.insert(outline="o", title="o")

    def test_reads(self, broken_store):
        """Reads from a missing table raise StoreError."""
        with pytest.raises(StoreError):
            broken_store.select_all()
        with pytest.raises(StoreError):
            broken_store.select_by_id("x")


class TestChangeFeed:
    def test_insert_and_update_notify_subscribers(self, store):
        """Subscribers get one INSERT and one UPDATE event."""
        async def main():
            queue = store.feed.subscribe()
            lesson = store.insert(outline="o", title="o")
            first = await asyncio.wait_for(queue.get(), timeout=1)
            store.update(lesson.id, status=LessonStatus.FAILED, trace={"error": "x"})
            second = await asyncio.wait_for(queue.get(), timeout=1)
            store.feed.unsubscribe(queue)
            return lesson.id, first, second

        lesson_id, first, second = asyncio.run(main())

        assert first == {"type": "INSERT", "id": lesson_id}
        assert second == {"type": "UPDATE", "id": lesson_id}
        assert store.feed.subscriber_count == 0

    def test_publish_from_worker_thread(self, store):
        """publish is safe to call from another thread."""
        async def main():
            queue = store.feed.subscribe()
            await asyncio.to_thread(store.feed.publish, {"type": "UPDATE", "id": "x"})
            return await asyncio.wait_for(queue.get(), timeout=1)

        assert asyncio.run(main()) == {"type": "UPDATE", "id": "x"}

    def test_closed_loop_subscribers_are_dropped(self, store):
        """Subscribers whose loop has closed are removed on publish."""
        async def main():
            store.feed.subscribe()

        asyncio.run(main())
        store.feed.publish({"type": "UPDATE", "id": "x"})

        assert store.feed.subscriber_count == 0

    def test_loop_closing_during_publish_does_not_fail_update(self, store):
        """A subscriber loop that refuses callbacks is dropped, and the write stands."""
        class ClosingLoop:
            def is_closed(self):
                return False

            def call_soon_threadsafe(self, *args):
                raise RuntimeError("Event loop is closed")

        lesson = store.insert(outline="o", title="o")
        queue = object()
        store.feed._subscribers[queue] = ClosingLoop()

        store.update(lesson.id, status=LessonStatus.GENERATED, content="x", trace={"mock": True})

        assert store.select_by_id(lesson.id).status == LessonStatus.GENERATED.value
        assert store.feed.subscriber_count == 0


class TestStaleSweep:
    def test_old_generating_lessons_are_failed(self, store, backdate):
        """Only Generating lessons past the cutoff are failed."""
        stale = store.insert(outline="stale", title=None)
        fresh = store.insert(outline="fresh", title=None)
        done = store.insert(outline="done", title=None)
        store.update(done.id, status=LessonStatus.GENERATED, content="x", trace={"mock": True})
        backdate(stale.id, minutes=60)
        backdate(done.id, minutes=60)

        changed = store.fail_stale_generating(timedelta(minutes=15))

        assert changed == 1
        swept = store.select_by_id(stale.id)
        assert swept.status == LessonStatus.FAILED.value
        assert swept.content is None
        assert swept.trace["error"] == STALE_GENERATION_ERROR
        assert store.select_by_id(fresh.id).status == LessonStatus.GENERATING.value
        assert store.select_by_id(done.id).status == LessonStatus.GENERATED.value

    def test_nothing_stale(self, store):
        """A fresh Generating lesson is left alone."""
        store.insert(outline="fresh", title=None)
        assert store.fail_stale_generating(timedelta(minutes=15)) == 0
