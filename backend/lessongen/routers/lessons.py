"""Lesson router — create lessons, read them back, and stream status changes."""

import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from lessongen.config import settings
from lessongen.lesson_engine.orchestrator import dispatch_generation
from lessongen.middleware.rate_limit import limiter
from lessongen.models.lesson import Lesson, LessonStatus
from lessongen.schemas.lesson import (
    GenerateLessonRequest,
    GenerateLessonResponse,
    LessonResponse,
)
from lessongen.services.lesson_store import LessonStore, StoreError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["lessons"])

TITLE_WORDS = 6
TITLE_MAX_CHARS = 50
FEED_KEEPALIVE_SECONDS = 30.0


def get_store(request: Request) -> LessonStore:
    """FastAPI dependency returning the store created at startup."""
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Lesson store is not configured")
    return store


def extract_title(outline: str) -> str:
    """Short title: first six words, cut to 50 characters plus an ellipsis."""
    words = " ".join(outline.split()[:TITLE_WORDS])
    if len(words) > TITLE_MAX_CHARS:
        return words[:TITLE_MAX_CHARS] + "..."
    return words


def _lesson_response(lesson: Lesson) -> LessonResponse:
    return LessonResponse(
        id=lesson.id,
        outline=lesson.outline,
        title=lesson.title,
        content=lesson.content,
        status=lesson.status,
        trace=lesson.trace,
        created_at=lesson.created_at.isoformat(),
    )


@router.post("/api/generate-lesson", response_model=GenerateLessonResponse)
@limiter.limit(settings.GENERATE_RATE_LIMIT)
async def generate_lesson(
    request: Request,
    req: Optional[GenerateLessonRequest] = None,
    store: LessonStore = Depends(get_store),
):
    """Create a lesson and start generating its content.

    Returns the lesson id immediately. Follow /api/lessons/stream for the outcome.
    """
    outline = req.outline if req is not None else None
    if not isinstance(outline, str) or not outline.strip():
        raise HTTPException(status_code=400, detail="Outline is required")

    try:
        lesson = store.insert(outline=outline, title=extract_title(outline))
    except StoreError:
        logger.exception("Insert error")
        raise HTTPException(status_code=500, detail="Failed to create lesson")

    dispatch_generation(store, lesson.id, outline)

    return GenerateLessonResponse(lesson_id=lesson.id, status=LessonStatus.GENERATING.value)


@router.get("/api/lessons", response_model=list[LessonResponse])
def list_lessons(store: LessonStore = Depends(get_store)):
    """All lessons, newest first."""
    try:
        lessons = store.select_all()
    except StoreError:
        logger.exception("Failed to list lessons")
        raise HTTPException(status_code=500, detail="Failed to load lessons")
    return [_lesson_response(l) for l in lessons]


@router.get("/api/lessons/stream")
async def stream_lessons(store: LessonStore = Depends(get_store)):
    """SSE feed of the full lesson list, re-sent after every change."""
    return StreamingResponse(
        lesson_feed_events(store),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/api/lessons/{lesson_id}", response_model=LessonResponse)
def get_lesson(lesson_id: str, store: LessonStore = Depends(get_store)):
    """One lesson with its content and trace."""
    try:
        lesson = store.select_by_id(lesson_id)
    except StoreError:
        logger.exception("Failed to load lesson %s", lesson_id)
        raise HTTPException(status_code=500, detail="Failed to load lesson")
    if not lesson:
        raise HTTPException(status_code=404, detail="Lesson not found")
    return _lesson_response(lesson)


def _snapshot_event(store: LessonStore) -> str:
    try:
        lessons = [_lesson_response(l).model_dump() for l in store.select_all()]
    except StoreError as e:
        logger.warning("Lesson feed re-read failed: %s", e)
        return f"data: {json.dumps({'event': 'error', 'data': {'message': str(e)[:200]}})}\n\n"
    return f"data: {json.dumps({'event': 'lessons', 'data': lessons})}\n\n"


async def lesson_feed_events(store: LessonStore, keepalive: float = FEED_KEEPALIVE_SECONDS):
    """Yield a lesson-list snapshot on connect and after each change notification."""
    queue = store.feed.subscribe()
    try:
        yield _snapshot_event(store)
        while True:
            try:
                await asyncio.wait_for(queue.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            # Collapse bursts of notifications into one re-read
            while not queue.empty():
                queue.get_nowait()
            yield _snapshot_event(store)
    finally:
        store.feed.unsubscribe(queue)
