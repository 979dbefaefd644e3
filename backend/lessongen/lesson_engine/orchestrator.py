"""Lesson generation orchestrator.

Provider priority:
  1. Helicone gateway — when HELICONE_API_KEY is set
  2. Gemini           — when GEMINI_API_KEY is set (first choice if Helicone is absent)
  3. Mock lesson      — when no key is set, or every configured provider failed

Providers are tried one at a time; the first usable answer wins. The mock
generator cannot fail, so a lesson only ends up Failed when persisting the
result fails or something outside the provider chain breaks.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from lessongen.lesson_engine.mock import generate_mock_lesson
from lessongen.lesson_engine.prompts import build_prompt, is_easter_egg
from lessongen.models.lesson import LessonStatus
from lessongen.schemas.lesson import GenerationTrace
from lessongen.services import ai_client
from lessongen.services.ai_client import AdapterError
from lessongen.services.lesson_store import LessonStore

logger = logging.getLogger(__name__)

# Strong references so detached tasks are not garbage-collected mid-flight
_background_tasks: set[asyncio.Task] = set()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _provider_chain() -> list:
    """(provider name, adapter) pairs in the order they are tried."""
    chain = []
    if ai_client.helicone_configured():
        chain.append((ai_client.HELICONE_PROVIDER, ai_client.generate_with_helicone))
    if ai_client.gemini_configured():
        chain.append((ai_client.GEMINI_PROVIDER, ai_client.generate_with_gemini))
    return chain


def _mock_trace(trace: GenerationTrace, outline: str, fallback_reason: Optional[str]) -> GenerationTrace:
    content = generate_mock_lesson(outline, is_easter_egg(outline))
    return trace.model_copy(update={
        "provider": None,
        "model": None,
        "output": content,
        "mock": True,
        "fallback_reason": fallback_reason,
    })


async def run_generation_chain(lesson_id: str, outline: str) -> GenerationTrace:
    """Walk the provider chain and return the trace of whichever path produced content.

    AdapterError from a provider advances the chain; any other exception
    propagates to the caller.
    """
    prompt = build_prompt(outline)
    trace = GenerationTrace(prompt=prompt, timestamp=_now_iso())

    chain = _provider_chain()
    if not chain:
        logger.warning("No AI keys set - using mock generation for lesson %s", lesson_id)
        return _mock_trace(trace, outline, fallback_reason=None)

    last_error: Optional[str] = None
    for provider, generate in chain:
        try:
            result = await generate(prompt, trace_id=lesson_id)
        except AdapterError as e:
            last_error = str(e)
            logger.warning("Provider %s failed for lesson %s: %s", provider, lesson_id, e)
            continue

        return trace.model_copy(update={
            "provider": result.provider,
            "model": result.model,
            "output": result.text,
            "response_metadata": result.response_metadata,
        })

    logger.warning("All providers failed for lesson %s, falling back to mock generation", lesson_id)
    return _mock_trace(trace, outline, fallback_reason=last_error)


async def generate_lesson_content(store: LessonStore, lesson_id: str, outline: str) -> None:
    """Generate content for one lesson and write its terminal status.

    Never raises: a failure anywhere ends in a best-effort Failed update.
    """
    try:
        trace = await run_generation_chain(lesson_id, outline)
        store.update(
            lesson_id,
            content=trace.output,
            status=LessonStatus.GENERATED,
            trace=trace.as_record(),
        )
        logger.info("Successfully generated lesson %s (%s)", lesson_id, trace.provider or "mock")
    except Exception as e:
        logger.exception("Generation error for lesson %s", lesson_id)
        try:
            store.update(
                lesson_id,
                content=None,
                status=LessonStatus.FAILED,
                trace={"error": str(e) or e.__class__.__name__, "timestamp": _now_iso()},
            )
        except Exception:
            logger.exception("Could not mark lesson %s as Failed", lesson_id)


def dispatch_generation(store: LessonStore, lesson_id: str, outline: str) -> asyncio.Task:
    """Start generation in the background and return without awaiting it.

    The caller's HTTP response and the terminal store update are unordered;
    clients learn the outcome from the lesson change feed.
    """
    task = asyncio.create_task(generate_lesson_content(store, lesson_id, outline))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task
