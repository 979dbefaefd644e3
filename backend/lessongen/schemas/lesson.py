"""Lesson request/response schemas and the generation trace record."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class GenerateLessonRequest(BaseModel):
    # Any JSON value; the router answers 400 unless it is a non-blank string
    outline: Any = None


class GenerateLessonResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lesson_id: str = Field(alias="lessonId")
    status: str


class LessonResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    outline: str
    title: Optional[str] = None
    content: Optional[str] = None
    status: str
    trace: Optional[dict[str, Any]] = None
    created_at: str


class GeminiStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    has_key: bool = Field(alias="hasKey")


class GenerationTrace(BaseModel):
    """Diagnostic record of which generation path produced a lesson.

    Each attempt returns a new trace via ``model_copy(update=...)``; nothing
    mutates a trace that has already been handed to the orchestrator.
    """

    prompt: str
    timestamp: str
    provider: Optional[str] = None
    model: Optional[str] = None
    output: Optional[str] = None
    mock: bool = False
    fallback_reason: Optional[str] = None
    response_metadata: Optional[dict[str, Any]] = None

    def as_record(self) -> dict[str, Any]:
        """Serialisable form: absent fields dropped, ``mock`` only when set."""
        data = self.model_dump(exclude_none=True)
        if not self.mock:
            data.pop("mock", None)
        return data
