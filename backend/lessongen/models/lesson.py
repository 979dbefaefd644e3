"""Lesson model — a submitted outline and its AI-generated content."""

import enum
import json
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, String, Text

from lessongen.database import Base


class LessonStatus(str, enum.Enum):
    GENERATING = "Generating"
    GENERATED = "Generated"
    FAILED = "Failed"


class Lesson(Base):
    __tablename__ = "lessons"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))

    outline = Column(Text, nullable=False)
    title = Column(String(255), nullable=True)
    content = Column(Text, nullable=True)                  # Generated TypeScript module

    status = Column(String(20), nullable=False, default=LessonStatus.GENERATING.value)
    trace_json = Column(Text, nullable=True)               # GenerationTrace or failure record as JSON

    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc), index=True)

    @property
    def trace(self) -> dict | None:
        if not self.trace_json:
            return None
        return json.loads(self.trace_json)
