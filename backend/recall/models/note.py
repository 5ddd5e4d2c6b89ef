from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator


class NoteStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    ARCHIVED = "archived"


class NoteCreate(BaseModel):
    content: str
    explanation: str | None = None
    tags: list[str] = Field(default_factory=list)
    difficulty_estimate: int | None = None

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("content is required")
        return v


class NoteUpdate(BaseModel):
    content: str | None = None
    explanation: str | None = None
    tags: list[str] | None = None
    status: NoteStatus | None = None


class Note(BaseModel):
    id: int
    content: str
    explanation: str | None
    tags: list[str]
    category: str | None
    status: NoteStatus
    difficulty_estimate: int | None
    next_review_at: str         # UTC "YYYY-MM-DD HH:MM:SS"
    current_interval: int       # days
    easiness_factor: float      # SM-2 ease, >= 1.3
    review_count: int
    consecutive_correct: int    # streak of passing reviews
    last_reviewed_at: str | None
    created_at: str


class NoteList(BaseModel):
    items: list[Note]
    total: int
    offset: int
    limit: int


class DueNote(BaseModel):
    note: Note | None
