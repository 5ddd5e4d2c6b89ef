from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class Review(BaseModel):
    id: int
    note_id: int
    generated_at: str
    question_text: str
    expected_answer: str | None
    model_name: str | None
    user_answer: str | None
    answered_at: str | None
    evaluation_feedback: str | None
    quality: int | None
    correct: bool | None
    previous_interval: int | None
    new_interval: int | None
    previous_easiness_factor: float | None
    new_easiness_factor: float | None


class ReviewStart(BaseModel):
    note_id: int


class ReviewStarted(BaseModel):
    review_id: int
    question: str


class AnswerRequest(BaseModel):
    answer: str = Field(min_length=1)


class RateRequest(BaseModel):
    quality: int = Field(ge=0, le=5)  # 0 = blackout, 5 = perfect
    answer: str | None = None


class Evaluation(BaseModel):
    feedback: str
    is_correct: bool
    quality: int


class Scheduling(BaseModel):
    next_review_at: str
    new_interval: int
    new_easiness_factor: float


class AnswerResult(BaseModel):
    review_id: int
    evaluation: Evaluation
    scheduling: Scheduling


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class FollowupRequest(BaseModel):
    message: str = Field(min_length=1)
    conversation_history: list[ChatTurn] = Field(default_factory=list)


class FollowupReply(BaseModel):
    message: str
