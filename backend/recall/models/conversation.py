from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class Message(BaseModel):
    id: str
    conversation_id: str
    role: Literal["user", "assistant"]
    content: str
    created_at: str


class Conversation(BaseModel):
    id: str
    title: str
    created_at: str
    updated_at: str


class ConversationDetail(Conversation):
    messages: list[Message]


class ConversationCreate(BaseModel):
    title: str = "New Chat"


class ConversationUpdate(BaseModel):
    title: str = Field(min_length=1, max_length=255)


class ChatRequest(BaseModel):
    conversation_id: str
    message: str = Field(min_length=1)


class ChatReply(BaseModel):
    message: str
    title: str | None = None  # set only when the first exchange renamed the conversation
