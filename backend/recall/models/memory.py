from pydantic import BaseModel, Field


class Memory(BaseModel):
    id: int
    content: str
    last_updated_at: str
    last_processed_at: str | None


class MemoryUpdate(BaseModel):
    content: str = Field(min_length=1)


class MemoryRefresh(BaseModel):
    message: str
    updated: bool
    conversations_processed: int = 0
