import logging

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException

from recall.db.sqlite import (
    add_message,
    create_conversation,
    delete_conversation,
    get_conversation,
    get_current_memory,
    get_db,
    list_conversations,
    list_messages,
    update_conversation,
)
from recall.models.conversation import (
    ChatReply,
    ChatRequest,
    Conversation,
    ConversationCreate,
    ConversationDetail,
    ConversationUpdate,
)
from recall.services import brain
from recall.services.llm_service import LLMResponseError, LLMUnavailableError

logger = logging.getLogger(__name__)

router = APIRouter()
chat_router = APIRouter()


@router.get("/", response_model=list[Conversation])
async def list_all(db: aiosqlite.Connection = Depends(get_db)):
    return await list_conversations(db)


@router.post("/", response_model=Conversation, status_code=201)
async def create(
    body: ConversationCreate | None = None,
    db: aiosqlite.Connection = Depends(get_db),
):
    title = (body.title if body else "").strip() or brain.DEFAULT_TITLE
    return await create_conversation(db, title)


@router.get("/{conv_id}", response_model=ConversationDetail)
async def get_one(conv_id: str, db: aiosqlite.Connection = Depends(get_db)):
    conv = await get_conversation(db, conv_id)
    if not conv:
        raise HTTPException(status_code=404, detail="Conversation not found")
    messages = await list_messages(db, conv_id)
    return ConversationDetail(**conv.model_dump(), messages=messages)


@router.patch("/{conv_id}", response_model=Conversation)
async def rename(
    conv_id: str, body: ConversationUpdate, db: aiosqlite.Connection = Depends(get_db)
):
    conv = await update_conversation(db, conv_id, title=body.title)
    if not conv:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conv


@router.delete("/{conv_id}", status_code=204)
async def delete(conv_id: str, db: aiosqlite.Connection = Depends(get_db)) -> None:
    deleted = await delete_conversation(db, conv_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Conversation not found")


@chat_router.post("/chat", response_model=ChatReply)
async def chat(body: ChatRequest, db: aiosqlite.Connection = Depends(get_db)) -> ChatReply:
    """Store the user message, reply with memory context, title the first exchange."""
    conv = await get_conversation(db, body.conversation_id)
    if not conv:
        raise HTTPException(status_code=404, detail="Conversation not found")

    await add_message(db, conv.id, "user", body.message)
    history = await list_messages(db, conv.id)
    memory = await get_current_memory(db)

    text = await brain.reply(history, memory)
    await add_message(db, conv.id, "assistant", text)

    # Title the conversation after its first exchange (best-effort)
    title = None
    if len(history) == 1:
        try:
            title = await brain.generate_title(body.message)
        except (LLMUnavailableError, LLMResponseError) as e:
            logger.warning("Title generation failed for conversation %s: %s", conv.id, e)
    await update_conversation(db, conv.id, title=title)

    return ChatReply(message=text, title=title)
