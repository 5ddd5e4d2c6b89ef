"""
Rolling user memory.

refresh_memory() folds the conversations updated since the last run into the
current memory profile:
  1. Take a watermark, then pick conversations updated between
     memory.last_processed_at and it (all recent ones on the first run)
  2. Summarize their user messages, newest conversation first
  3. Ask the LLM to rewrite the memory
  4. Save it with the watermark as last_processed_at, so anything
     updated while the LLM was working is picked up next run

Nothing new and a memory already present = no LLM call, no write.
"""
from __future__ import annotations

import logging

import aiosqlite

from recall.config import settings
from recall.db.sqlite import (
    activity_now,
    conversations_updated_since,
    get_current_memory,
    list_messages,
    save_memory,
)
from recall.models.memory import MemoryRefresh
from recall.services.llm_service import LLMResponseError, chat

logger = logging.getLogger(__name__)

MAX_CONVERSATIONS_INCREMENTAL = 30
MAX_CONVERSATIONS_FIRST_RUN = 50

MEMORY_UPDATE_PROMPT = """You are a memory management system. Your job is to maintain a coherent, up-to-date memory about a user based on their conversations.

## Memory Format

The memory should follow this structure (using markdown headers):

**Work context**
Professional background, current/past work projects, skills being used professionally.

**Personal context**
Education, interests, hobbies, personality traits, values, what they enjoy.

**Top of mind**
What they're currently focused on right now: active projects, current coursework, immediate goals.

**Brief history**
*Recent months* - What they've been engaged with recently.
*Earlier context* - Patterns and interests from before that.

**Long-term background**
Enduring traits, learning style, intellectual tendencies, consistent patterns across time.

## Update Rules

1. Be conservative with changes. Only update the memory when there's genuinely new, meaningful information.
2. Preserve existing information unless it is clearly outdated or contradicted.
3. Move information through time: "Top of mind" items may move to "Recent months", and "Recent months" to "Earlier context".
4. Add specifics when learned (courses, project names, technologies).
5. Keep narrative coherence; the memory should read like a brief profile of the person.
6. Don't invent or assume. Only include information that was stated or clearly implied.
7. Keep each section to 1-3 short paragraphs.

## Your Task

Given the current memory and recent conversations, output an updated memory. If no meaningful updates are needed, you may return the memory unchanged.

Output ONLY the updated memory content in the format above (starting with **Work context**). No additional commentary."""


def format_conversation(title: str, updated_at: str, user_messages: list[str]) -> str:
    date = updated_at.split(" ")[0].split("T")[0] or "Unknown date"
    body = "\n\n".join(user_messages)
    return f"[{date}] {title}\n{body}"


def build_prompt(current_memory: str | None, summaries: list[str]) -> str:
    conversations = "\n\n---\n\n".join(summaries)
    return (
        f"{MEMORY_UPDATE_PROMPT}\n\n"
        f"## Current Memory\n\n{current_memory or 'No existing memory.'}\n\n"
        f"## Recent Conversations\n\n"
        f"{conversations or 'No conversations to process.'}\n\n"
        "## Updated Memory"
    )


async def refresh_memory(db: aiosqlite.Connection) -> MemoryRefresh:
    watermark = activity_now()
    existing = await get_current_memory(db)
    if existing and existing.last_processed_at:
        convs = await conversations_updated_since(
            db, existing.last_processed_at, MAX_CONVERSATIONS_INCREMENTAL, until=watermark
        )
    else:
        convs = await conversations_updated_since(
            db, None, MAX_CONVERSATIONS_FIRST_RUN, until=watermark
        )

    summaries: list[str] = []
    for conv in convs:
        msgs = await list_messages(db, conv.id)
        if not msgs:
            continue
        user_msgs = [m.content for m in msgs if m.role == "user"]
        summaries.append(format_conversation(conv.title, conv.updated_at, user_msgs))

    if not summaries and existing:
        return MemoryRefresh(message="No new conversations to process", updated=False)

    updated = await chat(
        [{"role": "user", "content": build_prompt(existing.content if existing else None, summaries)}],
        model=settings.memory_model,
        max_tokens=4000,
    )
    if not updated:
        raise LLMResponseError("Failed to generate memory content")

    await save_memory(db, updated, processed_at=watermark)
    logger.info("Memory updated from %d conversation(s)", len(summaries))
    return MemoryRefresh(
        message="Memory updated successfully",
        updated=True,
        conversations_processed=len(summaries),
    )
