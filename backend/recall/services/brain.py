"""
Brain: general chat assistant with the user's memory as system context.
"""
from __future__ import annotations

import logging

from recall.config import settings
from recall.models.conversation import Message
from recall.models.memory import Memory
from recall.services.llm_service import LLMResponseError, chat

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Chat"

MATH_FORMATTING = """For mathematical expressions, use LaTeX:
- Inline math: $...$ (e.g., "the function $f(x)$ is...")
- Display math: put $$ on separate lines, with the equation on the next line(s) and the closing $$ on its own line."""


def build_system_prompt(memory: Memory | None) -> str | None:
    """System prompt carrying the user's memory; None when no memory exists yet."""
    if memory is None or not memory.content.strip():
        return None
    return (
        f"<user_context>\n{memory.content}\n</user_context>\n\n"
        "Use this context naturally in your responses when relevant. Don't "
        "explicitly mention that you have this memory unless asked.\n\n"
        f"{MATH_FORMATTING}"
    )


async def reply(history: list[Message], memory: Memory | None) -> str:
    messages = [{"role": m.role, "content": m.content} for m in history]
    text = await chat(
        messages,
        model=settings.chat_model,
        system=build_system_prompt(memory),
        max_tokens=4096,
        temperature=0.6,
    )
    if not text:
        raise LLMResponseError("Empty chat reply")
    return text


async def generate_title(first_message: str) -> str:
    prompt = (
        "Generate a very short title (3-5 words max) for a conversation that "
        f'starts with: "{first_message[:100]}". Just respond with the title, '
        "nothing else."
    )
    title = await chat(
        [{"role": "user", "content": prompt}],
        model=settings.memory_model,
        max_tokens=50,
    )
    title = title.strip().strip('"').strip()
    return title[:255] or DEFAULT_TITLE
