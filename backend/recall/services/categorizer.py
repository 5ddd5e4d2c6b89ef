"""
Note categorization.

Asks the LLM for exactly one name from CATEGORIES. Never raises: an LLM
that is down or answers garbage, or an off-list reply, falls back to
FALLBACK_CATEGORY.
"""
from __future__ import annotations

import logging

from recall.config import settings
from recall.services.llm_service import LLMResponseError, LLMUnavailableError, chat

logger = logging.getLogger(__name__)

CATEGORIES: tuple[str, ...] = (
    "Large language models",
    "Machine learning",
    "Software engineering",
    "Databases and data systems",
    "Operating systems",
    "Linear algebra",
    "Quantum computing",
    "Neuroscience",
    "Particle physics",
    "Aerospace engineering",
    "Electrical engineering",
    "Robotics",
    "Biology",
    "Music",
    "French",
    "History",
    "Economics",
    "Finance",
    "Bitcoin",
    "Miscellaneous",
)
FALLBACK_CATEGORY = "Miscellaneous"

SYSTEM_PROMPT = (
    "You are a categorization assistant. Given a note, categorize it into ONE "
    "of the following categories:\n\n"
    + "\n".join(f"{i}. {name}" for i, name in enumerate(CATEGORIES, start=1))
    + "\n\nRespond with ONLY the category name, nothing else. Choose the most "
    "specific and appropriate category. If the note doesn't clearly fit into "
    f'any specific category, use "{FALLBACK_CATEGORY}".'
)


def match_category(reply: str) -> str | None:
    """Map a raw model reply onto a known category, ignoring case and trailing punctuation."""
    cleaned = reply.strip().strip("\"'.").strip()
    lowered = {c.lower(): c for c in CATEGORIES}
    return lowered.get(cleaned.lower())


async def categorize_note(content: str) -> str:
    try:
        reply = await chat(
            [{"role": "user", "content": f"Content: {content}"}],
            model=settings.categorizer_model,
            system=SYSTEM_PROMPT,
            max_tokens=50,
            temperature=0.3,
        )
    except (LLMUnavailableError, LLMResponseError) as e:
        logger.warning("Categorization failed, using %s: %s", FALLBACK_CATEGORY, e)
        return FALLBACK_CATEGORY

    category = match_category(reply)
    if category is None:
        logger.warning("Unexpected category %r, using %s", reply, FALLBACK_CATEGORY)
        return FALLBACK_CATEGORY
    return category
