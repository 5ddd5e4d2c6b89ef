"""
Review question generation.

Given a note, asks the LLM for one open-ended question plus the answer it
expects, as {"question": str, "expected_answer": str}.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from recall.config import settings
from recall.models.note import Note
from recall.services.llm_service import LLMResponseError, chat_json

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a kind professor checking whether a student still understands "
    "something they wrote down a few days ago. "
    "Respond ONLY with valid JSON in exactly this structure:\n"
    '{"question": "string", "expected_answer": "string"}\n'
    "Rules:\n"
    "- Ask exactly one question that requires recalling or applying the idea, "
    "not restating the note word for word.\n"
    "- The question must be answerable in 1-3 sentences.\n"
    "- expected_answer is what a correct answer must contain, in 1-3 sentences."
)


@dataclass
class GeneratedQuestion:
    question: str
    expected_answer: str | None
    model_name: str
    prompt: str


def note_context(note: Note) -> str:
    if note.explanation:
        return f"{note.content}\n\nAdditional context: {note.explanation}"
    return note.content


def build_prompt(note: Note) -> str:
    return f"The student's note:\n\n{note_context(note)[:3000]}"


async def generate_question(note: Note) -> GeneratedQuestion:
    prompt = build_prompt(note)
    result = await chat_json(
        SYSTEM_PROMPT, prompt, model=settings.question_model, max_tokens=400
    )

    question = str(result.get("question") or "").strip()
    if not question:
        raise LLMResponseError("Question generation returned no question")
    expected = str(result.get("expected_answer") or "").strip() or None

    logger.info("Generated review question for note %s", note.id)
    return GeneratedQuestion(
        question=question,
        expected_answer=expected,
        model_name=settings.question_model,
        prompt=prompt,
    )
