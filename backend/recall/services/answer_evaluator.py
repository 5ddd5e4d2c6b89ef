"""
Free-text answer grading.

The LLM returns {"correct": bool, "message": str}; the verdict collapses to
an SM-2 quality of 5 (correct) or 2 (incorrect) via quality_from_correct().
"""
from __future__ import annotations

from dataclasses import dataclass

from recall.config import settings
from recall.models.note import Note
from recall.services.llm_service import LLMResponseError, chat_json
from recall.services.question_generator import note_context
from recall.services.scheduler import quality_from_correct

PROMPT_TEMPLATE = """You are a kind professor who is an expert in their field. A few days ago you were working with a student in class and they drew the following conclusion: {note}

You asked them the following question to check their understanding: {question}
Here was their answer: {answer}

If they correctly answered the question, return a json containing {{"correct": true, "message": <let them know you'll ask again soon to check their understanding>}}

If their response is mostly correct, but has mistakes, or is missing core ideas, return a json containing {{"correct": true, "message": <a concise explanation on where they missed the mark>}}

If their response failed to capture the underlying idea correctly, return a json containing {{"correct": false, "message": <encouragement and a proper answer to the question>}}

Keep any encouragement concise, and not too enthusiastic.

Only return the json object, no other text.
"""


@dataclass
class AnswerEvaluation:
    correct: bool
    feedback: str
    quality: int


def parse_boolean(value: object) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized == "true":
            return True
        if normalized == "false":
            return False
    return None


def read_verdict(data: dict) -> AnswerEvaluation:
    """Validate a grader reply. Accepts "message" or "Message" for the feedback."""
    correct = parse_boolean(data.get("correct"))
    message = data.get("message")
    if not isinstance(message, str):
        message = data.get("Message")
    feedback = message.strip() if isinstance(message, str) else ""

    if correct is None or not feedback:
        raise LLMResponseError("Evaluation response incomplete")
    return AnswerEvaluation(
        correct=correct, feedback=feedback, quality=quality_from_correct(correct)
    )


async def evaluate_answer(note: Note, question: str, answer: str) -> AnswerEvaluation:
    prompt = PROMPT_TEMPLATE.format(
        note=note_context(note), question=question, answer=answer
    )
    data = await chat_json(None, prompt, model=settings.evaluation_model, max_tokens=600)
    return read_verdict(data)
