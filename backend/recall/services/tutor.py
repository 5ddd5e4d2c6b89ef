from __future__ import annotations

from recall.config import settings
from recall.models.note import Note
from recall.models.review import ChatTurn, Review
from recall.services.llm_service import chat


def build_followup_system(note: Note, review: Review) -> str:
    lines = [
        "You are a kind, knowledgeable professor helping a student understand "
        "their learning material.",
        "",
        "Context from the recent review session:",
        f"- Original note/concept: {note.content}",
    ]
    if note.explanation:
        lines.append(f"- Additional context: {note.explanation}")
    lines += [
        f"- Question asked: {review.question_text}",
        f"- Student's answer: {review.user_answer or 'No answer provided'}",
        f"- Your evaluation: {review.evaluation_feedback or 'Not graded yet'}",
        f"- Answer was {'correct' if review.correct else 'incorrect'}",
        "",
        "The student now has a follow-up question. Give clear, concise "
        "explanations that build on what they already know. Keep your "
        "responses focused and helpful.",
    ]
    return "\n".join(lines)


async def answer_followup(
    note: Note, review: Review, message: str, history: list[ChatTurn]
) -> str:
    messages = [{"role": t.role, "content": t.content} for t in history]
    messages.append({"role": "user", "content": message})
    return await chat(
        messages,
        model=settings.chat_model,
        system=build_followup_system(note, review),
        max_tokens=1024,
    )
