"""
Review sessions router.

Endpoints:
  GET  /reviews/due                - the active note that has been due longest
  POST /reviews                    - generate a question for a note, open a review
  GET  /reviews/{id}               - single review
  POST /reviews/{id}/answer        - LLM grades a free-text answer, run scheduler
  POST /reviews/{id}/rate          - explicit 0-5 quality rating, run scheduler
  POST /reviews/{id}/followup      - tutor reply about a graded review
"""
from __future__ import annotations

import logging

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException

from recall.db.sqlite import (
    create_review,
    format_timestamp,
    get_db,
    get_due_note,
    get_note,
    get_review,
    record_review_outcome,
)
from recall.models.note import DueNote, Note
from recall.models.review import (
    AnswerRequest,
    AnswerResult,
    Evaluation,
    FollowupReply,
    FollowupRequest,
    RateRequest,
    Review,
    ReviewStart,
    ReviewStarted,
    Scheduling,
)
from recall.services.answer_evaluator import evaluate_answer
from recall.services.question_generator import generate_question
from recall.services.scheduler import (
    InvalidInputError,
    compute_next_review,
    is_pass,
    next_review_at,
)
from recall.services.tutor import answer_followup

logger = logging.getLogger(__name__)
router = APIRouter()


async def _load_open_review(
    db: aiosqlite.Connection, review_id: int
) -> tuple[Review, Note]:
    review = await get_review(db, review_id)
    if not review:
        raise HTTPException(status_code=404, detail="Review not found")
    if review.answered_at is not None:
        raise HTTPException(status_code=409, detail="Review already answered")
    note = await get_note(db, review.note_id)
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")
    return review, note


async def _apply_schedule(
    db: aiosqlite.Connection,
    review: Review,
    note: Note,
    *,
    quality: int,
    correct: bool,
    user_answer: str | None,
    feedback: str | None,
) -> Scheduling:
    """Run the scheduler on the note's stored state and persist the outcome."""
    try:
        result = compute_next_review(note.current_interval, note.easiness_factor, quality)
    except InvalidInputError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    due = next_review_at(result.new_interval)
    saved = await record_review_outcome(
        db,
        review,
        note,
        user_answer=user_answer,
        feedback=feedback,
        quality=quality,
        correct=correct,
        new_interval=result.new_interval,
        new_easiness_factor=result.new_easiness_factor,
        next_review_at=due,
    )
    if not saved:
        raise HTTPException(status_code=409, detail="Review already answered")

    logger.info(
        "Note %s rescheduled: q=%d interval %d -> %d, ease %.2f -> %.2f",
        note.id,
        quality,
        note.current_interval,
        result.new_interval,
        note.easiness_factor,
        result.new_easiness_factor,
    )
    return Scheduling(
        next_review_at=format_timestamp(due),
        new_interval=result.new_interval,
        new_easiness_factor=result.new_easiness_factor,
    )


# --- Endpoints ---


@router.get("/due", response_model=DueNote)
async def get_due(db: aiosqlite.Connection = Depends(get_db)) -> DueNote:
    return DueNote(note=await get_due_note(db))


@router.post("/", response_model=ReviewStarted, status_code=201)
async def start_review(
    body: ReviewStart,
    db: aiosqlite.Connection = Depends(get_db),
) -> ReviewStarted:
    """Generate a question for a note and open a review for it."""
    note = await get_note(db, body.note_id)
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")

    generated = await generate_question(note)
    review = await create_review(
        db,
        note.id,
        generated.question,
        generated.expected_answer,
        generated.model_name,
        generated.prompt,
    )
    return ReviewStarted(review_id=review.id, question=review.question_text)


@router.get("/{review_id}", response_model=Review)
async def get_one(review_id: int, db: aiosqlite.Connection = Depends(get_db)) -> Review:
    review = await get_review(db, review_id)
    if not review:
        raise HTTPException(status_code=404, detail="Review not found")
    return review


@router.post("/{review_id}/answer", response_model=AnswerResult)
async def answer_review(
    review_id: int,
    body: AnswerRequest,
    db: aiosqlite.Connection = Depends(get_db),
) -> AnswerResult:
    """Grade a free-text answer (correct -> quality 5, incorrect -> 2) and reschedule."""
    if not body.answer.strip():
        raise HTTPException(status_code=400, detail="Answer is required")
    review, note = await _load_open_review(db, review_id)

    verdict = await evaluate_answer(note, review.question_text, body.answer)
    scheduling = await _apply_schedule(
        db,
        review,
        note,
        quality=verdict.quality,
        correct=verdict.correct,
        user_answer=body.answer,
        feedback=verdict.feedback,
    )
    return AnswerResult(
        review_id=review.id,
        evaluation=Evaluation(
            feedback=verdict.feedback,
            is_correct=verdict.correct,
            quality=verdict.quality,
        ),
        scheduling=scheduling,
    )


@router.post("/{review_id}/rate", response_model=Scheduling)
async def rate_review(
    review_id: int,
    body: RateRequest,
    db: aiosqlite.Connection = Depends(get_db),
) -> Scheduling:
    """Self-graded review: the caller supplies the 0-5 quality directly."""
    review, note = await _load_open_review(db, review_id)
    return await _apply_schedule(
        db,
        review,
        note,
        quality=body.quality,
        correct=is_pass(body.quality),
        user_answer=body.answer,
        feedback=None,
    )


@router.post("/{review_id}/followup", response_model=FollowupReply)
async def followup(
    review_id: int,
    body: FollowupRequest,
    db: aiosqlite.Connection = Depends(get_db),
) -> FollowupReply:
    review = await get_review(db, review_id)
    if not review:
        raise HTTPException(status_code=404, detail="Review not found")
    note = await get_note(db, review.note_id)
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")

    text = await answer_followup(note, review, body.message, body.conversation_history)
    return FollowupReply(message=text)
