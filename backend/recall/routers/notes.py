import aiosqlite
from fastapi import APIRouter, Depends, HTTPException, Query

from recall.db.sqlite import create_note, delete_note, get_db, get_note, list_notes, update_note
from recall.models.note import Note, NoteCreate, NoteList, NoteStatus, NoteUpdate
from recall.services.categorizer import categorize_note

router = APIRouter()


@router.post("/", response_model=Note, status_code=201)
async def create(body: NoteCreate, db: aiosqlite.Connection = Depends(get_db)):
    category = await categorize_note(body.content)
    return await create_note(db, body, category)


@router.get("/", response_model=NoteList)
async def list_all(
    status: NoteStatus | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    db: aiosqlite.Connection = Depends(get_db),
):
    items, total = await list_notes(
        db, status=status.value if status else None, offset=offset, limit=limit
    )
    return NoteList(items=items, total=total, offset=offset, limit=limit)


@router.get("/{note_id}", response_model=Note)
async def get_one(note_id: int, db: aiosqlite.Connection = Depends(get_db)):
    note = await get_note(db, note_id)
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")
    return note


@router.patch("/{note_id}", response_model=Note)
async def update(
    note_id: int, body: NoteUpdate, db: aiosqlite.Connection = Depends(get_db)
):
    if body.content is not None and not body.content.strip():
        raise HTTPException(status_code=400, detail="Content cannot be empty")
    note = await update_note(db, note_id, body)
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")
    return note


@router.delete("/{note_id}", status_code=204)
async def delete(note_id: int, db: aiosqlite.Connection = Depends(get_db)) -> None:
    deleted = await delete_note(db, note_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Note not found")
