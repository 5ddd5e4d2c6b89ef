import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from recall.config import settings
from recall.models.conversation import Conversation, Message
from recall.models.memory import Memory
from recall.models.note import Note, NoteCreate, NoteUpdate
from recall.models.review import Review
from recall.services.scheduler import INITIAL_EASINESS, INITIAL_INTERVAL

_db_path: Path | None = None

SCHEMA_SQL = f"""
PRAGMA journal_mode=WAL;
PRAGMA foreign_keys=ON;

CREATE TABLE IF NOT EXISTS notes (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    content             TEXT NOT NULL,
    explanation         TEXT,
    tags                TEXT NOT NULL DEFAULT '[]',
    category            TEXT,
    status              TEXT NOT NULL DEFAULT 'active'
                        CHECK (status IN ('active', 'suspended', 'archived')),
    difficulty_estimate INTEGER,
    next_review_at      TEXT NOT NULL DEFAULT (datetime('now')),
    current_interval    INTEGER NOT NULL DEFAULT {INITIAL_INTERVAL},
    easiness_factor     REAL NOT NULL DEFAULT {INITIAL_EASINESS},
    review_count        INTEGER NOT NULL DEFAULT 0,
    consecutive_correct INTEGER NOT NULL DEFAULT 0,
    last_reviewed_at    TEXT,
    created_at          TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_notes_due ON notes(status, next_review_at);

CREATE TABLE IF NOT EXISTS reviews (
    id                       INTEGER PRIMARY KEY AUTOINCREMENT,
    note_id                  INTEGER NOT NULL REFERENCES notes(id) ON DELETE CASCADE,
    generated_at             TEXT NOT NULL DEFAULT (datetime('now')),
    question_text            TEXT NOT NULL,
    expected_answer          TEXT,
    model_name               TEXT,
    generation_prompt        TEXT,
    user_answer              TEXT,
    answered_at              TEXT,
    evaluation_feedback      TEXT,
    quality                  INTEGER,
    correct                  INTEGER,
    previous_interval        INTEGER,
    new_interval             INTEGER,
    previous_easiness_factor REAL,
    new_easiness_factor      REAL
);
CREATE INDEX IF NOT EXISTS idx_reviews_note ON reviews(note_id);

CREATE TABLE IF NOT EXISTS conversations (
    id         TEXT PRIMARY KEY,
    title      TEXT NOT NULL DEFAULT 'New Chat',
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_conversations_updated ON conversations(updated_at);

CREATE TABLE IF NOT EXISTS messages (
    id              TEXT PRIMARY KEY,
    conversation_id TEXT NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
    role            TEXT NOT NULL CHECK (role IN ('user', 'assistant')),
    content         TEXT NOT NULL,
    created_at      TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages(conversation_id);

CREATE TABLE IF NOT EXISTS memory (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    content           TEXT NOT NULL,
    last_updated_at   TEXT NOT NULL DEFAULT (datetime('now')),
    last_processed_at TEXT
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);
INSERT OR IGNORE INTO schema_version(version) VALUES (1);
"""


async def init_sqlite(data_dir: Path) -> None:
    global _db_path
    _db_path = data_dir / settings.sqlite_filename
    async with aiosqlite.connect(_db_path) as db:
        await db.executescript(SCHEMA_SQL)
        await db.commit()


async def get_db() -> AsyncIterator[aiosqlite.Connection]:
    assert _db_path is not None, "SQLite not initialized"
    async with aiosqlite.connect(_db_path) as db:
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA foreign_keys=ON")
        yield db


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _now() -> str:
    return format_timestamp(datetime.now(timezone.utc))


def activity_now() -> str:
    """
    Microsecond UTC timestamp for conversation activity and the memory
    watermark, which are compared against each other.
    """
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")


# --- Notes ---


def _row_to_note(row: aiosqlite.Row) -> Note:
    d = dict(row)
    d["tags"] = json.loads(d["tags"] or "[]")
    return Note(**d)


async def create_note(
    db: aiosqlite.Connection, note: NoteCreate, category: str | None
) -> Note:
    now = _now()
    cursor = await db.execute(
        """INSERT INTO notes
           (content, explanation, tags, category, difficulty_estimate,
            next_review_at, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (
            note.content,
            note.explanation,
            json.dumps(note.tags),
            category,
            note.difficulty_estimate,
            now,
            now,
        ),
    )
    await db.commit()
    return await get_note(db, cursor.lastrowid)  # type: ignore[arg-type,return-value]


async def get_note(db: aiosqlite.Connection, note_id: int) -> Note | None:
    cursor = await db.execute("SELECT * FROM notes WHERE id = ?", (note_id,))
    row = await cursor.fetchone()
    return _row_to_note(row) if row else None


async def list_notes(
    db: aiosqlite.Connection,
    status: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[Note], int]:
    where = "WHERE status = ?" if status else ""
    params: list = [status] if status else []

    cursor = await db.execute(f"SELECT COUNT(*) FROM notes {where}", params)  # noqa: S608
    total = (await cursor.fetchone())[0]

    cursor = await db.execute(
        f"SELECT * FROM notes {where} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",  # noqa: S608
        params + [limit, offset],
    )
    rows = await cursor.fetchall()
    return [_row_to_note(r) for r in rows], total


async def update_note(
    db: aiosqlite.Connection, note_id: int, updates: NoteUpdate
) -> Note | None:
    fields = updates.model_dump(exclude_none=True)
    if not fields:
        return await get_note(db, note_id)

    if "status" in fields:
        fields["status"] = fields["status"].value
    if "tags" in fields:
        fields["tags"] = json.dumps(fields["tags"])

    set_clause = ", ".join(f"{k} = ?" for k in fields)
    await db.execute(
        f"UPDATE notes SET {set_clause} WHERE id = ?",  # noqa: S608
        list(fields.values()) + [note_id],
    )
    await db.commit()
    return await get_note(db, note_id)


async def delete_note(db: aiosqlite.Connection, note_id: int) -> bool:
    cursor = await db.execute("DELETE FROM notes WHERE id = ?", (note_id,))
    await db.commit()
    return (cursor.rowcount or 0) > 0


async def get_due_note(
    db: aiosqlite.Connection, now: datetime | None = None
) -> Note | None:
    """Return the active note that has been due the longest, or None."""
    cutoff = format_timestamp(now) if now else _now()
    cursor = await db.execute(
        """SELECT * FROM notes
           WHERE status = 'active' AND next_review_at <= ?
           ORDER BY next_review_at ASC, id ASC
           LIMIT 1""",
        (cutoff,),
    )
    row = await cursor.fetchone()
    return _row_to_note(row) if row else None


# --- Reviews ---


def _row_to_review(row: aiosqlite.Row) -> Review:
    d = dict(row)
    d.pop("generation_prompt", None)
    if d["correct"] is not None:
        d["correct"] = bool(d["correct"])
    return Review(**d)


async def create_review(
    db: aiosqlite.Connection,
    note_id: int,
    question_text: str,
    expected_answer: str | None,
    model_name: str | None,
    generation_prompt: str | None,
) -> Review:
    cursor = await db.execute(
        """INSERT INTO reviews
           (note_id, generated_at, question_text, expected_answer,
            model_name, generation_prompt)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (note_id, _now(), question_text, expected_answer, model_name, generation_prompt),
    )
    await db.commit()
    return await get_review(db, cursor.lastrowid)  # type: ignore[arg-type,return-value]


async def get_review(db: aiosqlite.Connection, review_id: int) -> Review | None:
    cursor = await db.execute("SELECT * FROM reviews WHERE id = ?", (review_id,))
    row = await cursor.fetchone()
    return _row_to_review(row) if row else None


async def record_review_outcome(
    db: aiosqlite.Connection,
    review: Review,
    note: Note,
    *,
    user_answer: str | None,
    feedback: str | None,
    quality: int,
    correct: bool,
    new_interval: int,
    new_easiness_factor: float,
    next_review_at: datetime,
) -> bool:
    """
    Close an open review and write the new schedule back to its note.

    Both updates commit together. Returns False (and writes nothing) when the
    review was already answered.
    """
    now = _now()
    cursor = await db.execute(
        """UPDATE reviews
           SET user_answer = ?, answered_at = ?, evaluation_feedback = ?,
               quality = ?, correct = ?,
               previous_interval = ?, new_interval = ?,
               previous_easiness_factor = ?, new_easiness_factor = ?
           WHERE id = ? AND answered_at IS NULL""",
        (
            user_answer,
            now,
            feedback,
            quality,
            int(correct),
            note.current_interval,
            new_interval,
            note.easiness_factor,
            new_easiness_factor,
            review.id,
        ),
    )
    if (cursor.rowcount or 0) == 0:
        await db.rollback()
        return False

    await db.execute(
        """UPDATE notes
           SET current_interval = ?, easiness_factor = ?, next_review_at = ?,
               review_count = review_count + 1,
               consecutive_correct = CASE WHEN ? THEN consecutive_correct + 1 ELSE 0 END,
               last_reviewed_at = ?
           WHERE id = ?""",
        (
            new_interval,
            new_easiness_factor,
            format_timestamp(next_review_at),
            int(correct),
            now,
            note.id,
        ),
    )
    await db.commit()
    return True


# --- Conversations & messages ---


def _row_to_conversation(row: aiosqlite.Row) -> Conversation:
    return Conversation(**dict(row))


def _row_to_message(row: aiosqlite.Row) -> Message:
    return Message(**dict(row))


async def list_conversations(db: aiosqlite.Connection) -> list[Conversation]:
    cursor = await db.execute(
        "SELECT * FROM conversations ORDER BY updated_at DESC, created_at DESC"
    )
    rows = await cursor.fetchall()
    return [_row_to_conversation(r) for r in rows]


async def create_conversation(db: aiosqlite.Connection, title: str) -> Conversation:
    conv_id = str(uuid.uuid4())
    now = activity_now()
    await db.execute(
        "INSERT INTO conversations (id, title, created_at, updated_at) VALUES (?, ?, ?, ?)",
        (conv_id, title, now, now),
    )
    await db.commit()
    return await get_conversation(db, conv_id)  # type: ignore[return-value]


async def get_conversation(
    db: aiosqlite.Connection, conv_id: str
) -> Conversation | None:
    cursor = await db.execute("SELECT * FROM conversations WHERE id = ?", (conv_id,))
    row = await cursor.fetchone()
    return _row_to_conversation(row) if row else None


async def update_conversation(
    db: aiosqlite.Connection, conv_id: str, title: str | None = None
) -> Conversation | None:
    """Bump updated_at, optionally renaming the conversation."""
    now = activity_now()
    if title is None:
        cursor = await db.execute(
            "UPDATE conversations SET updated_at = ? WHERE id = ?", (now, conv_id)
        )
    else:
        cursor = await db.execute(
            "UPDATE conversations SET title = ?, updated_at = ? WHERE id = ?",
            (title, now, conv_id),
        )
    await db.commit()
    if (cursor.rowcount or 0) == 0:
        return None
    return await get_conversation(db, conv_id)


async def delete_conversation(db: aiosqlite.Connection, conv_id: str) -> bool:
    cursor = await db.execute("DELETE FROM conversations WHERE id = ?", (conv_id,))
    await db.commit()
    return (cursor.rowcount or 0) > 0


async def add_message(
    db: aiosqlite.Connection, conv_id: str, role: str, content: str
) -> Message:
    msg_id = str(uuid.uuid4())
    await db.execute(
        "INSERT INTO messages (id, conversation_id, role, content, created_at) "
        "VALUES (?, ?, ?, ?, ?)",
        (msg_id, conv_id, role, content, _now()),
    )
    await db.commit()
    cursor = await db.execute("SELECT * FROM messages WHERE id = ?", (msg_id,))
    return _row_to_message(await cursor.fetchone())


async def list_messages(db: aiosqlite.Connection, conv_id: str) -> list[Message]:
    # rowid breaks ties between messages written within the same second
    cursor = await db.execute(
        "SELECT * FROM messages WHERE conversation_id = ? ORDER BY created_at ASC, rowid ASC",
        (conv_id,),
    )
    rows = await cursor.fetchall()
    return [_row_to_message(r) for r in rows]


async def conversations_updated_since(
    db: aiosqlite.Connection, since: str | None, limit: int, until: str | None = None
) -> list[Conversation]:
    """Conversations last updated in [since, until), newest first."""
    clauses, params = [], []
    if since:
        clauses.append("updated_at >= ?")
        params.append(since)
    if until:
        clauses.append("updated_at < ?")
        params.append(until)
    where = f"WHERE {' AND '.join(clauses)} " if clauses else ""
    cursor = await db.execute(
        f"SELECT * FROM conversations {where}ORDER BY updated_at DESC LIMIT ?",
        (*params, limit),
    )
    rows = await cursor.fetchall()
    return [_row_to_conversation(r) for r in rows]


# --- Memory ---


def _row_to_memory(row: aiosqlite.Row) -> Memory:
    return Memory(**dict(row))


async def get_current_memory(db: aiosqlite.Connection) -> Memory | None:
    cursor = await db.execute(
        "SELECT * FROM memory ORDER BY last_updated_at DESC, id DESC LIMIT 1"
    )
    row = await cursor.fetchone()
    return _row_to_memory(row) if row else None


async def save_memory(
    db: aiosqlite.Connection, content: str, processed_at: str | None = None
) -> tuple[Memory, bool]:
    """
    Overwrite the current memory (or create the first one).

    processed_at, when given, becomes last_processed_at: conversations
    updated before it count as folded in. Returns (memory, created).
    """
    now = _now()
    existing = await get_current_memory(db)
    if existing:
        if processed_at:
            await db.execute(
                "UPDATE memory SET content = ?, last_updated_at = ?, last_processed_at = ? "
                "WHERE id = ?",
                (content, now, processed_at, existing.id),
            )
        else:
            await db.execute(
                "UPDATE memory SET content = ?, last_updated_at = ? WHERE id = ?",
                (content, now, existing.id),
            )
        created = False
    else:
        await db.execute(
            "INSERT INTO memory (content, last_updated_at, last_processed_at) VALUES (?, ?, ?)",
            (content, now, processed_at),
        )
        created = True
    await db.commit()
    return await get_current_memory(db), created  # type: ignore[return-value]
