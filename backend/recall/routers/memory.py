import logging

import aiosqlite
from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import JSONResponse

from recall.config import settings
from recall.db.sqlite import get_current_memory, get_db, save_memory
from recall.models.memory import Memory, MemoryRefresh, MemoryUpdate
from recall.services.memory_updater import refresh_memory

logger = logging.getLogger(__name__)

router = APIRouter()
cron_router = APIRouter()


def cron_authorized(authorization: str | None) -> bool:
    """Bearer check for the scheduled refresh; without a secret only development is open."""
    if not settings.cron_secret:
        return settings.environment == "development"
    return authorization == f"Bearer {settings.cron_secret}"


@router.get("/", response_model=Memory | None)
async def get_memory(db: aiosqlite.Connection = Depends(get_db)):
    return await get_current_memory(db)


@router.put("/", response_model=Memory)
async def put_memory(body: MemoryUpdate, db: aiosqlite.Connection = Depends(get_db)):
    memory, created = await save_memory(db, body.content)
    if created:
        return JSONResponse(status_code=201, content=memory.model_dump())
    return memory


@router.post("/generate", response_model=MemoryRefresh)
async def generate_memory(db: aiosqlite.Connection = Depends(get_db)):
    return await refresh_memory(db)


@cron_router.get("/memory", response_model=MemoryRefresh)
async def cron_memory(
    authorization: str | None = Header(default=None),
    db: aiosqlite.Connection = Depends(get_db),
):
    if not cron_authorized(authorization):
        raise HTTPException(status_code=401, detail="Unauthorized")
    result = await refresh_memory(db)
    logger.info("Scheduled memory refresh: %s", result.message)
    return result
