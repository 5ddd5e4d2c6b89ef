import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from recall.config import settings
from recall.db import init_all_databases
from recall.services.llm_service import LLMResponseError, LLMUnavailableError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_all_databases(settings.data_dir)
    logger.info("Recall backend ready (data dir: %s)", settings.data_dir)
    yield


async def _llm_unavailable(request: Request, exc: LLMUnavailableError) -> JSONResponse:
    logger.error("LLM unavailable on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "LLM unavailable"})


async def _llm_bad_response(request: Request, exc: LLMResponseError) -> JSONResponse:
    logger.error("Unusable LLM reply on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


def create_app() -> FastAPI:
    application = FastAPI(
        title="Recall Backend", version="0.1.0", lifespan=lifespan
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_exception_handler(LLMUnavailableError, _llm_unavailable)
    application.add_exception_handler(LLMResponseError, _llm_bad_response)

    from recall.routers import conversations, health, memory, notes, reviews

    application.include_router(health.router)
    application.include_router(
        notes.router, prefix="/notes", tags=["notes"]
    )
    application.include_router(
        reviews.router, prefix="/reviews", tags=["reviews"]
    )
    application.include_router(
        conversations.router, prefix="/conversations", tags=["brain"]
    )
    application.include_router(conversations.chat_router, tags=["brain"])
    application.include_router(
        memory.router, prefix="/memory", tags=["memory"]
    )
    application.include_router(
        memory.cron_router, prefix="/cron", tags=["memory"]
    )

    return application


app = create_app()
