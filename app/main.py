"""FastAPI application entry point for the Property FAQ Assistant API."""
import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import Session

from app.api.routes.chat import GUEST_ERROR_MESSAGE, conversation_store, router as chat_router
from app.config import settings
from app.core.deps import get_chat_service
from app.core.errors import ConfigurationError
from app.database import engine, init_db
from app.models.conversation import utcnow

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

STALE_SWEEP_INTERVAL_SECONDS = 3600


def close_inactive_conversations() -> int:
    """Close active conversations idle longer than CHAT_INACTIVE_DAYS."""
    cutoff = utcnow() - timedelta(days=settings.CHAT_INACTIVE_DAYS)
    with Session(engine) as session:
        return conversation_store.close_stale_conversations(session, cutoff)


async def sweep_inactive_conversations():
    while True:
        await asyncio.sleep(STALE_SWEEP_INTERVAL_SECONDS)
        try:
            await asyncio.to_thread(close_inactive_conversations)
        except Exception as e:
            logger.error(f"Inactive conversation sweep failed: {str(e)}")


def check_chat_configuration() -> bool:
    """
    Build the chat service once at startup so a missing credential is
    reported to the operator before the first guest message.
    """
    try:
        get_chat_service()
    except ConfigurationError as e:
        logger.critical(f"Chat disabled until configuration is fixed: {str(e)} (set OPENAI_API_KEY)")
        return False
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, check chat configuration, run the inactive-conversation sweep."""
    try:
        init_db()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database init failed: {str(e)}")

    check_chat_configuration()

    sweep = asyncio.create_task(sweep_inactive_conversations())
    yield
    sweep.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweep


app = FastAPI(
    title="Property FAQ Assistant API",
    description="Guest chat assistant answering from host-authored property FAQs",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


app.include_router(chat_router)


@app.exception_handler(ConfigurationError)
async def configuration_exception_handler(request: Request, exc: ConfigurationError):
    """
    Chat is unavailable until the operator fixes configuration.

    The guest only sees the generic apology.
    """
    logger.critical("Configuration error: %s", exc)
    return JSONResponse(
        status_code=503,
        content={"detail": GUEST_ERROR_MESSAGE},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Handle unhandled exceptions without leaking internal details."""
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )
