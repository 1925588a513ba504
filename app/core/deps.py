"""FastAPI dependencies."""
from functools import lru_cache
from typing import Generator

from sqlmodel import Session

from app.config import settings
from app.database import get_session
from app.services.answer_generator import AnswerGenerator
from app.services.chat_service import ChatService, RateLimiter


def get_db() -> Generator[Session, None, None]:
    """Database session for one request."""
    yield from get_session()


@lru_cache
def get_chat_service() -> ChatService:
    """
    Process-wide chat service.

    Raises:
        ConfigurationError: If the OpenAI API key is missing
    """
    return ChatService(
        generator=AnswerGenerator.from_settings(settings),
        rate_limiter=RateLimiter(settings.CHAT_RATE_LIMIT_PER_MINUTE),
        history_limit=settings.CHAT_HISTORY_LIMIT,
    )
