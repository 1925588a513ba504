"""Application settings loaded from the environment.

Values come from process environment variables, with a local `.env` file
loaded first for development.
"""
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _get_list(name: str) -> list[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings:
    """Runtime configuration for the FAQ assistant."""

    def __init__(self) -> None:
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./faq_assistant.db")

        # Completion service
        self.OPENAI_API_KEY: Optional[str] = os.getenv("OPENAI_API_KEY") or None
        self.OPENAI_BASE_URL: Optional[str] = os.getenv("OPENAI_BASE_URL") or None
        self.OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-3.5-turbo")
        self.OPENAI_TEMPERATURE: float = float(os.getenv("OPENAI_TEMPERATURE", "0.7"))
        self.OPENAI_MAX_TOKENS: int = int(os.getenv("OPENAI_MAX_TOKENS", "500"))
        self.OPENAI_TIMEOUT: float = float(os.getenv("OPENAI_TIMEOUT", "30"))

        # Chat behaviour
        self.CHAT_HISTORY_LIMIT: int = int(os.getenv("CHAT_HISTORY_LIMIT", "20"))
        self.CHAT_RATE_LIMIT_PER_MINUTE: int = int(os.getenv("CHAT_RATE_LIMIT_PER_MINUTE", "20"))
        self.CHAT_INACTIVE_DAYS: int = int(os.getenv("CHAT_INACTIVE_DAYS", "3"))

        self.CORS_ORIGINS: list[str] = _get_list("CORS_ORIGINS")
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
