"""Chat service layer for the property FAQ assistant.

Handles:
- Rate limiting (per guest session, per minute)
- FAQ retrieval and system prompt assembly
- Conversation history for the completion call
- Answer generation and turn persistence
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Sequence
import logging
import threading

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.errors import PersistenceError
from app.services.answer_generator import AnswerGenerator
from app.services.conversation_store import ConversationStore
from app.services.faq_retriever import FAQRetriever
from app.services.prompt import build_system_prompt

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Per-session fixed-window rate limiting.

    Session ids are unauthenticated per-tab tokens, so the counter map is
    pruned whenever the minute window advances: only keys seen in the
    current minute are kept. Shared across FastAPI worker threads.
    """

    def __init__(self, max_requests_per_minute: int = 20):
        self.max_requests = max_requests_per_minute
        # {session_id: (count, minute_timestamp)}
        self._counters: Dict[str, tuple[int, datetime]] = {}
        self._pruned_minute: Optional[datetime] = None
        self._lock = threading.Lock()

    def _prune(self, current_minute: datetime) -> None:
        if self._pruned_minute == current_minute:
            return
        self._counters = {
            key: entry
            for key, entry in self._counters.items()
            if entry[1] >= current_minute
        }
        self._pruned_minute = current_minute

    def check_and_increment(self, key: str, now: Optional[datetime] = None) -> bool:
        """
        Count one request for key in the current minute.

        Returns:
            True if request allowed, False if rate limit exceeded
        """
        now = now or datetime.now(timezone.utc)
        current_minute = now.replace(second=0, microsecond=0)

        with self._lock:
            self._prune(current_minute)

            count, minute_timestamp = self._counters.get(key, (0, current_minute))
            if minute_timestamp < current_minute:
                count = 0

            if count >= self.max_requests:
                return False

            self._counters[key] = (count + 1, current_minute)
            return True

    @property
    def tracked_sessions(self) -> int:
        return len(self._counters)


@dataclass
class ChatTurn:
    """Outcome of one guest turn."""
    answer: str
    conversation_id: Optional[int]
    persisted: bool


class ChatService:
    """Service layer for chat operations."""

    def __init__(
        self,
        generator: AnswerGenerator,
        retriever: Optional[FAQRetriever] = None,
        store: Optional[ConversationStore] = None,
        rate_limiter: Optional[RateLimiter] = None,
        history_limit: int = 20,
    ):
        """Initialize chat service."""
        self.generator = generator
        self.retriever = retriever or FAQRetriever()
        self.store = store or ConversationStore()
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()
        self.history_limit = history_limit

    def check_rate_limit(self, guest_id: str) -> bool:
        """
        Check if a guest session is within rate limit.

        Returns:
            True if allowed, False if rate limit exceeded
        """
        return self.rate_limiter.check_and_increment(guest_id)

    def load_history(
        self,
        session: Session,
        property_id: str,
        guest_id: str,
    ) -> list[Dict[str, str]]:
        """Most recent turns of the guest's active conversation, oldest first."""
        conversation = self.store.get_active_conversation(session, property_id, guest_id)
        if conversation is None:
            return []
        return self.store.get_history(session, conversation.id, self.history_limit)

    def send_message(
        self,
        session: Session,
        property_id: str,
        guest_id: str,
        message_text: str,
        history: Optional[Sequence[Dict[str, str]]] = None,
    ) -> ChatTurn:
        """
        Answer a guest message from the property's FAQs.

        Flow:
        1. Retrieve relevant FAQs (never fails; degrades to none)
        2. Build system prompt
        3. Use supplied history or load it from the active conversation
        4. Generate answer
        5. Store user + assistant messages
        6. Return answer

        Args:
            session: Database session
            property_id: Property the widget is embedded on
            guest_id: Opaque guest session token
            message_text: Guest message content
            history: Prior turns supplied by the widget, or None to load them

        Returns:
            ChatTurn with the answer; persisted is False if storing failed

        Raises:
            UpstreamError: If the completion service fails (nothing is stored)
        """
        faqs = self.retriever.retrieve(session, property_id, message_text)
        system_prompt = build_system_prompt(faqs)

        if history is None:
            try:
                history = self.load_history(session, property_id, guest_id)
            except (PersistenceError, SQLAlchemyError) as e:
                session.rollback()
                logger.warning(f"History unavailable for guest {guest_id}: {str(e)}")
                history = []
        else:
            history = list(history)[-self.history_limit:] if self.history_limit else []

        answer = self.generator.generate(system_prompt, history, message_text)

        try:
            conversation = self.store.record(
                session, property_id, guest_id, message_text, answer
            )
        except PersistenceError as e:
            logger.error(
                f"Persistence failure: property={property_id}, guest={guest_id}: {str(e)}"
            )
            return ChatTurn(answer=answer, conversation_id=None, persisted=False)

        logger.info(
            f"Chat message processed: property={property_id}, guest={guest_id}, "
            f"conversation={conversation.id}, faqs={len(faqs)}"
        )
        return ChatTurn(answer=answer, conversation_id=conversation.id, persisted=True)
