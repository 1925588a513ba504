"""Conversation persistence for guest chat turns.

Handles:
- Find-or-create of the single active conversation per (property, guest)
- Atomic append of a user/assistant message pair
- Reconciling concurrent creators and self-healing duplicate active rows
- Transcript reads and conversation closing for the host dashboard
"""
from datetime import datetime
from typing import Dict, Optional
import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, func, select

from app.core.errors import IntegrityViolation, PersistenceError
from app.models.conversation import (
    Conversation,
    ConversationStatus,
    Message,
    MessageRole,
    utcnow,
)

logger = logging.getLogger(__name__)

RECORD_ATTEMPTS = 2


class ConversationStore:
    """Storage-layer operations for conversations and their messages."""

    def __init__(self, self_heal: bool = True):
        """
        Initialize the store.

        Args:
            self_heal: When several active conversations exist for one key,
                keep the newest and close the rest instead of raising
        """
        self.self_heal = self_heal

    def find_active_conversations(
        self,
        session: Session,
        property_id: str,
        guest_id: str,
    ) -> list[Conversation]:
        """Active conversations for the key, newest first."""
        statement = select(Conversation).where(
            Conversation.property_id == property_id,
            Conversation.guest_id == guest_id,
            Conversation.status == ConversationStatus.ACTIVE.value,
        ).order_by(col(Conversation.created_at).desc(), col(Conversation.id).desc())

        return list(session.exec(statement).all())

    def get_active_conversation(
        self,
        session: Session,
        property_id: str,
        guest_id: str,
    ) -> Optional[Conversation]:
        """
        Resolve the active conversation for a key, or None.

        Raises:
            IntegrityViolation: If duplicates exist and self-healing is off
        """
        active = self.find_active_conversations(session, property_id, guest_id)

        if len(active) > 1:
            violation = IntegrityViolation(property_id, guest_id, len(active))
            logger.error(f"Integrity violation: {violation}")
            if not self.self_heal:
                raise violation
            return self._close_duplicates(session, active)

        return active[0] if active else None

    def _close_duplicates(self, session: Session, active: list[Conversation]) -> Conversation:
        keep, extras = active[0], active[1:]
        now = utcnow()
        for conversation in extras:
            conversation.status = ConversationStatus.CLOSED.value
            conversation.updated_at = now
            session.add(conversation)
        session.commit()
        session.refresh(keep)

        logger.warning(
            f"Closed duplicate conversations {[c.id for c in extras]}, "
            f"keeping conversation={keep.id}"
        )
        return keep

    def get_or_create_active(
        self,
        session: Session,
        property_id: str,
        guest_id: str,
    ) -> Conversation:
        """
        Get the active conversation for the key, creating it if needed.

        A concurrent creator for the same key trips the partial unique index;
        the IntegrityError is resolved by re-reading the row that won.
        """
        conversation = self.get_active_conversation(session, property_id, guest_id)
        if conversation is not None:
            return conversation

        conversation = Conversation(
            property_id=property_id,
            guest_id=guest_id,
            status=ConversationStatus.ACTIVE.value,
        )
        session.add(conversation)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            logger.info(
                f"Active conversation for property={property_id} guest={guest_id} "
                f"created concurrently; reusing it"
            )
            existing = self.get_active_conversation(session, property_id, guest_id)
            if existing is None:
                raise
            return existing

        session.refresh(conversation)
        logger.info(
            f"Conversation created: id={conversation.id}, property={property_id}, guest={guest_id}"
        )
        return conversation

    def record(
        self,
        session: Session,
        property_id: str,
        guest_id: str,
        user_text: str,
        assistant_text: str,
    ) -> Conversation:
        """
        Persist one chat turn.

        Both messages are written in a single commit, user first. The
        conversation is touched with a conditional UPDATE in the same
        transaction; if a host close or the inactivity sweep closed it after
        it was resolved, the turn is rolled back and re-resolved onto a new
        active conversation.

        Args:
            session: Database session
            property_id: Property the guest is chatting about
            guest_id: Opaque guest session token
            user_text: Guest message
            assistant_text: Generated answer

        Returns:
            The conversation the turn was appended to

        Raises:
            PersistenceError: If any read or write fails
            IntegrityViolation: If duplicates exist and self-healing is off
        """
        try:
            for _ in range(RECORD_ATTEMPTS):
                conversation = self.get_or_create_active(session, property_id, guest_id)

                now = utcnow()
                if not self._touch_if_active(session, conversation.id, now):
                    session.rollback()
                    logger.info(
                        f"Conversation {conversation.id} closed before turn was stored; re-resolving"
                    )
                    continue

                session.add(Message(
                    conversation_id=conversation.id,
                    role=MessageRole.USER.value,
                    content=user_text,
                    type="text",
                    created_at=now,
                ))
                session.add(Message(
                    conversation_id=conversation.id,
                    role=MessageRole.ASSISTANT.value,
                    content=assistant_text,
                    type="text",
                    created_at=now,
                ))
                session.commit()
                session.refresh(conversation)
                return conversation

        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(
                f"Failed to record turn for property={property_id} guest={guest_id}: {str(e)}"
            ) from e

        raise PersistenceError(
            f"Conversation for property={property_id} guest={guest_id} kept closing during write"
        )

    def _touch_if_active(self, session: Session, conversation_id: int, now: datetime) -> bool:
        """Bump updated_at only while the row is still active; False if it was closed."""
        statement = (
            update(Conversation)
            .where(
                Conversation.id == conversation_id,
                Conversation.status == ConversationStatus.ACTIVE.value,
            )
            .values(updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return session.exec(statement).rowcount == 1

    def get_messages(
        self,
        session: Session,
        conversation_id: int,
        limit: Optional[int] = None,
    ) -> list[Message]:
        """
        Messages of a conversation in chronological order.

        With a limit, only the most recent `limit` messages are returned,
        still oldest first.
        """
        if limit is None:
            statement = select(Message).where(
                Message.conversation_id == conversation_id
            ).order_by(Message.created_at, Message.id)
            return list(session.exec(statement).all())

        statement = select(Message).where(
            Message.conversation_id == conversation_id
        ).order_by(col(Message.created_at).desc(), col(Message.id).desc()).limit(limit)
        return list(reversed(session.exec(statement).all()))

    def get_history(
        self,
        session: Session,
        conversation_id: int,
        limit: Optional[int] = None,
    ) -> list[Dict[str, str]]:
        """Recent messages as completion-service turns."""
        return [
            {"role": msg.role, "content": msg.content}
            for msg in self.get_messages(session, conversation_id, limit)
        ]

    def get_conversation(
        self,
        session: Session,
        property_id: str,
        conversation_id: int,
    ) -> Optional[Conversation]:
        statement = select(Conversation).where(
            Conversation.id == conversation_id,
            Conversation.property_id == property_id,
        )
        return session.exec(statement).first()

    def list_conversations(
        self,
        session: Session,
        property_id: str,
    ) -> list[tuple[Conversation, int]]:
        """All conversations for a property with message counts, most recent first."""
        statement = (
            select(Conversation, func.count(Message.id))
            .join(Message, Message.conversation_id == Conversation.id, isouter=True)
            .where(Conversation.property_id == property_id)
            .group_by(Conversation.id)
            .order_by(col(Conversation.updated_at).desc(), col(Conversation.id).desc())
        )
        return [(conversation, count) for conversation, count in session.exec(statement).all()]

    def close_conversation(
        self,
        session: Session,
        property_id: str,
        conversation_id: int,
    ) -> Optional[Conversation]:
        """
        Mark a conversation closed. The guest's next turn starts a new one.

        Returns:
            The conversation, or None if it does not belong to the property
        """
        conversation = self.get_conversation(session, property_id, conversation_id)
        if conversation is None:
            return None

        if conversation.status != ConversationStatus.CLOSED.value:
            conversation.status = ConversationStatus.CLOSED.value
            conversation.updated_at = utcnow()
            session.add(conversation)
            session.commit()
            session.refresh(conversation)
            logger.info(f"Conversation closed: id={conversation_id}, property={property_id}")

        return conversation

    def close_stale_conversations(self, session: Session, older_than: datetime) -> int:
        """
        Close active conversations not updated since `older_than`.

        Runs as a single UPDATE so a turn that touched the conversation in the
        meantime keeps it open.

        Returns:
            Number of conversations closed
        """
        statement = (
            update(Conversation)
            .where(
                Conversation.status == ConversationStatus.ACTIVE.value,
                Conversation.updated_at < older_than,
            )
            .values(status=ConversationStatus.CLOSED.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        closed = session.exec(statement).rowcount
        session.commit()

        if closed:
            logger.info(f"Closed {closed} inactive conversations")
        return closed
