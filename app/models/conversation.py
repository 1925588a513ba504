"""Conversation and Message SQLModel definitions for the guest chat widget.

Models:
- Conversation: Message thread for one (property, guest session) pair
- Message: Individual user or assistant message in a conversation
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import Column, Index, Text, text
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what SQLite round-trips."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ConversationStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Conversation(SQLModel, table=True):
    """
    Conversation entity for the property chat widget.

    Partitioned by (property_id, guest_id). The guest_id is an opaque
    per-widget session token, never authenticated.
    At most one conversation per key may be active; the partial unique
    index below enforces this in the database.
    """
    __tablename__ = "conversation"
    __table_args__ = (
        Index(
            "uq_conversation_active_guest",
            "property_id",
            "guest_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    property_id: str = Field(index=True, nullable=False)
    guest_id: str = Field(index=True, nullable=False)
    status: str = Field(default=ConversationStatus.ACTIVE.value, max_length=20)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Message(SQLModel, table=True):
    """
    Message entity for conversations.

    Role: "user" or "assistant". Messages are append-only.
    """
    __tablename__ = "message"

    id: Optional[int] = Field(default=None, primary_key=True)
    conversation_id: int = Field(foreign_key="conversation.id", index=True, nullable=False)
    role: str = Field(default=MessageRole.USER.value, max_length=20)
    content: str = Field(sa_column=Column(Text, nullable=False))
    type: str = Field(default="text", max_length=20)
    created_at: datetime = Field(default_factory=utcnow)
