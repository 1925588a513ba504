"""Chat endpoint routes for the property FAQ assistant.

Provides:
- POST /api/properties/{property_id}/chat - Send a guest message to the assistant
- GET /api/properties/{property_id}/conversations - List the property's conversations
- GET /api/properties/{property_id}/conversations/{id} - Get conversation with messages
- POST /api/properties/{property_id}/conversations/{id}/close - Close a conversation
"""
from datetime import datetime
from typing import Literal, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlmodel import Session

from app.core.deps import get_chat_service, get_db
from app.core.errors import UpstreamError
from app.models.conversation import Conversation
from app.services.chat_service import ChatService
from app.services.conversation_store import ConversationStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])

GUEST_ERROR_MESSAGE = "I'm sorry, I'm having trouble right now. Please try again later."

conversation_store = ConversationStore()


class HistoryItem(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Request model for sending a guest message."""
    session_id: str = Field(min_length=1, max_length=128)
    message: str
    history: Optional[list[HistoryItem]] = None


class ChatResponse(BaseModel):
    """Response model for a guest message."""
    answer: str
    conversation_id: Optional[int]
    persisted: bool


class MessageResponse(BaseModel):
    """Response model for a single message."""
    id: int
    role: str
    content: str
    type: str
    timestamp: datetime


class ConversationSummary(BaseModel):
    """Response model for conversation list."""
    id: int
    guest_id: str
    status: str
    created_at: datetime
    updated_at: datetime
    message_count: int


class ConversationDetail(BaseModel):
    """Response model for conversation with messages."""
    id: int
    guest_id: str
    status: str
    created_at: datetime
    messages: list[MessageResponse]


def _conversation_detail(session: Session, conversation: Conversation) -> ConversationDetail:
    messages = conversation_store.get_messages(session, conversation.id)
    return ConversationDetail(
        id=conversation.id,
        guest_id=conversation.guest_id,
        status=conversation.status,
        created_at=conversation.created_at,
        messages=[
            MessageResponse(
                id=msg.id,
                role=msg.role,
                content=msg.content,
                type=msg.type,
                timestamp=msg.created_at,
            )
            for msg in messages
        ],
    )


@router.post("/properties/{property_id}/chat", response_model=ChatResponse)
def send_chat_message(
    property_id: str,
    request: ChatRequest,
    session: Session = Depends(get_db),
    chat_service: ChatService = Depends(get_chat_service),
) -> ChatResponse:
    """
    Answer a guest question from the property's FAQs.

    Flow:
    1. Validate message
    2. Check rate limit for the guest session
    3. Retrieve FAQs, generate answer, store the turn
    4. Return answer

    Raises:
        HTTPException: 400 if message is empty
        HTTPException: 429 if rate limit exceeded
        HTTPException: 503 if the completion service fails
    """
    if not request.message or len(request.message.strip()) == 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Message cannot be empty",
        )

    if not chat_service.check_rate_limit(request.session_id):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded, please wait a moment",
        )

    history = None
    if request.history is not None:
        history = [item.model_dump() for item in request.history]

    try:
        turn = chat_service.send_message(
            session,
            property_id,
            request.session_id,
            request.message.strip(),
            history=history,
        )
    except UpstreamError as e:
        logger.error(f"Chat turn failed for property {property_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=GUEST_ERROR_MESSAGE,
        )

    return ChatResponse(
        answer=turn.answer,
        conversation_id=turn.conversation_id,
        persisted=turn.persisted,
    )


@router.get("/properties/{property_id}/conversations", response_model=list[ConversationSummary])
def list_conversations(
    property_id: str,
    session: Session = Depends(get_db),
) -> list[ConversationSummary]:
    """List all guest conversations for a property, most recent first."""
    return [
        ConversationSummary(
            id=conv.id,
            guest_id=conv.guest_id,
            status=conv.status,
            created_at=conv.created_at,
            updated_at=conv.updated_at,
            message_count=count,
        )
        for conv, count in conversation_store.list_conversations(session, property_id)
    ]


@router.get(
    "/properties/{property_id}/conversations/{conversation_id}",
    response_model=ConversationDetail,
)
def get_conversation(
    property_id: str,
    conversation_id: int,
    session: Session = Depends(get_db),
) -> ConversationDetail:
    """
    Get conversation with all messages.

    Raises:
        HTTPException: 404 if conversation not found for this property
    """
    conversation = conversation_store.get_conversation(session, property_id, conversation_id)
    if not conversation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found",
        )

    return _conversation_detail(session, conversation)


@router.post(
    "/properties/{property_id}/conversations/{conversation_id}/close",
    response_model=ConversationDetail,
)
def close_conversation(
    property_id: str,
    conversation_id: int,
    session: Session = Depends(get_db),
) -> ConversationDetail:
    """
    Close a conversation. The guest's next message starts a new one.

    Raises:
        HTTPException: 404 if conversation not found for this property
    """
    conversation = conversation_store.close_conversation(session, property_id, conversation_id)
    if not conversation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found",
        )

    return _conversation_detail(session, conversation)
