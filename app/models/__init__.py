from app.models.conversation import Conversation, ConversationStatus, Message, MessageRole
from app.models.faq import PropertyFAQ

__all__ = [
    "Conversation",
    "ConversationStatus",
    "Message",
    "MessageRole",
    "PropertyFAQ",
]
