"""Typed failures raised by the chat pipeline.

Retrieval absorbs its own failures; generation and persistence failures
propagate to the turn handler, which decides what the guest sees.
"""


class ChatError(Exception):
    """Base class for chat pipeline failures."""


class ConfigurationError(ChatError):
    """A required setting (e.g. the completion-service credential) is missing."""


class UpstreamError(ChatError):
    """The completion service failed, timed out, or returned a malformed payload."""


class RetrievalDegradation(ChatError):
    """The FAQ corpus could not be read. Callers treat this as zero FAQs."""


class PersistenceError(ChatError):
    """A conversation or message write failed."""


class IntegrityViolation(PersistenceError):
    """More than one active conversation exists for a (property, guest) key."""

    def __init__(self, property_id: str, guest_id: str, count: int):
        self.property_id = property_id
        self.guest_id = guest_id
        self.count = count
        super().__init__(
            f"{count} active conversations for property={property_id} guest={guest_id}"
        )
