"""Answer generation through the OpenAI Chat Completions API."""
from typing import Any, Dict, Optional, Sequence
import logging

from openai import OpenAI, APIError

from app.config import Settings
from app.core.errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)


class AnswerGenerator:
    """
    Single request/response call to the completion service.

    The credential is passed in explicitly; a missing key fails at
    construction rather than on the first guest message. Temperature and
    max_tokens are fixed per instance. No retries: callers decide.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-3.5-turbo",
        temperature: float = 0.7,
        max_tokens: int = 500,
        timeout: float = 30.0,
        base_url: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        """
        Initialize the generator.

        Args:
            api_key: Bearer token for the completion service
            model: Chat model name
            temperature: Sampling temperature applied to every call
            max_tokens: Response length bound applied to every call
            timeout: Per-request timeout in seconds
            base_url: Optional alternative API endpoint
            client: Pre-built OpenAI-compatible client (tests)

        Raises:
            ConfigurationError: If no API key is available
        """
        if not api_key or not api_key.strip():
            raise ConfigurationError("OpenAI API key is not configured")

        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.client = client or OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "AnswerGenerator":
        return cls(
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            temperature=settings.OPENAI_TEMPERATURE,
            max_tokens=settings.OPENAI_MAX_TOKENS,
            timeout=settings.OPENAI_TIMEOUT,
            base_url=settings.OPENAI_BASE_URL,
        )

    def build_messages(
        self,
        system_prompt: str,
        history: Sequence[Dict[str, str]],
        query: str,
    ) -> list[Dict[str, str]]:
        """System prompt first, prior turns in order, new user turn last."""
        messages = [{"role": "system", "content": system_prompt}]
        for msg in history:
            messages.append({"role": msg["role"], "content": msg["content"]})
        messages.append({"role": "user", "content": query})
        return messages

    def generate(
        self,
        system_prompt: str,
        history: Sequence[Dict[str, str]],
        query: str,
    ) -> str:
        """
        Get the assistant's answer for one guest turn.

        Args:
            system_prompt: Instruction from the prompt assembler
            history: Prior turns as {"role", "content"} dicts, oldest first
            query: The new guest message

        Returns:
            Generated answer text

        Raises:
            UpstreamError: On API errors, timeouts, or a malformed response
        """
        messages = self.build_messages(system_prompt, history, query)

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                timeout=self.timeout,
            )
        except APIError as e:
            logger.error(f"OpenAI API error: {type(e).__name__}: {str(e)}")
            raise UpstreamError(f"Completion service error: {str(e)}") from e

        return self._extract_content(response)

    def _extract_content(self, response: Any) -> str:
        choices = getattr(response, "choices", None)
        if not choices:
            raise UpstreamError("Invalid response format from OpenAI: no choices")

        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None) if message is not None else None
        if not isinstance(content, str):
            raise UpstreamError("Invalid response format from OpenAI: no message content")

        return content
