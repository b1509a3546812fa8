"""
Chat-completion client (OpenAI ``/chat/completions``).
"""

import logging
from typing import Dict, Optional, Sequence

import httpx

from voice_session.config.constants import (
    COMPLETION_STOP_PHRASES,
    DEFAULT_COMPLETION_MAX_TOKENS,
    DEFAULT_COMPLETION_MODEL,
    DEFAULT_COMPLETION_TEMPERATURE,
    DEFAULT_COMPLETION_TIMEOUT,
    DEFAULT_OPENAI_BASE_URL,
    LOGGER_NAME,
)
from voice_session.models.session import Message
from voice_session.services.errors import CompletionError
from voice_session.services.provider_base import ProviderClient, truncate

logger = logging.getLogger(LOGGER_NAME)


class CompletionClient(ProviderClient):
    """Request assistant replies from the chat-completion provider."""

    provider_name = "completion"
    error_class = CompletionError
    api_key_env = "OPENAI_API_KEY"

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_OPENAI_BASE_URL,
        model: str = DEFAULT_COMPLETION_MODEL,
        temperature: float = DEFAULT_COMPLETION_TEMPERATURE,
        max_tokens: int = DEFAULT_COMPLETION_MAX_TOKENS,
        timeout: float = DEFAULT_COMPLETION_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key, base_url, timeout, transport=transport)
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _auth_headers(self, api_key: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {api_key}"}

    async def complete(
        self,
        messages: Sequence[Message],
        *,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        stop: Optional[Sequence[str]] = COMPLETION_STOP_PHRASES,
    ) -> str:
        """
        Run one chat completion.

        Args:
            messages: Ordered messages, system message first
            model: Model override
            temperature: Sampling temperature override
            max_tokens: Response length bound override
            stop: Stop sequences; ``None`` sends none

        Returns:
            The first choice's text, stripped. May be empty.

        Raises:
            CompletionError: On transport failure, timeout, non-2xx status or an
                unparseable body
        """
        body = {
            "model": model or self.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": self.temperature if temperature is None else temperature,
            "max_tokens": max_tokens or self.max_tokens,
        }
        if stop:
            body["stop"] = list(stop)

        response = await self._request("POST", "/chat/completions", json=body)
        payload = self._json(response)
        try:
            content = payload["choices"][0]["message"].get("content")
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise CompletionError(
                "Completion returned an unexpected payload",
                status_code=response.status_code,
                raw_body=truncate(response.text),
            ) from exc

        text = (content or "").strip()
        logger.debug(f"Completion ({body['model']}) returned {len(text)} characters")
        return text
