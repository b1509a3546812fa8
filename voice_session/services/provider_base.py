"""
Shared plumbing for the provider HTTP clients.

Each provider client owns one ``httpx.AsyncClient`` and performs one kind of
outbound call. Transport errors, timeouts and non-2xx responses are all turned
into the client's ``ProviderError`` subclass with the status and raw body
attached. Nothing is retried here.
"""

import logging
from typing import Any, Dict, Optional, Type

import httpx

from voice_session.config.constants import LOGGER_NAME
from voice_session.services.errors import ConfigurationError, ProviderError

logger = logging.getLogger(LOGGER_NAME)

# Longest raw body kept on an error or written to the log
MAX_ERROR_BODY = 500


def truncate(value: str, max_length: int = MAX_ERROR_BODY) -> str:
    if len(value) <= max_length:
        return value
    return value[: max_length - 3] + "..."


class ProviderClient:
    """Base class for a single-endpoint provider client."""

    provider_name = "provider"
    error_class: Type[ProviderError] = ProviderError
    api_key_env = "API_KEY"

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ConfigurationError(
                f"{self.api_key_env} is not configured; the {self.provider_name} client cannot start"
            )
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._auth_headers(api_key),
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def _auth_headers(self, api_key: str) -> Dict[str, str]:
        raise NotImplementedError

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send one request and map every failure mode to ``error_class``."""
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            logger.error(f"{self.provider_name} request timed out after {self.timeout}s")
            raise self.error_class(
                f"{self.provider_name.capitalize()} request timed out", raw_body=str(exc)
            ) from exc
        except httpx.HTTPError as exc:
            logger.error(f"{self.provider_name} request failed: {exc}")
            raise self.error_class(
                f"{self.provider_name.capitalize()} request failed", raw_body=str(exc)
            ) from exc

        if response.is_error:
            body = truncate(response.text)
            logger.error(
                f"{self.provider_name} API error: status={response.status_code} body={body}"
            )
            raise self.error_class(
                f"{self.provider_name.capitalize()} API error: {response.reason_phrase}",
                status_code=response.status_code,
                raw_body=body,
            )
        return response

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise self.error_class(
                f"{self.provider_name.capitalize()} returned malformed JSON",
                status_code=response.status_code,
                raw_body=truncate(response.text),
            ) from exc

    async def aclose(self) -> None:
        """Release the underlying HTTP connection pool."""
        await self._client.aclose()
