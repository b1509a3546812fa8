"""
Text-to-speech client (ElevenLabs ``/v1/text-to-speech``).
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx
from pydantic import ValidationError

from voice_session.config.constants import (
    DEFAULT_ELEVENLABS_BASE_URL,
    DEFAULT_SYNTHESIS_MODEL,
    DEFAULT_SYNTHESIS_TIMEOUT,
    DEFAULT_VOICE_SIMILARITY_BOOST,
    DEFAULT_VOICE_STABILITY,
    LOGGER_NAME,
)
from voice_session.models.message_schemas import VoiceInfo
from voice_session.services.errors import SynthesisError
from voice_session.services.provider_base import ProviderClient, truncate

logger = logging.getLogger(LOGGER_NAME)


@dataclass(frozen=True)
class VoiceSettings:
    """Voice tuning sent with every synthesis request."""

    stability: float = DEFAULT_VOICE_STABILITY
    similarity_boost: float = DEFAULT_VOICE_SIMILARITY_BOOST

    def to_dict(self) -> Dict[str, float]:
        return {"stability": self.stability, "similarity_boost": self.similarity_boost}


class SynthesisClient(ProviderClient):
    """Turn assistant text into speech audio."""

    provider_name = "synthesis"
    error_class = SynthesisError
    api_key_env = "ELEVENLABS_API_KEY"

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_ELEVENLABS_BASE_URL,
        model_id: str = DEFAULT_SYNTHESIS_MODEL,
        timeout: float = DEFAULT_SYNTHESIS_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key, base_url, timeout, transport=transport)
        self.model_id = model_id

    def _auth_headers(self, api_key: str) -> Dict[str, str]:
        return {"xi-api-key": api_key}

    async def synthesize(
        self,
        text: str,
        voice_id: str,
        settings: Optional[VoiceSettings] = None,
    ) -> bytes:
        """
        Synthesize speech for ``text`` with the given voice.

        Returns:
            Raw audio bytes (MPEG)

        Raises:
            SynthesisError: On transport failure, timeout, non-2xx status or an
                empty audio body
        """
        if not voice_id:
            raise SynthesisError("No voice configured for synthesis")

        body = {
            "text": text,
            "model_id": self.model_id,
            "voice_settings": (settings or VoiceSettings()).to_dict(),
        }
        response = await self._request(
            "POST",
            f"/v1/text-to-speech/{voice_id}",
            json=body,
            headers={"Accept": "audio/mpeg"},
        )
        if not response.content:
            raise SynthesisError(
                "Synthesis returned no audio", status_code=response.status_code
            )
        logger.debug(f"Synthesized {len(text)} characters into {len(response.content)} bytes")
        return response.content

    async def list_voices(self) -> List[VoiceInfo]:
        """Return the voices available to this account."""
        response = await self._request("GET", "/v1/voices")
        payload = self._json(response)
        voices = payload.get("voices") if isinstance(payload, dict) else None
        if not isinstance(voices, list):
            raise SynthesisError(
                "Invalid response format from voices API",
                status_code=response.status_code,
                raw_body=truncate(response.text),
            )

        result = []
        for entry in voices:
            try:
                result.append(VoiceInfo.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"Skipping malformed voice entry: {e}")
        return result
