"""
Speech-to-text client (Deepgram ``/v1/listen``).

One audio chunk goes up per request; the response is parsed into zero or more
``TranscriptionResult`` values. Both the prerecorded response shape
(``results.channels``) and the streaming message shape (``channel`` with
``is_final``) are understood. Prerecorded results are always final.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from voice_session.config.constants import (
    DEFAULT_DEEPGRAM_BASE_URL,
    DEFAULT_TRANSCRIPTION_LANGUAGE,
    DEFAULT_TRANSCRIPTION_TIMEOUT,
    LOGGER_NAME,
)
from voice_session.services.audio_transcoder import AudioChunk
from voice_session.services.errors import TranscriptionError
from voice_session.services.provider_base import ProviderClient, truncate

logger = logging.getLogger(LOGGER_NAME)


@dataclass(frozen=True)
class TranscriptionResult:
    """One transcript hypothesis for a chunk."""

    transcript: str
    is_final: bool
    confidence: float = 0.0


class TranscriptionClient(ProviderClient):
    """Send audio chunks to the speech-to-text provider."""

    provider_name = "transcription"
    error_class = TranscriptionError
    api_key_env = "DEEPGRAM_API_KEY"

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_DEEPGRAM_BASE_URL,
        language: str = DEFAULT_TRANSCRIPTION_LANGUAGE,
        timeout: float = DEFAULT_TRANSCRIPTION_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key, base_url, timeout, transport=transport)
        self.language = language

    def _auth_headers(self, api_key: str) -> Dict[str, str]:
        return {"Authorization": f"Token {api_key}"}

    def _params(self, chunk: AudioChunk) -> Dict[str, str]:
        params = {
            "language": self.language,
            "punctuate": "true",
            "interim_results": "true",
        }
        # Containerized audio describes itself; only raw audio needs the encoding named
        if chunk.is_raw:
            params["encoding"] = chunk.encoding
        return params

    async def transcribe(self, chunk: AudioChunk) -> List[TranscriptionResult]:
        """
        Transcribe one audio chunk.

        Args:
            chunk: Decoded audio with its mimetype

        Returns:
            Non-empty transcripts found in the response, interim ones first

        Raises:
            TranscriptionError: On transport failure, timeout, non-2xx status or
                an unparseable body
        """
        response = await self._request(
            "POST",
            "/v1/listen",
            params=self._params(chunk),
            headers={"Content-Type": chunk.mimetype},
            content=chunk.data,
        )
        payload = self._json(response)
        try:
            results = parse_transcription_payload(payload)
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise TranscriptionError(
                "Transcription returned an unexpected payload",
                status_code=response.status_code,
                raw_body=truncate(response.text),
            ) from exc

        logger.debug(
            f"Transcribed chunk #{chunk.sequence} ({len(chunk.data)} bytes): "
            f"{[(r.transcript[:40], r.is_final) for r in results]}"
        )
        return results


def _alternative(alternatives: List[Dict[str, Any]]) -> Dict[str, Any]:
    return alternatives[0] if alternatives else {}


def parse_transcription_payload(payload: Dict[str, Any]) -> List[TranscriptionResult]:
    """Extract transcripts from a prerecorded or streaming response body."""
    if "results" in payload:
        channels = payload["results"].get("channels") or []
        alternative = _alternative(channels[0].get("alternatives") or []) if channels else {}
        is_final = bool(payload.get("is_final", True))
    elif "channel" in payload:
        alternative = _alternative(payload["channel"].get("alternatives") or [])
        is_final = bool(payload.get("is_final", False))
    else:
        raise KeyError("results")

    transcript = (alternative.get("transcript") or "").strip()
    if not transcript:
        return []
    return [
        TranscriptionResult(
            transcript=transcript,
            is_final=is_final,
            confidence=float(alternative.get("confidence") or 0.0),
        )
    ]
