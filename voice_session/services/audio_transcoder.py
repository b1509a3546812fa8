"""
Decoding of inbound WebSocket frames into audio chunks for transcription.

Browsers send raw binary frames straight from ``MediaRecorder``; other clients
send base64 text, optionally wrapped in a JSON object. The container is sniffed
from its magic bytes so the transcription request carries the right mimetype.
Nothing here keeps state between frames.
"""

import base64
import binascii
import json
from dataclasses import dataclass, replace
from typing import Union

from voice_session.config.constants import (
    AUDIO_ENCODING_LINEAR16,
    AUDIO_ENCODING_MP3,
    AUDIO_ENCODING_OGG,
    AUDIO_ENCODING_WAV,
    AUDIO_ENCODING_WEBM,
    AUDIO_MIMETYPES,
    DEFAULT_AUDIO_ENCODING,
)

# Encodings with no container header; the provider needs them named explicitly
RAW_ENCODINGS = frozenset({AUDIO_ENCODING_LINEAR16})

_EBML_MAGIC = b"\x1a\x45\xdf\xa3"


class InvalidAudioFrame(ValueError):
    """Raised when a frame carries no decodable audio."""


@dataclass(frozen=True)
class AudioChunk:
    """One inbound audio chunk, ready for the transcription provider."""

    data: bytes
    encoding: str
    mimetype: str
    sequence: int = 0

    @property
    def is_raw(self) -> bool:
        return self.encoding in RAW_ENCODINGS

    def with_sequence(self, sequence: int) -> "AudioChunk":
        return replace(self, sequence=sequence)


def detect_encoding(data: bytes, default: str = DEFAULT_AUDIO_ENCODING) -> str:
    """Identify the audio container from its leading bytes."""
    if data.startswith(_EBML_MAGIC):
        return AUDIO_ENCODING_WEBM
    if data[:4] == b"RIFF" and data[8:12] == b"WAVE":
        return AUDIO_ENCODING_WAV
    if data.startswith(b"OggS"):
        return AUDIO_ENCODING_OGG
    if data.startswith(b"ID3") or (len(data) > 1 and data[0] == 0xFF and data[1] & 0xE0 == 0xE0):
        return AUDIO_ENCODING_MP3
    return default


def _decode_text_frame(text: str) -> bytes:
    payload = text.strip()
    if payload.startswith("{"):
        try:
            message = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise InvalidAudioFrame(f"Invalid JSON audio frame: {exc}") from exc
        payload = message.get("audio") or message.get("audioChunk") or ""
        if not isinstance(payload, str):
            raise InvalidAudioFrame("Audio field must be a base64 string")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidAudioFrame("Invalid base64 encoded audio data") from exc


def transcode(
    frame: Union[bytes, bytearray, str],
    default_encoding: str = DEFAULT_AUDIO_ENCODING,
) -> AudioChunk:
    """
    Convert one inbound frame into an ``AudioChunk``.

    Args:
        frame: Binary audio, base64 text, or a JSON object with an ``audio`` field
        default_encoding: Encoding assumed when the container cannot be sniffed

    Returns:
        The decoded chunk with encoding and mimetype filled in

    Raises:
        InvalidAudioFrame: If the frame is empty or not decodable
    """
    if isinstance(frame, str):
        data = _decode_text_frame(frame)
    else:
        data = bytes(frame)

    if not data:
        raise InvalidAudioFrame("Audio frame is empty")

    encoding = detect_encoding(data, default_encoding)
    return AudioChunk(
        data=data,
        encoding=encoding,
        mimetype=AUDIO_MIMETYPES.get(encoding, "application/octet-stream"),
    )


class AudioChunkTranscoder:
    """Callable wrapper holding the default encoding for a server instance."""

    def __init__(self, default_encoding: str = DEFAULT_AUDIO_ENCODING):
        if default_encoding not in AUDIO_MIMETYPES:
            raise ValueError(f"Unsupported default audio encoding: {default_encoding}")
        self.default_encoding = default_encoding

    def __call__(self, frame: Union[bytes, bytearray, str]) -> AudioChunk:
        return transcode(frame, self.default_encoding)
