"""
Pydantic models for the voice session WebSocket and REST payloads.

Outbound WebSocket frames come in exactly four shapes, discriminated by their
``type`` field: ``transcription``, ``response``, ``audio`` and ``error``. The
REST models cover the closed-book text chat, the one-shot voice reply, voice
preview synthesis and the voice listing endpoints.
"""

import base64
from typing import List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from voice_session.config.constants import (
    EVENT_TYPE_AUDIO,
    EVENT_TYPE_ERROR,
    EVENT_TYPE_RESPONSE,
    EVENT_TYPE_TRANSCRIPTION,
)


# Outbound WebSocket events
class BaseEvent(BaseModel):
    """Base model for all outbound WebSocket events."""

    type: str = Field(..., description="Event type identifier")


class TranscriptionEvent(BaseEvent):
    """Transcript text, interim or final. The greeting is sent as a final transcription."""

    type: Literal[EVENT_TYPE_TRANSCRIPTION] = EVENT_TYPE_TRANSCRIPTION
    text: str = Field(..., description="Transcribed or greeting text")
    isFinal: bool = Field(..., description="Whether this transcript is final")


class ResponseEvent(BaseEvent):
    """The assistant's textual reply for a turn."""

    type: Literal[EVENT_TYPE_RESPONSE] = EVENT_TYPE_RESPONSE
    text: str = Field(..., description="Assistant reply")

    @field_validator("text")
    def validate_text(cls, v):
        """A response event always carries text."""
        if not v.strip():
            raise ValueError("Response text cannot be empty")
        return v


class AudioEvent(BaseEvent):
    """Synthesized speech for the greeting or a reply."""

    type: Literal[EVENT_TYPE_AUDIO] = EVENT_TYPE_AUDIO
    audio: str = Field(..., description="Base64-encoded audio data")

    @field_validator("audio")
    def validate_audio(cls, v):
        """Validate that audio is valid, non-empty base64."""
        if not v:
            raise ValueError("Audio cannot be empty")
        try:
            base64.b64decode(v, validate=True)
        except ValueError:
            raise ValueError("Invalid base64 encoded audio data")
        return v

    @classmethod
    def from_bytes(cls, audio_bytes: bytes) -> "AudioEvent":
        return cls(audio=base64.b64encode(audio_bytes).decode("ascii"))


class ErrorEvent(BaseEvent):
    """Human-readable failure notice for the client UI."""

    type: Literal[EVENT_TYPE_ERROR] = EVENT_TYPE_ERROR
    message: str = Field(..., description="Error description")

    @field_validator("message")
    def validate_message(cls, v):
        """Error text must always be present so a client can render a fallback."""
        return v.strip() or "Processing failed"


OutboundEvent = Union[TranscriptionEvent, ResponseEvent, AudioEvent, ErrorEvent]


# REST payloads
class ChatRequest(BaseModel):
    """Closed-book text chat request."""

    model_config = ConfigDict(populate_by_name=True)

    agent_id: int = Field(..., validation_alias=AliasChoices("agentId", "agent_id"))
    message: str = Field(..., min_length=1, description="User question")

    @field_validator("message")
    def validate_message(cls, v):
        """Reject whitespace-only questions."""
        if not v.strip():
            raise ValueError("Message cannot be empty")
        return v.strip()


class ChatResponse(BaseModel):
    """Closed-book text chat reply."""

    response: str


class VoiceChatResponse(BaseModel):
    """One spoken reply: the text and its synthesized audio."""

    text: str
    audio: str = Field(..., description="Base64-encoded audio/mpeg")


class TextToSpeechRequest(BaseModel):
    """
    Voice preview request from the agent configuration form.

    Both fields are optional at parse time so the handler can answer a missing
    one with a 400 and a readable message.
    """

    model_config = ConfigDict(populate_by_name=True)

    text: str = ""
    voice_id: str = Field("", validation_alias=AliasChoices("voiceId", "voice_id"))

    @field_validator("text", "voice_id", mode="before")
    def coerce_blank(cls, v):
        if v is None:
            return ""
        return v.strip() if isinstance(v, str) else v


class TextToSpeechResponse(BaseModel):
    audio: str = Field(..., description="Base64-encoded audio/mpeg")


class VoiceInfo(BaseModel):
    """A synthesis voice offered to the agent configuration form."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    voice_id: str = Field(..., validation_alias=AliasChoices("voice_id", "voiceId"))
    name: str = ""
    category: Optional[str] = None
    preview_url: Optional[str] = Field(
        None, validation_alias=AliasChoices("preview_url", "previewUrl")
    )


class VoiceListResponse(BaseModel):
    """Voices available from the synthesis provider."""

    voices: List[VoiceInfo] = Field(default_factory=list)
