"""
Exception hierarchy for the voice session pipeline.

Provider errors carry enough detail (provider name, HTTP status, raw body) to
diagnose a failed turn from the logs. They are converted into ``error`` events
by the session state machine and never reach the WebSocket transport.
"""

from typing import Optional


class VoiceSessionError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(VoiceSessionError):
    """Raised at startup when required configuration (e.g. credentials) is missing."""


class ProviderError(VoiceSessionError):
    """
    Raised when an external provider call fails.

    Attributes:
        provider: Short provider name ("transcription", "completion", "synthesis")
        status_code: HTTP status returned by the provider, if any
        raw_body: Raw response body (or transport error text) for diagnostics
    """

    provider = "provider"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        raw_body: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.raw_body = raw_body

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.message} (status {self.status_code})"
        return self.message


class TranscriptionError(ProviderError):
    """The speech-to-text provider failed."""

    provider = "transcription"


class CompletionError(ProviderError):
    """The chat-completion provider failed or returned no usable text."""

    provider = "completion"


class SynthesisError(ProviderError):
    """The text-to-speech provider failed."""

    provider = "synthesis"


class SessionError(VoiceSessionError):
    """Base class for session lifecycle errors."""


class DuplicateSessionError(SessionError):
    """A session with the same identifier is already active."""

    def __init__(self, session_id: str):
        super().__init__(f"Session already active: {session_id}")
        self.session_id = session_id


class SessionNotFoundError(SessionError, KeyError):
    """No active session exists for the identifier."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id

    def __str__(self) -> str:
        return self.args[0]


class StructuralSessionError(SessionError):
    """The session cannot continue at all (agent vanished, identifiers missing)."""


class InvalidTransitionError(SessionError):
    """A state transition outside the allowed table was attempted."""
