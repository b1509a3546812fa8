"""
Environment-based settings for the voice session server.

Values are read from environment variables, with a ``.env`` file in the working
directory loaded first if it exists. Provider credentials are mandatory: a
missing key is reported by ``Settings.validate()`` before the server accepts
any session.

Usage:
```python
from voice_session.config.settings import load_settings

settings = load_settings()
settings.validate()
print(settings.completion.model)
```
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import dotenv

from voice_session.config.constants import (
    DEFAULT_COMPLETION_MAX_TOKENS,
    DEFAULT_COMPLETION_MODEL,
    DEFAULT_COMPLETION_TEMPERATURE,
    DEFAULT_COMPLETION_TIMEOUT,
    DEFAULT_DEEPGRAM_BASE_URL,
    DEFAULT_ELEVENLABS_BASE_URL,
    DEFAULT_OPENAI_BASE_URL,
    DEFAULT_SESSION_IDLE_TIMEOUT,
    DEFAULT_SESSION_QUEUE_SIZE,
    DEFAULT_SESSION_SWEEP_INTERVAL,
    DEFAULT_SYNTHESIS_MODEL,
    DEFAULT_SYNTHESIS_TIMEOUT,
    DEFAULT_TRANSCRIPTION_LANGUAGE,
    DEFAULT_TRANSCRIPTION_TIMEOUT,
)
from voice_session.services.errors import ConfigurationError

# Load environment variables from .env file if it exists
env_path = Path(".") / ".env"
if env_path.exists():
    dotenv.load_dotenv(env_path)


def get_env(key: str, default: str = "") -> str:
    """Get an environment variable, treating blank values as unset."""
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    return value.strip()


def get_env_int(key: str, default: int) -> int:
    """Get an environment variable as integer."""
    return int(get_env(key, str(default)))


def get_env_float(key: str, default: float) -> float:
    """Get an environment variable as float."""
    return float(get_env(key, str(default)))


@dataclass
class TranscriptionSettings:
    """Speech-to-text provider settings."""

    api_key: str = field(default_factory=lambda: get_env("DEEPGRAM_API_KEY"))
    base_url: str = field(
        default_factory=lambda: get_env("DEEPGRAM_BASE_URL", DEFAULT_DEEPGRAM_BASE_URL)
    )
    language: str = field(
        default_factory=lambda: get_env("TRANSCRIPTION_LANGUAGE", DEFAULT_TRANSCRIPTION_LANGUAGE)
    )
    timeout: float = field(
        default_factory=lambda: get_env_float("TRANSCRIPTION_TIMEOUT", DEFAULT_TRANSCRIPTION_TIMEOUT)
    )


@dataclass
class CompletionSettings:
    """Chat-completion provider settings."""

    api_key: str = field(
        default_factory=lambda: get_env("OPENAI_API_KEY") or get_env("OPENAI_API_SECRET")
    )
    base_url: str = field(
        default_factory=lambda: get_env("OPENAI_BASE_URL", DEFAULT_OPENAI_BASE_URL)
    )
    model: str = field(
        default_factory=lambda: get_env("COMPLETION_MODEL", DEFAULT_COMPLETION_MODEL)
    )
    temperature: float = field(
        default_factory=lambda: get_env_float("COMPLETION_TEMPERATURE", DEFAULT_COMPLETION_TEMPERATURE)
    )
    max_tokens: int = field(
        default_factory=lambda: get_env_int("COMPLETION_MAX_TOKENS", DEFAULT_COMPLETION_MAX_TOKENS)
    )
    timeout: float = field(
        default_factory=lambda: get_env_float("COMPLETION_TIMEOUT", DEFAULT_COMPLETION_TIMEOUT)
    )


@dataclass
class SynthesisSettings:
    """Text-to-speech provider settings."""

    api_key: str = field(default_factory=lambda: get_env("ELEVENLABS_API_KEY"))
    base_url: str = field(
        default_factory=lambda: get_env("ELEVENLABS_BASE_URL", DEFAULT_ELEVENLABS_BASE_URL)
    )
    model_id: str = field(
        default_factory=lambda: get_env("SYNTHESIS_MODEL", DEFAULT_SYNTHESIS_MODEL)
    )
    timeout: float = field(
        default_factory=lambda: get_env_float("SYNTHESIS_TIMEOUT", DEFAULT_SYNTHESIS_TIMEOUT)
    )


@dataclass
class SessionSettings:
    """Per-session policy constants."""

    queue_size: int = field(
        default_factory=lambda: get_env_int("SESSION_QUEUE_SIZE", DEFAULT_SESSION_QUEUE_SIZE)
    )
    idle_timeout: float = field(
        default_factory=lambda: get_env_float("SESSION_IDLE_TIMEOUT", DEFAULT_SESSION_IDLE_TIMEOUT)
    )
    sweep_interval: float = field(
        default_factory=lambda: get_env_float("SESSION_SWEEP_INTERVAL", DEFAULT_SESSION_SWEEP_INTERVAL)
    )


@dataclass
class Settings:
    """Top-level settings container."""

    transcription: TranscriptionSettings = field(default_factory=TranscriptionSettings)
    completion: CompletionSettings = field(default_factory=CompletionSettings)
    synthesis: SynthesisSettings = field(default_factory=SynthesisSettings)
    session: SessionSettings = field(default_factory=SessionSettings)
    agents_file: Optional[str] = field(default_factory=lambda: get_env("AGENTS_FILE") or None)
    host: str = field(default_factory=lambda: get_env("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: get_env_int("PORT", 8000))

    def missing_credentials(self) -> List[str]:
        """Return the names of provider credentials that are not configured."""
        missing = []
        if not self.transcription.api_key:
            missing.append("DEEPGRAM_API_KEY")
        if not self.completion.api_key:
            missing.append("OPENAI_API_KEY")
        if not self.synthesis.api_key:
            missing.append("ELEVENLABS_API_KEY")
        return missing

    def validate(self) -> None:
        """
        Check that the server can talk to every provider.

        Raises:
            ConfigurationError: If any provider credential is missing or a
                policy value is out of range
        """
        missing = self.missing_credentials()
        if missing:
            raise ConfigurationError(
                f"Missing provider credentials: {', '.join(missing)}"
            )
        if self.session.queue_size < 1:
            raise ConfigurationError("SESSION_QUEUE_SIZE must be at least 1")
        if self.session.idle_timeout <= 0:
            raise ConfigurationError("SESSION_IDLE_TIMEOUT must be positive")


def load_settings() -> Settings:
    """Build a Settings instance from the current environment."""
    return Settings()
