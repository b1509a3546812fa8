"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for configuration values and making it easier to
maintain consistent naming throughout the codebase.
"""

# Logger name used throughout the application
LOGGER_NAME = "voice_session"

# WebSocket route for live voice sessions
TRANSCRIPTION_WS_PATH = "/ws/transcription/{agent_id}/{session_id}"

# Outbound event types
EVENT_TYPE_TRANSCRIPTION = "transcription"
EVENT_TYPE_RESPONSE = "response"
EVENT_TYPE_AUDIO = "audio"
EVENT_TYPE_ERROR = "error"

# WebSocket close codes
WS_CLOSE_POLICY_VIOLATION = 1008
WS_CLOSE_INTERNAL_ERROR = 1011

# Audio encodings understood by the transcription provider
AUDIO_ENCODING_WEBM = "webm"
AUDIO_ENCODING_OGG = "ogg"
AUDIO_ENCODING_WAV = "wav"
AUDIO_ENCODING_MP3 = "mp3"
AUDIO_ENCODING_LINEAR16 = "linear16"

AUDIO_MIMETYPES = {
    AUDIO_ENCODING_WEBM: "audio/webm;codecs=opus",
    AUDIO_ENCODING_OGG: "audio/ogg;codecs=opus",
    AUDIO_ENCODING_WAV: "audio/wav",
    AUDIO_ENCODING_MP3: "audio/mpeg",
    AUDIO_ENCODING_LINEAR16: "audio/l16",
}

# The browser recorder used by the dashboard streams webm/opus
DEFAULT_AUDIO_ENCODING = AUDIO_ENCODING_WEBM

# Provider defaults
DEFAULT_DEEPGRAM_BASE_URL = "https://api.deepgram.com"
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_ELEVENLABS_BASE_URL = "https://api.elevenlabs.io"

DEFAULT_TRANSCRIPTION_LANGUAGE = "en-US"
DEFAULT_COMPLETION_MODEL = "gpt-4-turbo-preview"
DEFAULT_COMPLETION_TEMPERATURE = 0.7
DEFAULT_COMPLETION_MAX_TOKENS = 150
DEFAULT_CHAT_TEMPERATURE = 0.1
DEFAULT_SYNTHESIS_MODEL = "eleven_monolingual_v1"
DEFAULT_VOICE_STABILITY = 0.75
DEFAULT_VOICE_SIMILARITY_BOOST = 0.75

# Hedging phrases passed to the completion provider as stop sequences
COMPLETION_STOP_PHRASES = ("I don't know", "I am not sure", "I cannot")

# Per-call timeouts (seconds)
DEFAULT_TRANSCRIPTION_TIMEOUT = 15.0
DEFAULT_COMPLETION_TIMEOUT = 20.0
DEFAULT_SYNTHESIS_TIMEOUT = 30.0

# Session policy
DEFAULT_SESSION_QUEUE_SIZE = 8
DEFAULT_SESSION_IDLE_TIMEOUT = 300.0
DEFAULT_SESSION_SWEEP_INTERVAL = 30.0

# Conversation context limits
MAX_GREETING_SERVICES = 3
MAX_CONTEXT_SERVICES = 10
DOCUMENT_SUMMARY_LENGTH = 200

# Markers a closed-book answer must carry
CLOSED_BOOK_MARKERS = ("Based on the document", "I cannot answer")
