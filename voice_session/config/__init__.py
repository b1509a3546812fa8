"""
Configuration module for the voice session server.

This module provides centralized configuration management for the entire application,
including constants, logging setup, and environment-based settings.

Key components:
- constants: Application-wide constants such as event types, provider defaults,
  audio encodings and session policy values.
- logging_config: Console and rotating-file logging under a single named logger.
- settings: Provider credentials and policy values read from the environment
  (and a local .env file), validated once at startup.

Usage examples:
```python
from voice_session.config.constants import LOGGER_NAME, DEFAULT_SESSION_QUEUE_SIZE
from voice_session.config.logging_config import configure_logging
from voice_session.config.settings import load_settings

logger = configure_logging()
settings = load_settings()
settings.validate()
```
"""
