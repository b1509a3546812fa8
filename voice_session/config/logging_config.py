"""
Logging setup for the voice session server.

Everything the package logs goes through one named logger (``voice_session``).
``configure_logging()`` attaches a stdout handler and, when the log directory
is writable, a size-rotated file under ``LOG_DIR``. Call it once per process;
calling it again replaces the handlers instead of stacking them.

Environment:
- ``LOG_LEVEL``: DEBUG, INFO (default), WARNING, ERROR or CRITICAL
- ``LOG_DIR``: directory for ``voice_session.log`` (default ``logs``)
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from voice_session.config.constants import LOGGER_NAME

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))
LOG_FILENAME = "voice_session.log"
MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5

# Provider HTTP and WebSocket libraries log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "websockets")


def _file_handler(formatter: logging.Formatter) -> RotatingFileHandler:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        LOG_DIR / LOG_FILENAME,
        maxBytes=MAX_LOG_SIZE,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setFormatter(formatter)
    return handler


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Set up the ``voice_session`` logger.

    Args:
        level: Level name overriding ``LOG_LEVEL``

    Returns:
        logging.Logger: The configured logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO))
    logger.propagate = False

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    stream = logging.StreamHandler(sys.stdout)
    stream.setFormatter(formatter)
    logger.addHandler(stream)

    try:
        logger.addHandler(_file_handler(formatter))
    except OSError as e:
        logger.warning(f"File logging disabled, {LOG_DIR} is not writable: {e}")

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug(f"Logging configured at {logging.getLevelName(logger.level)}")
    return logger
