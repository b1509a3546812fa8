import logging
import unittest
from logging.handlers import RotatingFileHandler
from unittest.mock import patch

from voice_session.config.logging_config import configure_logging


class TestLoggingConfig(unittest.TestCase):
    def test_configure_logging(self):
        # Test that the function returns a logger
        logger = configure_logging("INFO")
        self.assertIsInstance(logger, logging.Logger)

        # Test that the logger has the correct name
        self.assertEqual(logger.name, "voice_session")

        # Test that the logger has the correct level
        self.assertEqual(logger.level, logging.INFO)

        # Test that the logger has the correct handlers and format
        self.assertGreaterEqual(len(logger.handlers), 1)  # At least one handler (console)
        handler = logger.handlers[0]  # Check first handler (should be console handler)
        self.assertIsInstance(handler, logging.StreamHandler)
        formatter = handler.formatter
        self.assertEqual(formatter._fmt, "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        self.assertFalse(logger.propagate)

    def test_file_handler_is_added(self):
        logger = configure_logging()
        self.assertTrue(any(isinstance(h, RotatingFileHandler) for h in logger.handlers))

    def test_reconfiguring_does_not_duplicate_handlers(self):
        first = len(configure_logging().handlers)
        second = len(configure_logging().handlers)
        self.assertEqual(first, second)

    def test_level_override(self):
        logger = configure_logging("debug")
        self.assertEqual(logger.level, logging.DEBUG)
        configure_logging("INFO")

    def test_provider_loggers_are_quieted(self):
        configure_logging()
        self.assertEqual(logging.getLogger("httpx").level, logging.WARNING)

    def test_unwritable_log_dir_falls_back_to_console(self):
        with patch("voice_session.config.logging_config.RotatingFileHandler", side_effect=OSError("read-only")):
            logger = configure_logging()
        self.assertTrue(all(not isinstance(h, RotatingFileHandler) for h in logger.handlers))
        self.assertEqual(len(logger.handlers), 1)


if __name__ == "__main__":
    unittest.main()
