import logging
import os
import unittest
from logging.handlers import RotatingFileHandler
from unittest.mock import patch

from voice_relay.config.logging_config import LOG_FORMAT, configure_logging


class TestLoggingConfig(unittest.TestCase):
    def test_configure_logging(self):
        # Test that the function returns a logger
        logger = configure_logging("INFO")
        self.assertIsInstance(logger, logging.Logger)

        # Test that the logger has the correct name
        self.assertEqual(logger.name, "voice_relay")

        # Test that the logger has the correct level
        self.assertEqual(logger.level, logging.INFO)

        # Test that the logger has the correct handlers and format
        self.assertGreaterEqual(len(logger.handlers), 1)  # At least one handler (console)
        handler = logger.handlers[0]  # Check first handler (should be console handler)
        self.assertIsInstance(handler, logging.StreamHandler)
        self.assertEqual(handler.formatter._fmt, LOG_FORMAT)
        self.assertFalse(logger.propagate)

    def test_level_override(self):
        logger = configure_logging("debug")
        self.assertEqual(logger.level, logging.DEBUG)

    def test_level_read_from_environment_when_called(self):
        with patch.dict(os.environ, {"LOG_LEVEL": "warning"}):
            logger = configure_logging()
        self.assertEqual(logger.level, logging.WARNING)

        with patch.dict(os.environ, {"LOG_LEVEL": "ERROR"}):
            logger = configure_logging("DEBUG")
        self.assertEqual(logger.level, logging.DEBUG)

    def test_reconfiguring_does_not_duplicate_handlers(self):
        configure_logging("INFO")
        logger = configure_logging("INFO")
        console_handlers = [
            h for h in logger.handlers
            if isinstance(h, logging.StreamHandler) and not isinstance(h, RotatingFileHandler)
        ]
        self.assertEqual(len(console_handlers), 1)


if __name__ == "__main__":
    unittest.main()
