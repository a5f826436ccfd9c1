"""
Unit tests for logging setup and secret masking.
"""

import logging
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from rich.logging import RichHandler

from talkman_relay.utils.rich_logger import (
    LOGGER_NAME,
    SecretMaskingFilter,
    setup_logging,
)


class TestSecretMaskingFilter(unittest.TestCase):
    """Test secret masking."""

    def test_mask_secret(self):
        with patch.dict('os.environ', {}, clear=True):
            masking = SecretMaskingFilter(['supersecret'])

        self.assertEqual(masking.mask('secret=supersecret end'), 'secret=su********* end')

    def test_short_values_ignored(self):
        with patch.dict('os.environ', {}, clear=True):
            masking = SecretMaskingFilter(['abc'])
        self.assertEqual(masking.mask('abc abc'), 'abc abc')

    def test_sensitive_environment_values(self):
        with patch.dict('os.environ', {'GITHUB_WEBHOOK_SECRET': 'env-secret-value', 'HOME': '/root'}, clear=True):
            masking = SecretMaskingFilter()

        self.assertNotIn('env-secret-value', masking.mask('using env-secret-value'))
        self.assertIn('/root', masking.mask('home is /root'))

    def test_filter_rewrites_formatted_message(self):
        with patch.dict('os.environ', {}, clear=True):
            masking = SecretMaskingFilter(['supersecret'])
        record = logging.LogRecord(
            'talkman_relay.test', logging.INFO, __file__, 1,
            'token %s', ('supersecret',), None
        )

        self.assertTrue(masking.filter(record))
        self.assertEqual(record.getMessage(), 'token su*********')


class TestSetupLogging(unittest.TestCase):
    """Test package logger configuration."""

    def tearDown(self):
        """Remove handlers installed by the test."""
        logger = logging.getLogger(LOGGER_NAME)
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)

    def test_console_handler(self):
        configured = setup_logging(level=logging.DEBUG)

        logger = logging.getLogger(LOGGER_NAME)
        self.assertIs(configured.logger, logger)
        self.assertEqual(logger.level, logging.DEBUG)
        self.assertEqual(len(logger.handlers), 1)
        self.assertIsInstance(logger.handlers[0], RichHandler)

    def test_reconfigure_replaces_handlers(self):
        setup_logging()
        setup_logging()
        self.assertEqual(len(logging.getLogger(LOGGER_NAME).handlers), 1)

    def test_file_output_masks_secret(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            log_file = Path(temp_dir) / 'relay.log'
            setup_logging(
                log_file=log_file, console_output=False, file_output=True,
                secrets=('hook-secret-123',)
            )

            logging.getLogger('talkman_relay.webhooks.server').info(
                'loaded secret hook-secret-123'
            )
            for handler in logging.getLogger(LOGGER_NAME).handlers:
                handler.flush()

            content = log_file.read_text(encoding='utf-8')
            self.tearDown()

        self.assertIn('loaded secret ho*************', content)
        self.assertNotIn('hook-secret-123', content)
        self.assertIn('talkman_relay.webhooks.server', content)


if __name__ == '__main__':
    unittest.main()
