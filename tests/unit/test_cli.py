"""
Unit tests for the command-line interface.
"""

import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

from talkman_relay import __version__
from talkman_relay.cli import main
from talkman_relay.utils.config import ConfigManager
from talkman_relay.webhooks.signature import sign


class TestCLI(unittest.TestCase):
    """Test CLI commands."""

    def setUp(self):
        """Set up test fixtures."""
        self.runner = CliRunner()
        self.temp_dir = tempfile.TemporaryDirectory()
        self.temp_path = Path(self.temp_dir.name)

    def tearDown(self):
        """Clean up test fixtures."""
        self.temp_dir.cleanup()

    def test_version(self):
        result = self.runner.invoke(main, ['--version'])
        self.assertEqual(result.exit_code, 0)
        self.assertIn(__version__, result.output)

    def test_sign(self):
        payload = self.temp_path / 'payload.json'
        payload.write_bytes(b'{"zen": "Keep it simple."}')

        result = self.runner.invoke(main, ['sign', '--secret', 'abc', str(payload)])

        self.assertEqual(result.exit_code, 0)
        self.assertEqual(result.output.strip(), sign(b'{"zen": "Keep it simple."}', 'abc'))

    def test_sign_secret_from_env(self):
        payload = self.temp_path / 'payload.json'
        payload.write_bytes(b'{}')

        result = self.runner.invoke(
            main, ['sign', str(payload)], env={'GITHUB_WEBHOOK_SECRET': 'from-env'}
        )

        self.assertEqual(result.exit_code, 0)
        self.assertEqual(result.output.strip(), sign(b'{}', 'from-env'))

    def test_init_config(self):
        target = self.temp_path / 'relay.toml'

        result = self.runner.invoke(main, ['init-config', str(target)])

        self.assertEqual(result.exit_code, 0)
        self.assertTrue(target.exists())
        loaded = ConfigManager(str(target), use_env=False)
        self.assertEqual(loaded.get_all(), ConfigManager.DEFAULT_CONFIG)

    def test_init_config_refuses_overwrite(self):
        target = self.temp_path / 'relay.toml'
        target.write_text('# keep me\n')

        result = self.runner.invoke(main, ['init-config', str(target)])

        self.assertEqual(result.exit_code, 1)
        self.assertEqual(target.read_text(), '# keep me\n')

        forced = self.runner.invoke(main, ['init-config', str(target), '--force'])
        self.assertEqual(forced.exit_code, 0)
        self.assertNotEqual(target.read_text(), '# keep me\n')

    def test_init_config_replaces_broken_file(self):
        """Test a malformed config in the working directory can be regenerated."""
        with self.runner.isolated_filesystem(temp_dir=self.temp_dir.name):
            Path('talkman-relay.toml').write_text('[server\nport = ')

            result = self.runner.invoke(main, ['init-config', 'talkman-relay.toml', '--force'])

            self.assertEqual(result.exit_code, 0, result.output)
            loaded = ConfigManager('talkman-relay.toml', use_env=False)
            self.assertEqual(loaded.get_all(), ConfigManager.DEFAULT_CONFIG)

    def test_serve_without_secret_fails(self):
        """Test serve exits before starting when the secret is missing."""
        with patch.object(ConfigManager, '_find_config_file', return_value=None), \
                patch('talkman_relay.cli.asyncio.run') as run:
            result = self.runner.invoke(
                main, ['serve'],
                env={'GITHUB_WEBHOOK_SECRET': '', 'APNS_CERT_PATH': '/tmp/cert.pem'}
            )

        self.assertEqual(result.exit_code, 1)
        self.assertIn('GITHUB_WEBHOOK_SECRET', result.output)
        run.assert_not_called()

    def test_serve_starts_with_valid_settings(self):
        with patch.object(ConfigManager, '_find_config_file', return_value=None), \
                patch.object(ConfigManager, 'setup_logging') as setup_logging, \
                patch('talkman_relay.cli.asyncio.run') as run:
            result = self.runner.invoke(
                main, ['serve', '--port', '9001', '--lenient'],
                env={'GITHUB_WEBHOOK_SECRET': 'secret-value', 'APNS_CERT_PATH': '/tmp/cert.pem'}
            )

        self.assertEqual(result.exit_code, 0, result.output)
        setup_logging.assert_called_once_with(secrets=('secret-value',))
        run.assert_called_once()
        run.call_args[0][0].close()


if __name__ == '__main__':
    unittest.main()
