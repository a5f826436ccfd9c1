"""
Rich logging setup for talkman-relay
====================================

Configures the ``talkman_relay`` package logger so every module logger
(``logging.getLogger(__name__)``) shares the same output.

Features:
- Rich console formatting with colors and tracebacks
- Timezone-aware timestamps for file output
- Session tracking with unique UUIDs
- File logging with rotation
- Optional syslog output
- Masking of the webhook secret and sensitive environment values
"""

import logging
import logging.handlers
import os
import re
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Union

import pytz
from rich.console import Console
from rich.logging import RichHandler

# Configuration constants
LOGGER_NAME = "talkman_relay"
DEFAULT_TIMEZONE = pytz.utc
DEFAULT_LOG_LEVEL = logging.INFO
MAX_LOG_FILE_SIZE = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5
MASK_MIN_LENGTH = 5

# Generate unique session ID for this process
SESSION_ID = str(uuid.uuid4())

SENSITIVE_ENV_PATTERNS = [
    'TOKEN', 'PASSWORD', 'SECRET', 'KEY_ID', 'TEAM_ID', 'API_KEY'
]


class TimezoneAwareFormatter(logging.Formatter):
    """Custom formatter that handles timezone-aware timestamps."""

    def __init__(self, fmt=None, datefmt=None, style='%', tz=None):
        """
        Initialize the timezone-aware formatter.

        Args:
            fmt: Log format string
            datefmt: Date format string
            style: Format style ('%', '{', '$')
            tz: Timezone for timestamp formatting
        """
        super().__init__(fmt, datefmt, style)
        self.tz = tz

    def formatTime(self, record, datefmt=None):  # noqa: N802
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        if self.tz:
            dt = dt.astimezone(self.tz)
        return dt.strftime(datefmt) if datefmt else dt.isoformat()


class SecretMaskingFilter(logging.Filter):
    """Replace known secret values in log records with a masked form."""

    def __init__(self, secrets: Iterable[str] = ()):
        super().__init__()
        values = {s for s in secrets if s and len(s) >= MASK_MIN_LENGTH}
        for var, value in os.environ.items():
            if any(p in var.upper() for p in SENSITIVE_ENV_PATTERNS) and value and len(value) >= MASK_MIN_LENGTH:
                values.add(value)
        # Longest first so overlapping values mask completely
        self._pattern = (
            re.compile("|".join(re.escape(v) for v in sorted(values, key=len, reverse=True)))
            if values else None
        )

    @staticmethod
    def _mask(match: re.Match) -> str:
        value = match.group(0)
        return value[:2] + '*' * (len(value) - 2)

    def mask(self, text: str) -> str:
        """Mask every secret occurrence in text."""
        if self._pattern is None:
            return text
        return self._pattern.sub(self._mask, text)

    def filter(self, record: logging.LogRecord) -> bool:
        if self._pattern is not None:
            record.msg = self.mask(record.getMessage())
            record.args = None
        return True


class RichLogger:
    """
    Package logger with rich formatting.

    Provides structured logging with:
    - Rich console output
    - File logging with rotation
    - Session tracking
    - Secret masking
    """

    def __init__(
        self,
        name: str = LOGGER_NAME,
        level: int = DEFAULT_LOG_LEVEL,
        timezone: pytz.BaseTzInfo = DEFAULT_TIMEZONE,
        log_file: Optional[Union[str, Path]] = None,
        console_output: bool = True,
        file_output: bool = False,
        syslog_output: bool = False,
        secrets: Iterable[str] = ()
    ):
        """
        Initialize the RichLogger.

        Args:
            name: Logger name
            level: Logging level
            timezone: Timezone for file log timestamps
            log_file: Path to log file (optional)
            console_output: Enable console logging
            file_output: Enable file logging
            syslog_output: Enable local syslog logging
            secrets: Values to mask in every record
        """
        self.name = name
        self.timezone = timezone
        self.session_id = SESSION_ID
        self.masking_filter = SecretMaskingFilter(secrets)

        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        # Prevent duplicate handlers
        if self.logger.handlers:
            self.logger.handlers.clear()

        if console_output:
            self._setup_console_handler()
        if file_output:
            self._setup_file_handler(log_file)
        if syslog_output:
            self._setup_syslog_handler()

    def _add_handler(self, handler: logging.Handler) -> None:
        handler.addFilter(self.masking_filter)
        self.logger.addHandler(handler)

    def _setup_console_handler(self) -> None:
        """Set up rich console handler on stderr."""
        console_handler = RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            markup=False
        )
        console_handler.setFormatter(logging.Formatter("%(message)s"))
        self._add_handler(console_handler)

    def _setup_file_handler(self, log_file: Optional[Union[str, Path]] = None) -> None:
        """
        Set up rotating file handler.

        Args:
            log_file: Path to log file. If None, uses
                     ~/.cache/talkman-relay/logs/talkman-relay.log
        """
        if log_file is None:
            log_dir = Path.home() / ".cache" / "talkman-relay" / "logs"
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file = log_dir / "talkman-relay.log"

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=MAX_LOG_FILE_SIZE,
            backupCount=BACKUP_COUNT,
            encoding='utf-8'
        )

        file_format = (
            "%(asctime)s | %(levelname)8s | %(name)s | "
            f"PID:{os.getpid()} | TID:%(thread)d | "
            f"SID:{self.session_id[:8]} | %(message)s"
        )
        file_handler.setFormatter(TimezoneAwareFormatter(file_format, tz=self.timezone))
        self._add_handler(file_handler)

    def _setup_syslog_handler(self) -> None:
        """Set up local syslog handler; failures only produce a warning."""
        try:
            handler = logging.handlers.SysLogHandler()
        except OSError as e:
            self.logger.warning(f"Failed to setup syslog handler: {e}")
            return

        handler.setFormatter(logging.Formatter(
            f"%(name)s[{os.getpid()}]: %(levelname)s - %(message)s"
        ))
        self._add_handler(handler)


_loggers: dict[str, RichLogger] = {}
_logger_lock = threading.Lock()


def setup_logging(
    level: int = DEFAULT_LOG_LEVEL,
    log_file: Optional[Union[str, Path]] = None,
    console_output: bool = True,
    file_output: bool = False,
    syslog_output: bool = False,
    timezone: Optional[pytz.BaseTzInfo] = None,
    secrets: Iterable[str] = ()
) -> RichLogger:
    """
    Set up application-wide logging configuration.

    Replaces any previous configuration of the package logger; call once
    at startup.

    Returns:
        RichLogger: Configured package logger
    """
    with _logger_lock:
        _loggers[LOGGER_NAME] = RichLogger(
            LOGGER_NAME,
            level=level,
            log_file=log_file,
            console_output=console_output,
            file_output=file_output,
            syslog_output=syslog_output,
            timezone=timezone or DEFAULT_TIMEZONE,
            secrets=secrets,
        )
        return _loggers[LOGGER_NAME]
