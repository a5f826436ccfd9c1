"""Configuration management for talkman-relay."""

import copy
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Tuple

try:
    import tomllib
except ImportError:
    import tomli as tomllib

import tomli_w

from ..push.apns import APNsConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "talkman-relay.toml"


class ConfigurationError(Exception):
    """Raised when the relay configuration is missing or inconsistent."""


def _to_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _to_list(value: str) -> list:
    return [item.strip() for item in value.split(",") if item.strip()]


# Environment variable -> (config key, converter)
ENV_OVERRIDES: dict[str, Tuple[str, Callable[[str], Any]]] = {
    "HOST": ("server.host", str),
    "PORT": ("server.port", int),
    "GITHUB_WEBHOOK_SECRET": ("webhook.secret", str),
    "WEBHOOK_REQUIRE_SIGNATURE": ("webhook.require_signature", _to_bool),
    "TRACKED_EXTENSIONS": ("webhook.tracked_extensions", _to_list),
    "BUNDLE_ID": ("apns.bundle_id", str),
    "APNS_DEVELOPMENT": ("apns.development", _to_bool),
    "APNS_KEY_PATH": ("apns.key_path", str),
    "APNS_KEY_ID": ("apns.key_id", str),
    "APNS_TEAM_ID": ("apns.team_id", str),
    "APNS_CERT_PATH": ("apns.cert_path", str),
    "PUSH_TIMEOUT_SECONDS": ("apns.timeout_seconds", float),
    "LOG_LEVEL": ("logging.level", str),
}


class ConfigManager:
    """Manage configuration for talkman-relay."""

    DEFAULT_CONFIG = {
        "server": {
            "host": "0.0.0.0",
            "port": 8080,
            "ssl_cert": "",
            "ssl_key": "",
            "dispatch_wait_seconds": 15.0,
        },
        "webhook": {
            "secret": "",
            "require_signature": True,
            "tracked_extensions": [".md"],
        },
        "apns": {
            "bundle_id": "ganglinwu.MD-TalkMan",
            "development": True,
            "key_path": "",
            "key_id": "",
            "team_id": "",
            "cert_path": "",
            "timeout_seconds": 5.0,
            "max_concurrency": 10,
        },
        "logging": {
            "level": "INFO",
            "console_output": True,
            "file_output": False,
            "log_file": "",
            "timezone": "UTC",
            "syslog_output": False,
        },
    }

    def __init__(
        self,
        config_path: Optional[str] = None,
        use_env: bool = True,
        load_file: bool = True
    ):
        """
        Initialize ConfigManager.

        Args:
            config_path: Path to config file
            use_env: Apply environment variable overrides
            load_file: Look for and load a config file (False keeps pure defaults)
        """
        self.config = copy.deepcopy(self.DEFAULT_CONFIG)
        self.config_path = self._find_config_file(config_path) if load_file else None

        if self.config_path:
            self._load_config()

        if use_env:
            self.apply_env()

    def _find_config_file(self, config_path: Optional[str] = None) -> Optional[Path]:
        """
        Find configuration file.

        Args:
            config_path: Explicit config path

        Returns:
            Path object or None

        Raises:
            ConfigurationError: If an explicit path does not exist
        """
        if config_path:
            path = Path(config_path).expanduser()
            if not path.is_file():
                raise ConfigurationError(f"Config file not found: {config_path}")
            return path

        # Check locations in order of precedence
        locations = [
            Path(CONFIG_FILENAME),  # Working directory
            Path.home() / ".config" / "talkman-relay" / "config.toml",  # User config
        ]

        for location in locations:
            if location.is_file():
                return location

        return None

    def _load_config(self) -> None:
        """Load configuration from file."""
        try:
            with open(self.config_path, "rb") as f:
                loaded_config = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigurationError(f"Failed to load config from {self.config_path}: {e}") from e

        self._merge_config(self.config, loaded_config)
        logger.debug(f"Loaded configuration from {self.config_path}")

    def _merge_config(self, base: dict[str, Any], update: dict[str, Any]) -> None:
        """
        Recursively merge configuration dictionaries.

        Nested dictionaries are merged key by key; any other value
        overwrites the base value.

        Args:
            base: Base configuration dictionary (modified in place)
            update: Update configuration dictionary (values to merge in)
        """
        for key, value in update.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._merge_config(base[key], value)
            else:
                base[key] = value

    def apply_env(self, environ: Optional[dict[str, str]] = None) -> None:
        """
        Override configuration values from environment variables.

        Args:
            environ: Environment mapping (defaults to os.environ)

        Raises:
            ConfigurationError: If a variable cannot be converted
        """
        environ = os.environ if environ is None else environ
        for var, (key, convert) in ENV_OVERRIDES.items():
            raw = environ.get(var)
            if raw is None or raw == "":
                continue
            try:
                self.set(key, convert(raw))
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {var}: {raw!r}") from e

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by key.

        Args:
            key: Configuration key (dot-separated)
            default: Default value

        Returns:
            Configuration value
        """
        keys = key.split(".")
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value.

        Args:
            key: Configuration key (dot-separated)
            value: Value to set
        """
        keys = key.split(".")
        config = self.config

        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

    def save(self, path: str) -> Path:
        """
        Save configuration to a TOML file.

        Args:
            path: Destination path

        Returns:
            Path written
        """
        save_path = Path(path).expanduser()
        save_path.parent.mkdir(parents=True, exist_ok=True)

        with open(save_path, "wb") as f:
            tomli_w.dump(self.config, f)

        return save_path

    def get_all(self) -> dict[str, Any]:
        """
        Get entire configuration.

        Returns:
            Configuration dictionary
        """
        return copy.deepcopy(self.config)

    def get_logging_config(self) -> dict[str, Any]:
        """
        Get logging configuration.

        Returns:
            Dictionary containing logging configuration
        """
        return self.get("logging", self.DEFAULT_CONFIG["logging"])

    def setup_logging(self, secrets: Tuple[str, ...] = ()) -> None:
        """
        Setup application logging using the configured settings.

        Args:
            secrets: Values that must never appear in log output
        """
        import pytz

        from .rich_logger import setup_logging

        log_config = self.get_logging_config()

        level = logging.getLevelName(str(log_config.get("level", "INFO")).upper())
        if not isinstance(level, int):
            level = logging.INFO

        timezone_str = log_config.get("timezone", "UTC")
        try:
            timezone_obj = pytz.timezone(timezone_str)
        except pytz.exceptions.UnknownTimeZoneError:
            timezone_obj = pytz.utc

        setup_logging(
            level=level,
            log_file=log_config.get("log_file") or None,
            console_output=log_config.get("console_output", True),
            file_output=log_config.get("file_output", False),
            syslog_output=log_config.get("syslog_output", False),
            timezone=timezone_obj,
            secrets=secrets,
        )


def _optional_path(value: Any) -> Optional[Path]:
    if not value:
        return None
    return Path(str(value)).expanduser()


@dataclass(frozen=True)
class RelayConfig:
    """Validated relay settings."""

    secret: str
    apns: APNsConfig
    host: str = "0.0.0.0"
    port: int = 8080
    require_signature: bool = True
    tracked_extensions: Tuple[str, ...] = (".md",)
    max_concurrency: int = 10
    dispatch_wait_seconds: float = 15.0
    ssl_cert: Optional[Path] = None
    ssl_key: Optional[Path] = None

    @classmethod
    def from_manager(cls, manager: ConfigManager) -> "RelayConfig":
        """
        Build validated settings from a ConfigManager.

        Raises:
            ConfigurationError: If required values are missing or inconsistent
        """
        secret = str(manager.get("webhook.secret") or "")
        if not secret:
            raise ConfigurationError("GITHUB_WEBHOOK_SECRET is required")

        try:
            port = int(manager.get("server.port"))
            timeout = float(manager.get("apns.timeout_seconds"))
            max_concurrency = int(manager.get("apns.max_concurrency"))
            dispatch_wait = float(manager.get("server.dispatch_wait_seconds"))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e

        if not 0 < port < 65536:
            raise ConfigurationError(f"Port out of range: {port}")
        if timeout <= 0 or dispatch_wait <= 0:
            raise ConfigurationError("Timeouts must be positive")
        if max_concurrency < 1:
            raise ConfigurationError("apns.max_concurrency must be at least 1")

        key_path = _optional_path(manager.get("apns.key_path"))
        cert_path = _optional_path(manager.get("apns.cert_path"))
        key_id = str(manager.get("apns.key_id") or "")
        team_id = str(manager.get("apns.team_id") or "")

        if key_path and cert_path:
            raise ConfigurationError("Set only one of APNS_KEY_PATH or APNS_CERT_PATH")
        if not key_path and not cert_path:
            raise ConfigurationError("Either APNS_KEY_PATH or APNS_CERT_PATH is required")
        if key_path and (not key_id or not team_id):
            raise ConfigurationError("APNS_KEY_ID and APNS_TEAM_ID are required when using APNS_KEY_PATH")

        bundle_id = str(manager.get("apns.bundle_id") or "")
        if not bundle_id:
            raise ConfigurationError("BUNDLE_ID is required")

        extensions = manager.get("webhook.tracked_extensions") or [".md"]
        if isinstance(extensions, str):
            extensions = _to_list(extensions)

        ssl_cert = _optional_path(manager.get("server.ssl_cert"))
        ssl_key = _optional_path(manager.get("server.ssl_key"))
        if bool(ssl_cert) != bool(ssl_key):
            raise ConfigurationError("server.ssl_cert and server.ssl_key must be set together")

        return cls(
            secret=secret,
            apns=APNsConfig(
                bundle_id=bundle_id,
                use_sandbox=bool(manager.get("apns.development")),
                key_path=key_path,
                key_id=key_id,
                team_id=team_id,
                cert_path=cert_path,
                timeout=timeout,
            ),
            host=str(manager.get("server.host")),
            port=port,
            require_signature=bool(manager.get("webhook.require_signature")),
            tracked_extensions=tuple(extensions),
            max_concurrency=max_concurrency,
            dispatch_wait_seconds=dispatch_wait,
            ssl_cert=ssl_cert,
            ssl_key=ssl_key,
        )
