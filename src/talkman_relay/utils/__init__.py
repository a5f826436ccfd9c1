"""Configuration and logging utilities for talkman-relay."""

from .config import ConfigManager, ConfigurationError, RelayConfig

__all__ = ["ConfigManager", "ConfigurationError", "RelayConfig"]
