"""In-memory registry of device tokens that receive push notifications."""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistrationResult:
    """Outcome of a register call."""
    already_registered: bool
    total_count: int


@dataclass(frozen=True)
class UnregistrationResult:
    """Outcome of an unregister call."""
    found: bool
    total_count: int


def mask_token(token: str) -> str:
    """
    Mask a device token for logging.

    Args:
        token: Device token

    Returns:
        First and last four characters, or *** for short tokens
    """
    if len(token) < 8:
        return "***"
    return f"{token[:4]}...{token[-4:]}"


class DeviceRegistry:
    """
    Thread-safe set of registered device tokens.

    Tokens keep their registration order. Readers receive copies via
    snapshot() so iteration is never affected by concurrent changes.
    A durable store can replace this class behind the same methods.
    """

    def __init__(self):
        """Initialize an empty registry."""
        # dict preserves insertion order; values are unused
        self._tokens: Dict[str, None] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _clean(token: str) -> str:
        if not isinstance(token, str) or not token.strip():
            raise ValueError("Device token must be a non-empty string")
        return token.strip()

    def register(self, token: str) -> RegistrationResult:
        """
        Register a device token.

        Args:
            token: Device token

        Returns:
            Whether the token was already present and the new total
        """
        token = self._clean(token)
        with self._lock:
            already = token in self._tokens
            if not already:
                self._tokens[token] = None
            total = len(self._tokens)

        if already:
            logger.info(f"Device token already registered: {mask_token(token)}")
        else:
            logger.info(f"Registered new device token: {mask_token(token)} (total: {total})")
        return RegistrationResult(already_registered=already, total_count=total)

    def unregister(self, token: str) -> UnregistrationResult:
        """
        Remove a device token.

        Args:
            token: Device token

        Returns:
            Whether the token was present and the new total
        """
        token = self._clean(token)
        with self._lock:
            found = token in self._tokens
            if found:
                del self._tokens[token]
            total = len(self._tokens)

        if found:
            logger.info(f"Unregistered device token: {mask_token(token)} (total: {total})")
        else:
            logger.info(f"Device token not found for unregistration: {mask_token(token)}")
        return UnregistrationResult(found=found, total_count=total)

    def snapshot(self) -> Tuple[str, ...]:
        """Return a point-in-time copy of the registered tokens."""
        with self._lock:
            return tuple(self._tokens)

    def count(self) -> int:
        """Number of registered tokens."""
        with self._lock:
            return len(self._tokens)

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, token: object) -> bool:
        with self._lock:
            return token in self._tokens
