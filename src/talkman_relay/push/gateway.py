"""
Push gateway abstraction.

The dispatcher depends only on PushGateway, so the concrete transport
(token or certificate APNs, or a test fake) can be swapped freely.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from .message import PushMessage


class PushGatewayError(Exception):
    """Base class for push delivery failures."""


class PushTransportError(PushGatewayError):
    """The request could not be delivered to the gateway."""


class PushTimeoutError(PushGatewayError):
    """The gateway did not answer in time."""


@dataclass(frozen=True)
class GatewayResponse:
    """Gateway answer for a single device."""

    status_code: int
    reason: Optional[str] = None
    message_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class PushGateway(ABC):
    """Abstract push delivery capability."""

    @abstractmethod
    async def send(self, device_token: str, message: PushMessage) -> GatewayResponse:
        """
        Send a message to one device.

        Raises:
            PushTimeoutError: If the gateway did not answer in time
            PushTransportError: If the request failed before a response
        """
        pass

    async def close(self) -> None:
        """Release transport resources."""
        pass
