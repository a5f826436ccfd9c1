"""
Notification dispatch.

Decides whether a normalized event is notification-worthy and fans the
resulting message out to every registered device. Each device attempt
is isolated: its own timeout, its own outcome, and no failure aborts
the rest of the batch.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from .gateway import PushGateway, PushTimeoutError, PushTransportError
from .message import PushMessage, build_message
from ..devices.registry import DeviceRegistry, mask_token
from ..webhooks.events import EventType, NormalizedEvent

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0  # seconds per device
DEFAULT_MAX_CONCURRENT = 10


class DeliveryStatus(Enum):
    """Per-device delivery outcome."""

    DELIVERED = "delivered"
    REJECTED = "rejected"
    TRANSPORT_ERROR = "transport_error"
    TIMEOUT = "timeout"


@dataclass
class DispatchOutcome:
    """Result of one delivery attempt."""
    device_token: str
    status: DeliveryStatus
    status_code: Optional[int] = None
    reason: Optional[str] = None
    message_id: Optional[str] = None
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == DeliveryStatus.DELIVERED


@dataclass
class BatchResult:
    """Aggregated outcomes for one dispatch."""
    outcomes: List[DispatchOutcome] = field(default_factory=list)
    skipped: bool = False
    skip_reason: Optional[str] = None
    duration: float = 0.0

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def delivered(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return self.total - self.delivered

    @property
    def success_rate(self) -> float:
        """Calculate success rate as percentage."""
        if self.total == 0:
            return 0.0
        return (self.delivered / self.total) * 100

    def summary(self) -> str:
        """One-line description for logs."""
        if self.skipped:
            return f"skipped ({self.skip_reason})"
        return (
            f"{self.delivered}/{self.total} delivered, {self.failed} failed "
            f"in {self.duration:.2f}s"
        )


def should_notify(event: NormalizedEvent) -> bool:
    """
    Decide whether an event warrants a notification.

    Installation events always notify; push events only when a tracked
    file changed; anything else never does.
    """
    if event.event_type == EventType.PUSH:
        return event.has_markdown_changes
    return event.event_type.is_admin_event()


class NotificationDispatcher:
    """
    Fans notifications out to registered devices.

    Devices are contacted concurrently up to max_concurrency. A device
    timeout or error only affects that device's outcome.
    """

    def __init__(
        self,
        gateway: PushGateway,
        registry: Optional[DeviceRegistry] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_concurrency: int = DEFAULT_MAX_CONCURRENT
    ):
        """
        Initialize dispatcher.

        Args:
            gateway: Push gateway used for delivery
            registry: Registry consulted when no device list is given
            timeout: Seconds allowed for each device attempt
            max_concurrency: Maximum simultaneous gateway requests
        """
        self.gateway = gateway
        self.registry = registry
        self.timeout = timeout
        self.max_concurrency = max(1, max_concurrency)

    def should_notify(self, event: NormalizedEvent) -> bool:
        """Check the notification gate for an event."""
        return should_notify(event)

    async def dispatch(
        self,
        event: NormalizedEvent,
        devices: Optional[Sequence[str]] = None
    ) -> BatchResult:
        """
        Deliver the event's notification to each device.

        Args:
            event: Normalized webhook event
            devices: Device tokens; defaults to a fresh registry snapshot

        Returns:
            Batch result with one outcome per attempted device
        """
        if devices is None:
            devices = self.registry.snapshot() if self.registry else ()
        devices = tuple(devices)

        if not self.should_notify(event):
            result = BatchResult(skipped=True, skip_reason="event does not notify")
            logger.info(f"Skipping notification for {event.event_type.value}: {result.skip_reason}")
            return result

        if not devices:
            result = BatchResult(skipped=True, skip_reason="no registered devices")
            logger.info(f"Skipping notification for {event.event_type.value}: {result.skip_reason}")
            return result

        message = build_message(event)
        semaphore = asyncio.Semaphore(self.max_concurrency)
        started = time.monotonic()

        logger.info(f"Sending '{message.title}' to {len(devices)} device(s)")

        outcomes = await asyncio.gather(
            *(self._deliver(token, message, semaphore) for token in devices)
        )

        result = BatchResult(outcomes=list(outcomes), duration=time.monotonic() - started)
        if result.failed:
            logger.warning(f"Push batch for {event.event_type.value}: {result.summary()}")
        else:
            logger.info(f"Push batch for {event.event_type.value}: {result.summary()}")
        return result

    async def _deliver(
        self,
        token: str,
        message: PushMessage,
        semaphore: asyncio.Semaphore
    ) -> DispatchOutcome:
        """
        Attempt delivery to one device and classify the result.

        Never raises; every failure becomes an outcome.
        """
        masked = mask_token(token)
        async with semaphore:
            started = time.monotonic()
            try:
                response = await asyncio.wait_for(
                    self.gateway.send(token, message), timeout=self.timeout
                )
            except (asyncio.TimeoutError, PushTimeoutError):
                logger.warning(f"Push to {masked} timed out after {self.timeout}s")
                return DispatchOutcome(
                    token, DeliveryStatus.TIMEOUT, duration=time.monotonic() - started
                )
            except PushTransportError as e:
                logger.warning(f"Push to {masked} failed: {e}")
                return DispatchOutcome(
                    token, DeliveryStatus.TRANSPORT_ERROR, reason=str(e),
                    duration=time.monotonic() - started
                )
            except Exception as e:
                logger.error(f"Unexpected push error for {masked}: {e}", exc_info=True)
                return DispatchOutcome(
                    token, DeliveryStatus.TRANSPORT_ERROR, reason=str(e),
                    duration=time.monotonic() - started
                )

        elapsed = time.monotonic() - started
        if response.ok:
            logger.info(f"Successfully sent notification to device {masked}")
            return DispatchOutcome(
                token, DeliveryStatus.DELIVERED, status_code=response.status_code,
                message_id=response.message_id, duration=elapsed
            )

        logger.warning(
            f"Gateway rejected push to {masked}: {response.status_code} ({response.reason})"
        )
        return DispatchOutcome(
            token, DeliveryStatus.REJECTED, status_code=response.status_code,
            reason=response.reason, message_id=response.message_id, duration=elapsed
        )
