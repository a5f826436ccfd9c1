"""
Webhook event handlers.

Provides the processing pipeline behind the webhook endpoint:
signature policy, payload parsing, classification and dispatch,
together with running statistics.
"""

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Iterable, Optional

from .classifier import classify, DEFAULT_TRACKED_EXTENSIONS, normalize_extensions
from .events import NormalizedEvent, PayloadError, RawEvent
from .signature import verify
from ..devices.registry import DeviceRegistry
from ..push.dispatcher import BatchResult, NotificationDispatcher

logger = logging.getLogger(__name__)


class SignatureCheck(Enum):
    """Result of applying the signature policy to a delivery."""

    VERIFIED = "verified"
    UNVERIFIED = "unverified"
    REJECTED = "rejected"


class WebhookHandler:
    """
    Main webhook handler that turns deliveries into notifications.

    Manages signature policy, classification, dispatch and statistics.
    """

    def __init__(
        self,
        secret: str,
        dispatcher: NotificationDispatcher,
        registry: DeviceRegistry,
        tracked_extensions: Iterable[str] = DEFAULT_TRACKED_EXTENSIONS,
        require_signature: bool = True
    ):
        """
        Initialize webhook handler.

        Args:
            secret: Shared webhook secret
            dispatcher: Notification dispatcher
            registry: Device registry consulted on every dispatch
            tracked_extensions: File suffixes that trigger push notifications
            require_signature: Reject deliveries without a signature
        """
        self.secret = secret
        self.dispatcher = dispatcher
        self.registry = registry
        self.tracked_extensions = normalize_extensions(tracked_extensions)
        self.require_signature = require_signature
        self._statistics = {
            'total_events': 0,
            'events_by_type': {},
            'unverified_events': 0,
            'rejected_signatures': 0,
            'notifications_delivered': 0,
            'notifications_failed': 0,
            'errors': 0,
            'last_event': None
        }

        if not require_signature:
            logger.warning(
                "Signature enforcement DISABLED: unsigned webhooks will be accepted "
                "(bootstrap mode, never use in production)"
            )

    def check_signature(self, body: bytes, signature: str, delivery_id: str) -> SignatureCheck:
        """
        Apply the signature policy.

        A supplied signature must always verify. A missing signature is
        rejected in strict mode and accepted as unverified otherwise.

        Args:
            body: Raw request body
            signature: X-Hub-Signature-256 header value (may be empty)
            delivery_id: X-GitHub-Delivery value for log correlation

        Returns:
            Signature check result
        """
        if signature:
            if verify(body, signature, self.secret):
                return SignatureCheck.VERIFIED
            self._statistics['rejected_signatures'] += 1
            logger.warning(f"Invalid webhook signature for delivery {delivery_id}")
            return SignatureCheck.REJECTED

        if self.require_signature:
            self._statistics['rejected_signatures'] += 1
            logger.warning(f"Missing webhook signature for delivery {delivery_id}")
            return SignatureCheck.REJECTED

        self._statistics['unverified_events'] += 1
        logger.warning(
            f"UNVERIFIED delivery {delivery_id}: no signature provided, "
            "accepting because signature enforcement is disabled"
        )
        return SignatureCheck.UNVERIFIED

    @staticmethod
    def parse(body: bytes) -> RawEvent:
        """
        Decode and parse a webhook body.

        Raises:
            PayloadError: If the body is not valid JSON or has an invalid shape
        """
        try:
            data = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as e:
            raise PayloadError(f"Invalid JSON: {e}") from e
        return RawEvent.from_dict(data)

    def classify(self, payload: RawEvent, event_type_header: str, delivery_id: str = "") -> NormalizedEvent:
        """
        Classify a parsed payload and record statistics.

        Args:
            payload: Parsed payload
            event_type_header: X-GitHub-Event header value
            delivery_id: Delivery id for logging

        Returns:
            Normalized event
        """
        event = classify(payload, event_type_header, self.tracked_extensions)

        self._statistics['total_events'] += 1
        event_type = event.event_type.value
        self._statistics['events_by_type'][event_type] = \
            self._statistics['events_by_type'].get(event_type, 0) + 1
        self._statistics['last_event'] = datetime.now(timezone.utc).isoformat()

        logger.info(
            f"Processed event {delivery_id}: Type={event_type}, "
            f"Repo={event.repository_name}, Action={event.action}, "
            f"HasMarkdown={event.has_markdown_changes}"
        )
        return event

    async def dispatch(self, event: NormalizedEvent, delivery_id: str = "") -> Optional[BatchResult]:
        """
        Dispatch notifications for an event to the current devices.

        Failures are logged and counted, never raised.

        Args:
            event: Normalized event
            delivery_id: Delivery id for logging

        Returns:
            Batch result, or None if dispatch failed unexpectedly
        """
        try:
            result = await self.dispatcher.dispatch(event, self.registry.snapshot())
        except Exception as e:
            self._statistics['errors'] += 1
            logger.error(f"Dispatch error for delivery {delivery_id}: {e}", exc_info=True)
            return None

        self._statistics['notifications_delivered'] += result.delivered
        self._statistics['notifications_failed'] += result.failed
        return result

    def get_statistics(self) -> Dict[str, Any]:
        """Get handler statistics."""
        stats = self._statistics.copy()
        stats['events_by_type'] = dict(stats['events_by_type'])
        return stats
