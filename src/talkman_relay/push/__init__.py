"""
Push notification delivery.

This module provides the push gateway abstraction, the APNs client,
and the dispatcher that fans notifications out to devices.
"""

from .gateway import (
    GatewayResponse,
    PushGateway,
    PushGatewayError,
    PushTimeoutError,
    PushTransportError,
)
from .message import PushMessage, build_message
from .dispatcher import (
    BatchResult,
    DeliveryStatus,
    DispatchOutcome,
    NotificationDispatcher,
    should_notify,
)

__all__ = [
    'GatewayResponse',
    'PushGateway',
    'PushGatewayError',
    'PushTimeoutError',
    'PushTransportError',
    'PushMessage',
    'build_message',
    'BatchResult',
    'DeliveryStatus',
    'DispatchOutcome',
    'NotificationDispatcher',
    'should_notify',
]
