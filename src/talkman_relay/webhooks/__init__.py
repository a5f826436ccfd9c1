"""
Webhook support for GitHub repository events.

This module provides signature verification, payload parsing and
event classification. The HTTP server lives in ``webhooks.server``
and the processing pipeline in ``webhooks.handlers``.
"""

from .events import EventType, NormalizedEvent, PayloadError, RawEvent, SUPPORTED_EVENTS
from .classifier import classify, DEFAULT_TRACKED_EXTENSIONS
from .signature import sign, verify

__all__ = [
    'EventType',
    'NormalizedEvent',
    'PayloadError',
    'RawEvent',
    'SUPPORTED_EVENTS',
    'classify',
    'DEFAULT_TRACKED_EXTENSIONS',
    'sign',
    'verify',
]
