"""
Event classification.

Maps a parsed GitHub payload and its event-type header to a
NormalizedEvent. Classification never fails: missing fields degrade
to empty values so webhook acknowledgement is never blocked.
"""

import logging
from typing import Iterable, List, Tuple

from .events import EventType, NormalizedEvent, RawEvent

logger = logging.getLogger(__name__)

DEFAULT_TRACKED_EXTENSIONS = frozenset({'.md'})


def normalize_extensions(extensions: Iterable[str]) -> frozenset:
    """Lower-case extensions and ensure each starts with a dot."""
    normalized = set()
    for ext in extensions:
        ext = ext.strip().lower()
        if not ext:
            continue
        normalized.add(ext if ext.startswith('.') else f'.{ext}')
    return frozenset(normalized)


def is_tracked(path: str, tracked_extensions: Iterable[str]) -> bool:
    """Check whether a path ends with one of the tracked extensions."""
    lowered = path.lower()
    return any(lowered.endswith(ext) for ext in tracked_extensions)


def candidate_paths(payload: RawEvent) -> List[str]:
    """Added, modified and removed paths across all commits, in commit order."""
    paths: List[str] = []
    for commit in payload.commits:
        paths.extend(commit.changed_paths)
    return paths


def _repository_name(payload: RawEvent, event_type: EventType) -> str:
    if payload.repository.name:
        return payload.repository.name

    if event_type == EventType.INSTALLATION_REPOSITORIES:
        repos = payload.repositories_added or payload.repositories_removed
        return ", ".join(r.name or r.full_name for r in repos if r.name or r.full_name)

    return ""


def classify(
    payload: RawEvent,
    event_type_header: str,
    tracked_extensions: Iterable[str] = DEFAULT_TRACKED_EXTENSIONS,
) -> NormalizedEvent:
    """
    Classify a webhook payload.

    Args:
        payload: Parsed webhook payload
        event_type_header: X-GitHub-Event header value
        tracked_extensions: File suffixes whose changes are notification-worthy

    Returns:
        Normalized event
    """
    event_type = EventType.from_header(event_type_header)
    extensions = normalize_extensions(tracked_extensions)

    changed_files: Tuple[str, ...] = ()
    if event_type == EventType.PUSH:
        changed_files = tuple(
            path for path in candidate_paths(payload) if is_tracked(path, extensions)
        )

    event = NormalizedEvent(
        event_type=event_type,
        repository_name=_repository_name(payload, event_type),
        installation_id=payload.installation.id,
        action=payload.action,
        has_markdown_changes=bool(changed_files),
        changed_files=changed_files,
    )

    if event_type == EventType.UNRECOGNIZED:
        logger.debug(f"Unrecognized event type: {event_type_header!r}")

    return event
