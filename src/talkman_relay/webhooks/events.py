"""
Webhook event definitions and types.

Provides the event type enumeration, the parsed provider payload
(RawEvent) and the provider-agnostic NormalizedEvent used for
dispatch decisions.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Tuple


class PayloadError(ValueError):
    """Raised when a webhook payload has a structurally invalid shape."""


class EventType(Enum):
    """GitHub webhook event types the relay understands."""

    PUSH = "push"
    INSTALLATION = "installation"
    INSTALLATION_REPOSITORIES = "installation_repositories"
    UNRECOGNIZED = "unrecognized"

    @classmethod
    def from_header(cls, value: Optional[str]) -> 'EventType':
        """Map an X-GitHub-Event header value to an event type."""
        for member in SUPPORTED_EVENTS:
            if member.value == value:
                return member
        return cls.UNRECOGNIZED

    def is_admin_event(self) -> bool:
        """Check if this is an app installation event."""
        return self in {EventType.INSTALLATION, EventType.INSTALLATION_REPOSITORIES}


SUPPORTED_EVENTS: Tuple[EventType, ...] = (
    EventType.PUSH,
    EventType.INSTALLATION,
    EventType.INSTALLATION_REPOSITORIES,
)


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise PayloadError(f"'{key}' must be an object")
    return value


def _string(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise PayloadError(f"'{key}' must be a string")
    return value


def _integer(data: Dict[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    # bool is an int subclass but never a valid GitHub id
    if isinstance(value, bool) or not isinstance(value, int):
        raise PayloadError(f"'{key}' must be an integer")
    return value


def _paths(data: Dict[str, Any], key: str) -> Tuple[str, ...]:
    value = data.get(key)
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(p, str) for p in value):
        raise PayloadError(f"'{key}' must be a list of strings")
    return tuple(value)


def _objects(data: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise PayloadError(f"'{key}' must be a list of objects")
    return value


@dataclass(frozen=True)
class Account:
    """A GitHub user or organization."""

    id: int = 0
    login: str = ""
    type: str = ""
    html_url: str = ""
    avatar_url: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        return cls(
            id=_integer(data, 'id'),
            login=_string(data, 'login'),
            type=_string(data, 'type'),
            html_url=_string(data, 'html_url'),
            avatar_url=_string(data, 'avatar_url'),
        )


@dataclass(frozen=True)
class Repository:
    """Repository identity as sent in webhook payloads."""

    id: int = 0
    name: str = ""
    full_name: str = ""
    private: bool = False
    html_url: str = ""
    clone_url: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Repository':
        private = data.get('private', False)
        if not isinstance(private, bool):
            raise PayloadError("'private' must be a boolean")
        return cls(
            id=_integer(data, 'id'),
            name=_string(data, 'name'),
            full_name=_string(data, 'full_name'),
            private=private,
            html_url=_string(data, 'html_url'),
            clone_url=_string(data, 'clone_url'),
        )


@dataclass(frozen=True)
class Installation:
    """GitHub App installation identity."""

    id: int = 0
    account: Account = field(default_factory=Account)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Installation':
        return cls(
            id=_integer(data, 'id'),
            account=Account.from_dict(_section(data, 'account')),
        )


@dataclass(frozen=True)
class CommitAuthor:
    """Author of a pushed commit."""

    name: str = ""
    email: str = ""
    username: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CommitAuthor':
        return cls(
            name=_string(data, 'name'),
            email=_string(data, 'email'),
            username=_string(data, 'username'),
        )


@dataclass(frozen=True)
class Commit:
    """A single commit record from a push payload."""

    id: str = ""
    message: str = ""
    timestamp: str = ""
    author: CommitAuthor = field(default_factory=CommitAuthor)
    added: Tuple[str, ...] = ()
    modified: Tuple[str, ...] = ()
    removed: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Commit':
        return cls(
            id=_string(data, 'id'),
            message=_string(data, 'message'),
            timestamp=_string(data, 'timestamp'),
            author=CommitAuthor.from_dict(_section(data, 'author')),
            added=_paths(data, 'added'),
            modified=_paths(data, 'modified'),
            removed=_paths(data, 'removed'),
        )

    @property
    def changed_paths(self) -> Tuple[str, ...]:
        """Added, modified and removed paths in that order."""
        return self.added + self.modified + self.removed


@dataclass(frozen=True)
class RawEvent:
    """
    Represents a GitHub webhook payload as received.

    Attributes:
        repository: Repository the event refers to
        installation: App installation that delivered the event
        action: Event action (empty for push events)
        ref: Git ref for push events
        commits: Ordered commit records for push events
        pusher: Identity that pushed, if any
        sender: Identity that triggered the event, if any
        repositories_added: Repositories granted by installation_repositories
        repositories_removed: Repositories revoked by installation_repositories
    """

    repository: Repository = field(default_factory=Repository)
    installation: Installation = field(default_factory=Installation)
    action: str = ""
    ref: str = ""
    commits: Tuple[Commit, ...] = ()
    pusher: Optional[Account] = None
    sender: Optional[Account] = None
    repositories_added: Tuple[Repository, ...] = ()
    repositories_removed: Tuple[Repository, ...] = ()

    @classmethod
    def from_dict(cls, data: Any) -> 'RawEvent':
        """
        Parse a decoded JSON payload.

        Args:
            data: Decoded JSON document

        Returns:
            Parsed RawEvent

        Raises:
            PayloadError: If the payload shape is invalid
        """
        if not isinstance(data, dict):
            raise PayloadError("Payload must be a JSON object")

        pusher = _section(data, 'pusher')
        sender = _section(data, 'sender')

        return cls(
            repository=Repository.from_dict(_section(data, 'repository')),
            installation=Installation.from_dict(_section(data, 'installation')),
            action=_string(data, 'action'),
            ref=_string(data, 'ref'),
            commits=tuple(Commit.from_dict(c) for c in _objects(data, 'commits')),
            pusher=Account.from_dict(pusher) if pusher else None,
            sender=Account.from_dict(sender) if sender else None,
            repositories_added=tuple(
                Repository.from_dict(r) for r in _objects(data, 'repositories_added')
            ),
            repositories_removed=tuple(
                Repository.from_dict(r) for r in _objects(data, 'repositories_removed')
            ),
        )


@dataclass(frozen=True)
class NormalizedEvent:
    """
    Provider-agnostic event used for dispatch decisions.

    Attributes:
        event_type: Classified event type
        repository_name: Short repository name
        installation_id: App installation id
        action: Event action, passed through verbatim
        has_markdown_changes: Whether a tracked file changed
        changed_files: Changed paths matching a tracked extension
    """

    event_type: EventType
    repository_name: str = ""
    installation_id: int = 0
    action: str = ""
    has_markdown_changes: bool = False
    changed_files: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Render the structured block the mobile client parses."""
        data: Dict[str, Any] = {
            'event_type': self.event_type.value,
            'repository_name': self.repository_name,
            'installation_id': self.installation_id,
            'action': self.action,
            'has_markdown_changes': self.has_markdown_changes,
        }
        if self.changed_files:
            data['changed_files'] = list(self.changed_files)
        return data
