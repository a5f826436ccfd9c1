"""Push notification message construction."""

from dataclasses import dataclass, field
from typing import Dict, Any, Tuple

from ..webhooks.events import EventType, NormalizedEvent

APP_NAME = "MD TalkMan"
DEFAULT_SOUND = "default"
BADGE_INCREMENT = 1


@dataclass(frozen=True)
class PushMessage:
    """
    A provider-neutral notification.

    Attributes:
        title: Alert title
        body: Alert body
        custom: Structured data the client acts on
        badge: Badge count
        sound: Sound name
    """

    title: str
    body: str
    custom: Dict[str, Any] = field(default_factory=dict)
    badge: int = BADGE_INCREMENT
    sound: str = DEFAULT_SOUND

    def to_payload(self) -> Dict[str, Any]:
        """Render the APNs JSON payload."""
        payload: Dict[str, Any] = {
            'aps': {
                'alert': {'title': self.title, 'body': self.body},
                'badge': self.badge,
                'sound': self.sound,
            }
        }
        payload.update(self.custom)
        return payload


_INSTALLATION_ALERTS = {
    'created': ("GitHub App Installed", f"{APP_NAME} can now access your repositories"),
    'deleted': ("GitHub App Removed", f"{APP_NAME} no longer has repository access"),
}


def _alert(event: NormalizedEvent) -> Tuple[str, str]:
    repo = event.repository_name or "your repository"

    if event.event_type == EventType.PUSH:
        return "Repository Updated", f"New changes in {repo}"

    if event.event_type == EventType.INSTALLATION:
        if event.action in _INSTALLATION_ALERTS:
            return _INSTALLATION_ALERTS[event.action]

    if event.event_type == EventType.INSTALLATION_REPOSITORIES:
        if event.action == 'added':
            return "Repository Access Added", f"Added access to {repo}"
        if event.action == 'removed':
            return "Repository Access Removed", f"Removed access to {repo}"

    action = event.action or "changed"
    return "GitHub App Updated", f"Installation {action}"


def build_message(event: NormalizedEvent) -> PushMessage:
    """
    Build the notification for an event.

    The full normalized event is always attached as custom data,
    independent of the alert text.

    Args:
        event: Normalized webhook event

    Returns:
        Push message
    """
    title, body = _alert(event)
    return PushMessage(title=title, body=body, custom=event.to_dict())
