"""Shared fakes and payload builders for talkman-relay tests."""

import asyncio
import json
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple

from talkman_relay.push.apns import APNsConfig
from talkman_relay.push.gateway import (
    GatewayResponse,
    PushGateway,
    PushTimeoutError,
    PushTransportError,
)
from talkman_relay.push.message import PushMessage
from talkman_relay.utils.config import RelayConfig
from talkman_relay.webhooks.signature import sign

TEST_SECRET = "test_secret_key"


class FakeGateway(PushGateway):
    """
    In-memory push gateway.

    Behaviour per token:
        'hang'      never answers (dispatcher timeout applies)
        'timeout'   raises PushTimeoutError
        'transport' raises PushTransportError
        'reject'    answers 400 BadDeviceToken
        'crash'     raises RuntimeError
    Any other token is delivered.
    """

    def __init__(self, behaviors: Optional[Dict[str, str]] = None):
        self.behaviors = behaviors or {}
        self.calls: List[Tuple[str, PushMessage]] = []
        self.closed = False

    @property
    def tokens_called(self) -> List[str]:
        return [token for token, _ in self.calls]

    async def send(self, device_token: str, message: PushMessage) -> GatewayResponse:
        self.calls.append((device_token, message))
        behavior = self.behaviors.get(device_token)

        if behavior == 'hang':
            await asyncio.sleep(3600)
        if behavior == 'timeout':
            raise PushTimeoutError("gateway timed out")
        if behavior == 'transport':
            raise PushTransportError("connection reset")
        if behavior == 'reject':
            return GatewayResponse(status_code=400, reason='BadDeviceToken')
        if behavior == 'crash':
            raise RuntimeError("unexpected")

        return GatewayResponse(status_code=200, message_id=f"id-{device_token}")

    async def close(self) -> None:
        self.closed = True


def make_relay_config(**overrides) -> RelayConfig:
    """RelayConfig suitable for tests that inject a gateway."""
    apns = APNsConfig(
        bundle_id='com.example.talkman',
        cert_path=Path('unused.pem'),
        timeout=overrides.pop('push_timeout', 1.0),
    )
    settings = {
        'secret': TEST_SECRET,
        'apns': apns,
        'host': '127.0.0.1',
        'port': 8080,
        'dispatch_wait_seconds': 5.0,
    }
    settings.update(overrides)
    return RelayConfig(**settings)


def push_payload(*commits: Dict[str, Any], repo_name: str = 'notes') -> Dict[str, Any]:
    """Build a push event payload."""
    return {
        'ref': 'refs/heads/main',
        'repository': {
            'id': 42,
            'name': repo_name,
            'full_name': f'octo/{repo_name}',
            'private': False,
            'html_url': f'https://github.com/octo/{repo_name}',
            'clone_url': f'https://github.com/octo/{repo_name}.git',
        },
        'installation': {'id': 777, 'account': {'id': 1, 'login': 'octo', 'type': 'User'}},
        'pusher': {'login': 'octo'},
        'sender': {'id': 1, 'login': 'octo'},
        'commits': list(commits),
    }


def commit(added=(), modified=(), removed=(), commit_id='abc123') -> Dict[str, Any]:
    """Build a commit record."""
    return {
        'id': commit_id,
        'message': 'Update docs',
        'timestamp': '2024-01-15T10:00:00Z',
        'author': {'name': 'Octo Cat', 'email': 'octo@example.com', 'username': 'octo'},
        'added': list(added),
        'modified': list(modified),
        'removed': list(removed),
    }


def installation_payload(action: str) -> Dict[str, Any]:
    """Build an installation event payload."""
    return {
        'action': action,
        'installation': {'id': 777, 'account': {'id': 1, 'login': 'octo', 'type': 'User'}},
        'sender': {'id': 1, 'login': 'octo'},
    }


def encode(payload: Dict[str, Any]) -> bytes:
    return json.dumps(payload).encode()


def webhook_headers(body: bytes, event: str, secret: Optional[str] = TEST_SECRET,
                    delivery: str = 'delivery-1') -> Dict[str, str]:
    """GitHub-style request headers, signed unless secret is None."""
    headers = {
        'X-GitHub-Event': event,
        'X-GitHub-Delivery': delivery,
        'Content-Type': 'application/json',
    }
    if secret is not None:
        headers['X-Hub-Signature-256'] = sign(body, secret)
    return headers
