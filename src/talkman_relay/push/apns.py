"""
Apple Push Notification service client.

Sends one HTTP/2 request per device token. Supports token-based
authentication (ES256 provider JWT signed with a .p8 key) and
certificate-based authentication (PEM client certificate).
"""

import json
import logging
import ssl
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Dict

import httpx
import jwt

from .gateway import (
    GatewayResponse,
    PushGateway,
    PushTimeoutError,
    PushTransportError,
)
from .message import PushMessage
from ..devices.registry import mask_token

logger = logging.getLogger(__name__)

PRODUCTION_HOST = "https://api.push.apple.com"
SANDBOX_HOST = "https://api.sandbox.push.apple.com"

PRIORITY_IMMEDIATE = "10"
NOTIFICATION_TTL = 24 * 60 * 60  # seconds
# APNs rejects provider tokens older than an hour
TOKEN_REFRESH_INTERVAL = 50 * 60  # seconds
DEFAULT_TIMEOUT = 5.0


@dataclass(frozen=True)
class APNsConfig:
    """Connection settings for APNs."""

    bundle_id: str
    use_sandbox: bool = True
    key_path: Optional[Path] = None
    key_id: str = ""
    team_id: str = ""
    cert_path: Optional[Path] = None
    timeout: float = DEFAULT_TIMEOUT

    @property
    def host(self) -> str:
        return SANDBOX_HOST if self.use_sandbox else PRODUCTION_HOST

    @property
    def uses_token_auth(self) -> bool:
        return self.key_path is not None


class ProviderTokenSigner:
    """Issues and caches APNs provider authentication tokens."""

    def __init__(self, signing_key: str, key_id: str, team_id: str):
        """
        Initialize the signer.

        Args:
            signing_key: PEM encoded EC private key (.p8 contents)
            key_id: Key identifier from the developer account
            team_id: Developer team identifier
        """
        self._signing_key = signing_key
        self.key_id = key_id
        self.team_id = team_id
        self._token: Optional[str] = None
        self._issued_at = 0.0

    @classmethod
    def from_file(cls, key_path: Path, key_id: str, team_id: str) -> 'ProviderTokenSigner':
        return cls(Path(key_path).read_text(encoding='utf-8'), key_id, team_id)

    def token(self, now: Optional[float] = None) -> str:
        """Return a cached token, signing a fresh one when it is stale."""
        now = time.time() if now is None else now
        if self._token is None or now - self._issued_at >= TOKEN_REFRESH_INTERVAL:
            self._token = jwt.encode(
                {'iss': self.team_id, 'iat': int(now)},
                self._signing_key,
                algorithm='ES256',
                headers={'kid': self.key_id},
            )
            self._issued_at = now
            logger.debug("Signed new APNs provider token")
        return self._token

    def invalidate(self) -> None:
        """Force a new token on the next request."""
        self._token = None


class APNsGateway(PushGateway):
    """
    Push gateway backed by APNs.

    Provides per-device delivery with its own request timeout and
    translates transport failures into PushGatewayError subclasses.
    """

    def __init__(
        self,
        config: APNsConfig,
        client: Optional[httpx.AsyncClient] = None,
        signer: Optional[ProviderTokenSigner] = None
    ):
        """
        Initialize APNs gateway.

        Args:
            config: APNs settings
            client: Pre-built HTTP client (tests inject a mock transport)
            signer: Provider token signer for token authentication
        """
        self.config = config
        if signer is None and config.uses_token_auth:
            signer = ProviderTokenSigner.from_file(config.key_path, config.key_id, config.team_id)
        self.signer = signer

        if client is None:
            client = httpx.AsyncClient(
                base_url=config.host,
                http2=True,
                timeout=config.timeout,
                verify=self._ssl_context(config),
            )
        self._client = client

        mode = 'token' if self.signer else 'certificate'
        env = 'sandbox' if config.use_sandbox else 'production'
        logger.info(f"APNs gateway ready ({mode} auth, {env})")

    @staticmethod
    def _ssl_context(config: APNsConfig) -> ssl.SSLContext:
        """TLS context, carrying the client certificate in certificate mode."""
        context = ssl.create_default_context()
        if config.cert_path:
            context.load_cert_chain(str(config.cert_path))
        return context

    def _headers(self) -> Dict[str, str]:
        headers = {
            'apns-topic': self.config.bundle_id,
            'apns-push-type': 'alert',
            'apns-priority': PRIORITY_IMMEDIATE,
            'apns-expiration': str(int(time.time()) + NOTIFICATION_TTL),
            'content-type': 'application/json',
        }
        if self.signer:
            headers['authorization'] = f"bearer {self.signer.token()}"
        return headers

    async def send(self, device_token: str, message: PushMessage) -> GatewayResponse:
        """
        Send a notification to one device.

        Args:
            device_token: Hex device token
            message: Notification to deliver

        Returns:
            Gateway response with status and rejection reason
        """
        body = json.dumps(message.to_payload())

        try:
            response = await self._client.post(
                f"/3/device/{device_token}",
                content=body,
                headers=self._headers(),
            )
        except httpx.TimeoutException as e:
            raise PushTimeoutError(f"APNs timed out for {mask_token(device_token)}") from e
        except httpx.HTTPError as e:
            raise PushTransportError(
                f"APNs request failed for {mask_token(device_token)}: {e}"
            ) from e

        reason = None
        if response.status_code != 200:
            reason = self._reason(response)
            if reason == 'ExpiredProviderToken' and self.signer:
                self.signer.invalidate()

        return GatewayResponse(
            status_code=response.status_code,
            reason=reason,
            message_id=response.headers.get('apns-id'),
        )

    @staticmethod
    def _reason(response: httpx.Response) -> Optional[str]:
        try:
            data = response.json()
        except ValueError:
            return response.text or None
        if isinstance(data, dict):
            return data.get('reason')
        return None

    async def close(self) -> None:
        """Close the HTTP/2 connection pool."""
        await self._client.aclose()
