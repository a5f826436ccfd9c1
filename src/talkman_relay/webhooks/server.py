"""
Webhook server implementation for GitHub events.

Provides the HTTP front door: the GitHub webhook endpoint, device
registration endpoints, status and health checks.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Set

import aiohttp
from aiohttp import web

from .events import NormalizedEvent, PayloadError, SUPPORTED_EVENTS
from .handlers import SignatureCheck, WebhookHandler
from .. import __version__
from ..devices.registry import DeviceRegistry
from ..push.apns import APNsGateway
from ..push.dispatcher import BatchResult, NotificationDispatcher
from ..push.gateway import PushGateway
from ..utils.config import RelayConfig

logger = logging.getLogger(__name__)

SERVICE_NAME = "MD TalkMan Webhook Server"

# Request headers
SIGNATURE_HEADER = 'X-Hub-Signature-256'
EVENT_HEADER = 'X-GitHub-Event'
DELIVERY_HEADER = 'X-GitHub-Delivery'
MAX_PAYLOAD_SIZE = 10 * 1024 * 1024  # 10MB max payload
DEFAULT_DISPATCH_WAIT = 15.0  # seconds

ENDPOINTS = {
    'webhook': '/webhook/github',
    'register': '/webhook/register',
    'unregister': '/webhook/unregister',
    'status': '/webhook/status',
    'health': '/health',
    'ready': '/ready',
}


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Convert unexpected handler errors into a logged 500."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unhandled error on {request.method} {request.path}: {e}", exc_info=True)
        return web.Response(status=500, text="Internal server error")


class WebhookServer:
    """
    Async webhook server for GitHub events.

    Acknowledges every authenticated, parseable delivery with 200;
    push delivery problems never change the response.
    """

    def __init__(
        self,
        handler: WebhookHandler,
        registry: DeviceRegistry,
        config: Optional[RelayConfig] = None,
        dispatch_wait: Optional[float] = None
    ):
        """
        Initialize webhook server.

        Args:
            handler: Webhook processing pipeline
            registry: Device registry backing the registration endpoints
            config: Relay settings (host, port, TLS); needed only by start()
            dispatch_wait: Seconds to wait for a push batch before acknowledging
        """
        self.handler = handler
        self.registry = registry
        self.config = config
        if dispatch_wait is None:
            dispatch_wait = config.dispatch_wait_seconds if config else DEFAULT_DISPATCH_WAIT
        self.dispatch_wait = dispatch_wait
        self._started_at = time.monotonic()
        self._background: Set[asyncio.Task] = set()

        self.app = web.Application(
            client_max_size=MAX_PAYLOAD_SIZE,
            middlewares=[error_middleware]
        )
        self._setup_routes()
        self.app.on_cleanup.append(self._on_cleanup)

    def _setup_routes(self) -> None:
        """Configure server routes."""
        self.app.router.add_get('/', self._index)
        self.app.router.add_post(ENDPOINTS['webhook'], self._handle_webhook)
        self.app.router.add_post(ENDPOINTS['register'], self._register_device)
        self.app.router.add_post(ENDPOINTS['unregister'], self._unregister_device)
        self.app.router.add_get(ENDPOINTS['status'], self._status_endpoint)
        self.app.router.add_get(ENDPOINTS['health'], self._health_check)
        self.app.router.add_get(ENDPOINTS['ready'], self._readiness_check)

    async def _handle_webhook(self, request: web.Request) -> web.Response:
        """
        Handle incoming GitHub webhook request.

        Args:
            request: Incoming HTTP request

        Returns:
            HTTP response
        """
        delivery_id = request.headers.get(DELIVERY_HEADER, '')
        event_type = request.headers.get(EVENT_HEADER, '')
        logger.info(f"Received webhook: Event={event_type}, Delivery={delivery_id}")

        try:
            body = await request.read()
        except web.HTTPRequestEntityTooLarge:
            logger.warning(f"Payload too large for delivery {delivery_id}")
            return web.Response(status=413, text="Payload too large")
        except (ConnectionError, aiohttp.ClientPayloadError) as e:
            logger.warning(f"Error reading request body for delivery {delivery_id}: {e}")
            return web.Response(status=400, text="Bad request")

        signature = request.headers.get(SIGNATURE_HEADER, '')
        if self.handler.check_signature(body, signature, delivery_id) == SignatureCheck.REJECTED:
            return web.Response(status=401, text="Unauthorized")

        try:
            payload = self.handler.parse(body)
        except PayloadError as e:
            logger.warning(f"Error parsing webhook payload for delivery {delivery_id}: {e}")
            return web.Response(status=400, text="Bad request")

        event = self.handler.classify(payload, event_type, delivery_id)
        await self._dispatch_bounded(event, delivery_id)

        return web.json_response({'status': 'success', 'message': 'Webhook processed'})

    async def _dispatch_bounded(self, event: NormalizedEvent, delivery_id: str) -> Optional[BatchResult]:
        """
        Run dispatch, waiting at most dispatch_wait seconds.

        A batch still running after the wait keeps going in the
        background; its push attempts are never cancelled.
        """
        task = asyncio.create_task(self.handler.dispatch(event, delivery_id))
        done, _ = await asyncio.wait({task}, timeout=self.dispatch_wait)
        if task in done:
            return task.result()

        logger.warning(
            f"Dispatch for delivery {delivery_id} still running after "
            f"{self.dispatch_wait}s, acknowledging webhook"
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return None

    @staticmethod
    async def _read_device_token(request: web.Request) -> Optional[str]:
        """Extract a non-empty device_token from a JSON body."""
        try:
            data = await request.json()
        except (ValueError, UnicodeDecodeError):
            return None
        if not isinstance(data, dict):
            return None
        token = data.get('device_token')
        if not isinstance(token, str) or not token.strip():
            return None
        return token.strip()

    async def _register_device(self, request: web.Request) -> web.Response:
        """Register a device token for push notifications."""
        token = await self._read_device_token(request)
        if token is None:
            logger.info("Rejected device registration without a valid token")
            return web.Response(status=400, text="Device token required")

        result = self.registry.register(token)
        return web.json_response({
            'status': 'already_registered' if result.already_registered else 'registered',
            'total_devices': result.total_count,
        })

    async def _unregister_device(self, request: web.Request) -> web.Response:
        """Remove a device token from push notifications."""
        token = await self._read_device_token(request)
        if token is None:
            logger.info("Rejected device unregistration without a valid token")
            return web.Response(status=400, text="Device token required")

        result = self.registry.unregister(token)
        return web.json_response({
            'status': 'unregistered' if result.found else 'not_found',
            'total_devices': result.total_count,
        })

    async def _status_endpoint(self, request: web.Request) -> web.Response:
        """Registered device count and supported events."""
        return web.json_response({
            'status': 'healthy',
            'registered_devices': self.registry.count(),
            'supported_events': [e.value for e in SUPPORTED_EVENTS],
        })

    async def _health_check(self, request: web.Request) -> web.Response:
        """
        Health check endpoint.

        Returns:
            200 OK if server is healthy
        """
        return web.json_response({
            'status': 'healthy',
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'uptime': round(time.monotonic() - self._started_at, 3),
            'version': __version__,
        })

    async def _readiness_check(self, request: web.Request) -> web.Response:
        """Readiness check endpoint."""
        return web.json_response({'status': 'ready', 'ready': True})

    async def _index(self, request: web.Request) -> web.Response:
        """Service description with endpoint map and statistics."""
        info: Dict[str, Any] = {
            'service': SERVICE_NAME,
            'version': __version__,
            'endpoints': ENDPOINTS,
            'statistics': self.handler.get_statistics(),
        }
        return web.json_response(info)

    async def _on_cleanup(self, app: web.Application) -> None:
        """Let in-flight push batches finish, then release the gateway."""
        if self._background:
            logger.info(f"Waiting for {len(self._background)} push batch(es) to finish")
            await asyncio.gather(*self._background, return_exceptions=True)
        await self.handler.dispatcher.gateway.close()

    async def start(self) -> None:
        """Start webhook server and run until cancelled."""
        if self.config is None:
            raise RuntimeError("WebhookServer.start() requires a RelayConfig")

        runner = web.AppRunner(self.app)
        await runner.setup()

        # Configure SSL if certificates provided
        ssl_context = None
        if self.config.ssl_cert and self.config.ssl_key:
            import ssl
            ssl_context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
            ssl_context.load_cert_chain(
                str(self.config.ssl_cert),
                str(self.config.ssl_key)
            )

        site = web.TCPSite(
            runner,
            self.config.host,
            self.config.port,
            ssl_context=ssl_context
        )

        await site.start()

        protocol = 'https' if ssl_context else 'http'
        base_url = f"{protocol}://{self.config.host}:{self.config.port}"
        logger.info(f"Webhook endpoint: {base_url}{ENDPOINTS['webhook']}")
        logger.info(f"Health check: {base_url}{ENDPOINTS['health']}")
        logger.info(f"Supported webhook events: {[e.value for e in SUPPORTED_EVENTS]}")

        # Keep server running
        try:
            await asyncio.Event().wait()
        finally:
            await runner.cleanup()
            logger.info("Webhook server stopped")


def create_server(config: RelayConfig, gateway: Optional[PushGateway] = None) -> WebhookServer:
    """
    Wire registry, dispatcher, handler and server from settings.

    Args:
        config: Validated relay settings
        gateway: Push gateway; defaults to APNs built from config

    Returns:
        Ready-to-start webhook server
    """
    if gateway is None:
        gateway = APNsGateway(config.apns)

    registry = DeviceRegistry()
    dispatcher = NotificationDispatcher(
        gateway,
        registry=registry,
        timeout=config.apns.timeout,
        max_concurrency=config.max_concurrency,
    )
    handler = WebhookHandler(
        config.secret,
        dispatcher,
        registry,
        tracked_extensions=config.tracked_extensions,
        require_signature=config.require_signature,
    )
    return WebhookServer(handler, registry, config)
