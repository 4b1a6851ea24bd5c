"""
SessionClient: one explicitly constructed session per logical API client.

    client = SessionClient(env="dev")
    await client.init("public-api-key")
    await client.login("user@example.com", "secret")
    result = await client.execute(Operation("readItem", {"moduleKey": "users", "_id": "123"}))

Wires TokenStore, Dispatcher, RenewalCoordinator, ResilientExecutor and SessionController,
and handles environment configuration, endpoint discovery (init) and log level.
"""
import asyncio
import logging

from session_client import config
from session_client.dispatch import Dispatcher
from session_client.errors import InitializationError, TransportError
from session_client.executor import Operation, ResilientExecutor
from session_client.renewal import RenewalCoordinator
from session_client.responses import NormalizedResponse, ResponseInterceptor
from session_client.session import SessionController
from session_client.token_store import Clock, ExpiryBuffers, InvalidationCallback, TokenData, TokenStore
from session_client.transport import HttpTransport
from session_client.validation import TokenValidation

logger = logging.getLogger(__name__)

LOG_LEVELS = {
    "none": logging.CRITICAL + 10,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


class SessionClient:
    def __init__(
        self,
        env: str = config.DEFAULT_ENV,
        *,
        metadata_url: str | None = None,
        transport: HttpTransport | None = None,
        buffers: ExpiryBuffers | None = None,
        clock: Clock | None = None,
        log_level: str | None = None,
    ):
        self.transport = transport or HttpTransport()
        self.store = TokenStore(buffers=buffers, clock=clock)
        self._dispatch = Dispatcher(self.transport)
        self.renewal = RenewalCoordinator(self.store, self._dispatch)
        self.executor = ResilientExecutor(self.store, self.renewal, self._dispatch)
        self.session = SessionController(self.store, self.executor)

        self._metadata_url_override = metadata_url
        self.metadata_url = metadata_url or config.metadata_url_for(env)
        self.public_api_key = ""
        self._init_task: asyncio.Task | None = None
        self._log_level = "none"
        self.set_log_level(log_level or config.LOG_LEVEL)

    # --- configuration ---

    def config(self, env: str) -> None:
        """Select the environment's metadata host (dev, stg, api); unknown values mean api."""
        if self._metadata_url_override:
            return
        self.metadata_url = config.metadata_url_for(env)

    def get_log_level(self) -> str:
        return self._log_level

    def set_log_level(self, level: str) -> None:
        name = (level or "none").lower()
        if name not in LOG_LEVELS:
            raise ValueError(f"Unknown log level {level!r}; expected one of {sorted(LOG_LEVELS)}")
        self._log_level = name
        logging.getLogger("session_client").setLevel(LOG_LEVELS[name])

    def set_response_interceptor(self, interceptor: ResponseInterceptor | None) -> None:
        """Hook applied to every raw payload before normalization; None clears it."""
        self._dispatch.interceptor = interceptor

    @property
    def response_interceptor(self) -> ResponseInterceptor | None:
        return self._dispatch.interceptor

    # --- initialization ---

    @property
    def initialized(self) -> bool:
        return self.transport.configured

    async def init(self, public_api_key: str, log_level: str | None = None) -> None:
        """
        Discover the operation endpoint for public_api_key. Concurrent calls share one lookup;
        repeating init with the same key after success is a no-op. A new key resets the session.
        """
        if log_level:
            self.set_log_level(log_level)
        if self._init_task is not None and self.public_api_key == public_api_key:
            await asyncio.shield(self._init_task)
            return
        if self.initialized and self.public_api_key == public_api_key:
            return

        self.public_api_key = public_api_key
        self.transport.reset()
        # Re-initialization starts from an empty session without notifying observers
        self.store.clear(notify=False)
        self._init_task = asyncio.ensure_future(self._discover(public_api_key))
        try:
            await asyncio.shield(self._init_task)
        finally:
            if self._init_task is not None and self._init_task.done():
                self._init_task = None

    async def _discover(self, public_api_key: str) -> None:
        try:
            payload = await self.transport.fetch_metadata(self.metadata_url, public_api_key)
        except TransportError as e:
            raise InitializationError(f"Failed to initialize: {e}") from e

        if payload.get("errors"):
            messages = [str(err.get("message", err)) if isinstance(err, dict) else str(err) for err in payload["errors"]]
            raise InitializationError(f"Failed to initialize: {'; '.join(messages)}")
        response = (payload.get("data") or {}).get("response") or {}
        endpoint = response.get("apiEndpoint")
        api_key = response.get("apiKeyEndpoint")
        if not endpoint or not api_key:
            raise InitializationError("Failed to initialize: metadata response missing endpoint")
        if public_api_key != self.public_api_key:
            # A later init() with another key owns the transport now
            raise InitializationError("Failed to initialize: superseded by init() with another key")

        self.transport.configure(endpoint, api_key)
        logger.info("Initialized against %s", endpoint)

    # --- session ---

    async def login(self, identifier: str, secret: str) -> NormalizedResponse:
        return await self.session.login(identifier, secret)

    async def logout(self) -> NormalizedResponse:
        return await self.session.logout()

    def is_authenticated(self) -> bool:
        return self.session.is_authenticated()

    def get_token_data(self) -> TokenData:
        return self.session.get_token_data()

    def set_tokens(
        self,
        access_token: str,
        refresh_token: str | None = None,
        expires_at: int | None = None,
        refresh_expires_at: int | None = None,
    ) -> TokenValidation:
        return self.session.set_tokens(access_token, refresh_token, expires_at, refresh_expires_at)

    def on_invalidated(self, callback: InvalidationCallback | None) -> None:
        self.session.on_invalidated(callback)

    # --- requests ---

    async def renew(self, force: bool = False) -> NormalizedResponse:
        return await self.renewal.renew(force=force)

    def is_renewal_in_progress(self) -> bool:
        return self.renewal.in_flight

    async def execute(self, operation: Operation, *, cancel: asyncio.Event | None = None) -> NormalizedResponse:
        return await self.executor.execute(operation, cancel=cancel)

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def __aenter__(self) -> "SessionClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
