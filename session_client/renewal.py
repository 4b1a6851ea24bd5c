"""
Single-flight token renewal.

Idle -> InFlight -> Idle. The first caller that needs a renewal creates one shared task in
a single non-suspending step; every caller arriving while it runs awaits that same task
(shielded, so one caller's cancellation never cancels it) and receives the same result.
"""
import asyncio
import logging

from session_client import config
from session_client.dispatch import Dispatcher
from session_client.responses import ErrorClass, NormalizedResponse
from session_client.token_store import TokenPair, TokenStore, UrgencyTier
from session_client.transport import race_cancel

logger = logging.getLogger(__name__)

NO_REFRESH_TOKEN_AVAILABLE = "NO_REFRESH_TOKEN_AVAILABLE"
INVALID_REFRESH_RESPONSE = "INVALID_REFRESH_RESPONSE"
SESSION_CHANGED = "SESSION_CHANGED"


def _renewal_failure(reasons: list[str]) -> NormalizedResponse:
    return NormalizedResponse.failure(ErrorClass.AUTHORIZATION_FAILURE, {"_refresh": reasons})


class RenewalCoordinator:
    def __init__(
        self,
        store: TokenStore,
        dispatch: Dispatcher,
        operation_name: str = config.REFRESH_OPERATION,
    ):
        self._store = store
        self._dispatch = dispatch
        self.operation_name = operation_name
        self._inflight: asyncio.Task | None = None

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None

    async def renew(self, force: bool = False, cancel: asyncio.Event | None = None) -> NormalizedResponse:
        """
        Renew the access token, or join the renewal already running.
        Without force, a token that is not stale per the HIGH tier is returned as-is
        without any network call. No usable refresh token clears the session and fails
        with NO_REFRESH_TOKEN_AVAILABLE.
        """
        if self._inflight is None:
            # Check and start must not be split by an await
            if not force and not self._store.is_access_expiring(UrgencyTier.HIGH):
                return NormalizedResponse.ok(self._store.current_pair())
            if not self._store.has_usable_refresh():
                logger.info("No usable refresh token; clearing session")
                self._store.clear()
                return _renewal_failure([NO_REFRESH_TOKEN_AVAILABLE])
            logger.debug("Starting token renewal")
            self._inflight = asyncio.ensure_future(
                self._run(self._store.refresh_token, self._store.generation)
            )
        else:
            logger.debug("Joining token renewal already in flight")
        return await race_cancel(asyncio.shield(self._inflight), cancel)

    async def _run(self, refresh_token: str, generation: int) -> NormalizedResponse:
        try:
            response = await self._dispatch(self.operation_name, {"refreshToken": refresh_token})
            return self._settle(response, generation)
        finally:
            self._inflight = None

    def _settle(self, response: NormalizedResponse, generation: int) -> NormalizedResponse:
        if self._store.generation != generation:
            # Session was cleared or replaced while the call was out
            logger.info("Session changed during token renewal; discarding the result")
            return _renewal_failure([SESSION_CHANGED])

        if not response.success:
            reasons = [msg for messages in response.errors.values() for msg in messages]
            logger.warning("Token renewal failed (%s); clearing session", response.error_class.value)
            self._store.clear()
            return _renewal_failure(reasons or [response.error_class.value])

        pair = TokenPair.from_payload(response.data, self._store.clock())
        if pair is None:
            logger.warning("Token renewal returned no access token; clearing session")
            self._store.clear()
            return _renewal_failure([INVALID_REFRESH_RESPONSE])

        result = self._store.assign(
            pair.access_token,
            refresh_token=pair.refresh_token,
            expires_at=pair.expires_at,
            refresh_expires_at=pair.refresh_expires_at,
        )
        if not result.valid:
            # assign() already cleared the session
            return _renewal_failure([result.error.value])
        logger.info("Token renewal succeeded")
        return NormalizedResponse.ok(self._store.current_pair())
