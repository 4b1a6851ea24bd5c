"""
Session controller: login, logout, token restoration and snapshots.
Owns the TokenStore; all session mutations go through here or the renewal coordinator.
"""
import logging

from session_client import config
from session_client.executor import Operation, ResilientExecutor
from session_client.responses import ErrorClass, NormalizedResponse
from session_client.token_store import InvalidationCallback, TokenData, TokenPair, TokenStore
from session_client.validation import TokenKind, TokenValidation, validate_token

logger = logging.getLogger(__name__)


class SessionController:
    def __init__(self, store: TokenStore, executor: ResilientExecutor):
        self.store = store
        self._executor = executor

    async def login(self, identifier: str, secret: str) -> NormalizedResponse:
        """
        Dispatch the unauthenticated login operation. Identifiers containing "@" are sent
        as email, others as username. Any failure leaves the current session untouched.
        """
        key = "email" if "@" in (identifier or "") else "username"
        operation = Operation(
            name=config.LOGIN_OPERATION,
            variables={key: identifier, "password": secret},
            requires_auth=False,
        )
        response = await self._executor.execute(operation)
        if not response.success:
            logger.info("Login failed (%s)", response.error_class.value)
            return response

        pair = TokenPair.from_payload(response.data, self.store.clock())
        if pair is None:
            return NormalizedResponse.failure(ErrorClass.SERVER_FAILURE, {"_token": ["MISSING_TOKEN"]})
        checked = validate_token(pair.access_token, TokenKind.ACCESS)
        if not checked.valid:
            logger.warning("Login returned an unusable access token (%s)", checked.error.value)
            return NormalizedResponse.failure(ErrorClass.AUTHORIZATION_FAILURE, {"_token": [checked.error.value]})

        self.store.assign(
            pair.access_token,
            refresh_token=pair.refresh_token or "",
            expires_at=pair.expires_at,
            refresh_expires_at=pair.refresh_expires_at,
        )
        logger.info("Login succeeded for sub=%s", checked.claims.subject)
        return NormalizedResponse.ok(self.store.current_pair())

    async def logout(self) -> NormalizedResponse:
        """Always succeeds, even on an empty session."""
        if self.store.clear():
            logger.info("Logged out")
        return NormalizedResponse.ok()

    def set_tokens(
        self,
        access_token: str,
        refresh_token: str | None = None,
        expires_at: int | None = None,
        refresh_expires_at: int | None = None,
    ) -> TokenValidation:
        """
        Restore a session (e.g. from caller-side persistence). Same rules as renewal:
        an invalid access token clears the whole session.
        """
        return self.store.assign(
            access_token,
            refresh_token=refresh_token or "",
            expires_at=expires_at,
            refresh_expires_at=refresh_expires_at,
        )

    def get_token_data(self) -> TokenData:
        return self.store.snapshot()

    def is_authenticated(self) -> bool:
        return self.store.is_access_valid()

    def on_invalidated(self, callback: InvalidationCallback | None) -> None:
        self.store.set_invalidation_callback(callback)
