"""
Resilient execution of remote operations.
Proactive renewal before dispatch; on an authorization failure, one renewal and one retry.
Never loops: at most two dispatches per execute() call.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from session_client.dispatch import Dispatcher
from session_client.errors import RequestCancelled
from session_client.renewal import RenewalCoordinator
from session_client.responses import ErrorClass, NormalizedResponse
from session_client.token_store import TokenStore, UrgencyTier

logger = logging.getLogger(__name__)

RENEWAL_FAILED = "TOKEN_REFRESH_FAILED"


@dataclass(frozen=True)
class Operation:
    name: str
    variables: dict[str, Any] = field(default_factory=dict)
    requires_auth: bool = True


def _check_cancel(cancel: asyncio.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise RequestCancelled("Operation cancelled")


def _renewal_refused(renewal: NormalizedResponse) -> NormalizedResponse:
    """Operation-level result for a failed renewal: _auth, plus the renewal reasons under _refresh."""
    return NormalizedResponse.failure(
        ErrorClass.AUTHORIZATION_FAILURE, {"_auth": [RENEWAL_FAILED], **renewal.errors}
    )


class ResilientExecutor:
    def __init__(self, store: TokenStore, renewal: RenewalCoordinator, dispatch: Dispatcher):
        self._store = store
        self._renewal = renewal
        self._dispatch = dispatch

    async def execute(self, operation: Operation, *, cancel: asyncio.Event | None = None) -> NormalizedResponse:
        """
        Run operation and return its normalized outcome. Expected failures are returned,
        not raised; RequestCancelled and NotInitializedError propagate.
        """
        if not operation.requires_auth:
            return await self._dispatch(operation.name, operation.variables, cancel=cancel)

        if not self._store.access_token:
            logger.debug("No access token; refusing %s", operation.name)
            return NormalizedResponse.failure(ErrorClass.AUTHORIZATION_FAILURE, {"_auth": ["UNAUTHORIZED"]})

        if self._store.is_access_expiring(UrgencyTier.HIGH):
            logger.debug("Access token expiring; renewing before %s", operation.name)
            _check_cancel(cancel)
            renewal = await self._renewal.renew(cancel=cancel)
            if not renewal.success:
                return _renewal_refused(renewal)

        sent_with = self._store.access_token
        response = await self._dispatch(operation.name, operation.variables, token=sent_with, cancel=cancel)
        if not response.is_authorization_failure:
            return response

        _check_cancel(cancel)
        if self._store.access_token and self._store.access_token != sent_with:
            # Another caller renewed while this request was in flight
            logger.debug("Access token replaced concurrently; retrying %s", operation.name)
        else:
            logger.info("Authorization failure on %s; renewing and retrying once", operation.name)
            renewal = await self._renewal.renew(force=True, cancel=cancel)
            if not renewal.success:
                return _renewal_refused(renewal)

        _check_cancel(cancel)
        return await self._dispatch(
            operation.name, operation.variables, token=self._store.access_token, cancel=cancel
        )
