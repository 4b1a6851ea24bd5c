"""
Dispatch one operation and normalize its payload.
Shared by the executor (caller operations, login) and the renewal coordinator.
"""
import asyncio
import logging
from typing import Callable

from session_client.errors import TransportError
from session_client.responses import ErrorClass, NormalizedResponse, ResponseInterceptor, normalize
from session_client.transport import HttpTransport

logger = logging.getLogger(__name__)


class Dispatcher:
    def __init__(
        self,
        transport: HttpTransport,
        normalizer: Callable[[object], NormalizedResponse] = normalize,
    ):
        self.transport = transport
        self.normalizer = normalizer
        self.interceptor: ResponseInterceptor | None = None

    async def __call__(
        self,
        operation_name: str,
        variables: dict | None = None,
        *,
        token: str | None = None,
        cancel: asyncio.Event | None = None,
    ) -> NormalizedResponse:
        """
        Transport failures become SERVER_FAILURE results (never AUTHORIZATION_FAILURE).
        NotInitializedError and RequestCancelled propagate to the caller.
        """
        try:
            raw = await self.transport.send(operation_name, variables, token=token, cancel=cancel)
        except TransportError as e:
            logger.warning("Dispatch of %s failed: %s", operation_name, e)
            return NormalizedResponse.failure(ErrorClass.SERVER_FAILURE, {"_transport": [str(e)]})
        if self.interceptor is not None:
            raw = self.interceptor(raw)
        return self.normalizer(raw)
