"""
HTTP transport: "execute operation by name with variables" over a single POST endpoint.
Any network failure, timeout or non-JSON body surfaces as TransportError.
"""
import asyncio
import logging
from typing import Any, Awaitable, TypeVar

import httpx

from session_client import config
from session_client.errors import NotInitializedError, RequestCancelled, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Body used when the server answers 401/403 without a JSON payload
_UNAUTHENTICATED_PAYLOAD = {
    "errors": [{"message": "Unauthorized", "extensions": {"code": "UNAUTHENTICATED"}}]
}


async def race_cancel(awaitable: Awaitable[T], cancel: asyncio.Event | None) -> T:
    """
    Await awaitable unless cancel fires first; then abandon it and raise RequestCancelled.
    Only this caller's wrapper task is cancelled; a shielded shared task keeps running.
    """
    if cancel is None:
        return await awaitable
    if cancel.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise RequestCancelled("Operation cancelled before dispatch")

    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel.wait())
    try:
        done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        raise
    finally:
        waiter.cancel()
    if work in done:
        return work.result()
    work.cancel()
    raise RequestCancelled("Operation cancelled")


class HttpTransport:
    def __init__(
        self,
        endpoint: str = "",
        api_key: str = "",
        *,
        timeout: float = config.REQUEST_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.endpoint = endpoint
        self.api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def configured(self) -> bool:
        return bool(self.endpoint and self.api_key)

    def configure(self, endpoint: str, api_key: str) -> None:
        self.endpoint = endpoint
        self.api_key = api_key

    def reset(self) -> None:
        self.endpoint = ""
        self.api_key = ""

    async def _post(self, url: str, body: dict, headers: dict) -> dict:
        try:
            r = await self._client.post(url, json=body, headers=headers)
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Request failed: {e}") from e

        try:
            payload = r.json()
        except ValueError:
            if r.status_code in (401, 403):
                return _UNAUTHENTICATED_PAYLOAD
            raise TransportError(f"Malformed response (HTTP {r.status_code})")
        if not isinstance(payload, dict):
            raise TransportError(f"Malformed response (HTTP {r.status_code})")
        return payload

    async def send(
        self,
        operation_name: str,
        variables: dict | None = None,
        *,
        token: str | None = None,
        cancel: asyncio.Event | None = None,
    ) -> dict:
        """Dispatch one operation; returns the raw JSON payload."""
        if not self.configured:
            raise NotInitializedError()
        headers = {"Accept": "application/json", "x-api-key": self.api_key}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        body = {"operationName": operation_name, "variables": variables or {}}
        logger.debug("Dispatching %s", operation_name)
        return await race_cancel(self._post(self.endpoint, body, headers), cancel)

    async def fetch_metadata(self, url: str, public_api_key: str) -> dict:
        """Ask the environment's metadata host for the operation endpoint and its key."""
        headers = {"Accept": "application/json", "x-api-key": public_api_key}
        body = {"operationName": config.METADATA_OPERATION, "variables": {}}
        return await self._post(url, body, headers)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
