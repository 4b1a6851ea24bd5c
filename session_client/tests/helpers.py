"""
Shared test helpers: token minting, raw payload builders, a scripted transport and a fixed clock.
"""
import asyncio
import json
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any

import jwt
from jwt.utils import base64url_encode

from session_client.dispatch import Dispatcher
from session_client.errors import RequestCancelled
from session_client.executor import ResilientExecutor
from session_client.renewal import RenewalCoordinator
from session_client.session import SessionController
from session_client.token_store import TokenStore
from session_client.transport import race_cancel

SECRET = "session-client-test-signing-secret-0123456789"
NOW_MS = 1_700_000_000_000


def make_token(sub: str = "user-1", expires_in: int = 900, kind: str | None = "access", now_ms: int = NOW_MS) -> str:
    """HS256 JWT with exp expires_in seconds after now_ms."""
    now = now_ms // 1000
    claims: dict[str, Any] = {"sub": sub, "exp": now + expires_in, "iat": now}
    if kind is not None:
        claims["type"] = kind
    return jwt.encode(claims, SECRET, algorithm="HS256")


def unsigned_token(claims: Any) -> str:
    """Three-segment token with an arbitrary claim segment (for malformed claim cases)."""
    header = base64url_encode(json.dumps({"alg": "none", "typ": "JWT"}).encode()).decode()
    body = base64url_encode(json.dumps(claims).encode()).decode()
    return f"{header}.{body}.sig"


def ok_payload(data: Any = None) -> dict:
    return {"data": {"response": {"status": "OK", "data": json.dumps(data)}}}


def field_error_payload(items: list) -> dict:
    return {"data": {"response": {"status": "FIELD_ERROR", "data": json.dumps(items)}}}


def not_found_payload() -> dict:
    return {"data": {"response": {"status": "ITEM_NOT_FOUND", "data": None}}}


def error_payload(data: Any) -> dict:
    return {"data": {"response": {"status": "ERROR", "data": json.dumps(data)}}}


def unauthenticated_payload(message: str = "Unauthorized: token expired") -> dict:
    return {"errors": [{"message": message, "extensions": {"code": "UNAUTHENTICATED"}}]}


def refresh_payload(
    token: str,
    refresh_token: str | None = "rt-2",
    expires_in: int = 900,
    refresh_expires_in: int = 604800,
) -> dict:
    data: dict[str, Any] = {"token": token, "expiresIn": expires_in, "refreshExpiresIn": refresh_expires_in}
    if refresh_token is not None:
        data["refreshToken"] = refresh_token
    return ok_payload(data)


class FakeClock:
    def __init__(self, now: int = NOW_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@dataclass
class SentCall:
    operation_name: str
    variables: dict
    token: str | None


@dataclass
class ScriptedTransport:
    """
    Stands in for HttpTransport. Each send() consumes the next scripted item:
    a payload dict, an exception to raise, or a zero-argument callable returning a payload.
    When gate is set, sends wait on it before answering.
    """

    responses: list = field(default_factory=list)
    gate: asyncio.Event | None = None
    calls: list[SentCall] = field(default_factory=list)
    endpoint: str = "http://api.test/graphql"
    api_key: str = "endpoint-key"

    @property
    def configured(self) -> bool:
        return True

    def names(self) -> list[str]:
        return [c.operation_name for c in self.calls]

    async def send(self, operation_name, variables=None, *, token=None, cancel=None) -> dict:
        if cancel is not None and cancel.is_set():
            raise RequestCancelled("Operation cancelled before dispatch")
        self.calls.append(SentCall(operation_name, dict(variables or {}), token))
        return await race_cancel(self._next(), cancel)

    async def _next(self) -> dict:
        if self.gate is not None:
            await self.gate.wait()
        if not self.responses:
            raise AssertionError("unexpected dispatch")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item()
        return item

    async def aclose(self) -> None:
        pass


def make_stack(*responses, gate: asyncio.Event | None = None, clock: FakeClock | None = None) -> SimpleNamespace:
    """Store, dispatcher, renewal coordinator, executor and session over a ScriptedTransport."""
    transport = ScriptedTransport(responses=list(responses), gate=gate)
    clock = clock or FakeClock()
    store = TokenStore(clock=clock)
    dispatch = Dispatcher(transport)
    renewal = RenewalCoordinator(store, dispatch)
    executor = ResilientExecutor(store, renewal, dispatch)
    session = SessionController(store, executor)
    return SimpleNamespace(
        transport=transport,
        clock=clock,
        store=store,
        dispatch=dispatch,
        renewal=renewal,
        executor=executor,
        session=session,
    )
