"""Tests for dispatch: transport failures, interceptor and normalizer hooks."""
import asyncio
from unittest.mock import AsyncMock

import pytest

from session_client.dispatch import Dispatcher
from session_client.errors import NotInitializedError, TransportError
from session_client.responses import ErrorClass, NormalizedResponse
from session_client.tests.helpers import ScriptedTransport, ok_payload, unauthenticated_payload


@pytest.mark.asyncio
async def test_success_is_normalized():
    transport = ScriptedTransport([ok_payload({"n": 1})])
    result = await Dispatcher(transport)("readItem", {"_id": "1"}, token="t")
    assert result.success is True
    assert result.data == {"n": 1}
    assert transport.calls[0].variables == {"_id": "1"}
    assert transport.calls[0].token == "t"


@pytest.mark.asyncio
async def test_transport_error_is_server_failure():
    transport = ScriptedTransport([TransportError("Request timed out: read")])
    result = await Dispatcher(transport)("readItem")
    assert result.error_class is ErrorClass.SERVER_FAILURE
    assert result.errors == {"_transport": ["Request timed out: read"]}


@pytest.mark.asyncio
async def test_not_initialized_propagates():
    transport = ScriptedTransport([NotInitializedError()])
    with pytest.raises(NotInitializedError):
        await Dispatcher(transport)("readItem")


@pytest.mark.asyncio
async def test_interceptor_sees_raw_payload():
    seen = []

    def interceptor(raw):
        seen.append(raw)
        return unauthenticated_payload()

    dispatch = Dispatcher(ScriptedTransport([ok_payload({"n": 1})]))
    dispatch.interceptor = interceptor
    result = await dispatch("readItem")
    assert seen == [ok_payload({"n": 1})]
    assert result.is_authorization_failure is True


@pytest.mark.asyncio
async def test_custom_normalizer():
    dispatch = Dispatcher(ScriptedTransport([{"anything": True}]), normalizer=lambda raw: NormalizedResponse.ok(raw))
    result = await dispatch("readItem")
    assert result.data == {"anything": True}


@pytest.mark.asyncio
async def test_arguments_reach_transport():
    cancel = asyncio.Event()
    transport = AsyncMock()
    transport.send.return_value = ok_payload({"n": 1})

    result = await Dispatcher(transport)("readItem", {"_id": "1"}, token="t", cancel=cancel)
    assert result.data == {"n": 1}
    transport.send.assert_awaited_once_with("readItem", {"_id": "1"}, token="t", cancel=cancel)
