"""Tests for session: login, logout and restoring tokens."""
import pytest

from session_client.responses import ErrorClass
from session_client.tests.helpers import (
    NOW_MS,
    error_payload,
    field_error_payload,
    make_stack,
    make_token,
    ok_payload,
)


def _login_payload(token, refresh_token="rt-1", expires_in=900, refresh_expires_in=604800):
    return ok_payload(
        {
            "token": token,
            "refreshToken": refresh_token,
            "expiresIn": expires_in,
            "refreshExpiresIn": refresh_expires_in,
        }
    )


@pytest.mark.asyncio
async def test_login_with_email():
    token = make_token(sub="user-1")
    stack = make_stack(_login_payload(token))

    result = await stack.session.login("ada@example.com", "s3cret")
    assert result.success is True
    call = stack.transport.calls[0]
    assert call.operation_name == "login"
    assert call.variables == {"email": "ada@example.com", "password": "s3cret"}
    assert call.token is None
    assert result.data.access_token == token
    assert result.data.refresh_token == "rt-1"


@pytest.mark.asyncio
async def test_login_with_username():
    stack = make_stack(_login_payload(make_token()))
    await stack.session.login("ada", "s3cret")
    assert stack.transport.calls[0].variables == {"username": "ada", "password": "s3cret"}


@pytest.mark.asyncio
async def test_login_stores_session():
    token = make_token(expires_in=900)
    stack = make_stack(_login_payload(token, expires_in=600, refresh_expires_in=3600))

    await stack.session.login("ada", "s3cret")
    assert stack.session.is_authenticated() is True
    data = stack.session.get_token_data()
    assert data.access_token == token
    assert data.refresh_token == "rt-1"
    assert data.expires_at == NOW_MS + 600_000
    assert data.refresh_expires_at == NOW_MS + 3_600_000
    assert data.is_valid is True


@pytest.mark.asyncio
async def test_login_with_absolute_expiry():
    stack = make_stack(ok_payload({"token": make_token(), "refreshToken": "rt", "expiresAt": NOW_MS + 42_000}))
    await stack.session.login("ada", "s3cret")
    assert stack.store.access_expires_at == NOW_MS + 42_000


@pytest.mark.asyncio
async def test_login_failure_keeps_existing_session():
    stack = make_stack(error_payload({"message": "INVALID_CREDENTIALS"}))
    existing = make_token(sub="someone-else")
    stack.store.assign(existing, "rt-0")

    result = await stack.session.login("ada", "wrong")
    assert result.error_class is ErrorClass.SERVER_FAILURE
    assert result.errors == {"_error": ["INVALID_CREDENTIALS"]}
    assert stack.store.access_token == existing
    assert stack.store.refresh_token == "rt-0"


@pytest.mark.asyncio
async def test_login_field_errors():
    stack = make_stack(field_error_payload([{"path": ["password"], "message": "Password required"}]))
    result = await stack.session.login("ada", "")
    assert result.error_class is ErrorClass.VALIDATION_FAILURE
    assert result.errors == {"password": ["Password required"]}
    assert stack.store.is_empty is True


@pytest.mark.asyncio
async def test_login_without_token():
    stack = make_stack(ok_payload({"refreshToken": "rt"}))
    result = await stack.session.login("ada", "s3cret")
    assert result.error_class is ErrorClass.SERVER_FAILURE
    assert result.errors == {"_token": ["MISSING_TOKEN"]}
    assert stack.store.is_empty is True


@pytest.mark.asyncio
async def test_login_with_malformed_token_keeps_existing_session():
    stack = make_stack(_login_payload("not-a-jwt"))
    existing = make_token()
    stack.store.assign(existing, "rt-0")

    result = await stack.session.login("ada", "s3cret")
    assert result.error_class is ErrorClass.AUTHORIZATION_FAILURE
    assert result.errors == {"_token": ["INVALID_FORMAT"]}
    assert stack.store.access_token == existing


@pytest.mark.asyncio
async def test_logout_clears_and_notifies_once():
    stack = make_stack()
    invalidations = []
    stack.session.on_invalidated(lambda: invalidations.append(1))
    stack.session.set_tokens(make_token(), "rt")

    first = await stack.session.logout()
    second = await stack.session.logout()
    assert first.success is True
    assert second.success is True
    assert stack.store.is_empty is True
    assert stack.session.is_authenticated() is False
    assert invalidations == [1]


@pytest.mark.asyncio
async def test_logout_on_empty_session():
    stack = make_stack()
    invalidations = []
    stack.session.on_invalidated(lambda: invalidations.append(1))
    result = await stack.session.logout()
    assert result.success is True
    assert invalidations == []


def test_set_tokens_round_trip():
    stack = make_stack()
    token = make_token(expires_in=900)
    result = stack.session.set_tokens(token, "rt", NOW_MS + 500_000, NOW_MS + 900_000)
    assert result.valid is True
    data = stack.session.get_token_data()
    assert (data.access_token, data.refresh_token, data.expires_at, data.refresh_expires_at) == (
        token,
        "rt",
        NOW_MS + 500_000,
        NOW_MS + 900_000,
    )


def test_set_tokens_without_refresh_token():
    stack = make_stack()
    stack.session.set_tokens(make_token(), "rt")
    stack.session.set_tokens(make_token(sub="other"))
    assert stack.store.refresh_token == ""


def test_set_invalid_tokens_clears_session():
    stack = make_stack()
    invalidations = []
    stack.session.on_invalidated(lambda: invalidations.append(1))
    stack.session.set_tokens(make_token(), "rt")

    result = stack.session.set_tokens(make_token(kind="refresh"), "rt-2")
    assert result.valid is False
    assert stack.store.is_empty is True
    assert invalidations == [1]


def test_expired_session_is_not_authenticated():
    stack = make_stack()
    stack.session.set_tokens(make_token(expires_in=60), "rt")
    assert stack.session.is_authenticated() is True
    stack.clock.advance(60_000)
    assert stack.session.is_authenticated() is False


@pytest.mark.asyncio
async def test_login_with_non_numeric_expiry_keeps_existing_session():
    stack = make_stack(ok_payload({"token": make_token(sub="user-1"), "refreshToken": "rt-1", "expiresAt": "later"}))
    existing = make_token(sub="someone-else")
    stack.store.assign(existing, "rt-0")

    result = await stack.session.login("ada", "s3cret")
    assert result.error_class is ErrorClass.SERVER_FAILURE
    assert result.errors == {"_token": ["MISSING_TOKEN"]}
    assert stack.store.access_token == existing
    assert stack.store.refresh_token == "rt-0"
