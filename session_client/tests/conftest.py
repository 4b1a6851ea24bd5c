"""
Pytest configuration for session_client. Every store gets a fixed clock so expiry math is deterministic.
"""
import os

import pytest

# Environment overrides would change the metadata host and renewal buffers under test
for name in ("SESSION_CLIENT_METADATA_URL", "SESSION_CLIENT_ENV"):
    os.environ.pop(name, None)

from session_client.tests.helpers import FakeClock  # noqa: E402
from session_client.token_store import TokenStore  # noqa: E402


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return TokenStore(clock=clock)


@pytest.fixture
def invalidations(store):
    """Count of invalidation callback calls for the store fixture."""
    calls = []
    store.set_invalidation_callback(lambda: calls.append(1))
    return calls
