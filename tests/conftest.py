"""
Pytest configuration and shared fixtures.

The app never talks to a real Redis in tests: an in-memory double with a
manually advanced clock is injected before the lifespan runs.
"""

import pytest
from fastapi.testclient import TestClient

# Clear settings cache before any app imports so test env vars are used
from sms_relay.config import get_settings
get_settings.cache_clear()

from sms_relay.main import app  # noqa: E402


class InMemoryRedis:
    """Async stand-in for the subset of redis.asyncio.Redis the app uses."""

    def __init__(self):
        self.now = 0.0
        self._data = {}

    async def set(self, key, value, ex=None):
        expires_at = self.now + ex if ex is not None else None
        self._data[key] = (value, expires_at)
        return True

    async def get(self, key):
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self.now >= expires_at:
            del self._data[key]
            return None
        return value

    async def ping(self):
        return True

    async def aclose(self):
        pass

    def advance(self, seconds: float) -> None:
        """Move the clock forward; entries past their TTL disappear."""
        self.now += seconds

    def raw(self, key):
        """Stored payload regardless of expiry, or None."""
        entry = self._data.get(key)
        return entry[0] if entry else None

    def keys(self):
        return sorted(
            k for k, (_, exp) in self._data.items() if exp is None or self.now < exp
        )


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fake_redis() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture(scope="function")
def client(fake_redis):
    """Create test client backed by a fresh in-memory Redis for each test."""
    app.state.redis = fake_redis

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    app.state.redis = None
