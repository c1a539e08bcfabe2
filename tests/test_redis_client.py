"""
Tests for Redis client construction and the health check.

Tests cover:
- Settings flow into the connection pool (size, pool timeout, socket timeouts)
- An empty password is sent as no password
- PING success and failure
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError

from sms_relay.config import Settings
from sms_relay.redis_client import build_redis_client, check_redis_health


@pytest.fixture
def redis_settings() -> Settings:
    return Settings(
        REDIS_HOST="cache.internal",
        REDIS_PORT=6380,
        REDIS_PASSWORD="",
        REDIS_DB=2,
        REDIS_POOL_SIZE=7,
        REDIS_CONNECT_TIMEOUT=1.5,
        REDIS_READ_TIMEOUT=2.0,
        REDIS_WRITE_TIMEOUT=3.0,
        REDIS_POOL_TIMEOUT=4.0,
    )


class TestBuildRedisClient:
    """The pool is configured from Settings without connecting."""

    def test_pool_is_bounded_and_blocking(self, redis_settings):
        client = build_redis_client(redis_settings)
        pool = client.connection_pool

        assert isinstance(pool, redis.BlockingConnectionPool)
        assert pool.max_connections == 7
        assert pool.timeout == 4.0

    def test_connection_kwargs(self, redis_settings):
        client = build_redis_client(redis_settings)
        kwargs = client.connection_pool.connection_kwargs

        assert kwargs["host"] == "cache.internal"
        assert kwargs["port"] == 6380
        assert kwargs["db"] == 2
        assert kwargs["password"] is None
        assert kwargs["socket_connect_timeout"] == 1.5
        assert kwargs["decode_responses"] is True

    def test_socket_timeout_is_larger_of_read_and_write(self, redis_settings):
        client = build_redis_client(redis_settings)
        assert client.connection_pool.connection_kwargs["socket_timeout"] == 3.0

        slow_reads = redis_settings.model_copy(update={"REDIS_READ_TIMEOUT": 9.0})
        client = build_redis_client(slow_reads)
        assert client.connection_pool.connection_kwargs["socket_timeout"] == 9.0

    def test_password_is_passed_through(self, redis_settings):
        with_password = redis_settings.model_copy(update={"REDIS_PASSWORD": "s3cret"})

        client = build_redis_client(with_password)

        assert client.connection_pool.connection_kwargs["password"] == "s3cret"


@pytest.mark.anyio
class TestCheckRedisHealth:
    """PING result maps to a boolean."""

    async def test_ping_ok(self):
        client = MagicMock()
        client.ping = AsyncMock(return_value=True)

        assert await check_redis_health(client) is True

    async def test_ping_connection_error(self):
        client = MagicMock()
        client.ping = AsyncMock(side_effect=RedisConnectionError("refused"))

        assert await check_redis_health(client) is False

    async def test_ping_os_error(self):
        client = MagicMock()
        client.ping = AsyncMock(side_effect=OSError("network unreachable"))

        assert await check_redis_health(client) is False
