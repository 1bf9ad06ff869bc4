"""Shared fixtures: in-memory store for unit tests, Redis container for integration tests."""

from __future__ import annotations

from collections.abc import Generator

import pytest
from fakes import UNIT_TEST_DATABASE, FakeClock, FakeStoreFactory
from testcontainers.redis import RedisContainer

from storecache.cache import AsyncRedisCache, RedisCache


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store_factory(clock: FakeClock) -> FakeStoreFactory:
    """Builds fake store clients; all of them share one in-memory server."""
    return FakeStoreFactory(clock)


@pytest.fixture
def cache(store_factory: FakeStoreFactory) -> RedisCache:
    """RedisCache on database 5 of the fake server."""
    return RedisCache({"database": UNIT_TEST_DATABASE}, client_factory=store_factory)


@pytest.fixture
def async_cache(store_factory: FakeStoreFactory) -> AsyncRedisCache:
    return AsyncRedisCache(
        {"database": UNIT_TEST_DATABASE}, client_factory=store_factory.asynchronous
    )


def _redis_url_from_container(redis_container: RedisContainer) -> str:
    host = redis_container.get_container_host_ip()
    port = redis_container.get_exposed_port(6379)
    return f"redis://{host}:{port}"


@pytest.fixture(scope="session")
def redis_container() -> Generator[RedisContainer, None, None]:
    """Start a Redis container for the test session. Skips if Docker is unavailable."""
    try:
        container = RedisContainer("redis:7-alpine")
        with container:
            yield container
    except Exception as e:  # noqa: BLE001
        pytest.skip(f"Docker not available: {e}")


@pytest.fixture
def redis_url(redis_container: RedisContainer) -> str:
    """Connection URL for the session Redis container, on the unit test database."""
    return f"{_redis_url_from_container(redis_container)}/{UNIT_TEST_DATABASE}"


@pytest.fixture
def redis_cache(redis_url: str) -> Generator[RedisCache, None, None]:
    """RedisCache against the container. Flushes its database after each test."""
    cache = RedisCache.from_url(redis_url)
    yield cache
    cache.flush()
    cache.close()
