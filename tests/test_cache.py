"""Tests for RedisCache against the in-memory store."""

from __future__ import annotations

import pytest
import redis.exceptions
from fakes import UNIT_TEST_DATABASE, FakeClock, FakeStoreFactory
from prometheus_client import REGISTRY

from storecache.cache import Cache, RedisCache
from storecache.commands import MISS
from storecache.errors import ConfigurationError, TransportError, UnexpectedReplyError


def _operations(operation: str, outcome: str) -> float:
    value = REGISTRY.get_sample_value(
        "storecache_operations_total", {"operation": operation, "outcome": outcome}
    )
    return value or 0.0


def test_redis_cache_implements_cache_protocol(cache: RedisCache) -> None:
    assert isinstance(cache, Cache)


def test_client_built_lazily_once(cache: RedisCache, store_factory: FakeStoreFactory) -> None:
    assert store_factory.built == []
    cache.get("a")
    cache.get("b")
    assert len(store_factory.built) == 1
    assert store_factory.calls[0][0].database == UNIT_TEST_DATABASE


def test_get_never_written_is_miss(cache: RedisCache) -> None:
    assert cache.get("never-written") is MISS


def test_set_then_get(cache: RedisCache) -> None:
    assert cache.set("key", b"value", 10) is True
    assert cache.get("key") == b"value"


def test_set_zero_ttl_never_expires(cache: RedisCache, clock: FakeClock) -> None:
    assert cache.set("key", b"value", 0) is True
    clock.advance(10 * 365 * 24 * 3600)
    assert cache.get("key") == b"value"


def test_set_positive_ttl_expires(cache: RedisCache, clock: FakeClock) -> None:
    assert cache.set("key", b"value", 2) is True
    assert cache.get("key") == b"value"
    clock.advance(2.5)
    assert cache.get("key") is MISS


def test_set_overwrites(cache: RedisCache) -> None:
    cache.set("key", b"one")
    cache.set("key", b"two")
    assert cache.get("key") == b"two"


def test_set_issues_plain_set_for_zero_ttl(cache: RedisCache, store_factory: FakeStoreFactory) -> None:
    cache.set("k", b"v", 0)
    cache.set("k", b"v", 30)
    assert store_factory.last.commands == [("SET", "k", b"v"), ("SET", "k", b"v", "EX", 30)]


def test_set_non_ok_reply_is_false(cache: RedisCache, store_factory: FakeStoreFactory) -> None:
    cache.get("warm-up")
    store_factory.last.replies["set"] = None
    assert cache.set("k", b"v") is False


def test_negative_ttl_rejected_before_round_trip(
    cache: RedisCache, store_factory: FakeStoreFactory
) -> None:
    with pytest.raises(ValueError):
        cache.set("k", b"v", -1)
    assert store_factory.built == []


def test_add_absent_key(cache: RedisCache) -> None:
    assert cache.add("key", b"value", 60) is True
    assert cache.get("key") == b"value"


def test_add_existing_key_keeps_first_value(cache: RedisCache) -> None:
    assert cache.add("key", b"v1", 60) is True
    assert cache.add("key", b"v2", 60) is False
    assert cache.get("key") == b"v1"


def test_add_is_single_nx_command(cache: RedisCache, store_factory: FakeStoreFactory) -> None:
    cache.add("k", b"v", 0)
    cache.add("k", b"v", 5)
    assert store_factory.last.commands == [
        ("SET", "k", b"v", "NX"),
        ("SET", "k", b"v", "EX", 5, "NX"),
    ]


def test_add_after_expiry_succeeds(cache: RedisCache, clock: FakeClock) -> None:
    cache.add("k", b"v1", 1)
    clock.advance(1.5)
    assert cache.add("k", b"v2", 1) is True
    assert cache.get("k") == b"v2"


def test_delete_existing_key(cache: RedisCache) -> None:
    cache.set("key", b"value", 60)
    assert cache.delete("key") is True
    assert cache.get("key") is MISS


def test_delete_absent_key_is_success(cache: RedisCache) -> None:
    assert cache.delete("missing") is True


def test_delete_unexpected_reply_raises(cache: RedisCache, store_factory: FakeStoreFactory) -> None:
    cache.get("warm-up")
    store_factory.last.replies["delete"] = 2
    with pytest.raises(UnexpectedReplyError):
        cache.delete("k")


def test_mget_preserves_order_and_misses(cache: RedisCache) -> None:
    cache.set("k1", b"value1", 10)
    cache.set("k3", b"value3", 10)
    result = cache.mget(["k1", "k2", "k3"])
    assert list(result) == ["k1", "k2", "k3"]
    assert result == {"k1": b"value1", "k2": MISS, "k3": b"value3"}


def test_mget_empty_skips_round_trip(cache: RedisCache, store_factory: FakeStoreFactory) -> None:
    assert cache.mget([]) == {}
    assert store_factory.built == []


def test_mget_short_reply_raises(cache: RedisCache, store_factory: FakeStoreFactory) -> None:
    cache.get("warm-up")
    store_factory.last.replies["mget"] = [b"only-one"]
    with pytest.raises(UnexpectedReplyError):
        cache.mget(["a", "b"])


def test_flush_clears_configured_database(cache: RedisCache) -> None:
    cache.set("key", b"value", 10)
    assert cache.flush() is True
    assert cache.get("key") is MISS


def test_flush_leaves_other_databases(cache: RedisCache, store_factory: FakeStoreFactory) -> None:
    other = RedisCache({"database": 1}, client_factory=store_factory)
    other.set("key", b"elsewhere")
    cache.set("key", b"here")
    cache.flush()
    assert cache.get("key") is MISS
    assert other.get("key") == b"elsewhere"


def test_flush_reselects_database_after_drift(
    cache: RedisCache, store_factory: FakeStoreFactory
) -> None:
    cache.set("key", b"value")
    cache.client.select(0)
    cache.client.set("untouched", b"db0")
    assert cache.flush() is True
    store = store_factory.last
    assert store.commands[-2:] == [("SELECT", UNIT_TEST_DATABASE), ("FLUSHDB",)]
    assert store.databases[UNIT_TEST_DATABASE] == {}
    assert "untouched" in store.databases[0]


def test_concrete_scenario(cache: RedisCache) -> None:
    assert cache.set("a", "1", 0) is True
    assert cache.get("a") == b"1"
    assert cache.add("a", "2", 0) is False
    assert cache.get("a") == b"1"
    assert cache.delete("a") is True
    assert cache.get("a") is MISS


@pytest.mark.parametrize(
    "call",
    [
        lambda c: c.get("k"),
        lambda c: c.set("k", b"v"),
        lambda c: c.add("k", b"v"),
        lambda c: c.delete("k"),
        lambda c: c.mget(["k"]),
        lambda c: c.flush(),
    ],
)
def test_transport_errors_propagate(cache: RedisCache, store_factory: FakeStoreFactory, call) -> None:
    cache.client.fail_with = redis.exceptions.ConnectionError("Connection refused")
    with pytest.raises(TransportError) as exc_info:
        call(cache)
    assert isinstance(exc_info.value.__cause__, redis.exceptions.ConnectionError)
    assert "Connection refused" in str(exc_info.value)


def test_timeout_is_transport_error_not_miss(cache: RedisCache) -> None:
    cache.client.fail_with = redis.exceptions.TimeoutError("Timeout reading from socket")
    with pytest.raises(TransportError) as exc_info:
        cache.get("k")
    assert exc_info.value.operation == "get"


def test_fail_silently_answers_like_a_miss(store_factory: FakeStoreFactory) -> None:
    cache = RedisCache(client_factory=store_factory, fail_silently=True)
    cache.client.fail_with = redis.exceptions.ConnectionError("down")
    before = _operations("get", "error")
    assert cache.get("k") is MISS
    assert cache.set("k", b"v") is False
    assert cache.add("k", b"v") is False
    assert cache.delete("k") is False
    assert cache.mget(["a", "b"]) == {"a": MISS, "b": MISS}
    assert cache.flush() is False
    assert _operations("get", "error") == before + 1


def test_unreachable_store_raises() -> None:
    cache = RedisCache({"port": 1, "timeout": 0.5})
    with pytest.raises(TransportError):
        cache.get("k")


def test_old_profile_fails_on_first_use(store_factory: FakeStoreFactory) -> None:
    cache = RedisCache(options={"profile": "2.4"}, client_factory=store_factory)
    with pytest.raises(ConfigurationError):
        cache.get("k")


def test_configure_before_use_changes_database(store_factory: FakeStoreFactory) -> None:
    cache = RedisCache(client_factory=store_factory)
    cache.configure({"database": 7})
    cache.set("k", b"v")
    assert cache.config.database == 7
    assert "k" in store_factory.databases[7]


def test_configure_drops_built_client(cache: RedisCache, store_factory: FakeStoreFactory) -> None:
    first = cache.client
    cache.configure({"database": 2})
    assert first.closed is True
    cache.set("k", b"v")
    assert len(store_factory.built) == 2
    assert cache.config.database == 2
    assert cache.config.port == 6379
    assert "k" in store_factory.databases[2]


def test_close_closes_client(cache: RedisCache) -> None:
    client = cache.client
    cache.close()
    assert client.closed is True


def test_outcomes_counted(cache: RedisCache) -> None:
    hits, misses = _operations("get", "hit"), _operations("get", "miss")
    rejected = _operations("add", "rejected")
    cache.set("k", b"v")
    cache.get("k")
    cache.get("absent")
    cache.add("k", b"v")
    assert _operations("get", "hit") == hits + 1
    assert _operations("get", "miss") == misses + 1
    assert _operations("add", "rejected") == rejected + 1


def test_from_settings(monkeypatch: pytest.MonkeyPatch, store_factory: FakeStoreFactory) -> None:
    monkeypatch.setenv("STORECACHE_URL", "redis://example:6390/4")
    monkeypatch.setenv("STORECACHE_FAIL_SILENTLY", "true")
    cache = RedisCache.from_settings(client_factory=store_factory)
    assert cache.config.host == "example"
    assert cache.config.database == 4
    cache.client.fail_with = redis.exceptions.ConnectionError("down")
    assert cache.get("k") is MISS
