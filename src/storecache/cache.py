"""Cache operations over a Redis store (sync and async).

Each operation is one store round trip: the command arguments and reply
normalization come from :mod:`storecache.commands`; driver errors surface as
:class:`~storecache.errors.TransportError` unless the cache was built with
``fail_silently=True``.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from redis.exceptions import RedisError

from storecache.client import (
    AsyncStoreClient,
    ClientFactory,
    LazyClient,
    StoreClient,
    async_redis_client_factory,
    redis_client_factory,
)
from storecache.commands import (
    MISS,
    is_status_ok,
    normalize_delete,
    normalize_get,
    normalize_mget,
    set_arguments,
)
from storecache.config import (
    DEFAULT_CONNECTION,
    DEFAULT_OPTIONS,
    CacheSettings,
    ClientOptions,
    ConnectionConfig,
    merge_client_options,
    merge_connection_parameters,
)
from storecache.errors import TransportError
from storecache.logging import get_logger
from storecache.metrics import command_duration_seconds, operations_total

_logger = get_logger(__name__)

Value = bytes | str | int | float
ConnectionLike = ConnectionConfig | Mapping[str, Any] | None
OptionsLike = ClientOptions | Mapping[str, Any] | None


@runtime_checkable
class Cache(Protocol):
    """Key-value cache contract (sync). Misses are :data:`~storecache.MISS`."""

    def get(self, key: str) -> Any:
        """Return the value for key, or MISS if absent or expired."""
        ...

    def set(self, key: str, value: Value, ttl_seconds: int = 0) -> bool:
        """Store value for key, overwriting. ``ttl_seconds == 0`` never expires."""
        ...

    def add(self, key: str, value: Value, ttl_seconds: int = 0) -> bool:
        """Store value only if key is absent. False when it was already there."""
        ...

    def delete(self, key: str) -> bool: ...

    def mget(self, keys: Sequence[str]) -> dict[str, Any]: ...

    def flush(self) -> bool: ...


@runtime_checkable
class AsyncCache(Protocol):
    """Async counterpart of :class:`Cache`."""

    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: Value, ttl_seconds: int = 0) -> bool: ...

    async def add(self, key: str, value: Value, ttl_seconds: int = 0) -> bool: ...

    async def delete(self, key: str) -> bool: ...

    async def mget(self, keys: Sequence[str]) -> dict[str, Any]: ...

    async def flush(self) -> bool: ...


def _connection(value: ConnectionLike, defaults: ConnectionConfig = DEFAULT_CONNECTION) -> ConnectionConfig:
    if isinstance(value, ConnectionConfig):
        return value
    return merge_connection_parameters(value, defaults=defaults)


def _options(value: OptionsLike, defaults: ClientOptions = DEFAULT_OPTIONS) -> ClientOptions:
    if isinstance(value, ClientOptions):
        return value
    return merge_client_options(value, defaults=defaults)


ClientT = TypeVar("ClientT")


class _BaseCache(Generic[ClientT]):
    """Configuration, client handle and outcome bookkeeping shared by both caches."""

    def __init__(
        self,
        connection: ConnectionLike,
        options: OptionsLike,
        client_factory: ClientFactory[ClientT],
        fail_silently: bool,
    ) -> None:
        self._handle: LazyClient[ClientT] = LazyClient(
            client_factory, _connection(connection), _options(options)
        )
        self._fail_silently = fail_silently

    @property
    def config(self) -> ConnectionConfig:
        return self._handle.config

    @property
    def options(self) -> ClientOptions:
        return self._handle.options

    @property
    def client(self) -> ClientT:
        """The driver client, built on first access."""
        return self._handle.get()

    def _reconfigure(self, connection: ConnectionLike, options: OptionsLike) -> ClientT | None:
        return self._handle.reset(
            _connection(connection, defaults=self.config) if connection is not None else self.config,
            _options(options, defaults=self.options) if options is not None else self.options,
        )

    def _fail(self, operation: str, error: TransportError, fallback: Any) -> Any:
        operations_total.labels(operation, "error").inc()
        if not self._fail_silently:
            raise error
        _logger.warning(
            "Store unavailable, answering as a cache failure",
            extra={"operation": operation, "error": str(error)},
        )
        return fallback

    @staticmethod
    def _transport_error(operation: str, exc: RedisError) -> TransportError:
        error = TransportError(operation, str(exc) or type(exc).__name__)
        error.__cause__ = exc
        return error

    @staticmethod
    def _record(operation: str, outcome: str, count: int = 1) -> None:
        if count:
            operations_total.labels(operation, outcome).inc(count)

    def _record_status(self, operation: str, ok: bool) -> bool:
        self._record(operation, "ok" if ok else "rejected")
        return ok

    def _record_mget(self, values: dict[str, Any]) -> dict[str, Any]:
        misses = sum(1 for value in values.values() if value is MISS)
        self._record("mget", "miss", misses)
        self._record("mget", "hit", len(values) - misses)
        return values


class RedisCache(_BaseCache[StoreClient]):
    """Cache contract over a Redis store, one synchronous round trip per call."""

    def __init__(
        self,
        connection: ConnectionLike = None,
        options: OptionsLike = None,
        *,
        client_factory: ClientFactory[StoreClient] = redis_client_factory,
        fail_silently: bool = False,
    ) -> None:
        super().__init__(connection, options, client_factory, fail_silently)

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> RedisCache:
        return cls(ConnectionConfig.from_url(url), **kwargs)

    @classmethod
    def from_settings(cls, settings: CacheSettings | None = None, **kwargs: Any) -> RedisCache:
        settings = settings if settings is not None else CacheSettings()
        kwargs.setdefault("fail_silently", settings.fail_silently)
        return cls(settings.connection_config(), settings.client_options(), **kwargs)

    def configure(self, connection: ConnectionLike = None, options: OptionsLike = None) -> None:
        """Override parameters and drop any client built from the old ones."""
        previous = self._reconfigure(connection, options)
        if previous is not None:
            previous.close()

    def close(self) -> None:
        self.configure()

    def _execute(self, operation: str, command: Callable[[StoreClient], Any]) -> Any:
        started = time.perf_counter()
        try:
            return command(self.client)
        except RedisError as exc:
            raise self._transport_error(operation, exc) from exc
        finally:
            command_duration_seconds.labels(operation).observe(time.perf_counter() - started)

    def get(self, key: str) -> Any:
        try:
            value = normalize_get(self._execute("get", lambda client: client.get(key)))
        except TransportError as exc:
            return self._fail("get", exc, MISS)
        self._record("get", "miss" if value is MISS else "hit")
        return value

    def set(self, key: str, value: Value, ttl_seconds: int = 0) -> bool:
        arguments = set_arguments(ttl_seconds)
        try:
            reply = self._execute("set", lambda client: client.set(key, value, **arguments))
        except TransportError as exc:
            return self._fail("set", exc, False)
        return self._record_status("set", is_status_ok(reply))

    def add(self, key: str, value: Value, ttl_seconds: int = 0) -> bool:
        arguments = set_arguments(ttl_seconds, only_if_absent=True)
        try:
            reply = self._execute("add", lambda client: client.set(key, value, **arguments))
        except TransportError as exc:
            return self._fail("add", exc, False)
        return self._record_status("add", is_status_ok(reply))

    def delete(self, key: str) -> bool:
        try:
            deleted = normalize_delete(self._execute("delete", lambda client: client.delete(key)))
        except TransportError as exc:
            return self._fail("delete", exc, False)
        return self._record_status("delete", deleted)

    def mget(self, keys: Sequence[str]) -> dict[str, Any]:
        keys = list(keys)
        if not keys:
            return {}
        try:
            values = normalize_mget(keys, self._execute("mget", lambda client: client.mget(keys)))
        except TransportError as exc:
            return self._fail("mget", exc, dict.fromkeys(keys, MISS))
        return self._record_mget(values)

    def flush(self) -> bool:
        database = self.config.database

        def command(client: StoreClient) -> Any:
            # The live connection may have drifted to another database.
            client.select(database)
            return client.flushdb()

        try:
            reply = self._execute("flush", command)
        except TransportError as exc:
            return self._fail("flush", exc, False)
        return self._record_status("flush", is_status_ok(reply))


class AsyncRedisCache(_BaseCache[AsyncStoreClient]):
    """Async cache contract over a Redis store (``redis.asyncio``)."""

    def __init__(
        self,
        connection: ConnectionLike = None,
        options: OptionsLike = None,
        *,
        client_factory: ClientFactory[AsyncStoreClient] = async_redis_client_factory,
        fail_silently: bool = False,
    ) -> None:
        super().__init__(connection, options, client_factory, fail_silently)

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> AsyncRedisCache:
        return cls(ConnectionConfig.from_url(url), **kwargs)

    @classmethod
    def from_settings(cls, settings: CacheSettings | None = None, **kwargs: Any) -> AsyncRedisCache:
        settings = settings if settings is not None else CacheSettings()
        kwargs.setdefault("fail_silently", settings.fail_silently)
        return cls(settings.connection_config(), settings.client_options(), **kwargs)

    async def configure(self, connection: ConnectionLike = None, options: OptionsLike = None) -> None:
        previous = self._reconfigure(connection, options)
        if previous is not None:
            await previous.aclose()

    async def aclose(self) -> None:
        await self.configure()

    async def _execute(
        self, operation: str, command: Callable[[AsyncStoreClient], Awaitable[Any]]
    ) -> Any:
        started = time.perf_counter()
        try:
            return await command(self.client)
        except RedisError as exc:
            raise self._transport_error(operation, exc) from exc
        finally:
            command_duration_seconds.labels(operation).observe(time.perf_counter() - started)

    async def get(self, key: str) -> Any:
        try:
            value = normalize_get(await self._execute("get", lambda client: client.get(key)))
        except TransportError as exc:
            return self._fail("get", exc, MISS)
        self._record("get", "miss" if value is MISS else "hit")
        return value

    async def set(self, key: str, value: Value, ttl_seconds: int = 0) -> bool:
        arguments = set_arguments(ttl_seconds)
        try:
            reply = await self._execute("set", lambda client: client.set(key, value, **arguments))
        except TransportError as exc:
            return self._fail("set", exc, False)
        return self._record_status("set", is_status_ok(reply))

    async def add(self, key: str, value: Value, ttl_seconds: int = 0) -> bool:
        arguments = set_arguments(ttl_seconds, only_if_absent=True)
        try:
            reply = await self._execute("add", lambda client: client.set(key, value, **arguments))
        except TransportError as exc:
            return self._fail("add", exc, False)
        return self._record_status("add", is_status_ok(reply))

    async def delete(self, key: str) -> bool:
        try:
            deleted = normalize_delete(
                await self._execute("delete", lambda client: client.delete(key))
            )
        except TransportError as exc:
            return self._fail("delete", exc, False)
        return self._record_status("delete", deleted)

    async def mget(self, keys: Sequence[str]) -> dict[str, Any]:
        keys = list(keys)
        if not keys:
            return {}
        try:
            replies = await self._execute("mget", lambda client: client.mget(keys))
            values = normalize_mget(keys, replies)
        except TransportError as exc:
            return self._fail("mget", exc, dict.fromkeys(keys, MISS))
        return self._record_mget(values)

    async def flush(self) -> bool:
        database = self.config.database

        async def command(client: AsyncStoreClient) -> Any:
            await client.select(database)
            return await client.flushdb()

        try:
            reply = await self._execute("flush", command)
        except TransportError as exc:
            return self._fail("flush", exc, False)
        return self._record_status("flush", is_status_ok(reply))
