"""Store client seam: driver protocols, default factories and the lazy handle."""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from storecache.config import ClientOptions, ConnectionConfig
from storecache.logging import get_logger
from storecache.metrics import clients_created_total

_logger = get_logger(__name__)


@runtime_checkable
class StoreClient(Protocol):
    """The driver primitives the cache needs (sync). ``redis.Redis`` satisfies it."""

    def get(self, name: str) -> Any: ...

    def set(self, name: str, value: Any, ex: int | None = None, nx: bool = False) -> Any: ...

    def mget(self, keys: Sequence[str]) -> Any: ...

    def delete(self, *names: str) -> Any: ...

    def select(self, index: int) -> Any: ...

    def flushdb(self) -> Any: ...

    def close(self) -> None: ...


@runtime_checkable
class AsyncStoreClient(Protocol):
    """Async counterpart of :class:`StoreClient`. ``redis.asyncio.Redis`` satisfies it."""

    async def get(self, name: str) -> Any: ...

    async def set(self, name: str, value: Any, ex: int | None = None, nx: bool = False) -> Any: ...

    async def mget(self, keys: Sequence[str]) -> Any: ...

    async def delete(self, *names: str) -> Any: ...

    async def select(self, index: int) -> Any: ...

    async def flushdb(self) -> Any: ...

    async def aclose(self) -> None: ...


ClientT = TypeVar("ClientT")
ClientFactory = Callable[[ConnectionConfig, ClientOptions], ClientT]


def _driver_kwargs(config: ConnectionConfig) -> dict[str, Any]:
    kwargs: dict[str, Any] = {
        "db": config.database,
        "password": config.password,
        "socket_timeout": config.read_write_timeout,
        "socket_connect_timeout": config.timeout,
        "socket_keepalive": config.persistent,
    }
    if config.scheme == "unix":
        kwargs["unix_socket_path"] = config.path
    else:
        kwargs["host"] = config.host
        kwargs["port"] = config.port
        kwargs["ssl"] = config.scheme == "tls"
    return kwargs


def redis_client_factory(config: ConnectionConfig, options: ClientOptions) -> StoreClient:
    """Build a ``redis.Redis`` client. No connection is opened until the first command."""
    from redis import Redis

    options.require_set_options()
    client: Any = Redis(**_driver_kwargs(config))
    return client


def async_redis_client_factory(config: ConnectionConfig, options: ClientOptions) -> AsyncStoreClient:
    """Build a ``redis.asyncio.Redis`` client."""
    from redis.asyncio import Redis

    options.require_set_options()
    client: Any = Redis(**_driver_kwargs(config))
    return client


class LazyClient(Generic[ClientT]):
    """
    Holds one driver client, built by ``factory`` on first :meth:`get`.
    Uninitialized -> connected; only :meth:`reset` goes back.
    """

    def __init__(
        self,
        factory: ClientFactory[ClientT],
        config: ConnectionConfig,
        options: ClientOptions,
    ) -> None:
        self._factory = factory
        self._config = config
        self._options = options
        self._client: ClientT | None = None
        self._lock = threading.Lock()

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @property
    def options(self) -> ClientOptions:
        return self._options

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def get(self) -> ClientT:
        client = self._client
        if client is None:
            with self._lock:
                if self._client is None:
                    self._client = self._factory(self._config, self._options)
                    clients_created_total.inc()
                    _logger.debug(
                        "Store client created",
                        extra={
                            "scheme": self._config.scheme,
                            "host": self._config.host,
                            "port": self._config.port,
                            "database": self._config.database,
                        },
                    )
                client = self._client
        return client

    def reset(self, config: ConnectionConfig, options: ClientOptions) -> ClientT | None:
        """Swap in new parameters and drop the current client, returning it for closing."""
        with self._lock:
            previous = self._client
            self._client = None
            self._config = config
            self._options = options
        return previous
