"""storecache: a key-value cache contract over a Redis store."""

from storecache.cache import AsyncCache, AsyncRedisCache, Cache, RedisCache
from storecache.client import (
    AsyncStoreClient,
    LazyClient,
    StoreClient,
    async_redis_client_factory,
    redis_client_factory,
)
from storecache.commands import MISS, Miss
from storecache.config import (
    CacheSettings,
    ClientOptions,
    ConnectionConfig,
    merge_client_options,
    merge_connection_parameters,
)
from storecache.errors import (
    CacheError,
    ConfigurationError,
    SerializationError,
    TransportError,
    UnexpectedReplyError,
)
from storecache.facade import AsyncSerializingCache, SerializingCache
from storecache.logging import configure_logging, get_logger
from storecache.serializers import (
    JsonSerializer,
    PickleSerializer,
    RawSerializer,
    Serializer,
)

__all__ = [
    "MISS",
    "Miss",
    "Cache",
    "AsyncCache",
    "RedisCache",
    "AsyncRedisCache",
    "SerializingCache",
    "AsyncSerializingCache",
    "StoreClient",
    "AsyncStoreClient",
    "LazyClient",
    "redis_client_factory",
    "async_redis_client_factory",
    "CacheSettings",
    "ClientOptions",
    "ConnectionConfig",
    "merge_client_options",
    "merge_connection_parameters",
    "CacheError",
    "ConfigurationError",
    "SerializationError",
    "TransportError",
    "UnexpectedReplyError",
    "Serializer",
    "JsonSerializer",
    "PickleSerializer",
    "RawSerializer",
    "configure_logging",
    "get_logger",
]
