"""Serializing cache facade: arbitrary values and derived keys over a cache."""

from __future__ import annotations

import hashlib
from collections.abc import Iterator, Sequence
from typing import Any

from storecache.cache import AsyncCache, AsyncRedisCache, Cache, RedisCache
from storecache.commands import MISS
from storecache.config import CacheSettings
from storecache.serializers import JsonSerializer, Serializer, get_serializer


class _KeyDerivation:
    def __init__(self, serializer: Serializer | None, key_prefix: str, hash_key: bool) -> None:
        self.serializer: Serializer = serializer if serializer is not None else JsonSerializer()
        self.key_prefix = key_prefix
        self.hash_key = hash_key

    def build_key(self, key: str) -> str:
        """Store key for ``key``: prefixed, and MD5-hashed when ``hash_key`` is set."""
        full = f"{self.key_prefix}{key}"
        if self.hash_key:
            return hashlib.md5(full.encode("utf-8")).hexdigest()
        return full

    def _decode(self, raw: Any, default: Any) -> Any:
        return default if raw is MISS else self.serializer.deserialize(raw)

    def _store_keys(self, keys: Sequence[str]) -> dict[str, str]:
        return {key: self.build_key(key) for key in keys}


class SerializingCache(_KeyDerivation):
    """
    Stores any serializable value under a derived key.

    Misses return ``default`` (MISS unless given). Also usable as a mapping:
    ``cache["k"] = v`` stores without expiry and ``cache["k"]`` raises
    KeyError on a miss.
    """

    def __init__(
        self,
        cache: Cache,
        serializer: Serializer | None = None,
        *,
        key_prefix: str = "",
        hash_key: bool = False,
    ) -> None:
        super().__init__(serializer, key_prefix, hash_key)
        self.cache = cache

    @classmethod
    def from_settings(cls, settings: CacheSettings | None = None) -> SerializingCache:
        settings = settings if settings is not None else CacheSettings()
        return cls(
            RedisCache.from_settings(settings),
            get_serializer(settings.serializer),
            key_prefix=settings.key_prefix,
            hash_key=settings.hash_key,
        )

    def get(self, key: str, default: Any = MISS) -> Any:
        return self._decode(self.cache.get(self.build_key(key)), default)

    def mget(self, keys: Sequence[str]) -> dict[str, Any]:
        store_keys = self._store_keys(keys)
        raw = self.cache.mget(list(store_keys.values()))
        return {key: self._decode(raw[store_key], MISS) for key, store_key in store_keys.items()}

    def set(self, key: str, value: Any, ttl_seconds: int = 0) -> bool:
        return self.cache.set(self.build_key(key), self.serializer.serialize(value), ttl_seconds)

    def add(self, key: str, value: Any, ttl_seconds: int = 0) -> bool:
        return self.cache.add(self.build_key(key), self.serializer.serialize(value), ttl_seconds)

    def delete(self, key: str) -> bool:
        return self.cache.delete(self.build_key(key))

    def flush(self) -> bool:
        return self.cache.flush()

    def __getitem__(self, key: str) -> Any:
        value = self.get(key)
        if value is MISS:
            raise KeyError(key)
        return value

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def __delitem__(self, key: str) -> None:
        self.delete(key)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not MISS

    def __iter__(self) -> Iterator[str]:
        raise TypeError("cache keys cannot be iterated")


class AsyncSerializingCache(_KeyDerivation):
    """Async counterpart of :class:`SerializingCache` (no mapping protocol)."""

    def __init__(
        self,
        cache: AsyncCache,
        serializer: Serializer | None = None,
        *,
        key_prefix: str = "",
        hash_key: bool = False,
    ) -> None:
        super().__init__(serializer, key_prefix, hash_key)
        self.cache = cache

    @classmethod
    def from_settings(cls, settings: CacheSettings | None = None) -> AsyncSerializingCache:
        settings = settings if settings is not None else CacheSettings()
        return cls(
            AsyncRedisCache.from_settings(settings),
            get_serializer(settings.serializer),
            key_prefix=settings.key_prefix,
            hash_key=settings.hash_key,
        )

    async def get(self, key: str, default: Any = MISS) -> Any:
        return self._decode(await self.cache.get(self.build_key(key)), default)

    async def mget(self, keys: Sequence[str]) -> dict[str, Any]:
        store_keys = self._store_keys(keys)
        raw = await self.cache.mget(list(store_keys.values()))
        return {key: self._decode(raw[store_key], MISS) for key, store_key in store_keys.items()}

    async def set(self, key: str, value: Any, ttl_seconds: int = 0) -> bool:
        return await self.cache.set(self.build_key(key), self.serializer.serialize(value), ttl_seconds)

    async def add(self, key: str, value: Any, ttl_seconds: int = 0) -> bool:
        return await self.cache.add(self.build_key(key), self.serializer.serialize(value), ttl_seconds)

    async def delete(self, key: str) -> bool:
        return await self.cache.delete(self.build_key(key))

    async def flush(self) -> bool:
        return await self.cache.flush()
