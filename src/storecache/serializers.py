"""Value serializers for the cache facade."""

from __future__ import annotations

import json
import pickle
from typing import Any, Protocol, runtime_checkable

from storecache.config import SerializerName
from storecache.errors import SerializationError


@runtime_checkable
class Serializer(Protocol):
    """Turns values into stored bytes and back."""

    def serialize(self, value: Any) -> bytes:
        """Encode value. Raises SerializationError if it cannot be encoded."""
        ...

    def deserialize(self, data: bytes) -> Any:
        """Decode stored bytes. Raises SerializationError on malformed input."""
        ...


class JsonSerializer:
    """UTF-8 JSON. Round-trips dicts, lists, strings, numbers, booleans and None."""

    def serialize(self, value: Any) -> bytes:
        try:
            return json.dumps(value, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise SerializationError(f"cannot encode {type(value).__name__} as JSON") from exc

    def deserialize(self, data: bytes) -> Any:
        try:
            return json.loads(data)
        except (UnicodeDecodeError, ValueError) as exc:
            raise SerializationError("stored value is not valid JSON") from exc


class PickleSerializer:
    """Any picklable object. Only use against a store you trust."""

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL) -> None:
        self._protocol = protocol

    def serialize(self, value: Any) -> bytes:
        try:
            return pickle.dumps(value, protocol=self._protocol)
        except (pickle.PicklingError, TypeError, AttributeError) as exc:
            raise SerializationError(f"cannot pickle {type(value).__name__}") from exc

    def deserialize(self, data: bytes) -> Any:
        try:
            return pickle.loads(data)
        except Exception as exc:  # noqa: BLE001
            # Truncated or foreign bytes can raise almost anything from pickle.
            raise SerializationError("stored value is not a valid pickle") from exc


class RawSerializer:
    """Pass-through: stores bytes as-is, str as UTF-8; reads back bytes."""

    def serialize(self, value: Any) -> bytes:
        if isinstance(value, bytes):
            return value
        if isinstance(value, str):
            return value.encode("utf-8")
        raise SerializationError(f"raw serializer needs bytes or str, got {type(value).__name__}")

    def deserialize(self, data: bytes) -> Any:
        if isinstance(data, str):
            return data.encode("utf-8")
        return data


def get_serializer(name: SerializerName) -> Serializer:
    match name:
        case "json":
            return JsonSerializer()
        case "pickle":
            return PickleSerializer()
        case "raw":
            return RawSerializer()
