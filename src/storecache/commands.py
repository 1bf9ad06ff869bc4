"""Cache contract ↔ store command translation.

Pure functions: they build driver arguments and normalize raw replies, and
never touch the network. :mod:`storecache.cache` pairs them with a client.
"""

from __future__ import annotations

import enum
from collections.abc import Sequence
from typing import Any, Final, Literal

from storecache.errors import UnexpectedReplyError


class Miss(enum.Enum):
    """Type of the :data:`MISS` sentinel."""

    MISS = "MISS"

    def __bool__(self) -> Literal[False]:
        return False

    def __repr__(self) -> str:
        return "MISS"


MISS: Final = Miss.MISS
"""Returned for keys that are absent or expired. Compare with ``is``."""

_STATUS_OK = frozenset({"OK", b"OK"})


def set_arguments(ttl_seconds: int, *, only_if_absent: bool = False) -> dict[str, Any]:
    """Keyword arguments for the driver's ``set`` call.

    A TTL of 0 means no expiry and sends no ``EX``; ``only_if_absent`` adds
    ``NX`` so the check and the write happen in one command.
    """
    if isinstance(ttl_seconds, bool) or ttl_seconds < 0:
        raise ValueError(f"ttl_seconds must be a non-negative integer, got {ttl_seconds!r}")
    arguments: dict[str, Any] = {}
    if ttl_seconds > 0:
        arguments["ex"] = int(ttl_seconds)
    if only_if_absent:
        arguments["nx"] = True
    return arguments


def is_status_ok(reply: Any) -> bool:
    """True for an ``OK`` status reply, raw or as redis-py's ``True``."""
    return reply is True or (isinstance(reply, (str, bytes)) and reply in _STATUS_OK)


def normalize_get(reply: Any) -> Any:
    return MISS if reply is None else reply


def normalize_delete(reply: Any) -> bool:
    """``DEL`` of one key counts 0 (absent) or 1 (removed); both are a clean delete."""
    if isinstance(reply, int) and not isinstance(reply, bool) and reply in (0, 1):
        return True
    raise UnexpectedReplyError("delete", reply)


def normalize_mget(keys: Sequence[str], replies: Sequence[Any] | None) -> dict[str, Any]:
    """Pair each requested key with its reply slot, nil slots becoming MISS."""
    if replies is None or len(replies) != len(keys):
        raise UnexpectedReplyError("mget", replies)
    return {key: normalize_get(reply) for key, reply in zip(keys, replies)}
