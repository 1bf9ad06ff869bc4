"""Exception hierarchy.

Cache misses and rejected ``add`` calls are ordinary results (``MISS`` and
``False``), not exceptions. Everything here signals that the cache could not
answer at all.
"""

from __future__ import annotations


class CacheError(Exception):
    """Base class for all storecache errors."""


class ConfigurationError(CacheError):
    """Connection parameters or client options are invalid."""


class TransportError(CacheError):
    """The store could not be reached or answered with a protocol error."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation


class UnexpectedReplyError(TransportError):
    """The store answered with a reply the command never produces."""

    def __init__(self, operation: str, reply: object) -> None:
        super().__init__(operation, f"unexpected reply {reply!r}")
        self.reply = reply


class SerializationError(CacheError):
    """A value could not be serialized, or stored bytes could not be decoded."""
