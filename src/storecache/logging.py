"""Pluggable logging using the standard library ``logging`` interface.

Library modules log through :func:`get_logger` and never install handlers on
import; the package logger carries a :class:`logging.NullHandler` until the
application calls :func:`configure_logging`. Configured output is one JSON
object per line, written to a :class:`LogSink` (stdout by default).
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Protocol, TextIO, override

PACKAGE_LOGGER = "storecache"

# Attributes that exist on every logging.LogRecord; we don't duplicate them as "extra".
_STANDARD_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
}

logging.getLogger(PACKAGE_LOGGER).addHandler(logging.NullHandler())


class LogSink(Protocol):
    """Destination for formatted log lines (stdout, file, backend)."""

    def write(self, message: str) -> None:  # pragma: no cover
        ...


class PrintSink:
    """Log sink that writes each record as a line via :func:`print`."""

    _stream: TextIO | None

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def write(self, message: str) -> None:
        # Resolve stdout lazily so pytest's capture replacement is honoured.
        print(message, file=self._stream or sys.stdout, flush=True)


class JsonFormatter(logging.Formatter):
    """Format log records as a single JSON object per line."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": record.created,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_ATTRS and value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=repr)


class SinkHandler(logging.Handler):
    """Handler that writes formatted records to a :class:`LogSink`."""

    _sink: LogSink

    def __init__(self, sink: LogSink) -> None:
        super().__init__()
        self._sink = sink

    @override
    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._sink.write(self.format(record))
        except Exception:  # noqa: BLE001
            self.handleError(record)


def configure_logging(
    level: int = logging.INFO,
    sink: LogSink | None = None,
) -> SinkHandler:
    """Send ``storecache`` log records to ``sink`` as JSON lines.

    Replaces any handler installed by a previous call, so calling it twice
    does not duplicate output. Returns the installed handler.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for existing in list(logger.handlers):
        if isinstance(existing, SinkHandler):
            logger.removeHandler(existing)
    handler = SinkHandler(sink if sink is not None else PrintSink())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)
    return handler


def get_logger(name: str) -> logging.Logger:
    """Return a standard :class:`logging.Logger` for ``name``.

    Use the standard interface::

        logger = get_logger(__name__)
        logger.info("Client created", extra={"host": config.host})
    """
    return logging.getLogger(name)
