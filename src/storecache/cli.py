"""Command-line access to a cache: ``storecache get|set|add|delete|mget|flush``."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from typing import Any

from storecache.cache import RedisCache
from storecache.commands import MISS
from storecache.config import CacheSettings, merge_connection_parameters
from storecache.errors import CacheError, TransportError
from storecache.logging import configure_logging, get_logger

EXIT_OK = 0
EXIT_REJECTED = 1
EXIT_TRANSPORT = 2

_logger = get_logger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storecache", description=__doc__)
    parser.add_argument("--url", help="redis://host:port/db (default: STORECACHE_* settings)")
    parser.add_argument("--database", type=int, help="logical database index")
    parser.add_argument("--verbose", "-v", action="store_true", help="debug logging to stderr")
    commands = parser.add_subparsers(dest="command", required=True)

    get = commands.add_parser("get", help="print a value")
    get.add_argument("key")

    for name, text in (("set", "store a value"), ("add", "store a value if the key is absent")):
        write = commands.add_parser(name, help=text)
        write.add_argument("key")
        write.add_argument("value")
        write.add_argument("--ttl", type=int, default=0, help="seconds until expiry, 0 = never")

    delete = commands.add_parser("delete", help="remove a key")
    delete.add_argument("key")

    mget = commands.add_parser("mget", help="print several values")
    mget.add_argument("keys", nargs="+")

    commands.add_parser("flush", help="remove every key in the configured database")
    return parser


def _show(value: Any) -> str:
    if value is MISS:
        return "(miss)"
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _run(cache: RedisCache, args: argparse.Namespace) -> int:
    match args.command:
        case "get":
            print(_show(cache.get(args.key)))
        case "set" | "add":
            write = cache.set if args.command == "set" else cache.add
            if not write(args.key, args.value, args.ttl):
                print("(rejected)")
                return EXIT_REJECTED
            print("OK")
        case "delete":
            cache.delete(args.key)
            print("OK")
        case "mget":
            for key, value in cache.mget(args.keys).items():
                print(f"{key}\t{_show(value)}")
        case "flush":
            if not cache.flush():
                return EXIT_REJECTED
            print("OK")
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.verbose:
        configure_logging(logging.DEBUG)

    settings = CacheSettings(url=args.url) if args.url else CacheSettings()
    try:
        connection = settings.connection_config()
        if args.database is not None:
            connection = merge_connection_parameters({"database": args.database}, defaults=connection)
        cache = RedisCache(connection, settings.client_options())
        return _run(cache, args)
    except TransportError as exc:
        _logger.debug("Command failed", exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_TRANSPORT
    except (CacheError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_REJECTED
