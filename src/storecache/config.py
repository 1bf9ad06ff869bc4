"""Connection parameters, client options and environment-driven settings."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Literal, TypeVar
from urllib.parse import parse_qs, unquote, urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from storecache.errors import ConfigurationError

Scheme = Literal["tcp", "unix", "tls"]
SerializerName = Literal["json", "pickle", "raw"]

# SET with EX/NX options first shipped in Redis 2.6.12.
MIN_PROFILE = (2, 6)
DEV_PROFILE = "dev"

_URL_SCHEMES: dict[str, Scheme] = {"redis": "tcp", "rediss": "tls", "unix": "unix"}


class ConnectionConfig(BaseModel):
    """Where and how to reach the store. Immutable once built."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    scheme: Scheme = Field(default="tcp")
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=6379, ge=1, le=65535)
    database: int = Field(default=0, ge=0, description="Logical database selected on connect")
    persistent: bool = Field(default=True, description="Keep the socket alive between commands")
    path: str | None = Field(default=None, description="Socket path when scheme is 'unix'")
    password: str | None = Field(default=None, repr=False)
    timeout: float | None = Field(default=5.0, gt=0, description="Connect timeout in seconds")
    read_write_timeout: float | None = Field(
        default=None, gt=0, description="Per-command socket timeout in seconds"
    )

    @classmethod
    def from_url(cls, url: str) -> ConnectionConfig:
        """Parse ``redis://``, ``rediss://`` or ``unix://`` URLs over the defaults."""
        parsed = urlparse(url)
        scheme = _URL_SCHEMES.get(parsed.scheme)
        if scheme is None:
            raise ConfigurationError(f"unsupported URL scheme {parsed.scheme!r} in {url!r}")
        overrides: dict[str, Any] = {"scheme": scheme}
        if parsed.password:
            overrides["password"] = unquote(parsed.password)
        if scheme == "unix":
            overrides["path"] = parsed.path
            db = parse_qs(parsed.query).get("db")
            if db:
                overrides["database"] = _parse_database(db[0], url)
        else:
            if parsed.hostname:
                overrides["host"] = parsed.hostname
            try:
                port = parsed.port
            except ValueError as exc:
                raise ConfigurationError(f"invalid port in {url!r}") from exc
            if port is not None:
                overrides["port"] = port
            db_path = parsed.path.lstrip("/")
            if db_path:
                overrides["database"] = _parse_database(db_path, url)
        return merge_connection_parameters(overrides)


class ClientOptions(BaseModel):
    """Behaviour switches for the driver client."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    profile: str = Field(
        default="2.6",
        pattern=r"^(\d+\.\d+|dev)$",
        description="Store version whose command set the client may use",
    )

    def supports_set_options(self) -> bool:
        """True when the profile has SET with EX and NX."""
        if self.profile == DEV_PROFILE:
            return True
        major, minor = (int(part) for part in self.profile.split("."))
        return (major, minor) >= MIN_PROFILE

    def require_set_options(self) -> None:
        if not self.supports_set_options():
            raise ConfigurationError(
                f"profile {self.profile!r} lacks SET EX/NX; "
                f"at least {MIN_PROFILE[0]}.{MIN_PROFILE[1]} is required"
            )


DEFAULT_CONNECTION = ConnectionConfig()
DEFAULT_OPTIONS = ClientOptions()

_Model = TypeVar("_Model", bound=BaseModel)


def _merge(model: type[_Model], defaults: _Model, overrides: Mapping[str, Any] | None) -> _Model:
    # Parameters are flat, so a shallow override is the whole merge.
    merged = defaults.model_dump()
    merged.update(overrides or {})
    try:
        return model.model_validate(merged)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


def merge_connection_parameters(
    overrides: Mapping[str, Any] | None = None,
    defaults: ConnectionConfig = DEFAULT_CONNECTION,
) -> ConnectionConfig:
    """Return ``defaults`` with every key in ``overrides`` replaced."""
    return _merge(ConnectionConfig, defaults, overrides)


def merge_client_options(
    overrides: Mapping[str, Any] | None = None,
    defaults: ClientOptions = DEFAULT_OPTIONS,
) -> ClientOptions:
    """Return ``defaults`` with every key in ``overrides`` replaced."""
    return _merge(ClientOptions, defaults, overrides)


def _parse_database(raw: str, url: str) -> int:
    if not re.fullmatch(r"\d+", raw):
        raise ConfigurationError(f"invalid database index {raw!r} in {url!r}")
    return int(raw)


_CONNECTION_FIELDS = tuple(ConnectionConfig.model_fields)


class CacheSettings(BaseSettings):
    """Environment-driven cache settings (``STORECACHE_*``)."""

    model_config = SettingsConfigDict(  # pyrefly: ignore[missing-override-decorator]
        env_prefix="STORECACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: str | None = Field(default=None, description="redis:// URL; explicit fields win over it")

    # Connection parameters; None means "not set here".
    scheme: Scheme | None = Field(default=None)
    host: str | None = Field(default=None)
    port: int | None = Field(default=None)
    database: int | None = Field(default=None)
    persistent: bool | None = Field(default=None)
    path: str | None = Field(default=None)
    password: str | None = Field(default=None)
    timeout: float | None = Field(default=None)
    read_write_timeout: float | None = Field(default=None)

    profile: str = Field(default=DEFAULT_OPTIONS.profile)

    # Facade
    key_prefix: str = Field(default="")
    hash_key: bool = Field(default=False)
    serializer: SerializerName = Field(default="json")

    fail_silently: bool = Field(
        default=False,
        description="Log transport errors and answer MISS/False instead of raising",
    )

    def connection_config(self) -> ConnectionConfig:
        base = ConnectionConfig.from_url(self.url) if self.url else DEFAULT_CONNECTION
        overrides = {
            name: getattr(self, name)
            for name in _CONNECTION_FIELDS
            if getattr(self, name) is not None
        }
        return merge_connection_parameters(overrides, defaults=base)

    def client_options(self) -> ClientOptions:
        return merge_client_options({"profile": self.profile})
