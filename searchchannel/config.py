"""Server configuration: defaults, environment substitution, loading and validation."""

from __future__ import annotations

import ipaddress
import os
import re
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

_ENV_VAR_PATTERN = re.compile(r"\$\{env\.\w+\}")
_ENV_VAR_PREFIX_LENGTH = len("${env.")


class ConfigError(ValueError):
    """Raised when the configuration cannot be read, parsed or accepted."""


def is_env_var(value: str) -> bool:
    """Tell whether ``value`` is exactly an ``${env.NAME}`` reference."""
    return _ENV_VAR_PATTERN.fullmatch(value) is not None


def get_env_var(wrapped_key: str) -> str:
    """Read the environment variable named inside ``${env.NAME}``."""
    key = wrapped_key[_ENV_VAR_PREFIX_LENGTH:-1]
    try:
        return os.environ[key]
    except KeyError:
        raise ConfigError(f"env_var: variable '{key}' is not set") from None


def resolve_env(value: str) -> str:
    """Substitute ``value`` with its environment variable if it references one."""
    return get_env_var(value) if is_env_var(value) else value


def parse_inet(value: str) -> tuple[str, int]:
    """Parse a socket address such as ``[::1]:1491`` or ``0.0.0.0:1491``."""
    host, separator, port_text = value.rpartition(":")
    if not separator or not port_text.isascii() or not port_text.isdigit():
        raise ConfigError(f"invalid socket address: {value!r}")

    bracketed = host.startswith("[") and host.endswith("]")
    try:
        address = ipaddress.ip_address(host[1:-1] if bracketed else host)
    except ValueError:
        raise ConfigError(f"invalid socket address: {value!r}") from None

    if (address.version == 6) != bracketed:
        raise ConfigError(f"invalid socket address: {value!r}")

    port = int(port_text)
    if port > 0xFFFF:
        raise ConfigError(f"invalid socket address: {value!r}")

    return str(address), port


_Converter = Callable[[Any, str], Any]


def _unsigned(bits: int) -> _Converter:
    limit = 1 << bits

    def convert(value: Any, name: str) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"{name} must be an integer")
        if not 0 <= value < limit:
            raise ConfigError(f"{name} must be within 0 and {limit - 1}")
        return value

    return convert


def _boolean(value: Any, name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{name} must be a boolean")
    return value


def _string(value: Any, name: str) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"{name} must be a string")
    return resolve_env(value)


def _socket_addr(value: Any, name: str) -> tuple[str, int]:
    return parse_inet(_string(value, name))


def _path(value: Any, name: str) -> Path:
    return Path(_string(value, name))


def _setting(default: Any, convert: _Converter) -> Any:
    return field(default=default, metadata={"convert": convert})


def _section(cls: type) -> Any:
    return field(default_factory=cls, metadata={"section": cls})


@dataclass(frozen=True)
class ConfigServer:
    log_level: str = _setting("error", _string)


@dataclass(frozen=True)
class ConfigChannelSearch:
    query_limit_default: int = _setting(10, _unsigned(16))
    query_limit_maximum: int = _setting(100, _unsigned(16))
    query_alternates_try: int = _setting(4, _unsigned(64))
    suggest_limit_default: int = _setting(5, _unsigned(16))
    suggest_limit_maximum: int = _setting(20, _unsigned(16))


@dataclass(frozen=True)
class ConfigChannel:
    inet: tuple[str, int] = _setting(("::1", 1491), _socket_addr)
    tcp_timeout: int = _setting(300, _unsigned(64))
    auth_password: str | None = _setting(None, _string)
    search: ConfigChannelSearch = _section(ConfigChannelSearch)


@dataclass(frozen=True)
class ConfigStoreKVPool:
    inactive_after: int = _setting(1800, _unsigned(64))


@dataclass(frozen=True)
class ConfigStoreKVDatabase:
    flush_after: int = _setting(900, _unsigned(64))
    compress: bool = _setting(True, _boolean)
    parallelism: int = _setting(2, _unsigned(16))
    max_files: int | None = _setting(None, _unsigned(32))
    max_compactions: int = _setting(1, _unsigned(16))
    max_flushes: int = _setting(1, _unsigned(16))
    write_buffer: int = _setting(16384, _unsigned(64))
    write_ahead_log: bool = _setting(True, _boolean)


@dataclass(frozen=True)
class ConfigStoreKV:
    path: Path = _setting(Path("./data/store/kv/"), _path)
    retain_word_objects: int = _setting(1000, _unsigned(64))
    pool: ConfigStoreKVPool = _section(ConfigStoreKVPool)
    database: ConfigStoreKVDatabase = _section(ConfigStoreKVDatabase)


@dataclass(frozen=True)
class ConfigStoreFSTPool:
    inactive_after: int = _setting(300, _unsigned(64))


@dataclass(frozen=True)
class ConfigStoreFSTGraph:
    consolidate_after: int = _setting(180, _unsigned(64))
    max_size: int = _setting(2048, _unsigned(64))
    max_words: int = _setting(250000, _unsigned(64))


@dataclass(frozen=True)
class ConfigStoreFST:
    path: Path = _setting(Path("./data/store/fst/"), _path)
    pool: ConfigStoreFSTPool = _section(ConfigStoreFSTPool)
    graph: ConfigStoreFSTGraph = _section(ConfigStoreFSTGraph)


@dataclass(frozen=True)
class ConfigStore:
    kv: ConfigStoreKV = _section(ConfigStoreKV)
    fst: ConfigStoreFST = _section(ConfigStoreFST)


@dataclass(frozen=True)
class Config:
    server: ConfigServer = _section(ConfigServer)
    channel: ConfigChannel = _section(ConfigChannel)
    store: ConfigStore = _section(ConfigStore)


def _build(cls: type, table: Mapping[str, Any], path: tuple[str, ...] = ()) -> Any:
    values: dict[str, Any] = {}
    for item in fields(cls):
        item_path = (*path, item.name)
        name = ".".join(item_path)
        section = item.metadata.get("section")
        if section is not None:
            sub_table = table.get(item.name)
            if not isinstance(sub_table, dict):
                raise ConfigError(f"missing section [{name}]")
            values[item.name] = _build(section, sub_table, item_path)
        elif item.name in table:
            values[item.name] = item.metadata["convert"](table[item.name], name)
    return cls(**values)


def validate_config(config: Config) -> None:
    """Reject settings that cannot work together."""
    kv = config.store.kv
    fst = config.store.fst

    if kv.database.write_buffer == 0:
        raise ConfigError("write_buffer for kv must not be zero")
    if kv.database.flush_after >= kv.pool.inactive_after:
        raise ConfigError("flush_after for kv must be strictly lower than inactive_after")
    if fst.graph.consolidate_after >= fst.pool.inactive_after:
        raise ConfigError(
            "consolidate_after for fst must be strictly lower than inactive_after"
        )


def parse_config(text: str) -> Config:
    """Parse and validate a TOML configuration document."""
    try:
        document = tomllib.loads(text)
    except tomllib.TOMLDecodeError as error:
        raise ConfigError(f"syntax error in config file: {error}") from error

    config = _build(Config, document)
    validate_config(config)
    return config


def load_config(path: str | os.PathLike[str]) -> Config:
    """Read, parse and validate the configuration file at ``path``."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError as error:
        raise ConfigError(f"cannot find config file: {path}") from error
    except (OSError, UnicodeDecodeError) as error:
        raise ConfigError(f"cannot read config file: {path}") from error

    return parse_config(text)