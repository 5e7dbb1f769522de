"""Responses and errors produced by channel commands."""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass
from enum import Enum

EVENT_ID_SIZE = 8

UNKNOWN_COMMAND = "unknown_command"
NOT_FOUND = "not_found"
QUERY_ERROR = "query_error"
INTERNAL_ERROR = "internal_error"
SHUTTING_DOWN = "shutting_down"
POLICY_REJECT = "policy_reject"
INVALID_FORMAT = "invalid_format"
INVALID_META_KEY = "invalid_meta_key"
INVALID_META_VALUE = "invalid_meta_value"

_PLAIN_CODES = frozenset(
    {UNKNOWN_COMMAND, NOT_FOUND, QUERY_ERROR, INTERNAL_ERROR, SHUTTING_DOWN}
)
_DETAILED_CODES = frozenset(
    {POLICY_REJECT, INVALID_FORMAT, INVALID_META_KEY, INVALID_META_VALUE}
)

_EVENT_ID_ALPHABET = string.ascii_letters + string.digits


class ChannelCommandError(Exception):
    """A command failure, rendered on the wire as ``ERR <code>[(<detail>)]``."""

    def __init__(self, code: str, detail: str | None = None) -> None:
        if code in _PLAIN_CODES:
            if detail is not None:
                raise ValueError(f"error code {code!r} takes no detail")
        elif code in _DETAILED_CODES:
            if detail is None:
                raise ValueError(f"error code {code!r} requires a detail")
        else:
            raise ValueError(f"unknown error code: {code!r}")

        super().__init__(code, detail)
        self.code = code
        self.detail = detail

    def __str__(self) -> str:
        if self.detail is None:
            return self.code
        return f"{self.code}({self.detail})"

    def __repr__(self) -> str:
        return f"ChannelCommandError({self.code!r}, {self.detail!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ChannelCommandError):
            return NotImplemented
        return (self.code, self.detail) == (other.code, other.detail)

    def __hash__(self) -> int:
        return hash((self.code, self.detail))


def invalid_meta_key(key: str, value: str) -> ChannelCommandError:
    """Build the error for an unknown or malformed meta key."""
    return ChannelCommandError(INVALID_META_KEY, f"{key}[{value}]")


def invalid_meta_value(key: str, value: str) -> ChannelCommandError:
    """Build the error for a meta value that cannot be accepted."""
    return ChannelCommandError(INVALID_META_VALUE, f"{key}[{value}]")


class ResponseKind(Enum):
    """Kind of a response line, valued by the word written on the wire."""

    VOID = ""
    OK = "OK"
    PONG = "PONG"
    PENDING = "PENDING"
    RESULT = "RESULT"
    EVENT = "EVENT"
    ENDED = "ENDED"
    ERR = "ERR"


_ARITY = {
    ResponseKind.VOID: 0,
    ResponseKind.OK: 0,
    ResponseKind.PONG: 0,
    ResponseKind.PENDING: 1,
    ResponseKind.RESULT: 1,
    ResponseKind.EVENT: 3,
    ResponseKind.ENDED: 1,
    ResponseKind.ERR: 1,
}


@dataclass(frozen=True)
class ChannelCommandResponse:
    """One response to a command: a kind and the values written after it."""

    kind: ResponseKind
    values: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        values = tuple(str(value) for value in self.values)
        object.__setattr__(self, "values", values)
        expected = _ARITY[self.kind]
        if len(values) != expected:
            raise ValueError(
                f"{self.kind.name} response takes {expected} value(s), got {len(values)}"
            )

    @classmethod
    def from_error(cls, error: ChannelCommandError) -> ChannelCommandResponse:
        """Wrap a command error into an ``ERR`` response."""
        return cls(ResponseKind.ERR, (str(error),))

    def to_args(self) -> tuple[str, list[str] | None]:
        """Return the response word and its values, or None when it carries none."""
        if _ARITY[self.kind] == 0:
            return self.kind.value, None
        return self.kind.value, list(self.values)


def generate_event_id() -> str:
    """Return a random alphanumeric identifier for an asynchronous event."""
    return "".join(secrets.choice(_EVENT_ID_ALPHABET) for _ in range(EVENT_ID_SIZE))