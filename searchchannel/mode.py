"""Channel modes a client may start a session in."""

from enum import StrEnum


class ChannelMode(StrEnum):
    """Session mode selected by the client with ``START <mode>``."""

    SEARCH = "search"
    INGEST = "ingest"
    CONTROL = "control"


def parse_mode(value: str) -> ChannelMode:
    """Return the mode named by ``value``; raise ValueError if there is none."""
    try:
        return ChannelMode(value)
    except ValueError:
        raise ValueError(f"unknown channel mode: {value!r}") from None