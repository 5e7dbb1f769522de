"""Parsing of command arguments and the commands every channel mode shares."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence

from .format import unescape
from .responses import (
    INVALID_FORMAT,
    NOT_FOUND,
    ChannelCommandError,
    ChannelCommandResponse,
    ResponseKind,
    invalid_meta_key,
)
from .statistics import ChannelStatistics

logger = logging.getLogger("searchchannel.commands")

TEXT_PART_BOUNDARY = '"'
TEXT_PART_ESCAPE = "\\"
META_PART_GROUP_OPEN = "("
META_PART_GROUP_CLOSE = ")"

COMMANDS_MODE_SEARCH: tuple[str, ...] = ("QUERY", "SUGGEST", "PING", "HELP", "QUIT")
COMMANDS_MODE_INGEST: tuple[str, ...] = (
    "PUSH",
    "POP",
    "COUNT",
    "FLUSHC",
    "FLUSHB",
    "FLUSHO",
    "PING",
    "HELP",
    "QUIT",
)
COMMANDS_MODE_CONTROL: tuple[str, ...] = ("TRIGGER", "INFO", "PING", "HELP", "QUIT")
CONTROL_TRIGGER_ACTIONS: tuple[str, ...] = ("consolidate", "backup", "restore")

MANUAL_MODE_SEARCH: Mapping[str, Sequence[str]] = {"commands": COMMANDS_MODE_SEARCH}
MANUAL_MODE_INGEST: Mapping[str, Sequence[str]] = {"commands": COMMANDS_MODE_INGEST}
MANUAL_MODE_CONTROL: Mapping[str, Sequence[str]] = {"commands": COMMANDS_MODE_CONTROL}


def _boundary_is_escaped(part: str) -> bool:
    """Tell whether the closing quote of ``part`` is escaped by an odd run of escapes."""
    body = part[:-1]
    escapes = len(body) - len(body.rstrip(TEXT_PART_ESCAPE))
    return escapes % 2 == 1


def parse_text_parts(parts: Iterable[str]) -> str | None:
    """Join the quoted text starting at the next part and return its inner content.

    Parts are consumed up to and including the one holding the closing quote.
    Returns None when the text is not properly quoted or is empty once trimmed.
    """
    words: list[str] = []
    text_raw = ""

    for part in iter(parts):
        words.append(part)
        text_raw = " ".join(words)

        if (
            len(text_raw) > 1
            and part.endswith(TEXT_PART_BOUNDARY)
            and not _boundary_is_escaped(part)
        ):
            break

    if (
        len(text_raw) < 2
        or not text_raw.startswith(TEXT_PART_BOUNDARY)
        or not text_raw.endswith(TEXT_PART_BOUNDARY)
    ):
        logger.info("could not properly parse text parts: %s", text_raw)
        return None

    text = unescape(text_raw[1:-1].strip())
    logger.debug("parsed text parts (post-processed): %s", text)
    return text or None


def parse_next_meta_part(parts: Iterable[str]) -> tuple[str, str] | None:
    """Parse the next ``KEY(VALUE)`` part into a key and a value.

    Returns None when no part is left. Raises ChannelCommandError
    (``invalid_meta_key``) when the part is malformed or holds reserved characters.
    """
    part = next(iter(parts), None)
    if part is None:
        return None

    index_open = part.find(META_PART_GROUP_OPEN)
    if part and index_open >= 0 and part.endswith(META_PART_GROUP_CLOSE):
        key, value = part[:index_open], part[index_open + 1 : -1]
        reserved = (META_PART_GROUP_OPEN, META_PART_GROUP_CLOSE)

        if any(mark in key or mark in value for mark in reserved):
            logger.info(
                "parsed meta part, but it contains reserved characters: %s = %s",
                key,
                value,
            )
            raise invalid_meta_key(key, value)

        logger.debug("parsed meta part as: %s = %s", key, value)
        return key, value

    logger.info("could not parse meta part: %s", part)
    raise invalid_meta_key("?", part)


def dispatch_ping(parts: Iterable[str]) -> list[ChannelCommandResponse]:
    """Answer ``PING`` with ``PONG``."""
    if next(iter(parts), None) is not None:
        raise ChannelCommandError(INVALID_FORMAT, "PING")
    return [ChannelCommandResponse(ResponseKind.PONG)]


def dispatch_quit(parts: Iterable[str]) -> list[ChannelCommandResponse]:
    """Answer ``QUIT`` with ``ENDED quit``."""
    if next(iter(parts), None) is not None:
        raise ChannelCommandError(INVALID_FORMAT, "QUIT")
    return [ChannelCommandResponse(ResponseKind.ENDED, ("quit",))]


def dispatch_help(
    parts: Iterable[str], manuals: Mapping[str, Sequence[str]]
) -> list[ChannelCommandResponse]:
    """List the available manuals, or show the one that is asked for."""
    iterator = iter(parts)
    manual_key = next(iterator, None)

    if manual_key is None:
        listing = ", ".join(manuals)
        return [ChannelCommandResponse(ResponseKind.RESULT, (f"manuals({listing})",))]

    if next(iterator, None) is not None:
        raise ChannelCommandError(INVALID_FORMAT, "HELP [<manual>]?")

    manual = manuals.get(manual_key)
    if manual is None:
        raise ChannelCommandError(NOT_FOUND)

    listing = ", ".join(manual)
    return [ChannelCommandResponse(ResponseKind.RESULT, (f"{manual_key}({listing})",))]


def dispatch_info(
    parts: Iterable[str], statistics: ChannelStatistics
) -> list[ChannelCommandResponse]:
    """Report the given statistics snapshot."""
    if next(iter(parts), None) is not None:
        raise ChannelCommandError(INVALID_FORMAT, "INFO")

    report = (
        f"uptime({statistics.uptime}) "
        f"clients_connected({statistics.clients_connected}) "
        f"commands_total({statistics.commands_total}) "
        f"command_latency_best({statistics.command_latency_best}) "
        f"command_latency_worst({statistics.command_latency_worst}) "
        f"kv_open_count({statistics.kv_open_count}) "
        f"fst_open_count({statistics.fst_open_count}) "
        f"fst_consolidate_count({statistics.fst_consolidate_count})"
    )
    return [ChannelCommandResponse(ResponseKind.RESULT, (report,))]