"""Dispatch of channel messages to commands, and rendering of their responses."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator, Mapping, Sequence
from enum import Enum
from functools import partial

from .commands import (
    COMMANDS_MODE_CONTROL,
    COMMANDS_MODE_INGEST,
    COMMANDS_MODE_SEARCH,
    MANUAL_MODE_CONTROL,
    MANUAL_MODE_INGEST,
    MANUAL_MODE_SEARCH,
    dispatch_help,
    dispatch_info,
    dispatch_ping,
    dispatch_quit,
)
from .mode import ChannelMode
from .responses import (
    INTERNAL_ERROR,
    SHUTTING_DOWN,
    UNKNOWN_COMMAND,
    ChannelCommandError,
    ChannelCommandResponse,
    ResponseKind,
)
from .statistics import StatisticsRegistry

logger = logging.getLogger("searchchannel.message")

LINE_FEED = "\r\n"
COMMAND_ELAPSED_MILLIS_SLOW_WARN = 50

Dispatcher = Callable[[Iterator[str]], list[ChannelCommandResponse]]
StoreCounts = Callable[[], tuple[int, int, int]]

_MODE_COMMANDS: dict[ChannelMode, tuple[Sequence[str], Mapping[str, Sequence[str]]]] = {
    ChannelMode.SEARCH: (COMMANDS_MODE_SEARCH, MANUAL_MODE_SEARCH),
    ChannelMode.INGEST: (COMMANDS_MODE_INGEST, MANUAL_MODE_INGEST),
    ChannelMode.CONTROL: (COMMANDS_MODE_CONTROL, MANUAL_MODE_CONTROL),
}


class ChannelMessageResult(Enum):
    """Whether the connection stays open after a message."""

    CONTINUE = "continue"
    CLOSE = "close"


def extract(message: str) -> tuple[str, Iterator[str]]:
    """Split a message into its upper-cased command name and an iterator of arguments."""
    parts = iter(message.split())
    command = next(parts, "").upper()
    logger.debug("will dispatch command: %s", command)
    return command, parts


def _render(response: ChannelCommandResponse) -> str:
    word, values = response.to_args()
    if not word:
        return ""
    if values is not None:
        return f"{word} {' '.join(values)}{LINE_FEED}"
    return f"{word}{LINE_FEED}"


class MessageHandler:
    """Handles the messages of one client session in a given mode.

    Commands of the mode that need a storage backend are served by the
    ``dispatchers`` given for them; a mode command without one answers
    ``ERR internal_error``.
    """

    def __init__(
        self,
        mode: ChannelMode,
        statistics: StatisticsRegistry | None = None,
        dispatchers: Mapping[str, Dispatcher] | None = None,
        is_available: Callable[[], bool] | None = None,
        store_counts: StoreCounts | None = None,
    ) -> None:
        self.mode = ChannelMode(mode)
        self.statistics = statistics if statistics is not None else StatisticsRegistry()
        self._is_available = is_available if is_available is not None else (lambda: True)
        self._store_counts = store_counts if store_counts is not None else (lambda: (0, 0, 0))

        commands, manuals = _MODE_COMMANDS[self.mode]
        self.commands: tuple[str, ...] = tuple(commands)

        handlers: dict[str, Dispatcher] = dict(dispatchers or {})
        handlers["PING"] = dispatch_ping
        handlers["QUIT"] = dispatch_quit
        handlers["HELP"] = partial(dispatch_help, manuals=manuals)
        if self.mode is ChannelMode.CONTROL:
            handlers["INFO"] = self._dispatch_info
        self._handlers = handlers

    def _dispatch_info(self, parts: Iterator[str]) -> list[ChannelCommandResponse]:
        kv_count, fst_count, fst_consolidate = self._store_counts()
        return dispatch_info(parts, self.statistics.gather(kv_count, fst_count, fst_consolidate))

    def handle(self, message: str) -> list[ChannelCommandResponse]:
        """Run the command in ``message``; raise ChannelCommandError when it fails."""
        command, parts = extract(message)

        if not command:
            return [ChannelCommandResponse(ResponseKind.VOID)]
        if command not in self.commands:
            return [ChannelCommandResponse.from_error(ChannelCommandError(UNKNOWN_COMMAND))]

        handler = self._handlers.get(command)
        if handler is None:
            return [ChannelCommandResponse.from_error(ChannelCommandError(INTERNAL_ERROR))]
        return handler(parts)

    def on(self, message_bytes: bytes) -> tuple[ChannelMessageResult, bytes]:
        """Process one raw message line; return whether to go on and the bytes to send."""
        try:
            message = message_bytes.decode("utf-8")
        except UnicodeDecodeError:
            message = ""

        logger.debug("got channel message: %s", message)
        started = time.perf_counter_ns()
        result = ChannelMessageResult.CONTINUE

        if not self._is_available():
            responses = [ChannelCommandResponse.from_error(ChannelCommandError(SHUTTING_DOWN))]
        else:
            try:
                responses = self.handle(message)
            except ChannelCommandError as error:
                responses = [ChannelCommandResponse.from_error(error)]

        if any(response.kind is ResponseKind.ENDED for response in responses):
            result = ChannelMessageResult.CLOSE

        output = "".join(_render(response) for response in responses).encode("utf-8")

        took_millis = (time.perf_counter_ns() - started) // 1_000_000
        if took_millis >= COMMAND_ELAPSED_MILLIS_SLOW_WARN:
            logger.warning("took a lot of time: %dms to process channel message", took_millis)
        else:
            logger.info("took %dms to process channel message", took_millis)

        self.statistics.record_command(took_millis)
        return result, output