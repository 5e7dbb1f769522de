"""TCP channel server: handshake, line framing and client sessions."""

from __future__ import annotations

import argparse
import logging
import socket
import sys
import threading
from collections.abc import Callable, Mapping

from .config import Config, ConfigError, load_config
from .logger import configure_logging
from .message import (
    LINE_FEED,
    ChannelMessageResult,
    Dispatcher,
    MessageHandler,
)
from .mode import ChannelMode, parse_mode
from .statistics import StatisticsRegistry

logger = logging.getLogger("searchchannel.server")

SERVER_NAME = "searchchannel"
SERVER_VERSION = "1.0.0"
CONNECTED_BANNER = f"CONNECTED <{SERVER_NAME} v{SERVER_VERSION}>"

LINE_END_GAP = 1
BUFFER_SIZE = 20000
MAX_LINE_SIZE = BUFFER_SIZE + LINE_END_GAP + 1
TCP_TIMEOUT_NON_ESTABLISHED = 10
PROTOCOL_REVISION = 1
BUFFER_LINE_SEPARATOR = b"\n"
THREAD_NAME_CHANNEL_CLIENT = "searchchannel-client"


class HandshakeError(Exception):
    """The client did not start a session; ``reason`` is sent back after ``ENDED``."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def ensure_start(data: bytes, auth_password: str | None = None) -> ChannelMode:
    """Validate a ``START <mode> [<password>]`` request and return the mode."""
    if not data:
        raise HandshakeError("closed")

    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        text = ""

    parts = iter(text.split())
    if next(parts, "").upper() != "START":
        raise HandshakeError("not_recognized")

    requested = next(parts, None)
    if requested is None:
        raise HandshakeError("invalid_mode")
    try:
        mode = parse_mode(requested)
    except ValueError:
        raise HandshakeError("invalid_mode") from None

    if auth_password is not None:
        provided = next(parts, None)
        if provided is None:
            logger.info("no password provided, but one required")
            raise HandshakeError("authentication_required")
        if provided != auth_password:
            logger.info("password provided, but does not match")
            raise HandshakeError("authentication_failed")

    return mode


class LineBuffer:
    """Accumulates received bytes and hands out complete lines."""

    def __init__(self, max_size: int = MAX_LINE_SIZE) -> None:
        self.max_size = max_size
        self._pending = b""

    def feed(self, chunk: bytes) -> list[bytes]:
        """Add ``chunk`` and return the lines it completes, without separators.

        Raises OverflowError when the pending data would exceed ``max_size``.
        """
        total = len(self._pending) + len(chunk)
        if total > self.max_size:
            raise OverflowError(f"buffer overflow ({total}/{self.max_size} bytes)")

        *lines, self._pending = (self._pending + chunk).split(BUFFER_LINE_SEPARATOR)
        return lines


def _read_error_reason(error: OSError) -> str:
    if isinstance(error, TimeoutError):
        return "timed_out"
    if isinstance(error, ConnectionAbortedError):
        return "connection_aborted"
    if isinstance(error, InterruptedError):
        return "interrupted"
    return "unknown"


class ChannelServer:
    """Accepts channel clients and serves each one on its own thread."""

    def __init__(
        self,
        config: Config | None = None,
        statistics: StatisticsRegistry | None = None,
        dispatchers: Mapping[ChannelMode, Mapping[str, Dispatcher]] | None = None,
        store_counts: Callable[[], tuple[int, int, int]] | None = None,
    ) -> None:
        self.config = config if config is not None else Config()
        self.statistics = statistics if statistics is not None else StatisticsRegistry()
        self.dispatchers = dict(dispatchers or {})
        self.store_counts = store_counts
        self._available = threading.Event()
        self._available.set()

    @property
    def available(self) -> bool:
        return self._available.is_set()

    def _configure(self, sock: socket.socket, established: bool) -> None:
        timeout = self.config.channel.tcp_timeout if established else TCP_TIMEOUT_NON_ESTABLISHED
        if sock.family in (socket.AF_INET, socket.AF_INET6):
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(timeout)

    @staticmethod
    def _send(sock: socket.socket, line: str) -> None:
        sock.sendall(f"{line}{LINE_FEED}".encode("utf-8"))

    def _read_start(self, sock: socket.socket) -> ChannelMode:
        try:
            data = sock.recv(MAX_LINE_SIZE)
        except OSError as error:
            raise HandshakeError(_read_error_reason(error)) from error
        return ensure_start(data, self.config.channel.auth_password)

    def handle_client(self, sock: socket.socket) -> None:
        """Run one client session to its end, then close the socket."""
        with sock:
            self.statistics.client_connected()
            try:
                self._configure(sock, established=False)
                self._send(sock, CONNECTED_BANNER)

                try:
                    mode = self._read_start(sock)
                except HandshakeError as error:
                    self._send(sock, f"ENDED {error.reason}")
                    return

                self._configure(sock, established=True)
                self._send(
                    sock,
                    f"STARTED {mode.value} protocol({PROTOCOL_REVISION}) buffer({BUFFER_SIZE})",
                )
                self._handle_stream(mode, sock)
            except OSError as error:
                logger.info("closing channel client with traceback: %s", error)
            finally:
                self.statistics.client_disconnected()

    def _handle_stream(self, mode: ChannelMode, sock: socket.socket) -> None:
        handler = MessageHandler(
            mode,
            statistics=self.statistics,
            dispatchers=self.dispatchers.get(mode),
            is_available=self._available.is_set,
            store_counts=self.store_counts,
        )
        buffer = LineBuffer()

        while True:
            try:
                chunk = sock.recv(MAX_LINE_SIZE)
            except OSError as error:
                logger.info("closing channel client with traceback: %s", error)
                return
            if not chunk:
                return

            try:
                lines = buffer.feed(chunk)
            except OverflowError as error:
                logger.info("closing channel client because of %s", error)
                return

            for line in lines:
                result, output = handler.on(line)
                if output:
                    sock.sendall(output)
                if result is ChannelMessageResult.CLOSE:
                    return

    def serve_forever(self) -> None:
        """Listen on the configured address and serve clients until interrupted."""
        host, port = self.config.channel.inet
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        try:
            listener = socket.create_server((host, port), family=family)
        except OSError as error:
            logger.error("error binding channel listener: %s", error)
            raise

        with listener:
            logger.info("listening on tcp://%s:%d", host, port)
            while True:
                try:
                    client, peer = listener.accept()
                except OSError as error:
                    logger.warning("error handling stream: %s", error)
                    continue
                logger.debug("channel client connecting: %s", peer)
                threading.Thread(
                    target=self.handle_client,
                    args=(client,),
                    name=THREAD_NAME_CHANNEL_CLIENT,
                    daemon=True,
                ).start()

    def teardown(self) -> None:
        """Mark the channel unavailable: further commands are rejected."""
        self._available.clear()


def main(argv: list[str] | None = None) -> int:
    """Start the channel server from a configuration file."""
    parser = argparse.ArgumentParser(prog=SERVER_NAME)
    parser.add_argument("-c", "--config", default="./config.cfg", help="configuration file")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
        configure_logging(config.server.log_level)
    except (ConfigError, ValueError) as error:
        print(error, file=sys.stderr)
        return 1

    server = ChannelServer(config)
    try:
        server.serve_forever()
    except OSError:
        return 1
    except KeyboardInterrupt:
        server.teardown()
    return 0