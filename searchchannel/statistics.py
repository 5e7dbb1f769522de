"""Runtime statistics for the channel, as reported by ``INFO``."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class ChannelStatistics:
    """A snapshot of channel and store counters."""

    uptime: int = 0
    clients_connected: int = 0
    commands_total: int = 0
    command_latency_best: int = 0
    command_latency_worst: int = 0
    kv_open_count: int = 0
    fst_open_count: int = 0
    fst_consolidate_count: int = 0


class StatisticsRegistry:
    """Thread-safe counters updated by client handlers."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._started = clock()
        self._lock = threading.Lock()
        self._clients_connected = 0
        self._commands_total = 0
        self._latency_best = 0
        self._latency_worst = 0

    def client_connected(self) -> None:
        """Count one more connected client."""
        with self._lock:
            self._clients_connected += 1

    def client_disconnected(self) -> None:
        """Count one less connected client."""
        with self._lock:
            if self._clients_connected > 0:
                self._clients_connected -= 1

    def record_command(self, took_millis: int) -> None:
        """Account for one processed command that took ``took_millis`` milliseconds.

        Commands taking 0 ms do not affect the best latency.
        """
        took = int(took_millis) & 0xFFFFFFFF
        with self._lock:
            if took > self._latency_worst:
                self._latency_worst = took
            if took > 0 and (self._latency_best == 0 or took < self._latency_best):
                self._latency_best = took
            self._commands_total += 1

    def gather(
        self,
        kv_open_count: int = 0,
        fst_open_count: int = 0,
        fst_consolidate_count: int = 0,
    ) -> ChannelStatistics:
        """Take a snapshot, joined with the given store counters."""
        uptime = int(self._clock() - self._started)
        with self._lock:
            return ChannelStatistics(
                uptime=max(uptime, 0),
                clients_connected=self._clients_connected,
                commands_total=self._commands_total,
                command_latency_best=self._latency_best,
                command_latency_worst=self._latency_worst,
                kv_open_count=kv_open_count,
                fst_open_count=fst_open_count,
                fst_consolidate_count=fst_consolidate_count,
            )