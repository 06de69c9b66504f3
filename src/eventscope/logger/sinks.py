"""Destinations for events leaving the buffered event logger.

Sinks are selected by name through SINK_REGISTRY and built once at startup:

    console    wire lines on stdout
    persister  local passthrough into a DurablePersister
    file       wire lines appended to a file
    socket     wire lines over TCP to a WireLineReceiver (remote mode only)

In buffered and remote mode a sink is only called from the logger's worker
thread; in direct mode producers call it concurrently, so sinks that hold a
stream serialize writes with a lock.
"""

from __future__ import annotations

__all__ = [
    "SINK_REGISTRY",
    "ConsoleSink",
    "EventSink",
    "FileSink",
    "PersisterSink",
    "SocketSink",
    "create_sink",
]

import socket
import sys
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, TextIO

from eventscope.config import EventLoggerConfig
from eventscope.constants import SOCKET_CONNECT_TIMEOUT_SECONDS
from eventscope.exceptions import ConfigurationError
from eventscope.models import AttributePairs, Event
from eventscope.storage.persister import DurablePersister
from eventscope.wire.codec import encode


class EventSink(ABC):
    """Base class for event destinations."""

    name: str = "abstract"

    def open(self) -> None:
        """Acquire resources. Called once before the first write."""

    @abstractmethod
    def write(self, event: Event, attributes: AttributePairs) -> None:
        """Deliver one event. May raise; the caller counts the failure."""

    def close(self) -> None:
        """Release resources."""


class ConsoleSink(EventSink):
    """Writes wire lines to a text stream (stdout by default)."""

    name = "console"

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream
        self._lock = threading.Lock()

    def write(self, event: Event, attributes: AttributePairs) -> None:
        line = encode(event, attributes)
        with self._lock:
            stream = self._stream or sys.stdout
            stream.write(line + "\n")
            stream.flush()


class PersisterSink(EventSink):
    """Hands events straight to a local DurablePersister.

    A full persister queue is not a sink error; the persister counts the drop.
    """

    name = "persister"

    def __init__(self, persister: DurablePersister) -> None:
        self._persister = persister

    def write(self, event: Event, attributes: AttributePairs) -> None:
        self._persister.ingest(event, attributes)


class FileSink(EventSink):
    """Appends wire lines to a file, one event per line."""

    name = "file"

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._file: TextIO | None = None
        self._lock = threading.Lock()

    def open(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self._path, "a", encoding="utf-8")

    def write(self, event: Event, attributes: AttributePairs) -> None:
        line = encode(event, attributes)
        with self._lock:
            if self._file is None:
                raise OSError(f"file sink {self._path} is not open")
            self._file.write(line + "\n")
            self._file.flush()

    def close(self) -> None:
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None


class SocketSink(EventSink):
    """Sends newline-delimited wire lines over TCP.

    Connects lazily and reconnects on the next write after a failure; the
    failed event itself is lost and counted by the logger.
    """

    name = "socket"

    def __init__(self, host: str, port: int, *, connect_timeout: float = SOCKET_CONNECT_TIMEOUT_SECONDS) -> None:
        self._address = (host, port)
        self._timeout = connect_timeout
        self._sock: socket.socket | None = None
        self._lock = threading.Lock()

    def write(self, event: Event, attributes: AttributePairs) -> None:
        data = (encode(event, attributes) + "\n").encode("utf-8")
        with self._lock:
            if self._sock is None:
                self._sock = socket.create_connection(self._address, timeout=self._timeout)
            try:
                self._sock.sendall(data)
            except OSError:
                self._disconnect()
                raise

    def close(self) -> None:
        with self._lock:
            self._disconnect()

    def _disconnect(self) -> None:
        if self._sock is not None:
            try:
                self._sock.close()
            except OSError:
                pass  # Already broken
            self._sock = None


# =============================================================================
# Registry
# =============================================================================


def _build_console(config: EventLoggerConfig, persister: DurablePersister | None) -> EventSink:
    return ConsoleSink()


def _build_persister(config: EventLoggerConfig, persister: DurablePersister | None) -> EventSink:
    if persister is None:
        raise ConfigurationError("sink 'persister' needs a local persister")
    return PersisterSink(persister)


def _build_file(config: EventLoggerConfig, persister: DurablePersister | None) -> EventSink:
    if not config.file_path:
        raise ConfigurationError("sink 'file' requires event_logger.file_path")
    return FileSink(config.file_path)


def _build_socket(config: EventLoggerConfig, persister: DurablePersister | None) -> EventSink:
    return SocketSink(config.host, config.port)


SINK_REGISTRY: dict[str, Callable[[EventLoggerConfig, DurablePersister | None], EventSink]] = {
    "console": _build_console,
    "persister": _build_persister,
    "file": _build_file,
    "socket": _build_socket,
}


def create_sink(config: EventLoggerConfig, persister: DurablePersister | None = None) -> EventSink:
    """Build the sink named in config.

    Raises:
        ConfigurationError: If the sink is unknown or its requirements are missing.
    """
    factory = SINK_REGISTRY.get(config.sink)
    if factory is None:
        known = ", ".join(sorted(SINK_REGISTRY))
        raise ConfigurationError(f"Unknown sink '{config.sink}' (known: {known})")
    return factory(config, persister)
