"""TCP receiver for newline-delimited wire lines.

Accepts connections from remote-mode event loggers and feeds every received
line into a DurablePersister. Each connection gets its own handler thread;
undecodable lines are counted by the persister and the connection stays open.
"""

from __future__ import annotations

__all__ = ["WireLineReceiver"]

import socketserver
import threading
from typing import Any

from eventscope.storage.persister import DurablePersister
from eventscope.telemetry.system.system_logger import get_system_logger

_system_logger = get_system_logger()


class _LineHandler(socketserver.StreamRequestHandler):
    server: "_ReceiverServer"

    def handle(self) -> None:
        receiver = self.server.receiver
        receiver._connection_opened(self.client_address)
        try:
            for raw in self.rfile:
                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                if not line.strip():
                    continue
                receiver._line_received(receiver.persister.ingest_line(line))
        except OSError as e:
            _system_logger.warning(
                {
                    "event": "receiver_connection_error",
                    "client": f"{self.client_address[0]}:{self.client_address[1]}",
                    "error": str(e),
                }
            )
        finally:
            receiver._connection_closed(self.client_address)


class _ReceiverServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, address: tuple[str, int], receiver: "WireLineReceiver") -> None:
        self.receiver = receiver
        super().__init__(address, _LineHandler)


class WireLineReceiver:
    """Threaded TCP server feeding wire lines into a persister.

    Args:
        persister: Started persister that receives decoded events.
        host: Bind address.
        port: Bind port; 0 picks a free port (see address).
    """

    def __init__(self, persister: DurablePersister, host: str, port: int) -> None:
        self.persister = persister
        self._server = _ReceiverServer((host, port), self)
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._connections = 0
        self._active = 0
        self._lines_accepted = 0
        self._lines_rejected = 0

    @property
    def address(self) -> tuple[str, int]:
        """Actual bound (host, port)."""
        host, port = self._server.server_address[:2]
        return str(host), int(port)

    def start(self) -> None:
        """Serve in a background thread."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name="eventscope-receiver",
            daemon=True,
        )
        self._thread.start()
        host, port = self.address
        _system_logger.info(
            {
                "event": "receiver_started",
                "address": f"{host}:{port}",
                "message": f"Receiving wire lines on {host}:{port}",
            }
        )

    def serve_forever(self) -> None:
        """Serve on the calling thread until shutdown() is called elsewhere."""
        self._server.serve_forever()

    def shutdown(self) -> None:
        """Stop accepting connections and close the listening socket."""
        if self._thread is not None:
            self._server.shutdown()
            self._thread.join()
            self._thread = None
        self._server.server_close()

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "connections": self._connections,
                "active_connections": self._active,
                "lines_accepted": self._lines_accepted,
                "lines_rejected": self._lines_rejected,
            }

    def _connection_opened(self, client: tuple[str, int]) -> None:
        with self._lock:
            self._connections += 1
            self._active += 1
        _system_logger.info(
            {
                "event": "receiver_connection_opened",
                "client": f"{client[0]}:{client[1]}",
                "message": f"Sender connected from {client[0]}:{client[1]}",
            }
        )

    def _connection_closed(self, client: tuple[str, int]) -> None:
        with self._lock:
            self._active -= 1

    def _line_received(self, accepted: bool) -> None:
        with self._lock:
            if accepted:
                self._lines_accepted += 1
            else:
                self._lines_rejected += 1
