"""A static-file HTTP server: one event loop for I/O, a thread pool for parsing."""

from __future__ import annotations

import logging
import os
import re
import selectors
import socket
import struct
import sys
import threading
from collections import deque
from typing import Any, Deque, Optional

from .http_conn import DOC_ROOT, READ_BUFFER_SIZE, HttpCode, HttpConn
from .threadpool import ThreadPool

logger = logging.getLogger(__name__)

MAX_FD = 65536
BUSY_MESSAGE = "Internal server busy"

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def show_error(conn: socket.socket, info: str) -> None:
    """Report ``info`` locally and to the peer, then close the connection."""
    sys.stdout.write(info)
    sys.stdout.flush()
    try:
        conn.send(info.encode())
    except OSError:
        pass
    conn.close()


class _Connection:
    """One accepted client: its socket, parser and unsent response."""

    def __init__(self, server: "HttpServer", sock: socket.socket, address: Any) -> None:
        self.server = server
        self.sock = sock
        self.http = HttpConn(server.doc_root, address)
        self._pending = memoryview(b"")

    def read(self) -> bool:
        while True:
            try:
                data = self.sock.recv(READ_BUFFER_SIZE)
            except (BlockingIOError, InterruptedError):
                return True
            except OSError:
                return False
            if not self.http.feed(data):
                return False

    def process(self) -> None:
        """Run on a pool thread: parse the request and prepare the response."""
        code = self.http.process_read()
        if code is HttpCode.NO_REQUEST:
            self.server._rearm(self, selectors.EVENT_READ)
            return
        if not self.http.process_write(code):
            self.server._rearm(self, None)
            return
        self._pending = memoryview(self.http.output())
        self.server._rearm(self, selectors.EVENT_WRITE)

    def write(self) -> Optional[int]:
        """Send what is pending; return the next event to wait for, or None to close."""
        if not self._pending:
            self.http.reset()
            return selectors.EVENT_READ
        while self._pending:
            try:
                sent = self.sock.send(self._pending)
            except (BlockingIOError, InterruptedError):
                return selectors.EVENT_WRITE
            except OSError:
                return None
            self._pending = self._pending[sent:]
        if self.http.linger:
            self.http.reset()
            return selectors.EVENT_READ
        return None


class HttpServer:
    """Serves files under ``doc_root`` to HTTP/1.1 GET requests."""

    def __init__(
        self,
        host: str,
        port: int,
        doc_root: str = DOC_ROOT,
        thread_number: int = 8,
        max_requests: int = 10000,
        max_fd: int = MAX_FD,
    ) -> None:
        self.doc_root = str(doc_root)
        self._max_fd = max_fd
        self._pool = ThreadPool(thread_number, max_requests)
        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            self._listener.setsockopt(
                socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0)
            )
            self._listener.bind((host, port))
            self._listener.listen(5)
        except OSError:
            self._listener.close()
            self._pool.stop()
            raise
        self._listener.setblocking(False)
        self._wake_r, self._wake_w = socket.socketpair()
        self._wake_r.setblocking(False)
        self._wake_w.setblocking(False)
        self._selector = selectors.DefaultSelector()
        self._selector.register(self._listener, selectors.EVENT_READ)
        self._selector.register(self._wake_r, selectors.EVENT_READ)
        self._connections: set[_Connection] = set()
        self._commands: Deque[tuple[_Connection, Optional[int]]] = deque()
        self._commands_lock = threading.Lock()
        self._stop = threading.Event()

    @property
    def address(self) -> tuple:
        return self._listener.getsockname()

    @property
    def user_count(self) -> int:
        return len(self._connections)

    def serve_forever(self) -> None:
        """Run the event loop until ``shutdown`` is called, then release everything."""
        try:
            while not self._stop.is_set():
                for key, mask in self._selector.select():
                    if key.fileobj is self._listener:
                        self._accept()
                    elif key.fileobj is self._wake_r:
                        self._drain_wake()
                    elif mask & selectors.EVENT_READ:
                        self._on_readable(key.data)
                    elif mask & selectors.EVENT_WRITE:
                        self._on_writable(key.data)
                self._apply_commands()
        finally:
            self._close_all()

    def shutdown(self) -> None:
        """Ask the event loop to stop."""
        self._stop.set()
        self._wake()

    def _wake(self) -> None:
        try:
            self._wake_w.send(b"\0")
        except OSError:
            pass

    def _drain_wake(self) -> None:
        try:
            while self._wake_r.recv(1024):
                pass
        except OSError:
            pass

    def _rearm(self, conn: _Connection, events: Optional[int]) -> None:
        with self._commands_lock:
            self._commands.append((conn, events))
        self._wake()

    def _apply_commands(self) -> None:
        with self._commands_lock:
            commands = list(self._commands)
            self._commands.clear()
        for conn, events in commands:
            if conn not in self._connections:
                continue
            if events is None:
                self._close(conn)
            else:
                self._selector.register(conn.sock, events, conn)

    def _accept(self) -> None:
        try:
            sock, address = self._listener.accept()
        except (BlockingIOError, InterruptedError):
            return
        except OSError as exc:
            logger.warning("errno is: %s", exc.errno)
            return
        if len(self._connections) >= self._max_fd:
            show_error(sock, BUSY_MESSAGE)
            return
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setblocking(False)
        conn = _Connection(self, sock, address)
        self._connections.add(conn)
        self._selector.register(sock, selectors.EVENT_READ, conn)

    def _on_readable(self, conn: _Connection) -> None:
        self._selector.unregister(conn.sock)
        if not conn.read() or not self._pool.append(conn):
            self._close(conn)

    def _on_writable(self, conn: _Connection) -> None:
        self._selector.unregister(conn.sock)
        events = conn.write()
        if events is None:
            self._close(conn)
        else:
            self._selector.register(conn.sock, events, conn)

    def _close(self, conn: _Connection) -> None:
        self._connections.discard(conn)
        try:
            self._selector.unregister(conn.sock)
        except (KeyError, ValueError):
            pass
        conn.sock.close()

    def _close_all(self) -> None:
        for conn in list(self._connections):
            self._close(conn)
        self._selector.close()
        self._listener.close()
        self._wake_r.close()
        self._wake_w.close()
        self._pool.stop()


def _atoi(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def main(argv: Optional[list[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 2:
        program = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "http_server"
        print(f"usage: {program} ip_address port_number")
        return 1
    ip, port = args[0], _atoi(args[1])
    try:
        server = HttpServer(ip, port)
    except ValueError:
        return 1
    except OSError as exc:
        print(f"errno is {exc.errno}")
        return 1
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    return 0