"""Signals delivered through a socket pair so an event loop can watch them."""

from __future__ import annotations

import os
import re
import selectors
import signal
import socket
import sys
from typing import Iterable, Optional

DEFAULT_SIGNALS = (signal.SIGHUP, signal.SIGCHLD, signal.SIGTERM, signal.SIGINT)
STOP_SIGNALS = frozenset({signal.SIGTERM, signal.SIGINT})
_READ_SIZE = 1024

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class SignalPipe:
    """Turns each caught signal into one byte, readable from ``fileno()``.

    Handlers are installed on creation and the previous ones put back on
    ``close``. It must be created in the main thread.
    """

    def __init__(self, signals: Iterable[int] = DEFAULT_SIGNALS) -> None:
        self._read, self._write = socket.socketpair()
        self._read.setblocking(False)
        self._write.setblocking(False)
        self._previous: dict[int, object] = {}
        try:
            for signum in signals:
                self._previous[signum] = signal.signal(signum, self._handler)
        except (OSError, ValueError):
            self.close()
            raise

    def _handler(self, signum: int, frame: object) -> None:
        try:
            self._write.send(bytes([signum]))
        except OSError:
            pass

    def fileno(self) -> int:
        return self._read.fileno()

    def read_signals(self) -> list[int]:
        """Return the signal numbers caught since the last read, oldest first."""
        try:
            data = self._read.recv(_READ_SIZE)
        except (BlockingIOError, InterruptedError):
            return []
        return list(data)

    def close(self) -> None:
        """Restore the previous handlers and close both ends of the pair."""
        for signum, previous in self._previous.items():
            signal.signal(signum, signal.SIG_DFL if previous is None else previous)
        self._previous.clear()
        self._read.close()
        self._write.close()

    def __enter__(self) -> "SignalPipe":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _discard(selector: selectors.BaseSelector, conn: socket.socket, clients: set) -> None:
    """Read and drop client data; close the connection at end of stream."""
    try:
        data = conn.recv(_READ_SIZE)
    except (BlockingIOError, InterruptedError):
        return
    except OSError:
        data = b""
    if not data:
        selector.unregister(conn)
        clients.discard(conn)
        conn.close()


def run_server(host: str, port: int) -> None:
    """Accept connections until SIGTERM or SIGINT arrives; SIGHUP and SIGCHLD are ignored."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
        listener.bind((host, port))
        listener.listen(5)
        listener.setblocking(False)
        clients: set[socket.socket] = set()
        with SignalPipe() as pipe, selectors.DefaultSelector() as selector:
            selector.register(listener, selectors.EVENT_READ)
            selector.register(pipe, selectors.EVENT_READ)
            stop = False
            try:
                while not stop:
                    for key, _ in selector.select():
                        if key.fileobj is listener:
                            try:
                                conn, _address = listener.accept()
                            except (BlockingIOError, InterruptedError):
                                continue
                            conn.setblocking(False)
                            selector.register(conn, selectors.EVENT_READ)
                            clients.add(conn)
                        elif key.fileobj is pipe:
                            if STOP_SIGNALS.intersection(pipe.read_signals()):
                                stop = True
                        else:
                            _discard(selector, key.fileobj, clients)
            finally:
                print("close fds")
                for conn in clients:
                    conn.close()


def _atoi(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def main(argv: Optional[list[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 2:
        program = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "signal_pipe"
        print(f"usage: {program} ip_address port_number")
        return 1
    try:
        run_server(args[0], _atoi(args[1]))
    except OSError as exc:
        print(f"errno is {exc.errno}")
        return 1
    return 0