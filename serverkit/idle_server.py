"""A server that closes connections which stay idle for too long."""

from __future__ import annotations

import contextlib
import logging
import os
import re
import selectors
import signal
import socket
import sys
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .signal_pipe import SignalPipe
from .sorted_timers import SortedTimerList, UtilTimer

logger = logging.getLogger(__name__)

TIMESLOT = 5
TIMEOUT_MS = 5000
BUFFER_SIZE = 64

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class RemainingTimeout:
    """Keeps a periodic deadline across waits that return early with events."""

    def __init__(
        self, timeout_ms: int = TIMEOUT_MS, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.initial = timeout_ms
        self.timeout = timeout_ms
        self._clock = clock
        self._started: Optional[float] = None

    def start(self) -> int:
        """Mark the start of a wait and return how many milliseconds to wait."""
        logger.debug("the timeout is now %d mill-seconds", self.timeout)
        self._started = self._clock()
        return self.timeout

    def update(self, had_events: bool) -> bool:
        """Account for a finished wait; True when the period has run out."""
        if not had_events:
            self.timeout = self.initial
            return True
        started = self._clock() if self._started is None else self._started
        self.timeout -= int((self._clock() - started) * 1000)
        if self.timeout <= 0:
            self.timeout = self.initial
            return True
        return False


@dataclass(eq=False)
class _Client:
    sock: socket.socket
    address: Any
    fd: int
    timer: Optional[UtilTimer] = None


class IdleServer:
    """Closes any connection that sends nothing for three timeslots."""

    def __init__(
        self,
        host: str,
        port: int,
        timeslot: float = TIMESLOT,
        handle_signals: bool = True,
    ) -> None:
        self.timeslot = timeslot
        self._handle_signals = handle_signals
        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            self._listener.bind((host, port))
            self._listener.listen(5)
        except OSError:
            self._listener.close()
            raise
        self._listener.setblocking(False)
        self._wake_r, self._wake_w = socket.socketpair()
        self._wake_r.setblocking(False)
        self._wake_w.setblocking(False)
        self._selector = selectors.DefaultSelector()
        self._selector.register(self._listener, selectors.EVENT_READ)
        self._selector.register(self._wake_r, selectors.EVENT_READ)
        self._timers = SortedTimerList()
        self._clients: dict[socket.socket, _Client] = {}
        self._stopped = threading.Event()

    @property
    def address(self) -> tuple:
        return self._listener.getsockname()

    @property
    def connection_count(self) -> int:
        return len(self._clients)

    def stop(self) -> None:
        """Ask ``serve`` to return; safe to call from any thread."""
        self._stopped.set()
        try:
            self._wake_w.send(b"\0")
        except OSError:
            pass

    def serve(self) -> None:
        """Run until stopped or, with signal handling, until SIGTERM."""
        remaining = RemainingTimeout(int(self.timeslot * 1000))
        with contextlib.ExitStack() as stack:
            stack.callback(self._close_all)
            pipe = None
            if self._handle_signals:
                pipe = stack.enter_context(SignalPipe([signal.SIGTERM]))
                self._selector.register(pipe, selectors.EVENT_READ)
            while not self._stopped.is_set():
                wait_ms = remaining.start()
                events = self._selector.select(max(wait_ms, 0) / 1000)
                for key, _ in events:
                    if key.fileobj is self._listener:
                        self._accept()
                    elif key.fileobj is self._wake_r:
                        self._drain_wake()
                    elif key.fileobj is pipe:
                        if signal.SIGTERM in pipe.read_signals():
                            self._stopped.set()
                    else:
                        self._on_readable(key.data)
                if remaining.update(bool(events)):
                    self._timers.tick(time.monotonic())

    def _drain_wake(self) -> None:
        try:
            while self._wake_r.recv(1024):
                pass
        except OSError:
            pass

    def _accept(self) -> None:
        try:
            sock, address = self._listener.accept()
        except (BlockingIOError, InterruptedError):
            return
        except OSError as exc:
            logger.warning("errno is: %s", exc.errno)
            return
        sock.setblocking(False)
        client = _Client(sock, address, sock.fileno())
        client.timer = UtilTimer(
            time.monotonic() + 3 * self.timeslot, self._expire, client
        )
        self._timers.add_timer(client.timer)
        self._clients[sock] = client
        self._selector.register(sock, selectors.EVENT_READ, client)

    def _on_readable(self, client: _Client) -> None:
        try:
            data = client.sock.recv(BUFFER_SIZE - 1)
        except (BlockingIOError, InterruptedError):
            return
        except OSError:
            self._drop(client)
            return
        text = data.split(b"\0", 1)[0].decode("latin-1")
        print(f"get {len(data)} bytes of client data {text} from {client.fd}")
        if not data:
            self._drop(client)
            return
        if client.timer is not None:
            client.timer.expire = time.monotonic() + 3 * self.timeslot
            print("adjust timer once")
            self._timers.adjust_timer(client.timer)

    def _expire(self, client: _Client) -> None:
        """Close a client's connection; the timer callback."""
        if self._clients.pop(client.sock, None) is None:
            return
        self._selector.unregister(client.sock)
        client.sock.close()
        print(f"close fd {client.fd}")

    def _drop(self, client: _Client) -> None:
        self._expire(client)
        if client.timer is not None:
            self._timers.del_timer(client.timer)
            client.timer = None

    def _close_all(self) -> None:
        for client in list(self._clients.values()):
            self._drop(client)
        self._selector.close()
        self._listener.close()
        self._wake_r.close()
        self._wake_w.close()


def _atoi(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def main(argv: Optional[list[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 2:
        program = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "idle_server"
        print(f"usage: {program} ip_address port_number")
        return 1
    try:
        server = IdleServer(args[0], _atoi(args[1]))
    except OSError as exc:
        print(f"errno is {exc.errno}")
        return 1
    server.serve()
    return 0