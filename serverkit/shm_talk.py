"""A chat server whose per-client workers share messages through shared memory.

Every client is served by a forked worker. A worker stores what its
client sends in the client's slot of a shared memory area and tells the
parent the slot index; the parent passes that index on to every other
worker, which then sends the slot to its own client. Needs ``fork``.
"""

from __future__ import annotations

import contextlib
import mmap
import os
import re
import selectors
import signal
import socket
import struct
import sys
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from .signal_pipe import SignalPipe

USER_LIMIT = 5
BUFFER_SIZE = 1024
TOO_MANY_USERS = "too many users\n"

_INDEX = struct.Struct("i")
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class SharedSlots:
    """Fixed-size slots in anonymous shared memory, visible to forked children."""

    def __init__(self, slots: int = USER_LIMIT, slot_size: int = BUFFER_SIZE) -> None:
        if slots <= 0 or slot_size <= 0:
            raise ValueError("slots and slot_size must be positive")
        self.slots = slots
        self.slot_size = slot_size
        self._mem = mmap.mmap(-1, slots * slot_size)

    def _span(self, idx: int) -> tuple[int, int]:
        if not 0 <= idx < self.slots:
            raise IndexError(f"slot {idx} out of range")
        start = idx * self.slot_size
        return start, start + self.slot_size

    def write(self, idx: int, data: bytes) -> int:
        """Clear slot ``idx`` and store at most ``slot_size - 1`` bytes of ``data``."""
        start, end = self._span(idx)
        chunk = bytes(data[: self.slot_size - 1])
        self._mem[start:end] = bytes(self.slot_size)
        self._mem[start:start + len(chunk)] = chunk
        return len(chunk)

    def read(self, idx: int) -> bytes:
        """The whole of slot ``idx``, zero padding included."""
        start, end = self._span(idx)
        return bytes(self._mem[start:end])

    def close(self) -> None:
        if not self._mem.closed:
            self._mem.close()

    def __enter__(self) -> "SharedSlots":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


@dataclass(eq=False)
class _User:
    address: Any
    pid: int
    pipe: socket.socket


def _reap_children() -> Iterator[int]:
    while True:
        try:
            pid, _status = os.waitpid(-1, os.WNOHANG)
        except ChildProcessError:
            return
        if pid == 0:
            return
        yield pid


class TalkServer:
    """Relays each client's messages to all other clients, up to ``user_limit`` clients."""

    def __init__(self, host: str, port: int, user_limit: int = USER_LIMIT) -> None:
        self.user_limit = user_limit
        self._slots = SharedSlots(user_limit, BUFFER_SIZE)
        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            self._listener.bind((host, port))
            self._listener.listen(5)
        except OSError:
            self._listener.close()
            self._slots.close()
            raise
        self._users: list[_User] = []

    @property
    def address(self) -> tuple:
        return self._listener.getsockname()

    @property
    def user_count(self) -> int:
        return len(self._users)

    def __enter__(self) -> "TalkServer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._release()

    def _release(self) -> None:
        for user in self._users:
            user.pipe.close()
        self._users.clear()
        self._listener.close()
        self._slots.close()

    def serve(self) -> None:
        """Serve clients until SIGTERM or SIGINT and every worker has exited."""
        previous_sigpipe = signal.signal(signal.SIGPIPE, signal.SIG_IGN)
        signals = (signal.SIGCHLD, signal.SIGTERM, signal.SIGINT)
        try:
            with contextlib.ExitStack() as stack:
                stack.callback(self._release)
                sig_pipe = stack.enter_context(SignalPipe(signals))
                selector = stack.enter_context(selectors.DefaultSelector())
                self._listener.setblocking(False)
                selector.register(self._listener, selectors.EVENT_READ)
                selector.register(sig_pipe, selectors.EVENT_READ)
                self._loop(selector, sig_pipe)
        finally:
            signal.signal(signal.SIGPIPE, previous_sigpipe)

    def _loop(self, selector: selectors.BaseSelector, sig_pipe: SignalPipe) -> None:
        stop = False
        terminate = False
        while not stop:
            try:
                events = selector.select()
            except OSError:
                print("epoll failure", flush=True)
                break
            for key, _mask in events:
                if key.fileobj is self._listener:
                    self._accept(selector, sig_pipe)
                elif key.fileobj is sig_pipe:
                    for signum in sig_pipe.read_signals():
                        if signum == signal.SIGCHLD:
                            self._reap(selector)
                            if terminate and not self._users:
                                stop = True
                        elif signum in (signal.SIGTERM, signal.SIGINT):
                            print("kill all the child now", flush=True)
                            if not self._users:
                                stop = True
                                continue
                            for user in self._users:
                                with contextlib.suppress(ProcessLookupError):
                                    os.kill(user.pid, signal.SIGTERM)
                            terminate = True
                else:
                    self._relay(selector, key.fileobj)

    def _accept(self, selector: selectors.BaseSelector, sig_pipe: SignalPipe) -> None:
        try:
            conn, address = self._listener.accept()
        except (BlockingIOError, InterruptedError):
            return
        except OSError as exc:
            print(f"errno is: {exc.errno}", flush=True)
            return
        if len(self._users) >= self.user_limit:
            print(TOO_MANY_USERS, end="", flush=True)
            with contextlib.suppress(OSError):
                conn.send(TOO_MANY_USERS.encode())
            conn.close()
            return
        idx = len(self._users)
        parent_end, child_end = socket.socketpair()
        try:
            pid = os.fork()
        except OSError:
            conn.close()
            parent_end.close()
            child_end.close()
            return
        if pid == 0:
            try:
                selector.close()
                self._listener.close()
                parent_end.close()
                sig_pipe.close()
                for user in self._users:
                    user.pipe.close()
                self._run_child(idx, conn, child_end)
            finally:
                os._exit(0)
        conn.close()
        child_end.close()
        parent_end.setblocking(False)
        self._users.append(_User(address, pid, parent_end))
        selector.register(parent_end, selectors.EVENT_READ)

    def _reap(self, selector: selectors.BaseSelector) -> None:
        for pid in _reap_children():
            index = next(
                (i for i, user in enumerate(self._users) if user.pid == pid), None
            )
            if index is None:
                print("the deleted user was not change", flush=True)
                continue
            user = self._users[index]
            with contextlib.suppress(KeyError, ValueError):
                selector.unregister(user.pipe)
            user.pipe.close()
            last = self._users.pop()
            if index < len(self._users):
                self._users[index] = last
            print(f"child {index} exit, now we have {len(self._users)} users", flush=True)

    def _relay(self, selector: selectors.BaseSelector, pipe: socket.socket) -> None:
        try:
            data = pipe.recv(_INDEX.size)
        except (BlockingIOError, InterruptedError):
            return
        except OSError:
            data = b""
        print("read data from child across pipe", flush=True)
        if not data:
            with contextlib.suppress(KeyError, ValueError):
                selector.unregister(pipe)
            return
        if len(data) < _INDEX.size:
            return
        for user in self._users:
            if user.pipe is not pipe:
                print("send data to child across pipe", flush=True)
                with contextlib.suppress(OSError):
                    user.pipe.send(data)

    def _run_child(self, idx: int, conn: socket.socket, pipe: socket.socket) -> None:
        conn.setblocking(True)
        pipe.setblocking(True)
        with SignalPipe([signal.SIGTERM]) as sig_pipe, selectors.DefaultSelector() as selector:
            selector.register(conn, selectors.EVENT_READ)
            selector.register(pipe, selectors.EVENT_READ)
            selector.register(sig_pipe, selectors.EVENT_READ)
            stop = False
            try:
                while not stop:
                    try:
                        events = selector.select()
                    except OSError:
                        print("epoll failure", flush=True)
                        break
                    for key, _mask in events:
                        if key.fileobj is conn:
                            stop = not self._from_client(idx, conn, pipe) or stop
                        elif key.fileobj is pipe:
                            stop = not self._to_client(conn, pipe) or stop
                        elif key.fileobj is sig_pipe:
                            if signal.SIGTERM in sig_pipe.read_signals():
                                stop = True
            finally:
                conn.close()
                pipe.close()

    def _from_client(self, idx: int, conn: socket.socket, pipe: socket.socket) -> bool:
        try:
            data = conn.recv(BUFFER_SIZE - 1)
        except (BlockingIOError, InterruptedError):
            return True
        except OSError:
            return False
        if not data:
            return False
        self._slots.write(idx, data)
        with contextlib.suppress(OSError):
            pipe.send(_INDEX.pack(idx))
        return True

    def _to_client(self, conn: socket.socket, pipe: socket.socket) -> bool:
        try:
            data = pipe.recv(_INDEX.size)
        except (BlockingIOError, InterruptedError):
            return True
        except OSError:
            return False
        if not data:
            return False
        if len(data) < _INDEX.size:
            return True
        (client,) = _INDEX.unpack(data)
        with contextlib.suppress(OSError, IndexError):
            conn.sendall(self._slots.read(client))
        return True


def _atoi(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def main(argv: Optional[list[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 2:
        program = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "shm_talk"
        print(f"usage: {program} ip_address port_number")
        return 1
    try:
        server = TalkServer(args[0], _atoi(args[1]))
    except OSError as exc:
        print(f"errno is {exc.errno}")
        return 1
    server.serve()
    return 0