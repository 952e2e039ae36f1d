"""Passing an open file descriptor to another process over a Unix socket."""

from __future__ import annotations

import os
import socket
import sys
from typing import Optional

DEFAULT_FILE = "test.txt"
READ_SIZE = 1024


def send_fd(sock: socket.socket, fd: int) -> None:
    """Send ``fd`` as an SCM_RIGHTS message carrying one data byte."""
    socket.send_fds(sock, [b"\0"], [fd])


def recv_fd(sock: socket.socket) -> int:
    """Receive one file descriptor sent by ``send_fd``; the caller owns it."""
    _data, fds, _flags, _address = socket.recv_fds(sock, 1, 1)
    if not fds:
        raise ValueError("no file descriptor in the message")
    for extra in fds[1:]:
        os.close(extra)
    return fds[0]


def main(argv: Optional[list[str]] = None) -> int:
    """A child opens a file and passes it; the parent reads from the descriptor."""
    args = sys.argv[1:] if argv is None else list(argv)
    path = args[0] if args else DEFAULT_FILE
    parent_end, child_end = socket.socketpair(socket.AF_UNIX, socket.SOCK_DGRAM)
    pid = os.fork()
    if pid == 0:
        try:
            parent_end.close()
            try:
                fd_to_pass = os.open(path, os.O_RDWR, 0o666)
            except OSError:
                fd_to_pass = -1
            send_fd(child_end, fd_to_pass if fd_to_pass > 0 else 0)
            if fd_to_pass > 0:
                os.close(fd_to_pass)
        finally:
            os._exit(0)
    child_end.close()
    try:
        fd = recv_fd(parent_end)
    finally:
        parent_end.close()
        os.waitpid(pid, 0)
    try:
        data = os.read(fd, READ_SIZE)
    finally:
        os.close(fd)
    text = data.split(b"\0", 1)[0].decode("latin-1")
    print(f"I got fd {fd} and data {text}")
    return 0