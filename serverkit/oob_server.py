"""A server that reports normal and out-of-band TCP data separately."""

from __future__ import annotations

import os
import re
import select
import socket
import sys
from typing import Optional, TextIO

BUF_SIZE = 1024

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _as_text(data: bytes) -> str:
    return data.split(b"\0", 1)[0].decode("latin-1")


def serve_oob(conn: socket.socket, out: TextIO) -> None:
    """Report data from ``conn`` to ``out`` until the peer closes the connection."""
    while True:
        readable, _, urgent = select.select([conn], [], [conn])
        if urgent:
            try:
                data = conn.recv(BUF_SIZE - 1, socket.MSG_OOB)
            except OSError:
                pass
            else:
                out.write(f"got {len(data)} bytes of oob data '{_as_text(data)}'\n")
        if readable:
            try:
                data = conn.recv(BUF_SIZE - 1)
            except (BlockingIOError, InterruptedError):
                continue
            except OSError:
                break
            if not data:
                break
            out.write(f"got {len(data)} bytes of normal data '{_as_text(data)}'\n")


def _atoi(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def main(argv: Optional[list[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 2:
        program = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "oob_server"
        print(f"usage: {program} ip_address port_number")
        return 1
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((args[0], _atoi(args[1])))
            sock.listen(5)
        except OSError as exc:
            print(f"errno is: {exc.errno}")
            return 1
        try:
            conn, _address = sock.accept()
        except OSError as exc:
            print(f"errno is: {exc.errno}")
            return 0
        with conn:
            serve_oob(conn, sys.stdout)
    return 0