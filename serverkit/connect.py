"""Connecting to a server with a time limit."""

from __future__ import annotations

import os
import re
import socket
import sys
from typing import Optional

CONNECT_TIMEOUT = 10

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def timeout_connect(ip: str, port: int, timeout: float = CONNECT_TIMEOUT) -> socket.socket:
    """Connect over TCP, raising TimeoutError if it takes longer than ``timeout`` seconds."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.settimeout(timeout)
    try:
        sock.connect((ip, port))
    except TimeoutError as exc:
        sock.close()
        raise TimeoutError("connecting timeout") from exc
    except OSError:
        sock.close()
        raise
    return sock


def _atoi(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def main(argv: Optional[list[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 2:
        program = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "connect"
        print(f"usage: {program} ip_address port_number")
        return 1
    try:
        sock = timeout_connect(args[0], _atoi(args[1]), CONNECT_TIMEOUT)
    except TimeoutError:
        print("connecting timeout")
        return 1
    except (OSError, OverflowError):
        print("error occur when connecting to server")
        return 1
    sock.close()
    return 0