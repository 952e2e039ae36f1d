"""A binary semaphore shared by a parent and a forked child."""

from __future__ import annotations

import multiprocessing
import os
import sys
import time
from typing import Any, Optional, TextIO

HOLD_SECONDS = 5


def pv(sem: Any, op: int) -> None:
    """Apply ``op`` to the semaphore: negative waits (P), positive releases (V)."""
    if op == 0:
        raise ValueError("op must not be zero")
    if op < 0:
        for _ in range(-op):
            sem.acquire()
    else:
        for _ in range(op):
            sem.release()


def _take_turn(who: str, sem: Any, hold_seconds: float, write_fd: int) -> None:
    def say(text: str) -> None:
        os.write(write_fd, f"{text}\n".encode())

    say(f"{who} try to get binary sem")
    pv(sem, -1)
    say(f"{who} get the sem and would release it after {hold_seconds:g} seconds")
    time.sleep(hold_seconds)
    pv(sem, 1)


def run_demo(hold_seconds: float = HOLD_SECONDS, out: Optional[TextIO] = None) -> list[str]:
    """Parent and child each hold the semaphore in turn; return the lines in order."""
    sem = multiprocessing.Semaphore(1)
    read_fd, write_fd = os.pipe()
    try:
        pid = os.fork()
    except OSError:
        os.close(read_fd)
        os.close(write_fd)
        raise
    if pid == 0:
        try:
            os.close(read_fd)
            _take_turn("child", sem, hold_seconds, write_fd)
        finally:
            os._exit(0)
    try:
        _take_turn("parent", sem, hold_seconds, write_fd)
    finally:
        os.waitpid(pid, 0)
        os.close(write_fd)
    with os.fdopen(read_fd, "rb") as pipe:
        text = pipe.read().decode()
    if out is not None:
        out.write(text)
        out.flush()
    return text.splitlines()


def main(argv: Optional[list[str]] = None) -> int:
    try:
        run_demo(HOLD_SECONDS, sys.stdout)
    except OSError:
        return 1
    return 0