"""Handling signals synchronously in a dedicated thread."""

from __future__ import annotations

import signal
import sys
import threading
from typing import Callable, Iterable, Optional

DEFAULT_SIGNALS = (signal.SIGQUIT, signal.SIGUSR1)


def wait_for_signals(
    signals: Iterable[int],
    handler: Callable[[int], None],
    count: Optional[int] = None,
) -> list[int]:
    """Block ``signals`` in this thread and hand each one to ``handler`` as it arrives.

    Stops after ``count`` signals, or never when ``count`` is None. The
    thread's signal mask is restored on return. Returns the signals received.
    """
    wanted = frozenset(signals)
    if not wanted:
        raise ValueError("no signals to wait for")
    if count is not None and count < 0:
        raise ValueError("count must not be negative")
    received: list[int] = []
    previous = signal.pthread_sigmask(signal.SIG_BLOCK, wanted)
    try:
        while count is None or len(received) < count:
            signum = signal.sigwait(wanted)
            if count is not None:
                received.append(signum)
            handler(signum)
    finally:
        signal.pthread_sigmask(signal.SIG_SETMASK, previous)
    return received


def start_signal_thread(
    signals: Iterable[int], handler: Callable[[int], None]
) -> threading.Thread:
    """Start a daemon thread that handles ``signals`` for the whole process.

    The signals stay blocked in the calling thread, so that only the new
    thread receives them.
    """
    wanted = frozenset(signals)
    if not wanted:
        raise ValueError("no signals to wait for")
    signal.pthread_sigmask(signal.SIG_BLOCK, wanted)
    thread = threading.Thread(
        target=wait_for_signals, args=(wanted, handler), daemon=True
    )
    thread.start()
    return thread


def _report(signum: int) -> None:
    print(f"Signal handling thread got signal {signum}", flush=True)


class _QuitRecorder:
    """Asynchronous SIGQUIT handler that records which thread ran it."""

    def __init__(self) -> None:
        self.threads: list[int] = []

    def __call__(self, signum: int, frame: object) -> None:
        ident = threading.get_ident()
        self.threads.append(ident)
        print(f"xxxxx, thread id is: {ident}", flush=True)


def main(argv: Optional[list[str]] = None) -> int:
    """Handle SIGQUIT and SIGUSR1 in a thread until interrupted."""
    signal.signal(signal.SIGQUIT, _QuitRecorder())
    thread = start_signal_thread(DEFAULT_SIGNALS, _report)
    print(f"sub thread with id: {thread.ident}", flush=True)
    try:
        signal.pause()
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())