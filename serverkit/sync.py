"""Thread synchronisation primitives: semaphore, mutex and condition."""

from __future__ import annotations

import threading
from typing import Optional


class Semaphore:
    """A counting semaphore that starts at zero."""

    def __init__(self) -> None:
        self._sem = threading.Semaphore(0)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Decrement the count, blocking until it is positive or the timeout passes."""
        return self._sem.acquire(timeout=timeout)

    def post(self) -> bool:
        """Increment the count, waking one waiter."""
        self._sem.release()
        return True


class Locker:
    """A mutual-exclusion lock, usable as a context manager."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def lock(self) -> bool:
        return self._lock.acquire()

    def unlock(self) -> bool:
        """Release the lock; raises RuntimeError if it is not held."""
        self._lock.release()
        return True

    def __enter__(self) -> "Locker":
        self.lock()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unlock()


class Cond:
    """A condition variable with its own mutex and no predicate."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until signalled; False if the timeout passed first."""
        with self._cond:
            return self._cond.wait(timeout)

    def signal(self) -> bool:
        """Wake one waiting thread, if any."""
        with self._cond:
            self._cond.notify()
        return True