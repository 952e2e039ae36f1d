"""A fixed pool of worker threads fed from a shared request queue."""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Any, Deque

from .sync import Locker, Semaphore

logger = logging.getLogger(__name__)


class ThreadPool:
    """Worker threads that call ``process()`` on each queued request."""

    def __init__(self, thread_number: int = 8, max_requests: int = 10000) -> None:
        if thread_number <= 0 or max_requests <= 0:
            raise ValueError("thread_number and max_requests must be positive")
        self._thread_number = thread_number
        self._max_requests = max_requests
        self._queue: Deque[Any] = deque()
        self._queue_lock = Locker()
        self._queue_stat = Semaphore()
        self._stopped = False
        self._threads: list[threading.Thread] = []
        for index in range(thread_number):
            logger.debug("create the %dth thread", index)
            thread = threading.Thread(
                target=self._run, name=f"pool-worker-{index}", daemon=True
            )
            thread.start()
            self._threads.append(thread)

    def append(self, request: Any) -> bool:
        """Queue a request; False if the queue already exceeds its limit."""
        with self._queue_lock:
            if len(self._queue) > self._max_requests:
                return False
            self._queue.append(request)
        self._queue_stat.post()
        return True

    def stop(self) -> None:
        """Stop the workers and wait for them to finish their current request."""
        self._stopped = True
        for _ in self._threads:
            self._queue_stat.post()
        for thread in self._threads:
            thread.join()

    def _run(self) -> None:
        while not self._stopped:
            self._queue_stat.wait()
            if self._stopped:
                break
            with self._queue_lock:
                if not self._queue:
                    continue
                request = self._queue.popleft()
            if request is None:
                continue
            try:
                request.process()
            except Exception:
                logger.exception("request failed")