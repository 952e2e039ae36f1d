"""A binary min-heap of timers keyed by expiry time."""

from __future__ import annotations

import time
from typing import Any, Callable, Iterable, Optional


class HeapTimer:
    """A timer that expires ``delay`` seconds after it is made."""

    def __init__(
        self,
        delay: float,
        callback: Optional[Callable[[Any], None]] = None,
        user_data: Any = None,
        *,
        now: Optional[float] = None,
    ) -> None:
        self.expire = (time.time() if now is None else now) + delay
        self.callback = callback
        self.user_data = user_data

    def __repr__(self) -> str:
        return f"HeapTimer(expire={self.expire!r})"


class TimeHeap:
    """Timers in a min-heap; deletion is lazy and happens on ``tick``."""

    def __init__(self, capacity: int = 64, timers: Iterable[HeapTimer] = ()) -> None:
        initial = list(timers)
        if capacity < len(initial):
            raise ValueError("capacity is smaller than the number of timers")
        self._capacity = capacity
        self._heap: list[HeapTimer] = initial
        for hole in range((len(initial) - 1) // 2, -1, -1):
            self._percolate_down(hole)

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._heap)

    def empty(self) -> bool:
        return not self._heap

    def add_timer(self, timer: Optional[HeapTimer]) -> None:
        """Insert a timer into the heap, growing the capacity when full."""
        if timer is None:
            return
        if len(self._heap) >= self._capacity:
            self._capacity = max(1, 2 * self._capacity)
        heap = self._heap
        heap.append(timer)
        hole = len(heap) - 1
        while hole > 0:
            parent = (hole - 1) // 2
            if heap[parent].expire <= timer.expire:
                break
            heap[hole] = heap[parent]
            hole = parent
        heap[hole] = timer

    def del_timer(self, timer: Optional[HeapTimer]) -> None:
        """Disarm a timer; it stays in the heap until it reaches the top."""
        if timer is None:
            return
        timer.callback = None

    def top(self) -> Optional[HeapTimer]:
        return self._heap[0] if self._heap else None

    def pop_timer(self) -> Optional[HeapTimer]:
        """Remove and return the timer with the earliest expiry."""
        if not self._heap:
            return None
        first = self._heap[0]
        last = self._heap.pop()
        if self._heap:
            self._heap[0] = last
            self._percolate_down(0)
        return first

    def tick(self, now: Optional[float] = None) -> list[HeapTimer]:
        """Pop every expired timer, running those still armed; return those run."""
        if now is None:
            now = time.time()
        fired: list[HeapTimer] = []
        while self._heap and self._heap[0].expire <= now:
            timer = self.pop_timer()
            if timer.callback is not None:
                fired.append(timer)
                timer.callback(timer.user_data)
        return fired

    def _percolate_down(self, hole: int) -> None:
        heap = self._heap
        moving = heap[hole]
        last = len(heap) - 1
        while hole * 2 + 1 <= last:
            child = hole * 2 + 1
            if child < last and heap[child + 1].expire < heap[child].expire:
                child += 1
            if heap[child].expire < moving.expire:
                heap[hole] = heap[child]
                hole = child
            else:
                break
        heap[hole] = moving