"""Timers kept in a list sorted by ascending expiry time."""

from __future__ import annotations

import itertools
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class UtilTimer:
    """A timer that calls ``callback(user_data)`` once ``expire`` has passed."""

    expire: float
    callback: Optional[Callable[[Any], None]] = None
    user_data: Any = None


class SortedTimerList:
    """Timers ordered by expiry; timers with equal expiry keep insertion order."""

    def __init__(self) -> None:
        self._timers: list[UtilTimer] = []

    def __len__(self) -> int:
        return len(self._timers)

    def __iter__(self) -> Iterator[UtilTimer]:
        return iter(list(self._timers))

    def _index(self, timer: UtilTimer) -> int:
        for index, candidate in enumerate(self._timers):
            if candidate is timer:
                return index
        raise ValueError("timer is not in the list")

    def _insert_from(self, timer: UtilTimer, start: int) -> None:
        """Insert before the first timer at or after ``start`` that expires later."""
        tail = itertools.islice(self._timers, start, None)
        position = next(
            (index for index, other in enumerate(tail, start) if timer.expire < other.expire),
            len(self._timers),
        )
        self._timers.insert(position, timer)

    def add_timer(self, timer: Optional[UtilTimer]) -> None:
        """Add a timer at its place in expiry order."""
        if timer is None:
            return
        self._insert_from(timer, 0)

    def adjust_timer(self, timer: Optional[UtilTimer]) -> None:
        """Move a timer whose expiry was extended further back in the list.

        Only later expiry times are handled: a timer that already expires
        before its successor stays where it is.
        """
        if timer is None:
            return
        index = self._index(timer)
        following = index + 1
        if following == len(self._timers) or timer.expire < self._timers[following].expire:
            return
        del self._timers[index]
        self._insert_from(timer, index)

    def del_timer(self, timer: Optional[UtilTimer]) -> None:
        """Remove a timer from the list."""
        if timer is None:
            return
        del self._timers[self._index(timer)]

    def tick(self, now: Optional[float] = None) -> list[UtilTimer]:
        """Run and remove every timer whose expiry is at or before ``now``."""
        fired: list[UtilTimer] = []
        if not self._timers:
            return fired
        logger.debug("timer tick")
        if now is None:
            now = time.time()
        while self._timers and now >= self._timers[0].expire:
            timer = self._timers.pop(0)
            fired.append(timer)
            if timer.callback is not None:
                timer.callback(timer.user_data)
        return fired