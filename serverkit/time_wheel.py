"""A hashed time wheel of fixed size."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

SLOTS = 60
SLOT_INTERVAL = 1


@dataclass(eq=False)
class WheelTimer:
    """A timer placed in one slot of the wheel, waiting ``rotation`` more turns."""

    rotation: int
    time_slot: int
    callback: Optional[Callable[[Any], None]] = None
    user_data: Any = None


class TimeWheel:
    """A wheel of ``SLOTS`` slots, each ``SLOT_INTERVAL`` seconds wide."""

    def __init__(self) -> None:
        self._slots: list[list[WheelTimer]] = [[] for _ in range(SLOTS)]
        self._cur_slot = 0

    @property
    def cur_slot(self) -> int:
        return self._cur_slot

    def __len__(self) -> int:
        return sum(len(slot) for slot in self._slots)

    def add_timer(
        self,
        timeout: int,
        callback: Optional[Callable[[Any], None]] = None,
        user_data: Any = None,
    ) -> WheelTimer:
        """Schedule a timer ``timeout`` seconds ahead and return it."""
        if timeout < 0:
            raise ValueError("timeout must not be negative")
        ticks = 1 if timeout < SLOT_INTERVAL else int(timeout // SLOT_INTERVAL)
        rotation, offset = divmod(ticks, SLOTS)
        slot = (self._cur_slot + offset) % SLOTS
        timer = WheelTimer(rotation, slot, callback, user_data)
        logger.debug(
            "add timer, rotation is %d, ts is %d, cur_slot is %d",
            rotation,
            slot,
            self._cur_slot,
        )
        self._slots[slot].insert(0, timer)
        return timer

    def del_timer(self, timer: Optional[WheelTimer]) -> None:
        """Remove a timer from its slot."""
        if timer is None:
            return
        slot = self._slots[timer.time_slot]
        for index, candidate in enumerate(slot):
            if candidate is timer:
                del slot[index]
                return
        raise ValueError("timer is not on the wheel")

    def tick(self) -> list[WheelTimer]:
        """Advance one slot, firing the timers in the current slot that are due."""
        logger.debug("current slot is %d", self._cur_slot)
        kept: list[WheelTimer] = []
        due: list[WheelTimer] = []
        for timer in self._slots[self._cur_slot]:
            if timer.rotation > 0:
                timer.rotation -= 1
                kept.append(timer)
            else:
                due.append(timer)
        self._slots[self._cur_slot] = kept
        for timer in due:
            if timer.callback is not None:
                timer.callback(timer.user_data)
        self._cur_slot = (self._cur_slot + 1) % SLOTS
        return due