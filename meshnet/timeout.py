"""A lazily ticked timer wheel that hands back items once their timeout has passed."""

from __future__ import annotations

from collections import deque
from datetime import datetime, timedelta
from typing import Any, Deque, List, Optional

_RESOLUTION = timedelta(microseconds=1)


def _truncating_div(delta: timedelta, step: timedelta) -> int:
    """Divide two durations, rounding the quotient toward zero."""
    quotient = abs(delta) // step
    return -quotient if delta < timedelta(0) else quotient


def _slot_for(
    timeout: timedelta,
    tick_duration: timedelta,
    wheel_duration: timedelta,
    current: int,
    wheel_len: int,
) -> int:
    """Map a timeout onto a slot of a wheel positioned at ``current``."""
    if timeout < tick_duration:
        # Anything below the wheel's resolution is rounded up to one tick.
        timeout = tick_duration
    elif timeout > wheel_duration:
        # Nothing longer than a full turn of the wheel is tracked.
        timeout = wheel_duration

    tick = (timeout - _RESOLUTION) // tick_duration + 1

    # One extra tick, since the current tick may be almost over.
    tick += current + 1
    if tick >= wheel_len:
        tick -= wheel_len
    return tick


class TimerWheel:
    """Timer wheel that advances itself whenever an item is added.

    Items become available from :meth:`purge` in the order they expired, and
    within one tick in the order they were added. The wheel is not locked;
    callers sharing it between threads must provide their own locking.
    """

    def __init__(self, min_duration: timedelta, max_duration: timedelta) -> None:
        self.tick_duration = min_duration
        self.wheel_duration = max_duration
        # Round down and add one so a full max_duration still fits in the wheel.
        self.wheel_len = max_duration // min_duration + 1
        self.current = 0
        self.last_tick: Optional[datetime] = None
        self.wheel: List[Deque[Any]] = [deque() for _ in range(self.wheel_len)]
        self.expired: Deque[Any] = deque()

    def add(self, item: Any, timeout: timedelta) -> int:
        """Track ``item`` until ``timeout`` has elapsed; return the slot it landed in."""
        self.advance(datetime.now())
        index = self.find_wheel(timeout)
        self.wheel[index].append(item)
        return index

    def purge(self) -> Any:
        """Remove and return the oldest expired item, or None when nothing has expired."""
        if not self.expired:
            return None
        return self.expired.popleft()

    def find_wheel(self, timeout: timedelta) -> int:
        """Return the slot index a timeout of this length belongs in."""
        return _slot_for(
            timeout, self.tick_duration, self.wheel_duration, self.current, self.wheel_len
        )

    def advance(self, now: datetime) -> None:
        """Move the wheel forward by the whole ticks elapsed since the last tick."""
        if self.last_tick is None:
            self.last_tick = now

        elapsed = _truncating_div(now - self.last_tick, self.tick_duration)
        ticks = min(elapsed, self.wheel_len)

        for _ in range(ticks):
            self.current += 1
            if self.current >= self.wheel_len:
                self.current = 0

            slot = self.wheel[self.current]
            if slot:
                # Append so the oldest expired items are never starved.
                self.expired.extend(slot)
                slot.clear()

        # Step by whole ticks to avoid drifting away from the real tick boundaries.
        self.last_tick = self.last_tick + self.tick_duration * elapsed