"""A thread-safe timer wheel for expiring system-level items such as vpn ips."""

from __future__ import annotations

import threading
from collections import deque
from datetime import datetime, timedelta
from typing import Any, Deque, List, Optional

from .timeout import _slot_for, _truncating_div


class SystemTimerWheel:
    """Locked timer wheel that only moves when :meth:`advance` is called.

    New items are placed at the head of their tick, so within one tick the
    most recently added item expires first.
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
        self._lock = threading.Lock()

    def add(self, item: Any, timeout: timedelta) -> int:
        """Track ``item`` until ``timeout`` has elapsed; return the slot it landed in."""
        with self._lock:
            index = self.find_wheel(timeout)
            self.wheel[index].appendleft(item)
            return index

    def purge(self) -> Any:
        """Remove and return the next expired item, or None when nothing has expired."""
        with self._lock:
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
        with self._lock:
            if self.last_tick is None:
                self.last_tick = now

            ticks = _truncating_div(now - self.last_tick, self.tick_duration)
            for _ in range(ticks):
                self.current += 1
                if self.current >= self.wheel_len:
                    self.current = 0

                slot = self.wheel[self.current]
                # Append so the oldest expired items are never starved.
                self.expired.extend(slot)
                slot.clear()

                self.last_tick = now