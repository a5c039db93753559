"""Clock and timer abstractions used by the real-time validation session.

The session never touches wall-clock time directly; production code uses the
monotonic clock and ``threading.Timer``, tests drive ``ManualScheduler``.
"""

import threading
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional


class MonotonicClock:
    def monotonic(self) -> float:
        return time.monotonic()

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class TimerHandle:
    def cancel(self) -> None:
        raise NotImplementedError


class _ThreadingHandle(TimerHandle):
    def __init__(self, timer: threading.Timer):
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class ThreadingScheduler:
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return _ThreadingHandle(timer)


class _ManualHandle(TimerHandle):
    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic clock + scheduler. Time only moves on advance()."""

    def __init__(self, start: float = 0.0, epoch: Optional[datetime] = None):
        self._now = start
        self._epoch = epoch or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._pending: List[_ManualHandle] = []

    # Clock
    def monotonic(self) -> float:
        return self._now

    def now(self) -> datetime:
        return datetime.fromtimestamp(self._epoch.timestamp() + self._now, tz=timezone.utc)

    # Scheduler
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = _ManualHandle(self._now + delay, callback)
        self._pending.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return len([h for h in self._pending if not h.cancelled])

    def advance(self, seconds: float) -> None:
        target = self._now + seconds
        while True:
            due = [h for h in self._pending if not h.cancelled and h.due <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.due)
            self._pending.remove(handle)
            self._now = max(self._now, handle.due)
            handle.callback()
        self._pending = [h for h in self._pending if not h.cancelled]
        self._now = target
