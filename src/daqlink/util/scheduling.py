# -*- coding: utf-8 -*-
"""
Scheduled callbacks with cancellation handles.

The session only ever suspends on two timers (the liveness watchdog and the
first-connection recheck). Both are requested through a `Scheduler` so they
can run on the asyncio loop in production and on virtual time in tests.

Examples
--------
```python
sched = ManualScheduler()
handle = sched.call_later(5.0, on_timeout)
sched.advance(4.0)   # nothing fires
handle.cancel()
sched.advance(10.0)  # still nothing, handle was cancelled
```
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol, runtime_checkable

from loguru import logger


@runtime_checkable
class TimerHandle(Protocol):
    def cancel(self) -> None: ...

    def cancelled(self) -> bool: ...


@runtime_checkable
class Scheduler(Protocol):
    """Source of time and of delayed single-shot callbacks."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...

    def now(self) -> datetime: ...


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop (`loop.call_later`).

    Without an explicit `loop` it binds to the loop running when it is first
    used; using it outside a running loop raises `RuntimeError`.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return self.loop.call_later(delay, callback)

    def now(self) -> datetime:
        return datetime.now()


class _ManualHandle:
    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler:
    """Virtual-time scheduler; time only moves when `advance` is called.

    Callbacks due within an `advance` window fire in deadline order, and each
    fires with the virtual clock set to its own deadline. A callback may
    schedule further callbacks; those fire too if they fall inside the window.
    """

    def __init__(self, start: Optional[datetime] = None):
        self._start = start or datetime(2024, 1, 1, 12, 0, 0)
        self._elapsed = 0.0
        self._queue: list[tuple[float, int, _ManualHandle]] = []
        self._counter = itertools.count()

    @property
    def elapsed(self) -> float:
        return self._elapsed

    def now(self) -> datetime:
        return self._start + timedelta(seconds=self._elapsed)

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = _ManualHandle(self._elapsed + max(delay, 0.0), callback)
        heapq.heappush(self._queue, (handle.when, next(self._counter), handle))
        return handle

    def pending(self) -> int:
        return sum(1 for _, _, h in self._queue if not h.cancelled())

    def advance(self, seconds: float) -> None:
        target = self._elapsed + seconds
        while self._queue and self._queue[0][0] <= target:
            when, _, handle = heapq.heappop(self._queue)
            if handle.cancelled():
                continue
            self._elapsed = when
            logger.trace("Virtual timer fired at t={:.3f}s", when)
            handle.callback()
        self._elapsed = target
