"""
Timer scheduling for the engine.

Two timers drive the table: a one-shot load delay and the recurring
mutation feed. Both go through a Scheduler so that:
- production code runs on the asyncio event loop (AsyncioScheduler)
- tests advance a virtual clock and fire ticks on demand (ManualScheduler)

Callbacks are plain synchronous functions. Each one runs to completion
before the loop can schedule anything else, which is what keeps a feed
tick indivisible with respect to UI reads.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from typing import Callable, Protocol

from loguru import logger

Callback = Callable[[], None]


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...

    @property
    def cancelled(self) -> bool:
        ...


class Scheduler(Protocol):
    """Clock + timers."""

    def now_ms(self) -> float:
        ...

    def call_later(self, delay_sec: float, callback: Callback) -> TimerHandle:
        ...

    def call_every(self, interval_sec: float, callback: Callback) -> TimerHandle:
        ...


def _check_interval(interval_sec: float) -> None:
    # A zero period would re-arm at the same instant forever
    if not interval_sec > 0:
        raise ValueError(f"timer interval must be > 0 seconds, got {interval_sec}")


def _run_guarded(callback: Callback) -> None:
    """Run a timer callback; an error stays inside its own tick."""
    try:
        callback()
    except Exception:
        logger.exception("[SCHED] Timer callback failed")


class _AsyncioHandle:
    """Wraps loop.call_later; periodic handles re-arm after every run."""

    __slots__ = ('_loop', '_callback', '_interval', '_timer', '_cancelled')

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        delay_sec: float,
        callback: Callback,
        interval_sec: float | None = None,
    ) -> None:
        self._loop = loop
        self._callback = callback
        self._interval = interval_sec
        self._cancelled = False
        self._timer = loop.call_later(delay_sec, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        _run_guarded(self._callback)
        if self._interval is not None and not self._cancelled:
            self._timer = self._loop.call_later(self._interval, self._fire)

    def cancel(self) -> None:
        self._cancelled = True
        self._timer.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class AsyncioScheduler:
    """
    Scheduler backed by the running asyncio loop.

    Must be used from inside the loop (e.g. from an async main or a Textual
    app's on_mount).
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now_ms(self) -> float:
        return self.loop.time() * 1000

    def call_later(self, delay_sec: float, callback: Callback) -> TimerHandle:
        return _AsyncioHandle(self.loop, delay_sec, callback)

    def call_every(self, interval_sec: float, callback: Callback) -> TimerHandle:
        _check_interval(interval_sec)
        return _AsyncioHandle(self.loop, interval_sec, callback, interval_sec=interval_sec)


class _ManualHandle:
    __slots__ = ('callback', 'interval_ms', 'cancelled')

    def __init__(self, callback: Callback, interval_ms: float | None) -> None:
        self.callback = callback
        self.interval_ms = interval_ms
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Deterministic scheduler with a virtual millisecond clock.

    Usage:
        sched = ManualScheduler()
        table = LiveTokenTable(source, sched)
        table.start()
        sched.advance(0.8)   # fires the load
        sched.advance(3.0)   # fires one feed tick
    """

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now_ms = start_ms
        self._queue: list[tuple[float, int, _ManualHandle]] = []
        self._seq = itertools.count()

    def now_ms(self) -> float:
        return self._now_ms

    def call_later(self, delay_sec: float, callback: Callback) -> TimerHandle:
        handle = _ManualHandle(callback, None)
        self._push(self._now_ms + delay_sec * 1000, handle)
        return handle

    def call_every(self, interval_sec: float, callback: Callback) -> TimerHandle:
        _check_interval(interval_sec)
        handle = _ManualHandle(callback, interval_sec * 1000)
        self._push(self._now_ms + interval_sec * 1000, handle)
        return handle

    def _push(self, due_ms: float, handle: _ManualHandle) -> None:
        heapq.heappush(self._queue, (due_ms, next(self._seq), handle))

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward, firing every due callback in time order.

        Returns the number of callbacks fired.
        """
        target_ms = self._now_ms + seconds * 1000
        fired = 0

        while self._queue and self._queue[0][0] <= target_ms:
            due_ms, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now_ms = due_ms
            _run_guarded(handle.callback)
            fired += 1
            if handle.interval_ms is not None and not handle.cancelled:
                self._push(due_ms + handle.interval_ms, handle)

        self._now_ms = target_ms
        return fired

    @property
    def pending(self) -> int:
        """Number of live timers."""
        return sum(1 for _, _, h in self._queue if not h.cancelled)
