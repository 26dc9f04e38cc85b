"""Schedulers: the engine's only suspension points.

Timers (delay/throttle), fetch completion and mutation delivery all go through
a Scheduler. Everything else runs synchronously on the UI thread.

ThreadScheduler uses daemon threads for waiting and for fetch work, never for
callbacks. Pass a marshal callable (for example a UI toolkit's call-from-thread)
so callbacks land back on the UI thread:

    scheduler = ThreadScheduler(marshal=app.call_from_thread)

or leave it out and pump from the UI thread's own loop:

    scheduler.run_pending()

ManualScheduler is a virtual clock for tests and for hosts that pump their own
loop.
"""

from __future__ import annotations

import heapq
import itertools
import queue
import threading
from typing import Any, Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, seconds: float, fn: Callable[[], None]) -> TimerHandle: ...

    def call_soon(self, fn: Callable[[], None]) -> TimerHandle: ...

    def submit(self, work: Callable[[], Any], callback: Callable[[Any], None]) -> None: ...


class ThreadScheduler:
    """Daemon-thread scheduler that hands every callback back to the UI thread.

    With marshal, callbacks are passed to it as they become ready. Without,
    they wait in a queue until the owning thread pumps them with
    run_pending(); nothing the engine schedules ever runs on a worker thread.
    """

    def __init__(self, marshal: Callable[[Callable[[], None]], None] | None = None) -> None:
        self._marshal = marshal
        self._ready: queue.SimpleQueue[Callable[[], None]] = queue.SimpleQueue()

    def _dispatch(self, fn: Callable[[], None]) -> None:
        if self._marshal is not None:
            self._marshal(fn)
        else:
            self._ready.put(fn)

    def call_later(self, seconds: float, fn: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(seconds, self._dispatch, args=[fn])
        timer.daemon = True
        timer.start()
        return timer

    def call_soon(self, fn: Callable[[], None]) -> threading.Timer:
        return self.call_later(0, fn)

    def submit(self, work: Callable[[], Any], callback: Callable[[Any], None]) -> None:
        """Run work in a daemon thread, then hand its result to callback."""

        def _run() -> None:
            result = work()
            self._dispatch(lambda: callback(result))

        threading.Thread(target=_run, daemon=True).start()

    def run_pending(self, timeout: float | None = None) -> int:
        """Run queued callbacks on the calling thread. Returns how many ran.

        With timeout, wait up to that long for the first callback to arrive.
        """
        ran = 0
        if timeout is not None:
            try:
                fn = self._ready.get(timeout=timeout)
            except queue.Empty:
                return ran
            fn()
            ran += 1
        while True:
            try:
                fn = self._ready.get_nowait()
            except queue.Empty:
                return ran
            fn()
            ran += 1


class _ManualTimer:
    __slots__ = ("when", "fn", "cancelled")

    def __init__(self, when: float, fn: Callable[[], None]) -> None:
        self.when = when
        self.fn = fn
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic scheduler driven by advance() and run_pending().

    Usage:
        scheduler = ManualScheduler()
        scheduler.call_later(0.1, lambda: log.append("tick"))
        scheduler.advance(0.1)   # log == ["tick"]
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[tuple[float, int, _ManualTimer]] = []
        self._seq = itertools.count()

    def call_later(self, seconds: float, fn: Callable[[], None]) -> _ManualTimer:
        timer = _ManualTimer(self.now + seconds, fn)
        heapq.heappush(self._queue, (timer.when, next(self._seq), timer))
        return timer

    def call_soon(self, fn: Callable[[], None]) -> _ManualTimer:
        return self.call_later(0, fn)

    def submit(self, work: Callable[[], Any], callback: Callable[[Any], None]) -> None:
        self.call_soon(lambda: callback(work()))

    def run_pending(self) -> int:
        """Run every callback due at the current time. Returns how many ran."""
        ran = 0
        while self._queue and self._queue[0][0] <= self.now:
            _, _, timer = heapq.heappop(self._queue)
            if not timer.cancelled:
                timer.fn()
                ran += 1
        return ran

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing timers in order as their time arrives."""
        target = self.now + seconds
        ran = self.run_pending()
        while self._queue and self._queue[0][0] <= target:
            self.now = self._queue[0][0]
            ran += self.run_pending()
        self.now = target
        return ran + self.run_pending()

    @property
    def pending_count(self) -> int:
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)
