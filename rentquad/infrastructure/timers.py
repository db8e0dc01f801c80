"""
Timer facilities used by the rental engine.

* ``AsyncioTimerFacility`` -- production: ``loop.call_later`` on the
  running event loop.
* ``ManualTimerFacility``  -- virtual clock that only moves on
  ``advance()``; used for simulations and deterministic tests.

Both expose ``schedule_once`` / ``cancel``, ``schedule_repeating`` /
``cancel_repeating`` and a monotonic ``now()`` in seconds.  Delays are in
milliseconds.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


# ── asyncio ───────────────────────────────────────────────────────────


class _RepeatingHandle:
    def __init__(self, loop: asyncio.AbstractEventLoop, callback: Callback, interval: float):
        self._loop = loop
        self._callback = callback
        self._interval = interval
        self._handle: Optional[asyncio.TimerHandle] = None
        self.cancelled = False

    def start(self) -> None:
        self._handle = self._loop.call_later(self._interval, self._run)

    def _run(self) -> None:
        if self.cancelled:
            return
        self.start()  # re-arm first so a failing callback keeps ticking
        self._callback()

    def cancel(self) -> None:
        self.cancelled = True
        if self._handle is not None:
            self._handle.cancel()


class AsyncioTimerFacility:
    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def schedule_once(self, callback: Callback, delay_ms: float) -> asyncio.TimerHandle:
        return self.loop.call_later(delay_ms / 1000, callback)

    def cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()

    def schedule_repeating(self, callback: Callback, interval_ms: float) -> _RepeatingHandle:
        handle = _RepeatingHandle(self.loop, callback, interval_ms / 1000)
        handle.start()
        return handle

    def cancel_repeating(self, handle: _RepeatingHandle) -> None:
        handle.cancel()

    def now(self) -> float:
        return self.loop.time()


# ── Virtual clock ─────────────────────────────────────────────────────


@dataclass(order=True)
class _Entry:
    due_ms: float
    seq: int
    callback: Callback = field(compare=False)
    interval_ms: Optional[float] = field(default=None, compare=False)
    cancelled: bool = field(default=False, compare=False)


class ManualTimerFacility:
    """Deterministic timers: nothing fires until ``advance`` is called.

    Callbacks due at the same instant fire in scheduling order.  Callbacks
    scheduled while advancing fire in the same call if they fall due before
    the target time.
    """

    def __init__(self, start_ms: float = 0.0):
        self._now_ms = start_ms
        self._queue: list[_Entry] = []
        self._seq = itertools.count()

    @property
    def pending_count(self) -> int:
        return sum(1 for e in self._queue if not e.cancelled)

    def now(self) -> float:
        return self._now_ms / 1000

    def schedule_once(self, callback: Callback, delay_ms: float) -> _Entry:
        entry = _Entry(self._now_ms + delay_ms, next(self._seq), callback)
        heapq.heappush(self._queue, entry)
        return entry

    def cancel(self, handle: _Entry) -> None:
        handle.cancelled = True

    def schedule_repeating(self, callback: Callback, interval_ms: float) -> _Entry:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        entry = _Entry(self._now_ms + interval_ms, next(self._seq), callback, interval_ms)
        heapq.heappush(self._queue, entry)
        return entry

    def cancel_repeating(self, handle: _Entry) -> None:
        handle.cancelled = True

    def advance(self, ms: float) -> None:
        target = self._now_ms + ms
        while self._queue and self._queue[0].due_ms <= target:
            entry = heapq.heappop(self._queue)
            if entry.cancelled:
                continue
            self._now_ms = entry.due_ms
            if entry.interval_ms is not None:
                # same object stays the handle, so cancel_repeating still works
                entry.due_ms += entry.interval_ms
                entry.seq = next(self._seq)
                heapq.heappush(self._queue, entry)
            entry.callback()
        self._now_ms = target
