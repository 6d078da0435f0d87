"""Synchronous event emission and the cooperative timer queue.

Everything runs on the one curses loop, so there is no locking here. Two
rules matter for correctness:

* handlers fire in registration order;
* a handler removed while an event is being dispatched does not fire for
  that dispatch, even if it was registered when the dispatch started.
"""

from __future__ import annotations

import heapq
import itertools
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

Handler = Callable[..., Any]


class Subscription:
    """Handle returned by `Emitter.on`. Cancelling it unregisters the handler once."""

    def __init__(self, emitter: Emitter, event: str, handler: Handler) -> None:
        self.emitter: Emitter | None = emitter
        self.event = event
        self.handler = handler

    @property
    def active(self) -> bool:
        return self.emitter is not None

    def cancel(self) -> None:
        if self.emitter is None:
            return
        self.emitter.off(self.event, self.handler)
        self.emitter = None


class Emitter:
    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}

    def on(self, event: str, handler: Handler) -> Subscription:
        self._handlers.setdefault(event, []).append(handler)
        return Subscription(self, event, handler)

    def off(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event)
        if not handlers:
            return
        for i, h in enumerate(handlers):
            if h is handler or h == handler:
                del handlers[i]
                break
        if not handlers:
            del self._handlers[event]

    def remove_all_listeners(self, event: str | None = None) -> None:
        if event is None:
            self._handlers.clear()
        else:
            self._handlers.pop(event, None)

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))

    def emit(self, event: str, *args: Any) -> bool:
        """Call every handler for *event*. Returns True if any was registered."""
        handlers = self._handlers.get(event)
        if not handlers:
            return False
        for handler in list(handlers):
            # skip handlers removed by an earlier handler in this dispatch
            live = self._handlers.get(event, ())
            if not any(h is handler for h in live):
                continue
            handler(*args)
        return True


# ── Scheduler ──────────────────────────────────────────────────────────────


@dataclass(order=True)
class ScheduledTask:
    deadline: float
    seq: int
    callback: Callable[[], Any] = field(compare=False)
    interval: float | None = field(default=None, compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class Scheduler:
    """Deadline-ordered queue of callbacks, drained by the event loop."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self._queue: list[ScheduledTask] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], Any]) -> ScheduledTask:
        task = ScheduledTask(self.clock() + delay, next(self._seq), callback)
        heapq.heappush(self._queue, task)
        return task

    def call_every(
        self, interval: float, callback: Callable[[], Any]
    ) -> ScheduledTask:
        if interval <= 0:
            raise ValueError("interval must be positive")
        task = ScheduledTask(
            self.clock() + interval, next(self._seq), callback, interval
        )
        heapq.heappush(self._queue, task)
        return task

    def pending(self) -> int:
        return sum(1 for t in self._queue if not t.cancelled)

    def next_deadline(self) -> float | None:
        while self._queue and self._queue[0].cancelled:
            heapq.heappop(self._queue)
        return self._queue[0].deadline if self._queue else None

    def run_due(self) -> int:
        """Fire every task whose deadline has passed. Returns how many ran."""
        now = self.clock()
        ran = 0
        while self._queue and self._queue[0].deadline <= now:
            task = heapq.heappop(self._queue)
            if task.cancelled:
                continue
            if task.interval is not None:
                task.deadline = now + task.interval
                task.seq = next(self._seq)
                heapq.heappush(self._queue, task)
            else:
                task.cancelled = True
            task.callback()
            ran += 1
        return ran
