"""Cooperative, single-threaded scheduler of timed callbacks.

All playback work runs as callbacks on one thread. Time is logical: the owner
advances it, either from a real interval timer (the TUI) or by jumping straight
to the next due callback (tests and non-interactive runs). Blocking work such
as git subprocesses goes through ``submit``; its completion callback is queued
back onto the scheduler thread.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
from collections import deque
from collections.abc import Callable
from concurrent.futures import Executor, Future, wait
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(order=True)
class TimerHandle:
    due: float
    seq: int
    callback: Callable[..., None] = field(compare=False)
    args: tuple[Any, ...] = field(compare=False, default=())
    cancelled: bool = field(compare=False, default=False)
    fired: bool = field(compare=False, default=False)

    def cancel(self) -> None:
        self.cancelled = True


class Scheduler:
    def __init__(self, executor: Executor | None = None) -> None:
        self.executor = executor
        self._now = 0.0
        self._queue: list[TimerHandle] = []
        self._seq = itertools.count()
        self._completed: deque[tuple[Future[Any], Callable[[Future[Any]], None]]] = deque()
        self._inflight: set[Future[Any]] = set()
        self._lock = threading.Lock()

    @property
    def now(self) -> float:
        """Logical time in milliseconds."""
        return self._now

    def call_later(self, delay_ms: float, callback: Callable[..., None], *args: Any) -> TimerHandle:
        handle = TimerHandle(self._now + max(0.0, delay_ms), next(self._seq), callback, args)
        heapq.heappush(self._queue, handle)
        return handle

    def call_soon(self, callback: Callable[..., None], *args: Any) -> TimerHandle:
        return self.call_later(0.0, callback, *args)

    def cancel(self, handle: TimerHandle | None) -> None:
        if handle is not None:
            handle.cancel()

    def submit(self, fn: Callable[[], Any], on_done: Callable[[Future[Any]], None]) -> Future[Any]:
        """Run ``fn`` off the scheduler thread; ``on_done`` runs on it later."""
        if self.executor is None:
            future: Future[Any] = Future()
            try:
                future.set_result(fn())
            except Exception as exc:
                future.set_exception(exc)
            self._completed.append((future, on_done))
            return future

        future = self.executor.submit(fn)
        with self._lock:
            self._inflight.add(future)

        def _done(fut: Future[Any]) -> None:
            # Queue first so run_until_idle sees the future in one place or the other.
            with self._lock:
                self._completed.append((fut, on_done))
                self._inflight.discard(fut)

        future.add_done_callback(_done)
        return future

    def has_pending(self) -> bool:
        with self._lock:
            inflight = bool(self._inflight)
        return inflight or bool(self._completed) or any(not h.cancelled for h in self._queue)

    def _drain_completed(self) -> int:
        ran = 0
        while self._completed:
            future, on_done = self._completed.popleft()
            on_done(future)
            ran += 1
        return ran

    def _pop_due(self, until: float) -> TimerHandle | None:
        while self._queue:
            head = self._queue[0]
            if head.cancelled:
                heapq.heappop(self._queue)
                continue
            if head.due > until:
                return None
            handle = heapq.heappop(self._queue)
            handle.fired = True
            return handle
        return None

    def advance(self, elapsed_ms: float) -> int:
        """Move logical time forward, running everything that falls due."""
        target = self._now + max(0.0, elapsed_ms)
        ran = self._drain_completed()
        while True:
            handle = self._pop_due(target)
            if handle is None:
                break
            self._now = max(self._now, handle.due)
            handle.callback(*handle.args)
            ran += 1
            ran += self._drain_completed()
        self._now = target
        return ran

    def run_until_idle(self, max_steps: int = 1_000_000) -> int:
        """Jump through virtual time until no work is left."""
        steps = 0
        while steps < max_steps:
            with self._lock:
                inflight = list(self._inflight)
            if inflight:
                wait(inflight)
            steps += self._drain_completed()
            handle = self._pop_due(float("inf"))
            if handle is None:
                if self._completed or self._inflight:
                    continue
                return steps
            self._now = max(self._now, handle.due)
            handle.callback(*handle.args)
            steps += 1
        logger.warning("scheduler stopped after %d steps with work pending", steps)
        return steps

    def clear(self) -> None:
        for handle in self._queue:
            handle.cancel()
        self._queue.clear()
        self._completed.clear()
