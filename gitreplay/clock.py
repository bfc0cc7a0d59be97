"""Logical playback clock that sweeps scrub time across the commit span."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum

from gitreplay.config import validate_speed
from gitreplay.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

# Fraction of one step under which the upper bound counts as reached.
END_TOLERANCE = 1e-6


class ClockState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    ENDED = "ended"


class PlaybackClock:
    """Advances time by a fixed step on every tick while running.

    Each tick moves ``(tick_interval_ms / 1000) * speed * span / span_seconds``
    forward, so at 1x the whole span takes ``span_seconds`` of real time.
    ``seek`` bumps the generation, which turns any tick already queued into a
    no-op.

    Time is ``origin + ticks * increment`` rather than a running sum, so large
    epoch bounds do not accumulate rounding error. Seeking, restarting and
    changing speed move the origin to the current time.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        bounds: tuple[float, float],
        tick_interval_ms: float = 50.0,
        span_seconds: float = 50.0,
        on_tick: Callable[[float], None] | None = None,
        on_end: Callable[[], None] | None = None,
    ) -> None:
        lo, hi = bounds
        if hi < lo:
            raise ValueError("clock bounds are inverted")
        self.scheduler = scheduler
        self.min_time = lo
        self.max_time = hi
        self.tick_interval_ms = tick_interval_ms
        self.span_seconds = span_seconds
        self.on_tick = on_tick
        self.on_end = on_end
        self.time = lo
        self.speed = 1.0
        self.state = ClockState.STOPPED
        self.generation = 0
        self._origin = lo
        self._ticks = 0
        self._handle: TimerHandle | None = None

    @property
    def increment(self) -> float:
        span = self.max_time - self.min_time
        return span * self.tick_interval_ms * self.speed / (1000 * self.span_seconds)

    @property
    def progress(self) -> float:
        span = self.max_time - self.min_time
        if span <= 0:
            return 1.0 if self.state is ClockState.ENDED else 0.0
        return (self.time - self.min_time) / span

    @property
    def running(self) -> bool:
        return self.state is ClockState.RUNNING

    def set_speed(self, speed: float) -> None:
        self.speed = validate_speed(speed)
        self._rebase()

    def start(self, speed: float | None = None) -> None:
        if speed is not None:
            self.set_speed(speed)
        if self.state is ClockState.ENDED:
            self.time = self.min_time
            self._rebase()
        self.state = ClockState.RUNNING
        self._reschedule()

    def pause(self) -> None:
        self._cancel()
        if self.state is ClockState.RUNNING:
            self.state = ClockState.STOPPED

    def seek(self, time: float) -> float:
        self.time = min(self.max_time, max(self.min_time, time))
        self._rebase()
        if self.state is ClockState.ENDED and self.time < self.max_time:
            self.state = ClockState.STOPPED
        if self.state is ClockState.RUNNING:
            self._reschedule()
        else:
            self._cancel()
        return self.time

    def tick(self) -> float:
        """Advance by one step; clamps and ends at the upper bound."""
        if self.state is ClockState.ENDED:
            return self.time
        increment = self.increment
        self._ticks += 1
        new_time = self._origin + self._ticks * increment
        if new_time >= self.max_time - increment * END_TOLERANCE:
            self.time = self.max_time
            self.state = ClockState.ENDED
            self._cancel()
            logger.debug("clock reached end of span")
            if self.on_tick:
                self.on_tick(self.time)
            if self.on_end:
                self.on_end()
            return self.time
        self.time = new_time
        if self.on_tick:
            self.on_tick(self.time)
        return self.time

    def _rebase(self) -> None:
        self._origin = self.time
        self._ticks = 0

    def _cancel(self) -> None:
        self.generation += 1
        self.scheduler.cancel(self._handle)
        self._handle = None

    def _reschedule(self) -> None:
        self._cancel()
        self._handle = self.scheduler.call_later(self.tick_interval_ms, self._on_timer, self.generation)

    def _on_timer(self, generation: int) -> None:
        if generation != self.generation or self.state is not ClockState.RUNNING:
            return
        self._handle = None
        self.tick()
        if self.state is ClockState.RUNNING:
            self._handle = self.scheduler.call_later(
                self.tick_interval_ms, self._on_timer, self.generation
            )
